# src/ollama_native/transport/framing.py
from __future__ import annotations
import codecs
from typing import List


class LineFramer:
    """
    Splits a byte stream into text lines.
    Chunks may cut a line (or a multi-byte character) anywhere; the decoder is
    incremental so the emitted lines never depend on where the cuts fall.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[str]:
        self._buffer += self._decoder.decode(chunk)
        if "\n" not in self._buffer:
            return []
        *lines, self._buffer = self._buffer.split("\n")
        return lines

    def flush(self) -> List[str]:
        """End of stream: hand back whatever is left as one last line."""
        rest = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return [rest] if rest.strip() else []
