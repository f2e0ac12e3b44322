# src/ollama_native/transport/decoding.py
from __future__ import annotations
import json
import logging
from typing import Any, Iterable, Iterator

logger = logging.getLogger(__name__)


class StreamDecoder:
    """
    NDJSON lines -> parsed values.
    Best effort: blank lines (keep-alives) and lines that are not valid JSON are
    dropped, they never raise and never end the sequence.
    """

    def decode(self, lines: Iterable[str]) -> Iterator[Any]:
        for line in lines:
            text = line.strip()
            if not text:
                continue
            try:
                yield json.loads(text)
            except ValueError:
                logger.debug("Dropping undecodable stream line: %.200s", text)
