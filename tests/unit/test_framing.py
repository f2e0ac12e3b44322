# tests/unit/test_framing.py

from __future__ import annotations
import sys
from pathlib import Path

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from ollama_native.transport.framing import LineFramer

PAYLOAD = '{"response":"café ☃","done":false}\n{"response":"b","done":true}\n'.encode("utf-8")
EXPECTED = ['{"response":"café ☃","done":false}', '{"response":"b","done":true}']


def frame(chunks):
    framer = LineFramer()
    lines = []
    for chunk in chunks:
        lines.extend(framer.feed(chunk))
    lines.extend(framer.flush())
    return lines


def test_whole_payload_in_one_chunk():
    assert frame([PAYLOAD]) == EXPECTED


def test_every_two_way_split_gives_same_lines():
    # includes cuts inside the multi-byte characters
    for i in range(len(PAYLOAD) + 1):
        assert frame([PAYLOAD[:i], PAYLOAD[i:]]) == EXPECTED, f"split at byte {i}"


def test_byte_by_byte_feed():
    assert frame([PAYLOAD[i:i + 1] for i in range(len(PAYLOAD))]) == EXPECTED


def test_partial_line_is_held_until_newline():
    framer = LineFramer()
    assert framer.feed(b'{"a":') == []
    assert framer.feed(b'1}\n{"b"') == ['{"a":1}']
    assert framer.feed(b":2}\n") == ['{"b":2}']


def test_flush_returns_trailing_line_without_newline():
    framer = LineFramer()
    assert framer.feed(b'{"a":1}\n{"done":true}') == ['{"a":1}']
    assert framer.flush() == ['{"done":true}']
    # buffer is empty afterwards
    assert framer.flush() == []


def test_flush_ignores_whitespace_remainder():
    framer = LineFramer()
    framer.feed(b'{"a":1}\n  ')
    assert framer.flush() == []


def test_blank_lines_are_passed_through_for_the_decoder():
    framer = LineFramer()
    assert framer.feed(b"\n\n{}\n") == ["", "", "{}"]
