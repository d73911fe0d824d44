"""Helpers for describing characters and reading UTF-8 sequences."""

from __future__ import annotations

EOF = -1

_ESCAPES = {ord("\n"): "n", ord("\r"): "r", ord("\t"): "t"}

# For each lead byte range: allowed range of the first continuation byte,
# and the total sequence length.
_CONT = (0x80, 0xBF)


def print_char(c: int | None) -> str:
    """Describe a character code for diagnostics, e.g. 'A', '\\n' or 0x1F."""
    if c is None or c == EOF:
        return "EOF"
    if 0x20 <= c <= 0x7E:
        return f"'{chr(c)}'"
    if c in _ESCAPES:
        return f"'\\{_ESCAPES[c]}'"
    return f"0x{c & 0xFF:02X}"


def _lead(byte: int) -> tuple[int, tuple[int, int]] | None:
    """Return the sequence length and first continuation range for a lead byte."""
    if byte <= 0x7F:
        return 1, _CONT
    if 0xC2 <= byte <= 0xDF:
        return 2, _CONT
    if byte == 0xE0:
        return 3, (0xA0, 0xBF)
    if byte == 0xED:
        return 3, (0x80, 0x9F)
    if 0xE1 <= byte <= 0xEF:
        return 3, _CONT
    if byte == 0xF0:
        return 4, (0x90, 0xBF)
    if 0xF1 <= byte <= 0xF3:
        return 4, _CONT
    if byte == 0xF4:
        return 4, (0x80, 0x8F)
    return None


def read_utf8_char(data: bytes) -> bytes:
    """Return the bytes of the first UTF-8 character of data.

    An empty result means the data does not start with a complete,
    well-formed character.
    """
    if not data:
        return b""
    lead = _lead(data[0])
    if lead is None:
        return b""
    length, (low, high) = lead
    if len(data) < length:
        return b""
    for position in range(1, length):
        byte = data[position]
        if not low <= byte <= high:
            return b""
        low, high = _CONT
    return bytes(data[:length])