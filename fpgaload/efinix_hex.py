"""Parser for Efinix ``.hex`` files: one hexadecimal byte per line."""

from __future__ import annotations

import re

from .bitstream import BitstreamError, ConfigBitstreamParser

_HEX_PREFIX = re.compile(
    r"[ \t\n\v\f\r]*([+-]?)(?:0[xX](?=[0-9a-fA-F]))?([0-9a-fA-F]+)")


def _hex_byte(text: str) -> int:
    match = _HEX_PREFIX.match(text)
    if match is None:
        raise BitstreamError(f"invalid hexadecimal value: {text!r}")
    value = int(match.group(2), 16)
    if match.group(1) == "-":
        value = -value
    return value & 0xFF


class EfinixHexParser(ConfigBitstreamParser):
    """Reads a file holding one hexadecimal byte per line."""

    def __init__(self, filename: str) -> None:
        super().__init__(filename, False)

    def parse(self) -> None:
        """Convert every line to one byte."""
        lines = self.raw_data.decode("latin-1").split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        self.data = bytes(_hex_byte(line) for line in lines)
        self.bit_length = len(self.data) * 8