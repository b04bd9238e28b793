"""Parser for CologneChip ``.cfg`` files: one hexadecimal byte per line."""

from __future__ import annotations

import re

from .bitstream import BitstreamError, ConfigBitstreamParser

_SPACES = re.compile(r"[ \t\n\v\f\r]")
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


class CologneChipCfgParser(ConfigBitstreamParser):
    """Reads bytes written in hexadecimal, with ``//`` comments."""

    def __init__(self, filename: str) -> None:
        super().__init__(filename, False)

    def parse(self) -> None:
        """Convert each non-empty line to one byte."""
        text = self.raw_data.decode("latin-1")
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        values = []
        for line in lines:
            value = _SPACES.sub("", line.split("//", 1)[0])
            if value:
                values.append(_hex_byte(value))
        self.data = bytes(values)
        self.bit_length = len(self.data) * 8