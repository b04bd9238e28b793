"""Parser for Xilinx ``.bit`` files."""

from __future__ import annotations

from .bitstream import BIT_REVERSE_TABLE, BitstreamError, ConfigBitstreamParser
from .display import print_error, print_warn


def _read_be(data: bytes, pos: int, size: int) -> int:
    if pos + size > len(data):
        raise BitstreamError("Error: truncated bitstream header")
    return int.from_bytes(data[pos:pos + size], "big")


class BitParser(ConfigBitstreamParser):
    """Reads the tagged header of a ``.bit`` file and extracts the payload."""

    def __init__(self, filename: str, reverse_order: bool,
                 verbose: bool = False) -> None:
        super().__init__(filename, verbose)
        self.reverse_order = reverse_order

    def _parse_design_field(self, text: str) -> None:
        # "design;UserID=xxx;Version=yyy"; a missing separator acts as index -1
        semi = text.find(";")
        self.header["design_name"] = (text if semi < 0 else text[:semi]).rstrip("\x00")
        start = semi + 1
        semi = text.find(";", start)
        start = text.find("=", start) + 1
        user_id = text[start:semi] if semi >= start else text[start:]
        self.header["userID"] = user_id.rstrip("\x00")
        start = semi + 1
        start = text.find("=", start) + 1
        self.header["toolVersion"] = text[start:].rstrip("\x00")

    def _parse_header(self) -> int:
        raw = self.raw_data
        pos = _read_be(raw, 0, 2) + 2
        _read_be(raw, pos, 2)
        pos += 2
        while True:
            if pos >= len(raw):
                raise BitstreamError("Error: truncated bitstream header")
            field_type = chr(raw[pos])
            pos += 1
            if field_type != "e":
                length = _read_be(raw, pos, 2)
                pos += 2
            else:
                length = 4
            field = raw[pos:pos + length]
            pos += length
            text = field.decode("latin-1")
            if field_type == "a":
                self._parse_design_field(text)
            elif field_type == "b":
                self.header["part_name"] = text.rstrip("\x00")
            elif field_type == "c":
                self.header["date"] = text.rstrip("\x00")
            elif field_type == "d":
                self.header["hour"] = text.rstrip("\x00")
            elif field_type == "e":
                self.bit_length = _read_be(field, 0, 4)
                return pos

    def parse(self) -> None:
        """Decode the header and extract the configuration data."""
        pos = self._parse_header()
        rest = self.file_size - pos
        if self.bit_length < rest:
            print_warn("File is longer than bitstream length declared in the header: "
                       f"{rest} vs {self.bit_length}")
        elif self.bit_length > rest:
            message = ("File is shorter than bitstream length declared in the header: "
                       f"{rest} vs {self.bit_length}")
            print_error(message)
            raise BitstreamError(message)
        data = bytes(self.raw_data[pos:pos + self.bit_length])
        if self.reverse_order:
            data = data.translate(BIT_REVERSE_TABLE)
        self.data = data
        self.bit_length *= 8