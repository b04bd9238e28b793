"""Parser for Anlogic ``.bit`` files: an ASCII header followed by data blocks."""

from __future__ import annotations

from .bitstream import BIT_REVERSE_TABLE, BitstreamError, ConfigBitstreamParser
from .display import print_error, print_info


class AnlogicBitParser(ConfigBitstreamParser):
    """Reads the ``#`` header lines and concatenates the length-prefixed blocks."""

    def __init__(self, filename: str, reverse_order: bool,
                 verbose: bool = False) -> None:
        super().__init__(filename, verbose)
        self.reverse_order = reverse_order

    def _parse_header(self) -> int:
        raw = self.raw_data
        consumed = 0
        while consumed < len(raw):
            end = raw.find(b"\n", consumed)
            line = raw[consumed:] if end < 0 else raw[consumed:end]
            consumed += len(line) + 1
            if not line:
                print_info("header end")
                break
            if line[:1] != b"#":
                print_error("header must start with #")
                raise BitstreamError("header must start with #")
            content = line[2:].decode("latin-1")
            key, sep, value = content.partition(":")
            if sep:
                self.header[key] = value[1:]
            else:
                self.header["tool"] = content
        if consumed >= len(raw) or raw[consumed] != 0x00:
            print_error("Header must end with 0x00 (binary) bit")
            raise BitstreamError("Header must end with 0x00 (binary) bit")
        return consumed

    def _blocks(self, pos: int):
        raw = self.raw_data
        while True:
            if pos + 2 > len(raw):
                raise BitstreamError("truncated block length")
            bits = int.from_bytes(raw[pos:pos + 2], "big")
            pos += 2
            if bits & 7:
                raise BitstreamError("block length is not a whole number of bytes")
            size = bits >> 3
            if pos + size > len(raw):
                raise BitstreamError("block runs past the end of the file")
            yield raw[pos:pos + size]
            pos += size
            if pos >= len(raw):
                return

    def parse(self) -> None:
        """Decode the header and gather the data blocks."""
        data = b"".join(self._blocks(self._parse_header()))
        if self.reverse_order:
            data = data.translate(BIT_REVERSE_TABLE)
        self.data = data
        self.bit_length = len(data) * 8