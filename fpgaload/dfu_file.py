"""Parser for DFU files: a firmware image with an optional DFU suffix."""

from __future__ import annotations

import zlib

from .bitstream import BitstreamError, ConfigBitstreamParser
from .display import print_error, print_warn

_SUFFIX_MIN_FILE = 16


def dfu_crc32(data: bytes) -> int:
    """Return the DFU suffix CRC of ``data``: CRC-32 without the final inversion."""
    return zlib.crc32(data) ^ 0xFFFFFFFF


class DFUFileParser(ConfigBitstreamParser):
    """Reads a DFU image and, when present, checks and decodes its suffix."""

    def __init__(self, filename: str, verbose: bool = False) -> None:
        super().__init__(filename, verbose)
        self.bcd_dfu = 0
        self.id_vendor = 0
        self.id_product = 0
        self.bcd_device = 0
        self.dw_crc = 0
        self.suffix_length = 0

    def parse_header(self) -> bool:
        """Decode the DFU suffix into ``header``.

        Returns False when the file carries no DFU signature; raises
        BitstreamError when the file is too short to hold a suffix.
        """
        raw = self.raw_data
        size = self.file_size
        if size <= _SUFFIX_MIN_FILE:
            raise BitstreamError("Error: file too short for a DFU suffix")

        signature = raw[size - 8:size - 5][::-1].decode("latin-1")
        if signature != "DFU":
            if self.verbose:
                print_warn("Not a DFU file")
            return False

        self.dw_crc = int.from_bytes(raw[size - 4:size], "little")
        self.suffix_length = raw[size - 5]
        self.bcd_dfu = int.from_bytes(raw[size - 10:size - 8], "little")
        self.id_vendor = int.from_bytes(raw[size - 12:size - 10], "little")
        self.id_product = int.from_bytes(raw[size - 14:size - 12], "little")
        self.bcd_device = int.from_bytes(raw[size - 16:size - 14], "little")

        self.header = {
            "dwCRC": f"0x{self.dw_crc:08x}",
            "bLength": str(self.suffix_length),
            "ucDfuSignature": signature,
            "bcdDFU": f"0x{self.bcd_dfu:04x}",
            "idVendor": f"0x{self.id_vendor:04x}",
            "idProduct": f"0x{self.id_product:04x}",
            "bcdDevice": f"0X{self.bcd_device:04x}",
        }
        return True

    def parse(self) -> None:
        """Extract the image and, if a suffix is present, verify its CRC."""
        has_suffix = self.parse_header()
        end = max(self.file_size - self.suffix_length, 0)
        data = bytes(self.raw_data[:end])

        if has_suffix:
            crc = dfu_crc32(bytes(self.raw_data[:self.file_size - 4]))
            if crc != self.dw_crc:
                print_error("Error: CRC didn't match computed value")
                raise BitstreamError(
                    f"CRC mismatch: {crc:08x} instead of {self.dw_crc:08x}")

        self.data = data
        self.bit_length = len(data) * 8