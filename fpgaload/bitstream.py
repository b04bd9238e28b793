"""Reading of configuration files and the base of all bitstream parsers."""

from __future__ import annotations

import sys
import zlib
from abc import ABC, abstractmethod
from pathlib import Path

from .display import print_info, print_success

BIT_REVERSE_TABLE = bytes(int(f"{i:08b}"[::-1], 2) for i in range(256))


class BitstreamError(Exception):
    """Raised when a bitstream cannot be read or is malformed."""


def reverse_byte(value: int) -> int:
    """Return ``value`` (taken as one byte) with its bit order reversed."""
    return BIT_REVERSE_TABLE[value & 0xFF]


def decompress_gzip(data: bytes) -> bytes:
    """Decompress one gzip member."""
    decoder = zlib.decompressobj(16 + zlib.MAX_WBITS)
    try:
        out = decoder.decompress(data) + decoder.flush()
    except zlib.error as exc:
        raise BitstreamError("Error: decompress failed") from exc
    if not decoder.eof:
        raise BitstreamError("Error: decompress failed")
    return out


class ConfigBitstreamParser(ABC):
    """Loads a file (or standard input) for a format-specific parser.

    After ``parse`` the payload is in ``data`` and its size in bits in
    ``bit_length``; header fields, if any, are in ``header``.
    """

    def __init__(self, filename: str = "", verbose: bool = False) -> None:
        self.filename = filename
        self.verbose = verbose
        self.bit_length = 0
        self.data = b""
        self.header: dict[str, str] = {}
        if filename:
            self.raw_data = self._read_file(filename)
        elif not sys.stdin.isatty():
            self.raw_data = sys.stdin.buffer.read()
        else:
            raise BitstreamError("Error: fail to parse. No filename or pipe")
        self.file_size = len(self.raw_data)

    def _read_file(self, filename: str) -> bytes:
        dot = filename.rfind(".")
        try:
            raw = Path(filename).read_bytes()
        except OSError:
            # a missing compressed file may exist without its .gz suffix
            if dot < 0:
                raise BitstreamError(f"Error: fail to open {filename}") from None
            self.filename = filename[:dot]
            try:
                raw = Path(self.filename).read_bytes()
            except OSError:
                raise BitstreamError(f"Error: fail to open {filename}") from None
        if dot >= 0:
            extension = self.filename[self.filename.rfind(".") + 1:]
            if extension in ("gz", "gzip"):
                raw = decompress_gzip(raw)
        return raw

    @abstractmethod
    def parse(self) -> None:
        """Decode ``raw_data`` into ``data``, ``bit_length`` and ``header``."""

    def header_value(self, key: str) -> str:
        """Return the header field ``key``."""
        try:
            return self.header[key]
        except KeyError:
            raise BitstreamError(f"Error key {key} not found") from None

    def display_header(self) -> None:
        """Print the header fields, sorted by key."""
        if not self.header:
            return
        print("bitstream header infos")
        for key, value in sorted(self.header.items()):
            print_info(f"{key}: ", False)
            print_success(value)