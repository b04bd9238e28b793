import pytest

from fpgaload.anlogic_bit import AnlogicBitParser
from fpgaload.bitstream import BitstreamError, reverse_byte

HEADER = b"# Tang Dynasty\n# Bitstream CRC: 0x1234\n\n"
BLOCKS = b"\x00\x10\xab\xcd" + b"\x00\x08\x01"


def write(tmp_path, content):
    path = tmp_path / "design.bit"
    path.write_bytes(content)
    return str(path)


def test_header(tmp_path):
    parser = AnlogicBitParser(write(tmp_path, HEADER + BLOCKS), False)
    parser.parse()
    assert parser.header == {"tool": "Tang Dynasty", "Bitstream CRC": "0x1234"}


def test_blocks_concatenated(tmp_path):
    parser = AnlogicBitParser(write(tmp_path, HEADER + BLOCKS), False)
    parser.parse()
    assert parser.data == b"\xab\xcd\x01"
    assert parser.bit_length == 24


def test_blocks_reversed(tmp_path):
    parser = AnlogicBitParser(write(tmp_path, HEADER + BLOCKS), True)
    parser.parse()
    assert parser.data == bytes(reverse_byte(b) for b in b"\xab\xcd\x01")


def test_header_line_must_start_with_hash(tmp_path):
    parser = AnlogicBitParser(write(tmp_path, b"bad\n\n" + BLOCKS), False)
    with pytest.raises(BitstreamError, match="must start with #"):
        parser.parse()


def test_header_must_end_with_zero(tmp_path):
    parser = AnlogicBitParser(write(tmp_path, HEADER + b"\x01\x08\x01"), False)
    with pytest.raises(BitstreamError, match="0x00"):
        parser.parse()


def test_block_length_multiple_of_eight(tmp_path):
    parser = AnlogicBitParser(write(tmp_path, HEADER + b"\x00\x09\x01\x02"), False)
    with pytest.raises(BitstreamError):
        parser.parse()


def test_block_past_end(tmp_path):
    parser = AnlogicBitParser(write(tmp_path, HEADER + b"\x00\x20\x01"), False)
    with pytest.raises(BitstreamError):
        parser.parse()