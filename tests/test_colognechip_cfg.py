import pytest

from fpgaload.bitstream import BitstreamError
from fpgaload.colognechip_cfg import CologneChipCfgParser


def write(tmp_path, text):
    path = tmp_path / "design.cfg"
    path.write_text(text)
    return str(path)


def test_parses_bytes_and_skips_comments(tmp_path):
    parser = CologneChipCfgParser(write(tmp_path, "// start\nAB\n cd // x\n\n0x1f\n"))
    parser.parse()
    assert parser.data == b"\xab\xcd\x1f"
    assert parser.bit_length == 24


def test_whitespace_inside_value_is_removed(tmp_path):
    parser = CologneChipCfgParser(write(tmp_path, "1 2\n\tff"))
    parser.parse()
    assert parser.data == b"\x12\xff"


def test_empty_file(tmp_path):
    parser = CologneChipCfgParser(write(tmp_path, "// only comments\n"))
    parser.parse()
    assert parser.data == b""
    assert parser.bit_length == 0


def test_invalid_value(tmp_path):
    parser = CologneChipCfgParser(write(tmp_path, "zz\n"))
    with pytest.raises(BitstreamError):
        parser.parse()