import gzip
import io
import sys

import pytest

from fpgaload.bitstream import (
    BitstreamError,
    ConfigBitstreamParser,
    decompress_gzip,
    reverse_byte,
)


class _Copy(ConfigBitstreamParser):
    def parse(self):
        self.data = bytes(self.raw_data)
        self.bit_length = len(self.data) * 8


class _Pipe:
    def __init__(self, payload, tty=False):
        self.buffer = io.BytesIO(payload)
        self._tty = tty

    def isatty(self):
        return self._tty


def test_reverse_byte_pinned():
    assert reverse_byte(0x01) == 128
    assert reverse_byte(0xF0) == 0x0F


def test_reverse_byte_is_involution():
    assert all(reverse_byte(reverse_byte(v)) == v for v in range(256))
    assert sorted(reverse_byte(v) for v in range(256)) == list(range(256))


def test_decompress_round_trip():
    payload = bytes(range(256)) * 10
    assert decompress_gzip(gzip.compress(payload)) == payload


def test_decompress_rejects_garbage():
    with pytest.raises(BitstreamError, match="decompress failed"):
        decompress_gzip(b"not gzip at all")


def test_reads_file(tmp_path):
    path = tmp_path / "image.bin"
    path.write_bytes(b"\x01\x02\x03")
    parser = _Copy.__new__(_Copy)
    ConfigBitstreamParser.__init__(parser, str(path))
    parser.parse()
    assert parser.raw_data == b"\x01\x02\x03"
    assert parser.file_size == 3
    assert parser.data == b"\x01\x02\x03"
    assert parser.bit_length == 24


def test_reads_gzip_file(tmp_path):
    path = tmp_path / "image.bin.gz"
    path.write_bytes(gzip.compress(b"payload"))
    parser = _Copy.__new__(_Copy)
    ConfigBitstreamParser.__init__(parser, str(path))
    assert parser.raw_data == b"payload"
    assert parser.file_size == len(b"payload")


def test_falls_back_to_uncompressed_name(tmp_path):
    plain = tmp_path / "image.bin"
    plain.write_bytes(b"abc")
    parser = _Copy.__new__(_Copy)
    ConfigBitstreamParser.__init__(parser, str(plain) + ".gz")
    assert parser.raw_data == b"abc"
    assert parser.filename == str(plain)


def test_missing_file(tmp_path):
    parser = _Copy.__new__(_Copy)
    with pytest.raises(BitstreamError, match="fail to open"):
        ConfigBitstreamParser.__init__(parser, str(tmp_path / "absent.bit"))


def test_reads_from_pipe(monkeypatch):
    monkeypatch.setattr(sys, "stdin", _Pipe(b"from pipe"))
    parser = _Copy.__new__(_Copy)
    ConfigBitstreamParser.__init__(parser, "")
    assert parser.raw_data == b"from pipe"
    assert parser.file_size == len(b"from pipe")


def test_no_file_and_terminal(monkeypatch):
    monkeypatch.setattr(sys, "stdin", _Pipe(b"", tty=True))
    parser = _Copy.__new__(_Copy)
    with pytest.raises(BitstreamError, match="No filename or pipe"):
        ConfigBitstreamParser.__init__(parser, "")


def test_header_value(tmp_path):
    path = tmp_path / "x.bin"
    path.write_bytes(b"z")
    parser = _Copy.__new__(_Copy)
    ConfigBitstreamParser.__init__(parser, str(path))
    parser.header["part"] = "abc"
    assert ConfigBitstreamParser.header_value(parser, "part") == "abc"
    with pytest.raises(BitstreamError, match="Error key missing not found"):
        ConfigBitstreamParser.header_value(parser, "missing")


def test_display_header_sorted(tmp_path, capsys):
    path = tmp_path / "x.bin"
    path.write_bytes(b"z")
    parser = _Copy.__new__(_Copy)
    ConfigBitstreamParser.__init__(parser, str(path))
    ConfigBitstreamParser.display_header(parser)
    assert capsys.readouterr().out == ""
    parser.header = {"b": "2", "a": "1"}
    ConfigBitstreamParser.display_header(parser)
    assert capsys.readouterr().out == "bitstream header infos\na: 1\nb: 2\n"