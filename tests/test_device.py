import pytest

from fpgaload.device import Device, DeviceError, ProgMode, ProgType


class _Board(Device):
    def program(self, offset, unprotect_flash):
        self.programmed = (offset, unprotect_flash)

    def protect_flash(self, length):
        return True

    def unprotect_flash(self):
        return True

    def bulk_erase_flash(self):
        return True

    def id_code(self):
        return 0


@pytest.mark.parametrize(
    "filename, file_type, expected",
    [
        ("design.bit", "", "bit"),
        ("design", "", "raw"),
        ("design.bit", "rbf", "rbf"),
        ("design.bit.gz", "", "bit"),
        ("design.rbf.gzip", "", "rbf"),
        ("", "", ""),
    ],
)
def test_file_extension(filename, file_type, expected):
    board = _Board.__new__(_Board)
    Device.__init__(board, None, filename, file_type, False, 0)
    assert board.file_extension == expected


def test_compressed_without_inner_extension_fails():
    board = _Board.__new__(_Board)
    with pytest.raises(DeviceError, match="is compressed"):
        Device.__init__(board, None, "design.gz", "", False, 0)


def test_defaults():
    board = _Board.__new__(_Board)
    Device.__init__(board, "chain", "design.bit", "", True, 0)
    assert board.mode == ProgMode.NONE
    assert board.jtag == "chain"
    assert board.verify is True
    assert board.verbose is False
    assert board.quiet is False


def test_quiet_and_verbose(capsys):
    quiet = _Board.__new__(_Board)
    Device.__init__(quiet, None, "a.bit", "", False, -1)
    assert quiet.quiet is True
    loud = _Board.__new__(_Board)
    Device.__init__(loud, None, "a.svf", "", False, 1)
    assert loud.verbose is True
    assert "File type : svf" in capsys.readouterr().out


def test_dump_flash_unsupported(capsys):
    board = _Board.__new__(_Board)
    Device.__init__(board, None, "a.bit", "", False, 0)
    assert Device.dump_flash(board, 0, 16) is False
    assert "dump flash not supported" in capsys.readouterr().err


def test_reset_unsupported():
    board = _Board.__new__(_Board)
    Device.__init__(board, None, "a.bit", "", False, 0)
    with pytest.raises(DeviceError):
        Device.reset(board)


def test_flash_mode_aliases_spi_mode():
    assert ProgMode.FLASH is ProgMode.SPI
    assert ProgType(2) is ProgType.RD_FLASH


def test_device_is_abstract():
    with pytest.raises(TypeError):
        Device(None, "a.bit", "", False, 0)