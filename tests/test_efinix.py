import time

import pytest

from fpgaload.bitstream import reverse_byte
from fpgaload.device import DeviceError, TapState
from fpgaload.efinix import DONE_TIMEOUT, ENTERUSER, IDCODE, PROGRAM, Efinix

RST, DONE, CS, OE = 0x10, 0x20, 0x40, 0x80


class FakeJtag:
    def __init__(self):
        self.calls = []

    def set_state(self, state):
        self.calls.append(("state", state))

    def shift_ir(self, value, length, end_state):
        self.calls.append(("ir", value, length, end_state))

    def shift_dr(self, tx, length, end_state, read=False):
        self.calls.append(("dr", tx, length, end_state))
        return bytes((length + 7) // 8) if read else None


class FakeGpio:
    def __init__(self, inputs=0):
        self.inputs = inputs
        self.input_mask = 0
        self.output_mask = 0
        self.events = []

    def gpio_set_input(self, mask):
        self.input_mask |= mask

    def gpio_set_output(self, mask):
        self.output_mask |= mask

    def gpio_set(self, mask):
        self.events.append(("set", mask))

    def gpio_clear(self, mask):
        self.events.append(("clear", mask))

    def gpio_get(self):
        return self.inputs


@pytest.fixture
def sleeps(monkeypatch):
    calls = []
    monkeypatch.setattr(time, "sleep", calls.append)
    return calls


def make(jtag, gpio, filename="design.hex"):
    return Efinix(jtag, gpio, filename, "", RST, DONE, CS, OE, False, 0)


def test_spi_mode_pin_directions():
    gpio = FakeGpio()
    make(None, gpio)
    assert gpio.input_mask == DONE
    assert gpio.output_mask == RST | OE


def test_jtag_mode_pin_directions():
    gpio = FakeGpio()
    make(FakeJtag(), gpio)
    assert gpio.output_mask == OE | RST | CS


def test_spi_mode_requires_gpio():
    with pytest.raises(DeviceError):
        make(None, None)


def test_program_jtag_sequence(sleeps):
    jtag = FakeJtag()
    gpio = FakeGpio()
    data = b"\x01\x02\x80"
    make(jtag, gpio).program_jtag(data)
    assert gpio.events == [("clear", OE | CS | RST), ("set", RST), ("set", OE | RST)]
    irs = [c for c in jtag.calls if c[0] == "ir"]
    assert irs[0] == ("ir", PROGRAM, 4, TapState.EXIT1_IR)
    assert irs[1] == ("ir", PROGRAM, 4, TapState.EXIT1_IR)
    assert irs[2] == ("ir", ENTERUSER, 4, TapState.EXIT1_IR)
    assert irs[-1][1] == IDCODE
    first_dr = next(c for c in jtag.calls if c[0] == "dr")
    assert first_dr[1] == bytes(reverse_byte(b) for b in data)
    assert first_dr[2] == len(data) * 8
    assert first_dr[3] == TapState.EXIT1_DR


def test_program_jtag_without_gpio(sleeps):
    jtag = FakeJtag()
    make(jtag, None).program_jtag(b"\x00")
    assert jtag.calls[0] == ("state", TapState.RUN_TEST_IDLE)


def test_program_jtag_chunking(sleeps):
    jtag = FakeJtag()
    data = bytes(range(256)) * 3
    make(jtag, None).program_jtag(data)
    drs = [c for c in jtag.calls if c[0] == "dr"][:-1]
    assert [len(c[1]) for c in drs] == [512, 256]
    assert drs[0][3] == TapState.SHIFT_DR
    assert drs[1][3] == TapState.EXIT1_DR
    restored = bytes(reverse_byte(b) for b in b"".join(c[1] for c in drs))
    assert restored == data


def test_program_jtag_exact_multiple_stays_in_shift(sleeps):
    jtag = FakeJtag()
    make(jtag, None).program_jtag(bytes(512))
    drs = [c for c in jtag.calls if c[0] == "dr"]
    assert drs[0][3] == TapState.SHIFT_DR


def test_program_hex_file(tmp_path, sleeps):
    path = tmp_path / "design.hex"
    path.write_text("a5\n01\n")
    jtag = FakeJtag()
    make(jtag, None, str(path)).program()
    first_dr = next(c for c in jtag.calls if c[0] == "dr")
    assert first_dr[1] == bytes([reverse_byte(0xA5), reverse_byte(0x01)])


def test_raw_at_flash_start_rejected(tmp_path):
    path = tmp_path / "design.bin"
    path.write_bytes(b"\x00")
    with pytest.raises(DeviceError):
        make(None, FakeGpio(), str(path)).program(0)


def test_spi_flash_unavailable(tmp_path):
    path = tmp_path / "design.hex"
    path.write_text("00\n")
    with pytest.raises(DeviceError):
        make(None, FakeGpio(), str(path)).program(0x1000)


def test_reset_in_jtag_mode_does_nothing(sleeps):
    gpio = FakeGpio()
    make(FakeJtag(), gpio).reset()
    assert gpio.events == []


def test_reset_in_spi_mode(sleeps):
    gpio = FakeGpio(DONE)
    make(None, gpio).reset()
    assert gpio.events == [("clear", RST | OE), ("set", RST | OE)]


def test_wait_done_success(sleeps):
    assert make(None, FakeGpio(DONE)).wait_done() is True
    assert len(sleeps) == 1


def test_wait_done_timeout(sleeps):
    assert make(None, FakeGpio(0)).wait_done() is False
    assert len(sleeps) == DONE_TIMEOUT


def test_unsupported_flash_operations():
    device = make(FakeJtag(), None)
    assert device.protect_flash(4) is False
    assert device.unprotect_flash() is False
    assert device.bulk_erase_flash() is False
    assert device.id_code() == 0