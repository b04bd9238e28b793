import pytest

from fpgaload.cmsis_dap import (
    CmsisDAP,
    Command,
    InfoId,
    InfoType,
    SEQ_TDO_CAPTURE,
    seq_nb_tck,
    seq_tms_shift,
)
from fpgaload.device import CableError


class FakeHid:
    def __init__(self, infos=None, connect_reply=(0x02, 0x02)):
        self.infos = {InfoId.HWCAP: b"\x02", InfoId.MAX_PKT_SZ: b"\x40\x00"}
        if infos:
            self.infos.update(infos)
        self.connect_reply = bytes(connect_reply)
        self.writes = []
        self.pending = b""
        self.closed = False
        self.silent = False

    def write(self, report):
        report = bytes(report)
        self.writes.append(report)
        self.pending = self._answer(report)
        return len(report)

    def read(self, size, timeout):
        if self.silent:
            return b""
        return self.pending[:size]

    def close(self):
        self.closed = True

    def _answer(self, report):
        cmd = report[1]
        if cmd == Command.INFO:
            data = self.infos.get(report[2], b"")
            return bytes([0, len(data)]) + data
        if cmd == Command.CONNECT:
            return self.connect_reply
        if cmd == Command.JTAG_SEQUENCE:
            count = report[2]
            pos = 3
            out = bytearray()
            for _ in range(count):
                info = report[pos]
                pos += 1
                nbits = (info & 0x3F) or 64
                nbytes = (nbits + 7) // 8
                if info & SEQ_TDO_CAPTURE:
                    out += report[pos:pos + nbytes]
                pos += nbytes
            return bytes([cmd, 0]) + bytes(out)
        return bytes([cmd, 0])

    def sequences(self):
        return [w for w in self.writes if w[1] == Command.JTAG_SEQUENCE]


@pytest.fixture
def probe():
    hid = FakeHid()
    dap = CmsisDAP(hid)
    hid.writes.clear()
    return dap, hid


def test_constructor_queries_caps_then_connects():
    hid = FakeHid()
    dap = CmsisDAP(hid)
    assert hid.writes[0][:3] == bytes([0, Command.INFO, InfoId.HWCAP])
    assert hid.writes[1][:3] == bytes([0, Command.CONNECT, 0x02])
    assert all(len(w) == 65 for w in hid.writes)
    assert dap.connected is True


def test_constructor_rejects_probe_without_jtag():
    hid = FakeHid(infos={InfoId.HWCAP: b"\x01"})
    with pytest.raises(CableError):
        CmsisDAP(hid)
    assert hid.closed is True


def test_constructor_fails_on_bad_connect_answer():
    hid = FakeHid(connect_reply=(0x02, 0x00))
    with pytest.raises(CableError, match="JTAG mode failed"):
        CmsisDAP(hid)
    assert hid.closed is True


def test_timeout_raises():
    hid = FakeHid()
    dap = CmsisDAP(hid)
    hid.silent = True
    with pytest.raises(CableError, match="timeout"):
        dap.set_clk_freq(1000)


def test_set_clk_freq_wire_format(probe):
    dap, hid = probe
    assert dap.set_clk_freq(1_000_000) == 1_000_000
    report = hid.writes[-1]
    assert report[1] == Command.SWJ_CLK
    assert report[2:6] == (1_000_000).to_bytes(4, "little")


def test_read_info_returns_value(probe):
    dap, _ = probe
    assert dap.read_info(InfoId.MAX_PKT_SZ) == b"\x40\x00"
    assert dap.read_info(InfoId.FWVERS) == b""


def test_display_info_short(probe, capsys):
    dap, _ = probe
    dap.display_info(InfoId.MAX_PKT_SZ, InfoType.SHORT)
    out = capsys.readouterr().out
    assert "max packet size" in out
    assert "64" in out


def test_write_tms_buffers_until_flush(probe):
    dap, hid = probe
    assert dap.write_tms(b"\x05", 3, False) == 3
    assert hid.writes == []
    assert dap.flush() == 3
    assert hid.writes[-1][:4] == bytes([0, Command.SWJ_SEQUENCE, 3, 0x05])
    assert dap.flush() == 0


def test_write_tms_flushes_when_full(probe):
    dap, hid = probe
    dap.write_tms(bytes([0xFF] * 32), 256, False)
    assert len(hid.writes) == 1
    report = hid.writes[0]
    assert report[1] == Command.SWJ_SEQUENCE
    assert report[2] == 0
    assert report[3:35] == bytes([0xFF] * 32)


def test_write_tdi_single_sequence_layout(probe):
    dap, hid = probe
    assert dap.write_tdi(b"\xA5", 8) is None
    report = hid.writes[-1]
    assert report[1:5] == bytes([Command.JTAG_SEQUENCE, 1, seq_nb_tck(8), 0xA5])


def test_write_tdi_end_adds_last_bit_sequence(probe):
    dap, hid = probe
    dap.write_tdi(b"\xA5", 8, end=True)
    report = hid.writes[-1]
    assert report[2] == 2
    assert report[3:5] == bytes([seq_nb_tck(7), 0xA5])
    assert report[5] == seq_tms_shift(1) | seq_nb_tck(1)
    assert report[6] == 1


def test_long_transfer_splits_into_packets(probe):
    dap, hid = probe
    dap.write_tdi(bytes(100), 800)
    sequences = hid.sequences()
    assert len(sequences) == 2
    assert sequences[0][2] == 7


@pytest.mark.parametrize("length", [8, 64, 440, 512, 1024])
@pytest.mark.parametrize("end", [False, True])
def test_write_tdi_loopback_round_trip(probe, length, end):
    dap, _ = probe
    tx = bytes((i * 37 + 11) & 0xFF for i in range(length // 8))
    assert dap.write_tdi(tx, length, end=end, read=True) == tx


def test_write_tdi_read_sets_capture_flag(probe):
    dap, hid = probe
    assert dap.write_tdi(b"\x3C", 8, read=True) == b"\x3C"
    assert hid.writes[-1][3] & SEQ_TDO_CAPTURE


def test_toggle_clk_holds_tms_and_tdi(probe):
    dap, hid = probe
    assert dap.toggle_clk(1, 1, 10) == 10
    report = hid.writes[-1]
    assert report[1:4] == bytes([Command.JTAG_SEQUENCE, 1,
                                 seq_tms_shift(1) | seq_nb_tck(10)])
    assert report[4:6] == b"\xff\xff"


def test_close_disconnects(probe):
    dap, hid = probe
    dap.close()
    assert hid.writes[-1][:2] == bytes([0, Command.DISCONNECT])
    assert hid.closed is True
    assert dap.connected is False


def test_context_manager_closes():
    hid = FakeHid()
    with CmsisDAP(hid) as dap:
        assert dap.connected is True
    assert hid.closed is True