"""JTAG through a CMSIS-DAP probe reached over HID reports."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Optional

from .device import CableError
from .display import print_error, print_info, print_success

REPORT_SIZE = 65
TIMEOUT_MS = 1000
MAX_TMS_STATES = 256
MAX_SEQUENCES = 7
_PAYLOAD_LIMIT = 63

SEQ_TDO_CAPTURE = 1 << 7


def seq_tms_shift(tms: int) -> int:
    """TMS bit of a JTAG sequence info byte."""
    return (tms & 0x01) << 6


def seq_nb_tck(count: int) -> int:
    """Clock count field of a JTAG sequence info byte (0 means 64)."""
    return count & 0x3F


class Command(IntEnum):
    """CMSIS-DAP commands."""

    INFO = 0x00
    HOSTSTATUS = 0x01
    CONNECT = 0x02
    DISCONNECT = 0x03
    RESETTARGET = 0x0A
    SWJ_CLK = 0x11
    SWJ_SEQUENCE = 0x12
    JTAG_SEQUENCE = 0x14


CONNECT_DEFAULT = 0x00
CONNECT_SWD = 0x01
CONNECT_JTAG = 0x02

DAP_OK = 0x00
DAP_ERROR = 0xFF


class InfoId(IntEnum):
    """Identifiers of the DAP_Info command."""

    VID = 0x01
    PID = 0x02
    SERNUM = 0x03
    FWVERS = 0x04
    TARGET_DEV_VENDOR = 0x05
    TARGET_DEV_NAME = 0x06
    HWCAP = 0xF0
    SWO_TEST_TIM_PARAM = 0xF1
    SWO_TRACE_BUF_SIZE = 0xFD
    MAX_PKT_CNT = 0xFE
    MAX_PKT_SZ = 0xFF


INFO_NAMES = {
    InfoId.VID: "VID",
    InfoId.PID: "PID",
    InfoId.SERNUM: "serial number",
    InfoId.FWVERS: "firmware version",
    InfoId.TARGET_DEV_VENDOR: "target device vendor",
    InfoId.TARGET_DEV_NAME: "target device name",
    InfoId.HWCAP: "hardware capabilities",
    InfoId.SWO_TEST_TIM_PARAM: "test domain timer parameter",
    InfoId.SWO_TRACE_BUF_SIZE: "SWO trace buffer size",
    InfoId.MAX_PKT_CNT: "max packet cnt",
    InfoId.MAX_PKT_SZ: "max packet size",
}


class InfoType(IntEnum):
    """Kinds of value returned by DAP_Info."""

    STRING = 0
    BYTE = 1
    SHORT = 2
    WORD = 3


_EXPECTED_SIZE = {InfoType.BYTE: 1, InfoType.SHORT: 2, InfoType.WORD: 4}

_VERBOSE_INFOS = (
    (InfoId.VID, InfoType.STRING),
    (InfoId.PID, InfoType.STRING),
    (InfoId.SERNUM, InfoType.STRING),
    (InfoId.FWVERS, InfoType.STRING),
    (InfoId.TARGET_DEV_VENDOR, InfoType.STRING),
    (InfoId.TARGET_DEV_NAME, InfoType.STRING),
    (InfoId.HWCAP, InfoType.BYTE),
    (InfoId.SWO_TRACE_BUF_SIZE, InfoType.WORD),
    (InfoId.MAX_PKT_CNT, InfoType.BYTE),
    (InfoId.MAX_PKT_SZ, InfoType.SHORT),
)


def _bit(data: bytes, index: int) -> bool:
    return bool(data[index >> 3] & (1 << (index & 0x07)))


class CmsisDAP:
    """Drives an already opened CMSIS-DAP HID device in JTAG mode.

    The device provides ``write(report)`` returning the number of bytes
    written (negative on failure), ``read(size, timeout)`` returning the
    bytes received (empty on timeout) and ``close()``.
    """

    def __init__(self, hid: Any, vid: int = 0, pid: int = 0,
                 serial_number: str = "", verbose: int = 0) -> None:
        self.hid = hid
        self.vid = vid
        self.pid = pid
        self.serial_number = serial_number
        self.verbose = verbose
        self.clk_hz = 0
        self.connected = False
        self._tms = bytearray(MAX_TMS_STATES // 8)
        self._num_tms = 0

        try:
            if verbose:
                for info, info_type in _VERBOSE_INFOS:
                    self.display_info(info, info_type)
            caps = self.read_info(InfoId.HWCAP)
            if verbose:
                print("Hardware cap " + " ".join(f"{b:02x}" for b in caps[:1]))
            if not caps or not caps[0] & (1 << 1):
                raise CableError("JTAG is not supported by the probe")
            try:
                self.connect()
            except CableError as exc:
                raise CableError("DAP connection in JTAG mode failed") from exc
        except CableError:
            self.hid.close()
            raise

    def __enter__(self) -> "CmsisDAP":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # low level exchanges

    def _send(self, body: bytes) -> bytes:
        report = (b"\x00" + bytes(body)).ljust(REPORT_SIZE, b"\x00")
        try:
            written = self.hid.write(report)
        except OSError as exc:
            raise CableError(f"Error: hid write failed: {exc}") from exc
        if written is not None and written < 0:
            raise CableError("Error: hid write failed")
        try:
            reply = bytes(self.hid.read(REPORT_SIZE, TIMEOUT_MS))
        except OSError as exc:
            raise CableError(f"Error comm: {exc}") from exc
        if not reply:
            raise CableError("Error timeout")
        return reply.ljust(REPORT_SIZE, b"\x00")

    def _xfer(self, instruction: int, payload: bytes = b"",
              rx_len: int = 0) -> bytes:
        """Send a command and check its echo; return ``rx_len`` reply bytes."""
        reply = self._send(bytes([instruction]) + bytes(payload))
        if reply[0] != instruction and reply[1] != DAP_OK:
            raise CableError("Error: command error")
        return reply[2:2 + rx_len]

    def _read_info_raw(self, info: int) -> bytes:
        return self._send(bytes([Command.INFO, info]))

    # probe management

    def connect(self) -> bool:
        """Switch the probe to JTAG mode."""
        if self.connected:
            return True
        reply = self._send(bytes([Command.CONNECT, CONNECT_JTAG]))
        if reply[0] != Command.CONNECT or reply[1] != CONNECT_JTAG:
            raise CableError("DAP connect: unexpected answer")
        self.connected = True
        return True

    def disconnect(self) -> bool:
        """Release the probe from JTAG mode."""
        if not self.connected:
            return True
        self._send(bytes([Command.DISCONNECT]))
        self.connected = False
        return True

    def reset_target(self) -> bool:
        """Ask the probe to reset the target."""
        self._send(bytes([Command.RESETTARGET]))
        return True

    def read_info(self, info: int) -> bytes:
        """Return the value bytes of a DAP_Info request."""
        reply = self._read_info_raw(info)
        return reply[2:2 + reply[1]]

    def display_info(self, info: int, info_type: int) -> None:
        """Print one DAP_Info value."""
        name = INFO_NAMES.get(info, f"info {info:#x}")
        try:
            reply = self._read_info_raw(info)
        except CableError as exc:
            print(f"received error {exc} for command {info}")
            return
        size = reply[1]
        data = reply[2:2 + size]

        if size == 0:
            if info == InfoId.VID:
                print_info(f"\t{name}: {self.vid:04x}")
            elif info == InfoId.PID:
                print_info(f"\t{name}: {self.pid:04x}")
            elif info == InfoId.SERNUM and self.serial_number:
                print_info(f"\t{name}: {self.serial_number}")
            elif info in (InfoId.TARGET_DEV_NAME, InfoId.TARGET_DEV_VENDOR):
                pass
            else:
                print_error(f"\t{name} : NA")
            return

        expected = _EXPECTED_SIZE.get(InfoType(info_type))
        if expected is not None and size != expected:
            print(f"Error: Waiting for {expected}Byte received {size}")
            print(" ".join(f"{b:02x}" for b in reply[:64]) + " ")
            return

        print_info(f"\t{name} : ", False)
        if info_type == InfoType.BYTE:
            print(f"{data[0]:02x}")
        elif info_type in (InfoType.SHORT, InfoType.WORD):
            print(int.from_bytes(data, "little"))
        else:
            print(data.split(b"\x00", 1)[0].decode("latin-1"))

    def set_clk_freq(self, clk_hz: int) -> int:
        """Program the probe clock frequency (Hz)."""
        self.clk_hz = clk_hz
        try:
            self._xfer(Command.SWJ_CLK, (clk_hz & 0xFFFFFFFF).to_bytes(4, "little"))
        except CableError:
            print_error("Failed to configure clk frequency")
            raise
        if self.verbose:
            print_success("clk frequency conf done")
        return clk_hz

    # JTAG operations

    def write_tms(self, tms: bytes, length: int, flush_buffer: bool = True) -> int:
        """Queue ``length`` TMS states (LSB first); send when full or asked to."""
        if length == 0:
            return self.flush() if flush_buffer else 0
        for index in range(length):
            if self._num_tms == MAX_TMS_STATES:
                self.flush()
            byte, mask = self._num_tms >> 3, 1 << (self._num_tms & 0x07)
            if _bit(tms, index):
                self._tms[byte] |= mask
            else:
                self._tms[byte] &= ~mask & 0xFF
            self._num_tms += 1
        if flush_buffer or self._num_tms == MAX_TMS_STATES:
            self.flush()
        return length

    def flush(self) -> int:
        """Send the queued TMS states; return how many were sent."""
        count = self._num_tms
        if count == 0:
            return 0
        payload = bytes([count & 0xFF]) + bytes(self._tms[:(count + 7) // 8])
        self._num_tms = 0
        self._xfer(Command.SWJ_SEQUENCE, payload)
        return count

    def _write_jtag_sequence(self, tms: int, tx: Optional[bytes], read: bool,
                             length: int, end: bool) -> Optional[bytes]:
        real_len = length - (1 if end else 0)
        byte_len = (length + 7) // 8
        tx_data = bytes(byte_len) if tx is None else bytes(tx[:byte_len]).ljust(byte_len, b"\x00")
        rx = bytearray(byte_len) if read else None
        capture = SEQ_TDO_CAPTURE if read else 0
        info_base = capture | seq_tms_shift(tms)

        self.flush()

        payload = bytearray([0])
        seq_num = 0
        to_read = 0
        tx_pos = 0
        rx_pos = 0
        rest = real_len
        while rest > 0:
            if rest >= 64:
                nbytes, nbits = 8, 64
            else:
                nbytes, nbits = (rest + 7) // 8, rest
            if nbytes + 1 + len(payload) > _PAYLOAD_LIMIT:
                nbytes = _PAYLOAD_LIMIT - len(payload) - 1
                nbits = nbytes * 8
            payload.append(info_base | seq_nb_tck(0 if nbits == 64 else nbits))
            payload += tx_data[tx_pos:tx_pos + nbytes]
            tx_pos += nbytes
            rest -= nbits
            seq_num += 1
            to_read += nbytes

            if (not end and rest == 0) or seq_num == MAX_SEQUENCES:
                payload[0] = seq_num
                reply = self._xfer(Command.JTAG_SEQUENCE, payload,
                                   to_read if read else 0)
                if rx is not None:
                    rx[rx_pos:rx_pos + to_read] = reply
                    rx_pos += to_read
                payload = bytearray([0])
                seq_num = 0
                to_read = 0

        if end:
            to_read += 1
            payload[0] = seq_num + 1
            payload.append(capture | seq_tms_shift(0 if tms else 1) | seq_nb_tck(1))
            payload.append(1 if _bit(tx_data, real_len) else 0)
            reply = self._xfer(Command.JTAG_SEQUENCE, payload,
                               to_read if read else 0)
            if rx is not None:
                rx[rx_pos:rx_pos + to_read - 1] = reply[:to_read - 1]
                mask = 1 << (real_len & 0x07)
                if reply[to_read - 1] & 0x01:
                    rx[real_len >> 3] |= mask
                else:
                    rx[real_len >> 3] &= ~mask & 0xFF

        return bytes(rx) if rx is not None else None

    def write_tdi(self, tx: Optional[bytes], length: int, end: bool = False,
                  read: bool = False) -> Optional[bytes]:
        """Shift ``length`` TDI bits (LSB first), raising TMS with the last if ``end``.

        Returns the TDO bits when ``read`` is set, otherwise None.
        """
        return self._write_jtag_sequence(0, tx, read, length, end)

    def toggle_clk(self, tms: int, tdi: int, clk_len: int) -> int:
        """Send ``clk_len`` clock cycles with TMS and TDI held constant."""
        fill = b"\xff" if tdi else b"\x00"
        self._write_jtag_sequence(tms, fill * ((clk_len + 7) // 8), False,
                                  clk_len, False)
        return clk_len

    def close(self) -> None:
        """Disconnect the probe and close the HID device."""
        try:
            if self.connected:
                self.disconnect()
        finally:
            self.hid.close()