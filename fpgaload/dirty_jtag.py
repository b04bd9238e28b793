"""JTAG through a DirtyJTAG USB probe."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional

from .device import CableError
from .display import print_error, print_info, print_warn

VENDOR_ID = 0x1209
PRODUCT_ID = 0xC0CA

INTERFACE = 0
WRITE_EP = 0x01
READ_EP = 0x82
TIMEOUT_MS = 1000

MAX_FREQ = 16_000_000
_PACKET_SIZE = 64


class Command(IntEnum):
    """Probe commands."""

    STOP = 0x00
    INFO = 0x01
    FREQ = 0x02
    XFER = 0x03
    SETSIG = 0x04
    GETSIG = 0x05
    CLK = 0x06


EXTEND_LENGTH = 0x40
NO_READ = 0x80

SIG_TCK = 1 << 1
SIG_TDI = 1 << 2
SIG_TDO = 1 << 3
SIG_TMS = 1 << 4


@dataclass(frozen=True)
class _VersionOptions:
    no_read: int
    max_bits: int


_VERSION_OPTIONS = {
    0: _VersionOptions(0, 240),
    1: _VersionOptions(0, 240),
    2: _VersionOptions(NO_READ, 496),
    3: _VersionOptions(NO_READ, 4000),
}

_BANNERS = {b"DJTAG1\n": 1, b"DJTAG2\n": 2, b"DJTAG3\n": 3}


def _bit(data: bytes, index: int) -> bool:
    return bool(data[index >> 3] & (1 << (index & 0x07)))


class DirtyJtag:
    """Drives a DirtyJTAG probe through a USB bulk transport.

    The transport provides ``bulk_write(endpoint, data, timeout)`` returning
    the number of bytes written and ``bulk_read(endpoint, size, timeout)``
    returning the bytes read; either raises OSError on failure.
    """

    def __init__(self, transport: Any, clk_hz: int, verbose: int = 0) -> None:
        self.transport = transport
        self.verbose = verbose
        self.version = 0
        self.clk_hz = 0
        if not self.get_version():
            raise CableError("Fail to get version")
        self.set_clk_freq(clk_hz)

    def _bulk_write(self, data: bytes) -> int:
        try:
            return self.transport.bulk_write(WRITE_EP, bytes(data), TIMEOUT_MS)
        except OSError as exc:
            raise CableError(f"usb bulk write failed: {exc}") from exc

    def _bulk_read(self, size: int) -> bytes:
        """Read until the probe answers with at least one byte."""
        while True:
            try:
                reply = bytes(self.transport.bulk_read(READ_EP, size, TIMEOUT_MS))
            except OSError as exc:
                raise CableError(f"usb bulk read failed: {exc}") from exc
            if reply:
                return reply

    def get_version(self) -> bool:
        """Query the firmware banner and set ``version`` (0 when unknown)."""
        try:
            self._bulk_write(bytes([Command.INFO, Command.STOP]))
            reply = self._bulk_read(_PACKET_SIZE)
        except CableError as exc:
            print_error(f"getVersion: {exc}")
            return False
        self.version = _BANNERS.get(reply[:7], 0)
        if self.version == 0:
            print_error("dirtyJtag version unknown")
        return True

    def set_clk_freq(self, clk_hz: int) -> int:
        """Program the probe clock (in kHz steps); return the frequency used."""
        requested = clk_hz
        if clk_hz > MAX_FREQ:
            print_warn("DirtyJTAG probe limited to 16000kHz")
            clk_hz = MAX_FREQ
        self.clk_hz = clk_hz
        print_info(f"Jtag frequency : requested {requested}Hz -> real {clk_hz}Hz")
        khz = clk_hz // 1000
        self._bulk_write(bytes([Command.FREQ, (khz >> 8) & 0xFF, khz & 0xFF,
                                Command.STOP]))
        return clk_hz

    def write_tms(self, tms: bytes, length: int, flush_buffer: bool = True) -> int:
        """Clock ``length`` TMS bits (LSB first) out; return ``length``."""
        if length == 0:
            return 0
        mask = SIG_TCK | SIG_TMS
        packet = bytearray()
        for index in range(length):
            value = SIG_TMS if _bit(tms, index) else 0
            packet += bytes([Command.SETSIG, mask, value,
                             Command.SETSIG, mask, value | SIG_TCK])
            last = index == length - 1
            if len(packet) + 9 >= _PACKET_SIZE or last:
                if last:
                    # falling edge of TCK
                    packet += bytes([Command.SETSIG, mask, value])
                packet.append(Command.STOP)
                self._bulk_write(packet)
                packet = bytearray()
        return length

    def toggle_clk(self, tms: int, tdi: int, clk_len: int) -> int:
        """Send ``clk_len`` clock cycles with TMS and TDI held constant."""
        signals = (SIG_TMS if tms else 0) | (SIG_TDI if tdi else 0)
        remaining = clk_len
        while remaining > 0:
            count = min(remaining, 64)
            self._bulk_write(bytes([Command.CLK, signals, count, Command.STOP]))
            remaining -= count
        return 0

    def flush(self) -> int:
        """Nothing is buffered; always 0."""
        return 0

    def write_tdi(self, tx: Optional[bytes], length: int, end: bool = False,
                  read: bool = False) -> Optional[bytes]:
        """Shift ``length`` TDI bits (LSB first), raising TMS with the last if ``end``.

        Returns the TDO bits when ``read`` is set, otherwise None.
        """
        options = _VERSION_OPTIONS[self.version]
        byte_len = (length + 7) // 8
        if tx is None:
            tx_copy = bytes(byte_len)
        else:
            tx_copy = bytes(tx[:byte_len]).ljust(byte_len, b"\x00")
        rx = bytearray(byte_len) if read else None

        command = Command.XFER | (0 if read else options.no_read)
        remaining = length - (1 if end else 0)
        offset = 0
        while remaining:
            bits = min(remaining, options.max_bits)
            nbytes = (bits + 7) // 8
            if self.version == 3:
                header = bytes([command, (bits >> 8) & 0xFF, bits & 0xFF])
            elif bits > 255:
                command |= EXTEND_LENGTH
                header = bytes([command, bits - 256])
            else:
                command &= ~EXTEND_LENGTH
                header = bytes([command, bits])
            payload = bytearray(nbytes)
            for i in range(bits):
                if _bit(tx_copy, offset + i):
                    payload[i >> 3] |= 0x80 >> (i & 0x07)
            packet = header + bytes(payload)
            written = self._bulk_write(packet)
            if written != len(packet):
                raise CableError(
                    f"writeTDI: usb bulk write failed, actual length: {written}")

            if read or self.version <= 1:
                reply = self._bulk_read(nbytes if bits > 255 else 32)
                if len(reply) < nbytes:
                    raise CableError("writeTDI: short read from probe")
                if rx is not None:
                    base = offset >> 3
                    for i in range(bits):
                        index = base + (i >> 3)
                        rx[index] = (rx[index] >> 1) | ((reply[i >> 3] << (i & 0x07)) & 0x80)

            remaining -= bits
            offset += bits

        if end:
            self._shift_last_bit(tx_copy, length - 1, rx)
        return bytes(rx) if rx is not None else None

    def _shift_last_bit(self, tx_copy: bytes, pos: int,
                        rx: Optional[bytearray]) -> None:
        last_bit = SIG_TDI if _bit(tx_copy, pos) else 0
        mask = SIG_TMS | SIG_TDI
        value = SIG_TMS | last_bit
        if rx is None:
            self.toggle_clk(SIG_TMS, last_bit, 1)
            return
        mask |= SIG_TCK
        self._bulk_write(bytes([Command.SETSIG, mask, value,
                                Command.SETSIG, mask, value | SIG_TCK,
                                Command.GETSIG, Command.STOP]))
        signals = self._bulk_read(1)[0]
        rx[pos >> 3] >>= 1
        if signals & SIG_TDO:
            rx[pos >> 3] |= 1 << (pos & 0x07)
        self._bulk_write(bytes([Command.SETSIG, mask, value & ~SIG_TCK,
                                Command.STOP]))