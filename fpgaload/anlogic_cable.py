"""JTAG through an Anlogic USB cable, one state byte per TCK edge pair."""

from __future__ import annotations

from typing import Any, Optional

from .device import CableError
from .display import print_warn

VENDOR_ID = 0x0547
PRODUCT_ID = 0x1002

CONF_EP = 0x08
WRITE_EP = 0x06
READ_EP = 0x82

FREQ_CMD = 0x01

TCK_PIN = 1 << 2
TDI_PIN = 1 << 1
TMS_PIN = 1 << 0

BUFFER_SIZE = 512
TIMEOUT_MS = 1000
MAX_FREQ = 6_000_000

# (lowest frequency of the step, cable code); the probe rounds down
_FREQ_STEPS = (
    (6_000_000, 0x00),
    (3_000_000, 0x04),
    (1_000_000, 0x14),
    (600_000, 0x24),
    (400_000, 0x38),
    (200_000, 0x70),
    (100_000, 0xE8),
    (90_000, 0xFF),
)


def _bit(data: bytes, index: int) -> bool:
    return bool(data[index >> 3] & (1 << (index & 0x07)))


def _pad(states: bytearray) -> bytes:
    """Fill a partial burst up to the buffer size with a steady state."""
    missing = BUFFER_SIZE - len(states)
    if missing > 0:
        states.extend(bytes([(states[-1] | TCK_PIN) & 0xFF]) * missing)
    return bytes(states)


def _tdo_bits(response: bytes, count: int) -> bytearray:
    """Gather TDO (bit 4 of each state byte) LSB first into bytes."""
    out = bytearray((count + 7) // 8)
    for index, state in enumerate(response[:count]):
        out[index >> 3] >>= 1
        if (state >> 4) & 0x01:
            out[index >> 3] |= 0x80
    return out


class AnlogicCable:
    """Drives an Anlogic cable through a USB bulk transport.

    The transport provides ``bulk_write(endpoint, data, timeout)`` returning
    the number of bytes written and ``bulk_read(endpoint, size, timeout)``
    returning the bytes read; either raises OSError on failure.
    """

    def __init__(self, transport: Any, clk_hz: int) -> None:
        self.transport = transport
        self.clk_hz = 0
        self.set_clk_freq(clk_hz)

    def _bulk_write(self, endpoint: int, data: bytes) -> int:
        try:
            return self.transport.bulk_write(endpoint, data, TIMEOUT_MS)
        except OSError as exc:
            raise CableError(f"usb bulk write failed: {exc}") from exc

    def _bulk_read(self, endpoint: int, size: int) -> bytes:
        try:
            return bytes(self.transport.bulk_read(endpoint, size, TIMEOUT_MS))
        except OSError as exc:
            raise CableError(f"usb bulk read failed: {exc}") from exc

    def _exchange(self, burst: bytes) -> bytes:
        """Send one burst; every write is followed by a read of the same size."""
        self._bulk_write(WRITE_EP, burst)
        reply = self._bulk_read(READ_EP, len(burst))[:len(burst)]
        # bytes not returned by the cable keep what was sent
        return reply + burst[len(reply):]

    def set_clk_freq(self, clk_hz: int) -> int:
        """Select the nearest supported frequency not above ``clk_hz``."""
        requested = clk_hz
        if clk_hz > MAX_FREQ:
            print_warn("Anlogic JTAG probe limited to 6MHz")
            clk_hz = MAX_FREQ
        code = 0
        for frequency, value in _FREQ_STEPS:
            if clk_hz >= frequency:
                code = value
                clk_hz = frequency
                break
        self._bulk_write(CONF_EP, bytes([FREQ_CMD, code]))
        print_warn(f"Jtag frequency : requested {requested}Hz -> real {clk_hz}Hz")
        self.clk_hz = clk_hz
        return clk_hz

    def write_tms(self, tms: bytes, length: int, flush_buffer: bool = True) -> int:
        """Clock ``length`` TMS bits (LSB first) out; return ``length``."""
        if length == 0:
            return 0
        base = TCK_PIN << 4
        for start in range(0, length, BUFFER_SIZE):
            count = min(BUFFER_SIZE, length - start)
            states = bytearray(
                base | ((TMS_PIN | (TMS_PIN << 4)) if _bit(tms, start + i) else 0)
                for i in range(count))
            self._exchange(_pad(states))
        return length

    def toggle_clk(self, tms: int, tdi: int, clk_len: int) -> int:
        """Send ``clk_len`` clock cycles with TMS and TDI held constant."""
        mask = (TMS_PIN if tms else 0) | (TDI_PIN if tdi else 0)
        mask |= ((mask & 0x0F) << 4) | (TCK_PIN << 4)
        remaining = clk_len
        while remaining > 0:
            count = min(BUFFER_SIZE, remaining)
            self._exchange(_pad(bytearray([mask]) * count))
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
        rx = bytearray((length + 7) // 8) if read else None
        base = TCK_PIN << 4
        for start in range(0, length, BUFFER_SIZE):
            count = min(BUFFER_SIZE, length - start)
            if tx is None:
                states = bytearray([base]) * count
            else:
                states = bytearray(
                    base | ((TDI_PIN | (TDI_PIN << 4)) if _bit(tx, start + i) else 0)
                    for i in range(count))
            if count < BUFFER_SIZE and end:
                states[-1] |= (TMS_PIN << 4) | TMS_PIN
            response = self._exchange(_pad(states))
            if rx is not None:
                bits = _tdo_bits(response, count)
                first = start >> 3
                rx[first:first + len(bits)] = bits
        return bytes(rx) if rx is not None else None