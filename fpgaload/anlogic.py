"""Anlogic FPGAs: SRAM loading over JTAG and SPI flash access through the device.

The JTAG object handed to the device provides ``set_state(state)``,
``go_test_logic_reset()``, ``shift_ir(value, length, end_state)``,
``shift_dr(tx, length, end_state, read=False)`` (returning the TDO bytes
when ``read`` is set) and ``toggle_clk(count)``.
"""

from __future__ import annotations

from typing import Any, Optional

from .anlogic_bit import AnlogicBitParser
from .bitstream import BIT_REVERSE_TABLE, BitstreamError, reverse_byte
from .device import Device, DeviceError, ProgMode, ProgType, TapState
from .display import print_error, print_info, print_success

REFRESH = 0x01
IDCODE = 0x06
JTAG_PROGRAM = 0x30
SPI_PROGRAM = 0x39
CFG_IN = 0x3B
JTAG_START = 0x3D
BYPASS = 0xFF
IRLENGTH = 8

SPI_OPCODE = 0x60
_XFER_LEN = 512
_IDLE = TapState.RUN_TEST_IDLE


class Anlogic(Device):
    """An Anlogic FPGA on a JTAG chain."""

    def __init__(self, jtag: Any, filename: str, file_type: str = "",
                 prog_type: ProgType = ProgType.WR_SRAM, verify: bool = False,
                 verbose: int = 0) -> None:
        super().__init__(jtag, filename, file_type, verify, verbose)
        if prog_type == ProgType.RD_FLASH:
            self.mode = ProgMode.READ
        elif self.file_extension:
            extension = self.file_extension
            if extension == "svf":
                self.mode = ProgMode.MEM
            elif extension == "bit":
                self.mode = ProgMode.MEM if prog_type == ProgType.WR_SRAM else ProgMode.SPI
            elif prog_type == ProgType.WR_FLASH:
                self.mode = ProgMode.SPI
            else:
                raise DeviceError("incompatible file format")

    def _ir(self, value: int) -> None:
        self.jtag.shift_ir(value, IRLENGTH, _IDLE)

    def reset(self) -> None:
        """Refresh the device so it reloads its configuration."""
        self._ir(BYPASS)
        self._ir(REFRESH)
        self.jtag.toggle_clk(15)
        self._ir(BYPASS)
        self.jtag.toggle_clk(200_000)

    def load_sram(self, data: bytes) -> None:
        """Load ``data`` into the configuration SRAM and start the device."""
        jtag = self.jtag
        self._ir(BYPASS)
        self._ir(BYPASS)
        self._ir(REFRESH)
        self._ir(BYPASS)
        self._ir(SPI_PROGRAM)
        jtag.toggle_clk(50_000)
        self._ir(JTAG_PROGRAM)
        jtag.toggle_clk(15)
        self._ir(CFG_IN)
        jtag.toggle_clk(15)

        length = len(data)
        for start in range(0, length, _XFER_LEN):
            chunk = bytes(data[start:start + _XFER_LEN])
            end_state = _IDLE if start + len(chunk) == length else TapState.SHIFT_DR
            jtag.shift_dr(chunk, len(chunk) * 8, end_state)

        jtag.toggle_clk(100)
        self._ir(JTAG_START)
        jtag.toggle_clk(15)
        self._ir(BYPASS)
        jtag.toggle_clk(1000)
        self._ir(0x31)
        jtag.toggle_clk(100)
        self._ir(JTAG_START)
        jtag.toggle_clk(15)
        self._ir(BYPASS)
        jtag.toggle_clk(15)

    def program(self, offset: int = 0, unprotect_flash: bool = False) -> None:
        """Parse the configured file and load it into SRAM."""
        if self.mode == ProgMode.NONE:
            return
        bitstream = AnlogicBitParser(self.filename, self.mode == ProgMode.MEM,
                                     self.verbose)
        print_info("Parse file ", False)
        try:
            bitstream.parse()
        except BitstreamError:
            print_error("FAIL")
            raise
        print_success("DONE")
        if self.verbose:
            bitstream.display_header()

        if self.mode == ProgMode.SPI:
            raise DeviceError("SPI flash writing is not available")
        if self.mode == ProgMode.MEM:
            self.load_sram(bitstream.data)

    def protect_flash(self, length: int) -> bool:
        print_error("protect flash not supported")
        return False

    def unprotect_flash(self) -> bool:
        print_error("unprotect flash not supported")
        return False

    def bulk_erase_flash(self) -> bool:
        print_error("bulk erase flash not supported")
        return False

    def id_code(self) -> int:
        """Return the 32-bit IDCODE."""
        self.jtag.go_test_logic_reset()
        self._ir(IDCODE)
        rx = self.jtag.shift_dr(bytes(4), 32, _IDLE, read=True)
        return int.from_bytes(bytes(rx[:4]), "little")

    def prepare_flash_access(self) -> bool:
        """Switch the device to SPI pass-through."""
        for _ in range(5):
            self._ir(BYPASS)
        self._ir(REFRESH)
        self._ir(BYPASS)
        self._ir(SPI_PROGRAM)
        for _ in range(4):
            self.jtag.toggle_clk(50_000)
        return True

    def post_flash_access(self) -> bool:
        """Leave SPI pass-through by resetting the device."""
        self.reset()
        return True

    # SPI through the device; reads come back delayed by one bit

    def _spi_exchange(self, jtx: bytes, read: bool) -> Optional[bytes]:
        self.jtag.shift_dr(bytes([SPI_OPCODE]), 8, _IDLE)
        return self.jtag.shift_dr(jtx, 8 * len(jtx), _IDLE, read=read)

    def spi_put(self, cmd: int, tx: Optional[bytes], rx_len: int = 0) -> bytes:
        """Send ``cmd`` followed by ``tx``; return ``rx_len`` bytes read back."""
        length = max(len(tx) if tx is not None else 0, rx_len)
        read = rx_len > 0
        jtx = bytearray(length + 1 + (1 if read else 0))
        jtx[0] = reverse_byte(cmd)
        if tx is not None:
            payload = bytes(tx[:length]).translate(BIT_REVERSE_TABLE)
            jtx[1:1 + len(payload)] = payload
        jrx = self._spi_exchange(bytes(jtx), read)
        if not read:
            return b""
        return bytes(reverse_byte(jrx[i + 1] >> 1) | (jrx[i + 2] & 0x01)
                     for i in range(rx_len))

    def spi_put_raw(self, tx: bytes, rx_len: int = 0) -> bytes:
        """Send ``tx`` as is; return ``rx_len`` bytes read back alongside it."""
        length = max(len(tx), rx_len)
        read = rx_len > 0
        jtx = bytearray(length + (1 if read else 0))
        payload = bytes(tx[:length]).translate(BIT_REVERSE_TABLE)
        jtx[:len(payload)] = payload
        jrx = self._spi_exchange(bytes(jtx), read)
        if not read:
            return b""
        return bytes(reverse_byte(jrx[i] >> 1) | (jrx[i + 1] & 0x01)
                     for i in range(rx_len))

    def spi_wait(self, cmd: int, mask: int, cond: int, timeout: int,
                 verbose: bool = False) -> int:
        """Poll register ``cmd`` until ``value & mask == cond``; return the value."""
        tx = bytes([reverse_byte(cmd), 0, 0])
        count = 0
        while True:
            self.jtag.shift_dr(bytes([SPI_OPCODE]), 8, _IDLE)
            rx = self.jtag.shift_dr(tx, 24, _IDLE, read=True)
            value = reverse_byte(rx[1] >> 1) | (rx[2] & 0x01)
            count += 1
            if count == timeout:
                print(f"timeout: {value:x} {rx[0]:x} {rx[1]:x}")
                break
            if verbose:
                print(f"{value:x} {mask:x} {cond:x} {count}")
            if value & mask == cond:
                break
        if count == timeout:
            print(f"{value:02x}")
            raise TimeoutError("wait: Error")
        return value