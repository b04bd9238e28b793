"""Cologne Chip GateMate FPGAs over SPI or JTAG, with SPI flash reached through JTAG.

The JTAG object handed to the device provides ``set_state(state)``,
``shift_ir(value, length, end_state)``,
``shift_dr(tx, length, end_state, read=False)`` and
``read_write(tx, length, last=False, read=False)``. The last two return the
TDO bytes when ``read`` is set and None otherwise.

The GPIO object drives the reset, output-enable, done and fail pins through
``gpio_set_input(mask)``, ``gpio_set_output(mask)``, ``gpio_set(mask)``,
``gpio_clear(mask)`` and ``gpio_get()``. When the device is programmed over
SPI (no JTAG object), the GPIO object is the SPI port and also provides
``spi_put_raw(tx, rx_len)``.
"""

from __future__ import annotations

import time
from typing import Any, Optional

from .bitstream import BIT_REVERSE_TABLE, ConfigBitstreamParser, reverse_byte
from .colognechip_cfg import CologneChipCfgParser
from .device import Device, DeviceError, ProgMode, ProgType, TapState
from .display import print_error, print_info, print_success

JTAG_CONFIGURE = 0x06
JTAG_SPI_BYPASS = 0x05
IRLENGTH = 6
SLEEP_S = 500e-6
CFG_DONE_TIMEOUT = 1000

_SRAM_CHUNK = 1024


class _RawFile(ConfigBitstreamParser):
    """The file content taken as it is."""

    def parse(self) -> None:
        self.data = bytes(self.raw_data)
        self.bit_length = len(self.data) * 8


class CologneChip(Device):
    """A GateMate FPGA reached over SPI or over JTAG."""

    def __init__(self, jtag: Any, gpio: Any, filename: str, file_type: str = "",
                 prog_type: ProgType = ProgType.WR_SRAM, rstn_pin: int = 0,
                 done_pin: int = 0, fail_pin: int = 0, oen_pin: int = 0,
                 verify: bool = False, verbose: int = 0) -> None:
        super().__init__(jtag, filename, file_type, verify, verbose)
        self.gpio = gpio
        self.rstn_pin = rstn_pin
        self.done_pin = done_pin
        self.fail_pin = fail_pin
        self.oen_pin = oen_pin
        self.gpio.gpio_set_input(done_pin | fail_pin)
        self.gpio.gpio_set_output(rstn_pin | oen_pin)
        self.mode = ProgMode.MEM if prog_type == ProgType.WR_SRAM else ProgMode.FLASH

    # pins

    def reset(self) -> None:
        """Enable outputs and hold the FPGA in reset for a moment."""
        self.gpio.gpio_clear(self.rstn_pin | self.oen_pin)
        time.sleep(SLEEP_S)
        self.gpio.gpio_set(self.rstn_pin)

    def cfg_done(self) -> bool:
        """True when CFG_DONE is high and CFG_FAILED is low."""
        status = self.gpio.gpio_get()
        done = (status & self.done_pin) > 0
        fail = (status & self.fail_pin) > 0
        return done and not fail

    def wait_cfg_done(self) -> bool:
        """Wait for a successful configuration; report and return the outcome."""
        timeout = CFG_DONE_TIMEOUT
        print_info("Wait for CFG_DONE ", False)
        while True:
            timeout -= 1
            time.sleep(SLEEP_S)
            if self.cfg_done() or timeout <= 0:
                break
        if timeout == 0:
            print_error("FAIL")
            return False
        print_success("DONE")
        return True

    # programming

    def program(self, offset: int = 0, unprotect_flash: bool = False) -> None:
        """Parse the configured file and load it into the FPGA."""
        if self.mode in (ProgMode.NONE, ProgMode.READ):
            return
        if self.file_extension == "cfg":
            parser: ConfigBitstreamParser = CologneChipCfgParser(self.filename)
        elif self.file_extension == "bit" or self.mode == ProgMode.FLASH:
            parser = _RawFile(self.filename)
        else:
            raise DeviceError("incompatible file format")
        parser.parse()

        if self.mode == ProgMode.FLASH:
            raise DeviceError("SPI flash writing is not available")
        if self.jtag is not None:
            self.program_jtag_sram(parser.data)
        else:
            self.program_spi_sram(parser.data)

    def program_spi_sram(self, data: bytes) -> bool:
        """Write the configuration into the FPGA latches over SPI (passive mode)."""
        self.reset()
        self.gpio.gpio_set(self.rstn_pin)
        self.gpio.spi_put_raw(bytes(data), len(data))
        done = self.wait_cfg_done()
        self.gpio.gpio_set(self.oen_pin)
        return done

    def program_jtag_sram(self, data: bytes) -> bool:
        """Write the configuration into the FPGA latches over JTAG."""
        self.reset()
        jtag = self.jtag
        jtag.set_state(TapState.RUN_TEST_IDLE)
        jtag.shift_ir(JTAG_CONFIGURE, IRLENGTH, TapState.SELECT_DR_SCAN)
        for start in range(0, len(data), _SRAM_CHUNK):
            chunk = bytes(data[start:start + _SRAM_CHUNK])
            jtag.shift_dr(chunk, len(chunk) * 8, TapState.SHIFT_DR)
        jtag.set_state(TapState.RUN_TEST_IDLE)
        done = self.wait_cfg_done()
        self.gpio.gpio_set(self.oen_pin)
        return done

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
        """The IDCODE is not read for this family; always 0."""
        return 0

    # SPI through JTAG-SPI-bypass; reads come back delayed by one bit

    @staticmethod
    def _realign(first: int, second: int) -> int:
        return ((reverse_byte(first) << 1) | ((reverse_byte(second) >> 7) & 0x01)) & 0xFF

    def spi_put(self, cmd: int, tx: Optional[bytes], rx_len: int = 0) -> bytes:
        """Send ``cmd`` followed by ``tx``; return ``rx_len`` bytes read back."""
        length = max(len(tx) if tx is not None else 0, rx_len)
        read = rx_len > 0
        xfer_len = length + 1
        jtx = bytearray(xfer_len + 2)
        jtx[0] = reverse_byte(cmd)
        if tx is not None:
            payload = bytes(tx[:length]).translate(BIT_REVERSE_TABLE)
            jtx[1:1 + len(payload)] = payload
        self.jtag.shift_ir(JTAG_SPI_BYPASS, IRLENGTH, TapState.SELECT_DR_SCAN)
        bits = 8 * xfer_len + (2 if read else 1)
        jrx = self.jtag.shift_dr(bytes(jtx), bits, TapState.SELECT_DR_SCAN, read=read)
        if not read:
            return b""
        return bytes(self._realign(jrx[i + 1], jrx[i + 2]) for i in range(rx_len))

    def spi_put_raw(self, tx: bytes, rx_len: int = 0) -> bytes:
        """Send ``tx`` as is; return ``rx_len`` bytes read back alongside it."""
        length = max(len(tx), rx_len)
        read = rx_len > 0
        jtx = bytearray(length + 2)
        payload = bytes(tx[:length]).translate(BIT_REVERSE_TABLE)
        jtx[:len(payload)] = payload
        self.jtag.shift_ir(JTAG_SPI_BYPASS, IRLENGTH, TapState.SELECT_DR_SCAN)
        jrx = self.jtag.shift_dr(bytes(jtx), 8 * length + 1,
                                 TapState.SELECT_DR_SCAN, read=read)
        if not read:
            return b""
        return bytes(self._realign(jrx[i], jrx[i + 1]) for i in range(rx_len))

    def spi_wait(self, cmd: int, mask: int, cond: int, timeout: int,
                 verbose: bool = False) -> int:
        """Poll register ``cmd`` until ``value & mask == cond``; return the value."""
        jtag = self.jtag
        jtag.shift_ir(JTAG_SPI_BYPASS, IRLENGTH, TapState.SHIFT_DR)
        jtag.read_write(bytes([reverse_byte(cmd)]), 8, False)
        count = 0
        while True:
            if count == 0:
                rx = jtag.read_write(bytes(2), 9, False, read=True)
                value = self._realign(rx[0], rx[1])
            else:
                rx = jtag.read_write(bytes(2), 8, False, read=True)
                value = reverse_byte(rx[0])
            count += 1
            if count == timeout:
                print(f"timeout: {value:x} {count}")
                break
            if verbose:
                print(f"{value:x} {mask:x} {cond:x} {count}")
            if value & mask == cond:
                break
        jtag.set_state(TapState.RUN_TEST_IDLE)
        if count == timeout:
            print(f"{value:x}")
            raise TimeoutError("wait: Error")
        return value