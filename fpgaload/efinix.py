"""Efinix Trion/Titanium FPGAs: SRAM loading over JTAG with optional reset GPIOs.

The JTAG object handed to the device provides ``set_state(state)``,
``shift_ir(value, length, end_state)`` and
``shift_dr(tx, length, end_state, read=False)``.

The GPIO object (the SPI port of the board, or None when the board has no
GPIO access in JTAG mode) provides ``gpio_set_input(mask)``,
``gpio_set_output(mask)``, ``gpio_set(mask)``, ``gpio_clear(mask)`` and
``gpio_get()``.
"""

from __future__ import annotations

import time
from typing import Any

from .bitstream import BIT_REVERSE_TABLE, ConfigBitstreamParser
from .device import Device, DeviceError, TapState
from .display import print_error, print_info, print_success
from .efinix_hex import EfinixHexParser

SAMPLE_PRELOAD = 0x02
EXTEST = 0x00
BYPASS = 0x0F
IDCODE = 0x03
PROGRAM = 0x04
ENTERUSER = 0x07
IRLENGTH = 4

DONE_TIMEOUT = 1000
_DONE_POLL_S = 0.012
_XFER_LEN = 512


class _RawFile(ConfigBitstreamParser):
    """The file content taken as it is."""

    def parse(self) -> None:
        self.data = bytes(self.raw_data)
        self.bit_length = len(self.data) * 8


class Efinix(Device):
    """An Efinix FPGA reached over JTAG, or over SPI when ``jtag`` is None."""

    def __init__(self, jtag: Any, gpio: Any, filename: str, file_type: str = "",
                 rst_pin: int = 0, done_pin: int = 0, cs_pin: int = 0,
                 oe_pin: int = 0, verify: bool = False, verbose: int = 0) -> None:
        super().__init__(jtag, filename, file_type, verify, verbose)
        self.gpio = gpio
        self.rst_pin = rst_pin
        self.done_pin = done_pin
        self.cs_pin = cs_pin
        self.oe_pin = oe_pin
        if jtag is None:
            if gpio is None:
                raise DeviceError("an SPI port is required without JTAG")
            gpio.gpio_set_input(done_pin)
            gpio.gpio_set_output(rst_pin | oe_pin)
        elif gpio is None:
            print_info("Using efinix JTAG interface (no GPIO)")
        else:
            gpio.gpio_set_output(oe_pin | rst_pin | cs_pin)

    def _poll_done(self, message: str) -> bool:
        timeout = DONE_TIMEOUT
        print_info(message, False)
        while True:
            timeout -= 1
            time.sleep(_DONE_POLL_S)
            if (self.gpio.gpio_get() & self.done_pin) != 0 or timeout <= 0:
                break
        if timeout == 0:
            print_error("FAIL")
            return False
        print_success("DONE")
        return True

    def wait_done(self) -> bool:
        """Wait for CDONE to rise; report and return the outcome."""
        return self._poll_done("Wait for CDONE ")

    def reset(self) -> None:
        """Pulse reset and wait for CDONE; not available over JTAG."""
        if self.jtag is not None:
            return
        self.gpio.gpio_clear(self.rst_pin | self.oe_pin)
        time.sleep(0.001)
        self.gpio.gpio_set(self.rst_pin | self.oe_pin)
        self._poll_done("Reset ")

    def program(self, offset: int = 0, unprotect_flash: bool = False) -> None:
        """Parse the configured file and load it into the FPGA."""
        if not self.file_extension:
            return
        if self.file_extension == "hex":
            parser: ConfigBitstreamParser = EfinixHexParser(self.filename)
        else:
            if offset == 0 and self.jtag is None:
                message = "Error: can't write raw data at the beginning of the flash"
                print_error(message)
                raise DeviceError(message)
            parser = _RawFile(self.filename)

        print_info("Parse file ", False)
        try:
            parser.parse()
        except Exception:
            print_error("FAIL")
            raise
        print_success("DONE")
        if self.verbose:
            parser.display_header()

        if self.jtag is None:
            raise DeviceError("SPI flash writing is not available")
        self.program_jtag(parser.data)

    def program_jtag(self, data: bytes) -> None:
        """Load ``data`` into the configuration SRAM and enter user mode."""
        gpio = self.gpio
        if gpio is not None:
            # the device must restart with chip select low before JTAG use
            gpio.gpio_clear(self.oe_pin | self.cs_pin | self.rst_pin)
            time.sleep(0.030)
            gpio.gpio_set(self.rst_pin)
            time.sleep(0.050)
            gpio.gpio_set(self.oe_pin | self.rst_pin)
            time.sleep(0.050)

        jtag = self.jtag
        jtag.set_state(TapState.RUN_TEST_IDLE)
        time.sleep(0.1)
        jtag.shift_ir(PROGRAM, IRLENGTH, TapState.EXIT1_IR)
        jtag.shift_ir(PROGRAM, IRLENGTH, TapState.EXIT1_IR)

        length = len(data)
        for start in range(0, length, _XFER_LEN):
            end_state = (TapState.EXIT1_DR if start + _XFER_LEN > length
                         else TapState.SHIFT_DR)
            chunk = bytes(data[start:start + _XFER_LEN]).translate(BIT_REVERSE_TABLE)
            jtag.shift_dr(chunk, len(chunk) * 8, end_state)

        time.sleep(0.010)
        jtag.shift_ir(ENTERUSER, IRLENGTH, TapState.EXIT1_IR)
        jtag.shift_dr(bytes(13), 100, TapState.RUN_TEST_IDLE)
        jtag.shift_ir(IDCODE, IRLENGTH, TapState.RUN_TEST_IDLE)

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
        """Not read in SPI active mode; always 0."""
        return 0