"""Intel/Altera FPGAs: SRAM loading over JTAG and SPI access through a virtual JTAG bridge.

The JTAG object handed to the device provides:

* ``clk_hz``: the TCK frequency in Hz;
* ``set_state(state)`` and ``go_test_logic_reset()``;
* ``shift_ir(value, length, end_state)``, where ``value`` is an integer;
* ``shift_dr(tx, length, end_state, read=False)``, where ``tx`` holds the
  bits LSB first (or is None for zeros); it returns the TDO bytes when
  ``read`` is set and None otherwise;
* ``toggle_clk(count)``.
"""

from __future__ import annotations

import os
from typing import Any, Optional

from .bitstream import BIT_REVERSE_TABLE, ConfigBitstreamParser, reverse_byte
from .device import Device, DeviceError, ProgMode, ProgType, TapState
from .display import print_error, print_info

IDCODE = 0x006
USER0 = 0x0C
USER1 = 0x0E
BYPASS = 0x3FF
IRLENGTH = 10

DATA_DIR = "/usr/local/share"

_XFER_LEN = 512
_REBOOT_BITS = 864


class _RawFile(ConfigBitstreamParser):
    """The file content taken as it is."""

    def parse(self) -> None:
        self.data = bytes(self.raw_data)
        self.bit_length = len(self.data) * 8


class Altera(Device):
    """An Altera/Intel FPGA on a JTAG chain."""

    def __init__(self, jtag: Any, filename: str, file_type: str = "",
                 prog_type: ProgType = ProgType.WR_SRAM,
                 device_package: str = "", spi_over_jtag_path: str = "",
                 verify: bool = False, verbose: int = 0,
                 skip_load_bridge: bool = False,
                 skip_reset: bool = False) -> None:
        super().__init__(jtag, filename, file_type, verify, verbose)
        self.device_package = device_package
        self.spi_over_jtag_path = spi_over_jtag_path
        self.skip_load_bridge = skip_load_bridge
        self.skip_reset = skip_reset
        self.vir_addr = 0x1000
        self.vir_length = 14

        if prog_type == ProgType.RD_FLASH:
            self.mode = ProgMode.READ
        elif self.file_extension:
            extension = self.file_extension
            if extension == "svf":
                self.mode = ProgMode.MEM
            elif extension in ("rpd", "rbf"):
                self.mode = ProgMode.MEM if prog_type == ProgType.WR_SRAM else ProgMode.SPI
            elif prog_type == ProgType.WR_SRAM:
                print_error("file has an unknown type:")
                print_error("\tplease use rbf or svf file")
                print_error("\tor use --write-flash with: ", False)
                print_error("-b board_name or --fpga_part xxxx")
                raise DeviceError("Error: wrong file")
            else:
                self.mode = ProgMode.SPI

    # configuration

    def bridge_path(self, data_dir: str = DATA_DIR) -> str:
        """Return the path of the spiOverJtag bitstream for this device."""
        if self.spi_over_jtag_path:
            path = self.spi_over_jtag_path
        else:
            if not self.device_package:
                message = "Can't program SPI flash: missing device-package information"
                print_error(message)
                raise DeviceError(message)
            path = f"{data_dir}/openFPGALoader/spiOverJtag_{self.device_package}.rbf.gz"
        if os.name == "nt":
            path = os.path.abspath(path)
        return path

    def _load_bridge(self, data_dir: str = DATA_DIR) -> bool:
        path = self.bridge_path(data_dir)
        print(f"use: {path}")
        bridge = _RawFile(path)
        bridge.parse()
        self.program_mem(bridge.data)
        return True

    def _prepare_flash_access(self, data_dir: str = DATA_DIR) -> bool:
        if self.skip_load_bridge:
            print_info("Skip loading bridge for spiOverjtag")
            return True
        return self._load_bridge(data_dir)

    def _post_flash_access(self) -> bool:
        if self.skip_reset:
            print_info("Skip resetting device")
        else:
            self.reset()
        return True

    def reset(self) -> None:
        """Pulse nCONFIG to restart the device."""
        self.jtag.set_state(TapState.TEST_LOGIC_RESET)
        self.jtag.shift_ir(0x001, IRLENGTH, TapState.RUN_TEST_IDLE)
        self.jtag.toggle_clk(1)
        self.jtag.set_state(TapState.TEST_LOGIC_RESET)

    def program_mem(self, data: bytes) -> None:
        """Load ``data`` into the configuration SRAM and start the device."""
        jtag = self.jtag
        clk_period = int(1e9 / float(jtag.clk_hz))
        length = len(data)

        jtag.shift_ir(0x002, IRLENGTH, TapState.PAUSE_IR)
        jtag.set_state(TapState.RUN_TEST_IDLE)
        jtag.toggle_clk(1_000_000 // clk_period)

        for start in range(0, length, _XFER_LEN):
            if start + _XFER_LEN > length:
                chunk, end_state = data[start:], TapState.EXIT1_DR
            else:
                chunk, end_state = data[start:start + _XFER_LEN], TapState.SHIFT_DR
            jtag.shift_dr(bytes(chunk), len(chunk) * 8, end_state)

        jtag.shift_ir(0x004, IRLENGTH, TapState.PAUSE_IR)
        jtag.set_state(TapState.RUN_TEST_IDLE)
        jtag.toggle_clk(5000 // clk_period)
        jtag.shift_dr(bytes(_REBOOT_BITS // 8), _REBOOT_BITS,
                      TapState.RUN_TEST_IDLE, read=True)
        jtag.shift_ir(0x003, IRLENGTH, TapState.PAUSE_IR)
        jtag.set_state(TapState.RUN_TEST_IDLE)
        jtag.toggle_clk(4_099_645 // clk_period)
        jtag.set_state(TapState.RUN_TEST_IDLE)
        jtag.toggle_clk(512)
        jtag.shift_ir(BYPASS, IRLENGTH, TapState.PAUSE_IR)
        jtag.set_state(TapState.RUN_TEST_IDLE)
        jtag.toggle_clk(1_000_000 // clk_period)
        jtag.set_state(TapState.RUN_TEST_IDLE)

    def program(self, offset: int = 0, unprotect_flash: bool = False) -> None:
        """Load the configured file into SRAM; flash writing is not available."""
        if self.mode == ProgMode.NONE:
            return
        if self.mode == ProgMode.MEM:
            bitstream = _RawFile(self.filename)
            bitstream.parse()
            self.program_mem(bitstream.data)
        elif self.mode == ProgMode.SPI:
            raise DeviceError("Fail to write data: SPI flash writing is not available")

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
        self.jtag.shift_ir(IDCODE, IRLENGTH, TapState.RUN_TEST_IDLE)
        rx = self.jtag.shift_dr(bytes(4), 32, TapState.RUN_TEST_IDLE, read=True)
        return int.from_bytes(bytes(rx[:4]), "little")

    # virtual JTAG

    def _shift_vir(self, reg: int) -> None:
        mask = (1 << self.vir_length) - 1
        value = (reg & mask) | self.vir_addr
        self.jtag.set_state(TapState.RUN_TEST_IDLE)
        self.jtag.shift_ir(USER1, IRLENGTH, TapState.UPDATE_IR)
        self.jtag.shift_dr(value.to_bytes(4, "little"), self.vir_length,
                           TapState.UPDATE_DR)

    def _shift_vdr(self, tx: Optional[bytes], length: int, read: bool = False,
                   end_state: TapState = TapState.UPDATE_DR) -> Optional[bytes]:
        self.jtag.shift_ir(USER0, IRLENGTH, TapState.UPDATE_IR)
        return self.jtag.shift_dr(tx, length, end_state, read=read)

    # SPI through the bridge

    def spi_put(self, cmd: int, tx: Optional[bytes], rx_len: int = 0) -> bytes:
        """Send ``cmd`` followed by ``tx``; return ``rx_len`` bytes read back."""
        length = max(len(tx) if tx is not None else 0, rx_len)
        read = rx_len > 0
        xfer_len = length + 1 + (1 if read else 0)
        jtx = bytearray(xfer_len)
        if tx is not None:
            payload = bytes(tx[:length]).translate(BIT_REVERSE_TABLE)
            jtx[:len(payload)] = payload

        self._shift_vir(reverse_byte(cmd))
        jrx = self._shift_vdr(bytes(jtx), 8 * xfer_len, read)
        if not read:
            return b""
        return bytes(reverse_byte(jrx[i + 1] >> 1) | (jrx[i + 2] & 0x01)
                     for i in range(rx_len))

    def spi_put_raw(self, tx: bytes, rx_len: int = 0) -> bytes:
        """Send ``tx`` whose first byte is the command."""
        return self.spi_put(tx[0], tx[1:], rx_len)

    def spi_wait(self, cmd: int, mask: int, cond: int, timeout: int,
                 verbose: bool = False) -> int:
        """Poll register ``cmd`` until ``value & mask == cond``; return the value."""
        self._shift_vir(reverse_byte(cmd))
        count = 0
        first = True
        while True:
            if first:
                first = False
                rx = self._shift_vdr(None, 24, True, TapState.SHIFT_DR)
                value = reverse_byte(rx[1] >> 1) | (rx[2] & 0x01)
            else:
                rx = self.jtag.shift_dr(None, 16, TapState.SHIFT_DR, read=True)
                value = reverse_byte(rx[0] >> 1) | (rx[1] & 0x01)
            count += 1
            if count == timeout:
                print(f"timeout: {value:x} {rx[0]:x} {rx[1]:x}")
                break
            if verbose:
                print(f"{value:x} {mask:x} {cond:x} {count}")
            if value & mask == cond:
                break
        self.jtag.set_state(TapState.UPDATE_DR)
        if count == timeout:
            print(f"{value:x}")
            raise TimeoutError("wait: Error")
        return value