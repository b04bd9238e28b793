"""Base class shared by every programmable device and its enumerations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any

from .display import print_error


class DeviceError(Exception):
    """Raised when a device cannot be set up or programmed."""


class CableError(Exception):
    """Raised when a programming cable reports a failure."""


class TapState(IntEnum):
    """States of the JTAG TAP controller."""

    TEST_LOGIC_RESET = 0
    RUN_TEST_IDLE = 1
    SELECT_DR_SCAN = 2
    CAPTURE_DR = 3
    SHIFT_DR = 4
    EXIT1_DR = 5
    PAUSE_DR = 6
    EXIT2_DR = 7
    UPDATE_DR = 8
    SELECT_IR_SCAN = 9
    CAPTURE_IR = 10
    SHIFT_IR = 11
    EXIT1_IR = 12
    PAUSE_IR = 13
    EXIT2_IR = 14
    UPDATE_IR = 15


class ProgMode(IntEnum):
    """How a device is to be programmed."""

    NONE = 0
    SPI = 1
    FLASH = 1
    MEM = 2
    READ = 3


class ProgType(IntEnum):
    """The operation requested by the user."""

    WR_SRAM = 0
    WR_FLASH = 1
    RD_FLASH = 2
    PRG_NONE = 3


def _file_extension(filename: str, file_type: str) -> str:
    dot = filename.rfind(".")
    extension = filename[dot + 1:]
    if file_type:
        return file_type
    if not filename:
        return extension
    if dot < 0:
        return "raw"
    if extension.startswith("gz"):
        previous = filename.rfind(".", 0, dot)
        if previous < 0:
            raise DeviceError(
                f"\nfile {filename} is compressed\n"
                "but can't determine real type\n"
                "please add correct extension or use --file-type"
            )
        return filename[previous + 1:dot]
    return extension


class Device(ABC):
    """A target reached through a JTAG chain (or another link)."""

    def __init__(self, jtag: Any, filename: str, file_type: str = "",
                 verify: bool = False, verbose: int = 0) -> None:
        self.jtag = jtag
        self.filename = filename
        self.file_extension = _file_extension(filename, file_type)
        self.mode = ProgMode.NONE
        self.verify = verify
        self.verbose = verbose > 0
        self.quiet = verbose < 0
        if verbose > 0:
            print(f"File type : {self.file_extension}")

    @abstractmethod
    def program(self, offset: int, unprotect_flash: bool) -> None:
        """Load the configured file into the device or its flash."""

    def dump_flash(self, base_addr: int, length: int) -> bool:
        """Read the flash into the configured file; unsupported by default."""
        print_error("dump flash not supported")
        return False

    @abstractmethod
    def protect_flash(self, length: int) -> bool:
        """Protect the first ``length`` bytes of the flash."""

    @abstractmethod
    def unprotect_flash(self) -> bool:
        """Remove flash block protection."""

    @abstractmethod
    def bulk_erase_flash(self) -> bool:
        """Erase the whole flash."""

    @abstractmethod
    def id_code(self) -> int:
        """Return the 32-bit JTAG IDCODE."""

    def reset(self) -> None:
        """Reset the device; devices that support it override this."""
        raise DeviceError("reset is not supported by this device")