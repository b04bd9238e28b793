"""Intel/Altera EPCQ configuration flash identification and helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .bitstream import reverse_byte

_RD_DEV_ID_REG = 0x9F
_RD_SILICON_ID_REG = 0xAB
_RESET_ENABLE = 0x66
_RESET_MEMORY = 0x99
_JIC_DATA_OFFSET = 0xA1


def convert_lsb(value: int) -> int:
    """Return ``value`` with its bit order reversed (EPCQ expects LSB first)."""
    return reverse_byte(value)


def dump_jic_file(jic_file: str, out_file: str, max_len: int) -> None:
    """Write up to ``max_len`` data bytes of a JIC file as "index value" lines in hex."""
    data = Path(jic_file).read_bytes()[_JIC_DATA_OFFSET:_JIC_DATA_OFFSET + max_len]
    with open(out_file, "w", encoding="ascii") as out:
        for index, value in enumerate(data):
            out.write(f"{index:x} {value:x}\n")


class EPCQ:
    """An EPCQ flash reached through an SPI interface.

    The interface provides ``spi_put(cmd, tx, rx_len)`` returning the
    ``rx_len`` bytes read back.
    """

    def __init__(self, spi: Any, verbose: int = 0) -> None:
        self.spi = spi
        self.verbose = verbose > 0
        self.device_id = 0
        self.silicon_id = 0

    def read_id(self) -> tuple[int, int]:
        """Read and store the device and silicon ids; return them."""
        rx = self.spi.spi_put(_RD_DEV_ID_REG, None, 3)
        self.device_id = rx[2]
        if self.verbose:
            print(f"device id 0x{self.device_id:x} expected 0x15")
        rx = self.spi.spi_put(_RD_SILICON_ID_REG, None, 4)
        self.silicon_id = rx[3]
        if self.verbose:
            print(f"silicon id 0x{self.silicon_id:x} expected 0x14")
        return self.device_id, self.silicon_id

    def reset(self) -> None:
        """Send the reset-enable and reset-memory commands."""
        print("reset")
        self.spi.spi_put(_RESET_ENABLE, None, 0)
        self.spi.spi_put(_RESET_MEMORY, None, 0)

    def power_up(self) -> None:
        """Not supported by EPCQ; does nothing."""

    def power_down(self) -> None:
        """Not supported by EPCQ; does nothing."""