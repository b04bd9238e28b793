# fpgaload

A pure-Python library for reading FPGA configuration files, driving a few JTAG
probes and running the SRAM loading sequences of several FPGA families. It has
no dependencies outside the standard library.

## Bitstream parsers

Every parser derives from `fpgaload.bitstream.ConfigBitstreamParser`. The
constructor reads the whole file. If the file is missing, it tries again with
the last extension removed. A name ending in `.gz` or `.gzip` is decompressed.
With an empty file name, the parser reads standard input when it is not a
terminal. After `parse()`, the payload is in `data`, its size in bits is in
`bit_length`, and any header fields are in the `header` dict. Call
`header_value(key)` to read one field, or `display_header()` to print them all.
Errors are raised as `fpgaload.bitstream.BitstreamError`.

| Module | Class | Format |
| --- | --- | --- |
| `fpgaload.bitparser` | `BitParser` | `.bit` files with a tagged header (design name, part, date, hour, length) |
| `fpgaload.anlogic_bit` | `AnlogicBitParser` | Anlogic `.bit`: `#` header lines followed by length-prefixed blocks |
| `fpgaload.colognechip_cfg` | `CologneChipCfgParser` | one hexadecimal byte per line, `//` comments allowed |
| `fpgaload.efinix_hex` | `EfinixHexParser` | one hexadecimal byte per line |
| `fpgaload.dfu_file` | `DFUFileParser` | firmware image with an optional DFU suffix, CRC checked |

```python
from fpgaload.bitparser import BitParser

bit = BitParser("design.bit", reverse_order=False, verbose=False)
bit.parse()
print(bit.header_value("part_name"), bit.bit_length)
```

```python
from fpgaload.dfu_file import DFUFileParser

image = DFUFileParser("firmware.dfu", verbose=False)
image.parse()
print(hex(image.id_vendor), hex(image.id_product), len(image.data))
```

There are also some helpers. `fpgaload.bitstream.reverse_byte` mirrors the
bits of a byte. `fpgaload.bitstream.decompress_gzip` unpacks one gzip member.
`fpgaload.dfu_file.dfu_crc32` computes the CRC used in a DFU suffix.

## JTAG probe drivers

You supply the transport object, and the drivers work through it:

- `fpgaload.anlogic_cable.AnlogicCable(transport, clk_hz)` and
  `fpgaload.dirty_jtag.DirtyJtag(transport, clk_hz, verbose)` need a transport
  with `bulk_write(endpoint, data, timeout)` and
  `bulk_read(endpoint, size, timeout)`.
- `fpgaload.cmsis_dap.CmsisDAP(hid, vid, pid, serial_number, verbose)` needs an
  opened HID device with `write(report)`, `read(size, timeout)` and `close()`.
  It checks that the probe supports JTAG, then connects. It can also be used
  as a context manager.

Each driver offers `set_clk_freq`, `write_tms`, `toggle_clk`, `flush` and
`write_tdi(tx, length, end, read)`. When `read` is set, `write_tdi` returns the
TDO bits. Failures are raised as `fpgaload.device.CableError`.

## Devices

`fpgaload.device.Device` is the common base. It works out the file type from
the file name (or from `file_type`) and holds the `ProgMode`, `ProgType` and
`TapState` enumerations. The device classes take a JTAG object with
`set_state`, `shift_ir`, `shift_dr`, `toggle_clk` and the like; each module's
docstring lists the calls it makes.

- `fpgaload.altera.Altera` loads SRAM with `program_mem` and reads the IDCODE.
  It offers SPI access through a virtual-JTAG bridge (`spi_put`,
  `spi_put_raw`, `spi_wait`). `bridge_path` locates the bridge bitstream.
- `fpgaload.anlogic.Anlogic` loads SRAM with `load_sram` and reads the IDCODE.
  It offers SPI pass-through access.
- `fpgaload.colognechip.CologneChip` loads SRAM over JTAG or over SPI, using
  GPIO pins for reset, output enable, done and fail. It offers SPI access
  through JTAG-SPI bypass.
- `fpgaload.efinix.Efinix` loads SRAM over JTAG, with an optional reset
  sequence driven by GPIO.
- `fpgaload.epcq.EPCQ` reads the device and silicon ids of an EPCQ flash and
  resets it through any object that offers `spi_put(cmd, tx, rx_len)`.

Errors are raised as `fpgaload.device.DeviceError`. A polling timeout raises
`TimeoutError`.

Console output goes through `fpgaload.display`: `print_error`, `print_warn`,
`print_info` and `print_success`. They add colour when writing to a terminal.

## What the package does not do

- It does not write, erase, protect or dump SPI flash. Requests to program
  flash raise `DeviceError`, and the flash-protection methods print
  "not supported" and return `False`.
- It does not find or open USB or HID devices. The transport objects must come
  from your own code.
- It has no FTDI or other probe drivers beyond the three above.
- It does not play SVF files.
- It has no command-line tool.

## Installation and tests

```
pip install .
pip install .[test]
pytest
```