"""FPGA bitstream parsers, JTAG probe drivers and SRAM programming sequences."""

__version__ = "0.1.0"