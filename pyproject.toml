[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fpgaload"
version = "0.1.0"
description = "FPGA bitstream parsers, JTAG probe drivers and SRAM programming sequences"
requires-python = ">=3.10"
dependencies = []
keywords = ["fpga", "jtag", "bitstream", "dfu", "cmsis-dap", "epcq"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fpgaload"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
