"""Coloured console messages for errors, warnings, information and success."""

from __future__ import annotations

import sys
from typing import TextIO

_RESET = "\x1b[0m"
_RED = "\x1B[31m"
_GREEN = "\x1B[32m"
_YELLOW = "\x1B[33m"
_LIGHT_BLUE = "\x1B[94m"


def _emit(stream: TextIO, colour: str, message: str, eol: bool) -> None:
    if stream.isatty():
        stream.write(f"{colour}{message}{_RESET}")
    else:
        stream.write(message)
    stream.flush()
    if eol:
        stream.write("\n")
        stream.flush()


def print_error(message: str, eol: bool = True) -> None:
    """Write an error message to stderr, in red on a terminal."""
    _emit(sys.stderr, _RED, message, eol)


def print_warn(message: str, eol: bool = True) -> None:
    """Write a warning to stdout, in yellow on a terminal."""
    _emit(sys.stdout, _YELLOW, message, eol)


def print_info(message: str, eol: bool = True) -> None:
    """Write an informational message to stdout, in blue on a terminal."""
    _emit(sys.stdout, _LIGHT_BLUE, message, eol)


def print_success(message: str, eol: bool = True) -> None:
    """Write a success message to stdout, in green on a terminal."""
    _emit(sys.stdout, _GREEN, message, eol)