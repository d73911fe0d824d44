"""Reporting of warnings and fatal errors on standard error."""

from __future__ import annotations

import os
import sys
from typing import NoReturn


class FatalError(SystemExit):
    """Raised once a fatal error has been reported; exits with status 1."""

    def __init__(self, message: str) -> None:
        super().__init__(1)
        self.message = message

    def __str__(self) -> str:
        return self.message


def _current_error() -> str:
    """Describe the exception currently being handled, if any."""
    exc = sys.exc_info()[1]
    if exc is None:
        return os.strerror(0)
    if isinstance(exc, OSError) and exc.strerror:
        return exc.strerror
    return str(exc)


def _write(text: str) -> None:
    sys.stderr.write(text)
    sys.stderr.flush()


def warn(message: str) -> None:
    """Print a warning followed by a description of the error being handled."""
    _write(f"warning: {message}: {_current_error()}\n")


def warnx(message: str) -> None:
    """Print a warning."""
    _write(f"warning: {message}\n")


def err(message: str) -> NoReturn:
    """Print an error with the error being handled, then raise FatalError."""
    _write(f"error: {message}: {_current_error()}\n")
    raise FatalError(message)


def errx(message: str) -> NoReturn:
    """Print an error, then raise FatalError."""
    _write(f"error: {message}\n")
    raise FatalError(message)