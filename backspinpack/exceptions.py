"""Backspin exception taxonomy."""

from __future__ import annotations

from typing import Any


class BackspinError(Exception):
    """Base class for Backspin errors."""


class ConfigurationError(BackspinError, ValueError):
    """Invalid arguments or settings, raised before any I/O happens."""


class MatcherConfigError(ConfigurationError):
    """Matcher configuration has an unsupported shape, key or value."""


class RecordError(BackspinError):
    """Base class for record errors."""


class RecordNotFoundError(RecordError):
    """Verification requested but no usable record exists."""


class RecordFormatError(RecordError):
    """Record file is unreadable, has an unsupported version or an unexpected shape."""


class CommandExecutionError(BackspinError):
    """The command under test could not be started."""


class VerificationError(BackspinError, AssertionError):
    """Captured output did not match the recorded snapshot."""

    def __init__(self, message: str, *, result: Any = None) -> None:
        super().__init__(message)
        self.result = result
