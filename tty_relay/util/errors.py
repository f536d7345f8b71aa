"""Error taxonomy for relay control.

Every failure is terminal for the operation in flight.  Each class carries
the process exit code used by the command line front-end so that calling
scripts can branch on the cause (for example retry on :class:`PortBusy`,
inspect wiring on :class:`UnknownState`).
"""
from __future__ import annotations

from typing import Sequence


class RelayError(RuntimeError):
    """Base class for every error surfaced by tty_relay."""

    exit_code = 1


class InvalidArgument(RelayError, ValueError):
    """Raised for a negative or malformed value before the device is touched."""

    exit_code = 2


class DeviceSelectionError(RelayError):
    """Raised by the port locator before any hardware access."""


class NoDeviceFound(DeviceSelectionError):
    """No serial port matches the supported USB ids."""

    exit_code = 3


class AmbiguousDevice(DeviceSelectionError):
    """More than one serial port matches and no explicit path was given."""

    exit_code = 4

    def __init__(self, message: str, candidates: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.candidates = list(candidates)


class OpenError(RelayError):
    """Raised when the serial device cannot be opened."""

    def __init__(self, port: str, message: str) -> None:
        super().__init__(message)
        self.port = port


class PortNotFound(OpenError):
    exit_code = 5


class PortPermissionDenied(OpenError):
    exit_code = 6


class PortBusy(OpenError):
    exit_code = 7


class RelayIOError(RelayError):
    """Setting or reading the control lines failed.

    ``operation`` is ``"set"`` or ``"get"``.
    """

    exit_code = 8

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} lines failed: {message}")
        self.operation = operation


class UnknownState(RelayError):
    """Read-back lines match neither ON nor OFF for the configured polarity."""

    exit_code = 9

    def __init__(self, lines) -> None:
        super().__init__(
            f"control lines DTR={lines.a} RTS={lines.b} match neither ON nor OFF; "
            "check wiring and polarity"
        )
        self.lines = lines


class ConfigError(RelayError):
    """Configuration file is unreadable or contains invalid values."""

    exit_code = 10


__all__ = [
    "RelayError",
    "InvalidArgument",
    "DeviceSelectionError",
    "NoDeviceFound",
    "AmbiguousDevice",
    "OpenError",
    "PortNotFound",
    "PortPermissionDenied",
    "PortBusy",
    "RelayIOError",
    "UnknownState",
    "ConfigError",
]
