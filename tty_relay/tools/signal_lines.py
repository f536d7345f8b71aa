"""Serial control-line access for DTR/RTS driven relay boards.

:class:`SignalLines` is the interface the relay controller talks to.
:class:`SerialSignalLines` implements it on top of ``pyserial``: it owns one
exclusive :class:`serial.Serial` handle and exposes the DTR (line ``a``) and
RTS (line ``b``) modem control outputs.  Open errors are classified into
:class:`~tty_relay.util.errors.PortNotFound`,
:class:`~tty_relay.util.errors.PortPermissionDenied` and
:class:`~tty_relay.util.errors.PortBusy`; nothing is retried.
"""
from __future__ import annotations

import errno
import logging
import os
import struct
from abc import ABC, abstractmethod
from typing import Optional

import serial

from tty_relay.tools.polarity import PhysicalLineState
from tty_relay.util.errors import (
    OpenError,
    PortBusy,
    PortNotFound,
    PortPermissionDenied,
    RelayIOError,
)

if os.name == "posix":
    import fcntl

    from serial import serialposix
else:  # pragma: no cover - exercised on Windows only
    fcntl = None
    serialposix = None

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 9600
DEFAULT_TIMEOUT = 0.1

_NOT_FOUND_ERRNOS = {errno.ENOENT, errno.ENODEV, errno.ENXIO, errno.ENOTTY}
_PERMISSION_ERRNOS = {errno.EACCES, errno.EPERM}
_BUSY_ERRNOS = {errno.EBUSY, errno.EAGAIN, errno.EWOULDBLOCK}


class SignalLines(ABC):
    """Two independently settable control lines of an open serial device."""

    def __init__(self, port: str) -> None:
        self.port = port

    @abstractmethod
    def open(self, initial: Optional[PhysicalLineState] = None) -> None:
        """Acquire the device; raises an :class:`OpenError` subclass.

        ``initial`` is the line state to present from the moment the device
        opens; ``None`` leaves it to the driver.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_lines(self, a: bool, b: bool) -> None:
        """Assert or release both lines; raises ``RelayIOError("set", ...)``."""
        raise NotImplementedError

    @abstractmethod
    def get_lines(self) -> PhysicalLineState:
        """Return the asserted state of both lines; raises ``RelayIOError("get", ...)``."""
        raise NotImplementedError

    def __enter__(self) -> "SignalLines":
        self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


def classify_open_error(port: str, exc: BaseException) -> OpenError:
    """Map a pyserial/OS open failure to the matching :class:`OpenError`.

    POSIX builds of pyserial carry the OS ``errno``; the Windows backend only
    reports the ``WinError`` text, so the message is inspected as well.  An
    access-denied error on Windows means another process holds the port.
    """
    code = getattr(exc, "errno", None)
    text = str(exc)
    lowered = text.lower()
    message = f"failed to open {port}: {text}"
    if code in _BUSY_ERRNOS or "exclusively lock" in lowered:
        return PortBusy(port, message)
    if code in _NOT_FOUND_ERRNOS or "filenotfounderror" in lowered or "no such file" in lowered:
        return PortNotFound(port, message)
    if code in _PERMISSION_ERRNOS:
        return PortPermissionDenied(port, message)
    if "permissionerror" in lowered or "access is denied" in lowered:
        return PortBusy(port, message)
    if "permission denied" in lowered:
        return PortPermissionDenied(port, message)
    # Anything else is a device that exists but cannot be used right now.
    return PortBusy(port, message)


class SerialSignalLines(SignalLines):
    """DTR/RTS lines of a serial port opened through pyserial.

    Parameters:
        port (str): Device path such as ``/dev/ttyUSB0`` or ``COM4``.
        baudrate (int, optional): Line speed; irrelevant for the relay but
            required by the driver.  Defaults to :data:`DEFAULT_BAUDRATE`.
        timeout (float, optional): Read timeout in seconds.
    """

    def __init__(self, port: str, *, baudrate: int = DEFAULT_BAUDRATE, timeout: float = DEFAULT_TIMEOUT) -> None:
        super().__init__(port)
        self.baudrate = baudrate
        self.timeout = timeout
        self._serial: serial.Serial | None = None

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self, initial: Optional[PhysicalLineState] = None) -> None:
        if self._serial is not None:
            return
        handle = serial.Serial()
        handle.port = self.port
        handle.baudrate = self.baudrate
        handle.timeout = self.timeout
        handle.exclusive = True
        if initial is not None:
            # pyserial applies these on open; its default asserts both lines.
            handle.dtr = bool(initial.a)
            handle.rts = bool(initial.b)
        try:
            handle.open()
        except (serial.SerialException, OSError) as exc:
            error = classify_open_error(self.port, exc)
            logger.debug("Failed to open relay port %s: %s", self.port, exc)
            raise error from exc
        self._serial = handle
        logger.debug("Serial port %s opened (baudrate=%s)", self.port, self.baudrate)

    def close(self) -> None:
        """Release the handle; a no-op when already closed."""
        if self._serial is not None:
            try:
                self._serial.close()
            finally:
                self._serial = None
                logger.debug("Serial port %s closed", self.port)

    def _handle(self, operation: str) -> serial.Serial:
        if self._serial is None or not self._serial.is_open:
            raise RelayIOError(operation, f"port {self.port} is not open")
        return self._serial

    def set_lines(self, a: bool, b: bool) -> None:
        handle = self._handle("set")
        logger.debug("%s: set DTR=%s RTS=%s", self.port, a, b)
        try:
            handle.dtr = bool(a)
            handle.rts = bool(b)
        except (serial.SerialException, OSError) as exc:
            raise RelayIOError("set", f"{self.port}: {exc}") from exc

    def get_lines(self) -> PhysicalLineState:
        handle = self._handle("get")
        try:
            if serialposix is not None and hasattr(handle, "fileno"):
                raw = fcntl.ioctl(handle.fileno(), serialposix.TIOCMGET, serialposix.TIOCM_zero_str)
                bits = struct.unpack("I", raw)[0]
                lines = PhysicalLineState(
                    a=bool(bits & serialposix.TIOCM_DTR),
                    b=bool(bits & serialposix.TIOCM_RTS),
                )
            else:
                # Backends without a modem-status ioctl only know what was last written.
                lines = PhysicalLineState(a=bool(handle.dtr), b=bool(handle.rts))
        except (serial.SerialException, OSError) as exc:
            raise RelayIOError("get", f"{self.port}: {exc}") from exc
        logger.debug("%s: read DTR=%s RTS=%s", self.port, lines.a, lines.b)
        return lines


__all__ = [
    "DEFAULT_BAUDRATE",
    "DEFAULT_TIMEOUT",
    "SignalLines",
    "SerialSignalLines",
    "classify_open_error",
]
