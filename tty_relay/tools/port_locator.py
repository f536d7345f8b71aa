"""Locate the relay adapter among the host's serial ports."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from tty_relay.util.errors import AmbiguousDevice, NoDeviceFound

# WCH CH340/CH340G USB-to-serial bridge.
CH340_VID = 0x1A86
CH340_PID = 0x7523
SUPPORTED_USB_IDS: Tuple[Tuple[int, int], ...] = ((CH340_VID, CH340_PID),)


def format_usb_id(vid: int, pid: int) -> str:
    return f"{vid:04x}:{pid:04x}"


class PortEnumerator(ABC):
    """Source of serial port descriptions.

    ``comports()`` returns objects exposing ``device``, ``vid`` and ``pid``
    attributes, like :class:`serial.tools.list_ports_common.ListPortInfo`.
    """

    @abstractmethod
    def comports(self) -> Sequence[Any]:
        raise NotImplementedError


class SerialPortEnumerator(PortEnumerator):
    """Enumerate ports through :func:`serial.tools.list_ports.comports`."""

    def comports(self) -> Sequence[Any]:
        from serial.tools import list_ports

        return list(list_ports.comports())


class PortLocator:
    """Pick the device path of the relay board.

    Parameters:
        enumerator (PortEnumerator | None): Port source; defaults to
            :class:`SerialPortEnumerator`.
        usb_ids (Iterable[tuple[int, int]]): Accepted ``(vid, pid)`` pairs.
    """

    def __init__(
        self,
        enumerator: Optional[PortEnumerator] = None,
        usb_ids: Iterable[Tuple[int, int]] = SUPPORTED_USB_IDS,
    ) -> None:
        self.enumerator = enumerator or SerialPortEnumerator()
        self.usb_ids = frozenset((int(vid), int(pid)) for vid, pid in usb_ids)

    def _describe_ids(self) -> str:
        return ", ".join(sorted(format_usb_id(vid, pid) for vid, pid in self.usb_ids))

    def matching_ports(self) -> List[Any]:
        """Return every enumerated port whose USB id is supported, sorted by device."""
        matches = []
        for info in self.enumerator.comports():
            vid = getattr(info, "vid", None)
            pid = getattr(info, "pid", None)
            logging.debug("Serial port %s vid=%s pid=%s", getattr(info, "device", "?"), vid, pid)
            # Non-USB ports report vid/pid as None.
            if vid is None or pid is None:
                continue
            if (vid, pid) in self.usb_ids:
                matches.append(info)
        return sorted(matches, key=lambda info: info.device)

    def locate(self, explicit: Optional[str] = None) -> str:
        """Return the device path to open.

        An ``explicit`` path is returned unchanged without enumerating.

        Raises:
            NoDeviceFound: No port carries a supported USB id.
            AmbiguousDevice: Several ports do and no path was given.
        """
        if explicit:
            logging.debug("Using serial port %s given explicitly", explicit)
            return explicit
        logging.debug("Looking for serial port with vid:pid in %s", self._describe_ids())
        matches = self.matching_ports()
        if not matches:
            raise NoDeviceFound(
                f"Compatible TTY device is not found (with vid:pid {self._describe_ids()})"
            )
        if len(matches) > 1:
            devices = [info.device for info in matches]
            raise AmbiguousDevice(
                f"Several compatible TTY devices found ({', '.join(devices)}); select one with --tty",
                devices,
            )
        device = matches[0].device
        logging.debug("Serial port found at %s", device)
        return device


__all__ = [
    "CH340_VID",
    "CH340_PID",
    "SUPPORTED_USB_IDS",
    "format_usb_id",
    "PortEnumerator",
    "SerialPortEnumerator",
    "PortLocator",
]
