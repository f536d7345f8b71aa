"""Hardware side of tty_relay: port discovery, control lines, relay operations."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .polarity import LogicalRelayState, PhysicalLineState, Polarity
from .port_locator import PortEnumerator, PortLocator, SerialPortEnumerator
from .signal_lines import SerialSignalLines, SignalLines
from .usb_relay_controller import RelayController

if TYPE_CHECKING:
    from tty_relay.util.constants import RelayConfig

__all__ = [
    "LogicalRelayState",
    "PhysicalLineState",
    "Polarity",
    "PortEnumerator",
    "PortLocator",
    "SerialPortEnumerator",
    "SignalLines",
    "SerialSignalLines",
    "RelayController",
    "get_relay_controller",
]


def get_relay_controller(
    config: "RelayConfig",
    port: Optional[str] = None,
    *,
    enumerator: Optional[PortEnumerator] = None,
) -> RelayController:
    """Build a controller for the configured relay board.

    Parameters:
        config: Loaded :class:`~tty_relay.util.constants.RelayConfig`.
        port: Explicit device path; when empty the board is located by USB id.
        enumerator: Port source used for auto-detection.

    Returns:
        RelayController: Controller whose lines are not opened yet; use it
        as a context manager so the port is released afterwards.
    """
    device = PortLocator(enumerator, config.usb_ids).locate(port)
    logging.debug("Relay port %s, polarity %s", device, config.polarity.value)
    lines = SerialSignalLines(device, baudrate=config.baudrate, timeout=config.timeout)
    return RelayController(lines, config.polarity, jog_hold=config.jog_hold_seconds)
