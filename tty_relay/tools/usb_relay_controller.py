"""Relay operations on top of a pair of serial control lines.

:class:`RelayController` turns the logical vocabulary ``on``, ``off``,
``toggle``, ``jog``, ``timed_start`` and ``timed_stop`` into DTR/RTS writes
through :func:`~tty_relay.tools.polarity.to_lines`.  Every operation runs to
completion on the calling thread.  Delays are plain blocking sleeps with no
cancellation.  :meth:`RelayController.execute` waits before opening the port,
so terminating the process during a timed wait leaves the relay as it was
before the operation started.
"""
from __future__ import annotations

import logging
import math
import time
from typing import Any, Optional

from tty_relay.tools.polarity import (
    LogicalRelayState,
    PhysicalLineState,
    Polarity,
    from_lines,
    to_lines,
)
from tty_relay.tools.signal_lines import SignalLines
from tty_relay.util.errors import InvalidArgument, UnknownState

JOG_HOLD_SECONDS = 0.5
# Delays are limited to an unsigned 16-bit count of seconds.
MAX_DELAY_SECONDS = 65535
COMMANDS = ("on", "off", "toggle", "jog", "timed_start", "timed_stop")
TIMED_COMMANDS = frozenset({"timed_start", "timed_stop"})
_FIRST_STATE = {
    "on": LogicalRelayState.ON,
    "off": LogicalRelayState.OFF,
    "jog": LogicalRelayState.ON,
    "timed_start": LogicalRelayState.ON,
    "timed_stop": LogicalRelayState.OFF,
}


def validate_delay(value: Any) -> float:
    """Return ``value`` as a non-negative number of seconds.

    Accepts numbers and numeric strings such as ``"1.5"`` up to
    :data:`MAX_DELAY_SECONDS`.

    Raises:
        InvalidArgument: For negative, non-finite, too large, boolean or
            non-numeric input.
    """
    if isinstance(value, bool):
        raise InvalidArgument(f"delay must be a number of seconds, got {value!r}")
    try:
        seconds = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidArgument(f"delay must be a number of seconds, got {value!r}") from None
    if not math.isfinite(seconds):
        raise InvalidArgument(f"delay must be finite, got {value!r}")
    if seconds < 0:
        raise InvalidArgument(f"delay must not be negative, got {value!r}")
    if seconds > MAX_DELAY_SECONDS:
        raise InvalidArgument(f"delay must not exceed {MAX_DELAY_SECONDS} seconds, got {value!r}")
    return seconds


class RelayController:
    """Single-channel relay driven through two serial control lines.

    Parameters:
        lines (SignalLines): Open (or openable) line access; owned by the
            controller when used as a context manager.
        polarity (Polarity): Relay contact wiring, fixed for the controller.
        jog_hold (float): Seconds the relay stays on during :meth:`jog`.
    """

    def __init__(
        self,
        lines: SignalLines,
        polarity: Polarity = Polarity.NO,
        *,
        jog_hold: float = JOG_HOLD_SECONDS,
    ) -> None:
        self.lines = lines
        self.polarity = polarity
        self.jog_hold = validate_delay(jog_hold)

    def __enter__(self) -> "RelayController":
        self.lines.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.lines.close()

    def _apply(self, state: LogicalRelayState) -> None:
        lines = to_lines(state, self.polarity)
        logging.debug(
            "Relay %s polarity=%s -> DTR=%s RTS=%s",
            state.value,
            self.polarity.value,
            lines.a,
            lines.b,
        )
        self.lines.set_lines(lines.a, lines.b)

    def state(self) -> LogicalRelayState:
        """Infer the current logical state from the read-back lines.

        Raises:
            UnknownState: The lines match neither ON nor OFF.
        """
        lines = self.lines.get_lines()
        current = from_lines(lines, self.polarity)
        if current is None:
            raise UnknownState(lines)
        return current

    def on(self) -> None:
        """Switch the circuit on immediately."""
        logging.debug("on command")
        self._apply(LogicalRelayState.ON)

    def off(self) -> None:
        """Switch the circuit off immediately."""
        logging.debug("off command")
        self._apply(LogicalRelayState.OFF)

    def toggle(self) -> LogicalRelayState:
        """Flip the relay and return the new state."""
        logging.debug("toggle command")
        target = self.state().opposite
        self._apply(target)
        return target

    def jog(self) -> None:
        """Close the circuit for :attr:`jog_hold` seconds, then open it."""
        logging.debug("jog command (hold %ss)", self.jog_hold)
        self._apply(LogicalRelayState.ON)
        time.sleep(self.jog_hold)
        self._apply(LogicalRelayState.OFF)

    def _wait(self, delay: float) -> None:
        if delay > 0:
            time.sleep(delay)

    def timed_start(self, delay: Any) -> None:
        """Block for ``delay`` seconds, then switch on."""
        seconds = validate_delay(delay)
        logging.debug("on after %s seconds", seconds)
        self._wait(seconds)
        self.on()

    def timed_stop(self, delay: Any) -> None:
        """Block for ``delay`` seconds, then switch off."""
        seconds = validate_delay(delay)
        logging.debug("off after %s seconds", seconds)
        self._wait(seconds)
        self.off()

    def run(self, command: str, delay: Any = None) -> Any:
        """Dispatch ``command`` by name; timed commands require ``delay``."""
        self._check_command(command, delay)
        if command in TIMED_COMMANDS:
            return getattr(self, command)(delay)
        return getattr(self, command)()

    def _check_command(self, command: str, delay: Any) -> None:
        if command not in COMMANDS:
            raise InvalidArgument(f"unknown relay command {command!r}")
        if command in TIMED_COMMANDS and delay is None:
            raise InvalidArgument(f"{command} requires a delay in seconds")

    def opening_lines(self, command: str) -> Optional[PhysicalLineState]:
        """Lines to present while the port opens, ``None`` when unknown.

        Commands that write a fixed first state open with that state so the
        board never sees the driver's default of both lines asserted.
        """
        target = _FIRST_STATE.get(command)
        return None if target is None else to_lines(target, self.polarity)

    def execute(self, command: str, delay: Any = None) -> Any:
        """Run ``command`` in its own port session and release the port.

        Timed commands wait before the port is opened: opening a serial
        device drives its control lines, so the relay keeps its previous
        state for the whole delay.
        """
        self._check_command(command, delay)
        if command in TIMED_COMMANDS:
            seconds = validate_delay(delay)
            command = "on" if command == "timed_start" else "off"
            logging.debug("%s after %s seconds", command, seconds)
            self._wait(seconds)
        self.lines.open(initial=self.opening_lines(command))
        try:
            return getattr(self, command)()
        finally:
            self.lines.close()


__all__ = [
    "JOG_HOLD_SECONDS",
    "MAX_DELAY_SECONDS",
    "COMMANDS",
    "RelayController",
    "validate_delay",
]
