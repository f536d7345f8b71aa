"""Mapping between logical relay state and the DTR/RTS control lines.

Line ``a`` is DTR and line ``b`` is RTS.  With ``NO`` wiring the relay is
switched on by asserting DTR and releasing RTS; ``NC`` wiring is the
complement, so changing the configured polarity inverts the physical effect
of every operation while ``on``/``off`` keep their meaning.

:func:`to_lines` is the only place that looks at the polarity value.
"""
from __future__ import annotations

import enum
from typing import NamedTuple

from tty_relay.util.errors import InvalidArgument


class LogicalRelayState(enum.Enum):
    """Desired or observed state of the controlled circuit."""

    ON = "on"
    OFF = "off"

    @property
    def opposite(self) -> "LogicalRelayState":
        return LogicalRelayState.OFF if self is LogicalRelayState.ON else LogicalRelayState.ON


class Polarity(enum.Enum):
    """Relay contact wiring: normally open or normally closed."""

    NO = "NO"
    NC = "NC"


class PhysicalLineState(NamedTuple):
    """Asserted state of the two control lines (a=DTR, b=RTS)."""

    a: bool
    b: bool

    def swapped(self) -> "PhysicalLineState":
        return PhysicalLineState(self.b, self.a)


def to_lines(logical: LogicalRelayState, polarity: Polarity) -> PhysicalLineState:
    """Return the line levels that put the relay into ``logical``.

    Parameters:
        logical (LogicalRelayState): Target state of the circuit.
        polarity (Polarity): Wiring of the relay contact.

    Returns:
        PhysicalLineState: ``(DTR, RTS)`` levels to assert.
    """
    engaged = logical is LogicalRelayState.ON
    if polarity is Polarity.NC:
        engaged = not engaged
    return PhysicalLineState(a=engaged, b=not engaged)


def from_lines(lines: PhysicalLineState, polarity: Polarity) -> LogicalRelayState | None:
    """Infer the logical state from read-back line levels.

    Returns ``None`` when ``lines`` is not the image of any logical state,
    e.g. both lines asserted.
    """
    lines = PhysicalLineState(bool(lines[0]), bool(lines[1]))
    for state in LogicalRelayState:
        if to_lines(state, polarity) == lines:
            return state
    return None


def parse_polarity(value: str | Polarity | None) -> Polarity:
    """Normalize configuration text such as ``"no"`` or ``" NC "``.

    ``None`` or an empty string selects the default ``NO`` wiring.

    Raises:
        InvalidArgument: If the value names no known wiring mode.
    """
    if isinstance(value, Polarity):
        return value
    text = (value or Polarity.NO.value)
    if not isinstance(text, str):
        raise InvalidArgument(f"polarity must be NO or NC, got {value!r}")
    text = text.strip().upper() or Polarity.NO.value
    try:
        return Polarity(text)
    except ValueError:
        raise InvalidArgument(f"polarity must be NO or NC, got {value!r}") from None


__all__ = [
    "LogicalRelayState",
    "Polarity",
    "PhysicalLineState",
    "to_lines",
    "from_lines",
    "parse_polarity",
]
