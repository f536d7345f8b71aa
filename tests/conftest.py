import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tty_relay.tools.polarity import PhysicalLineState
from tty_relay.tools.port_locator import PortEnumerator
from tty_relay.tools.signal_lines import SignalLines
from tty_relay.util.errors import RelayIOError


class FakeSignalLines(SignalLines):
    """In-memory control lines recording every write."""

    def __init__(self, initial=(True, True), *, port="/dev/ttyFAKE0"):
        super().__init__(port)
        self.current = PhysicalLineState(*initial)
        self.writes: list[PhysicalLineState] = []
        self.opened = 0
        self.opened_with = []
        self.closed = 0
        self.fail_set = False
        self.fail_get = False

    def open(self, initial=None) -> None:
        self.opened += 1
        self.opened_with.append(initial)
        if initial is not None:
            self.current = PhysicalLineState(*initial)

    def close(self) -> None:
        self.closed += 1

    def set_lines(self, a: bool, b: bool) -> None:
        if self.fail_set:
            raise RelayIOError("set", "device unplugged")
        self.current = PhysicalLineState(a, b)
        self.writes.append(self.current)

    def get_lines(self) -> PhysicalLineState:
        if self.fail_get:
            raise RelayIOError("get", "device unplugged")
        return self.current


@dataclass
class FakePortInfo:
    device: str
    vid: Optional[int] = None
    pid: Optional[int] = None
    description: str = ""


class FakeEnumerator(PortEnumerator):
    def __init__(self, ports=()):
        self.ports = list(ports)
        self.calls = 0

    def comports(self):
        self.calls += 1
        return list(self.ports)


@pytest.fixture
def fake_lines():
    return FakeSignalLines()


@pytest.fixture
def sleeps(monkeypatch):
    """Replace the controller's blocking sleep and collect requested delays."""
    from tty_relay.tools import usb_relay_controller

    calls: list[float] = []
    monkeypatch.setattr(usb_relay_controller.time, "sleep", calls.append)
    return calls


@pytest.fixture(autouse=True)
def _no_port_env(monkeypatch):
    monkeypatch.delenv("TTY_RELAY_PORT", raising=False)
