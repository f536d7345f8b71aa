import math

import pytest

from conftest import FakeSignalLines
from tty_relay.tools.polarity import LogicalRelayState, PhysicalLineState, Polarity, to_lines
from tty_relay.tools.usb_relay_controller import (
    JOG_HOLD_SECONDS,
    MAX_DELAY_SECONDS,
    RelayController,
    validate_delay,
)
from tty_relay.util.errors import InvalidArgument, RelayIOError, UnknownState

NO_ON = PhysicalLineState(True, False)
NO_OFF = PhysicalLineState(False, True)


def make_relay(polarity=Polarity.NO, initial=(True, True), **kwargs):
    lines = FakeSignalLines(initial)
    return RelayController(lines, polarity, **kwargs), lines


@pytest.mark.parametrize("polarity", list(Polarity))
def test_on_is_idempotent(polarity):
    relay, lines = make_relay(polarity)

    relay.on()
    once = lines.current
    relay.on()

    assert lines.current == once == to_lines(LogicalRelayState.ON, polarity)
    assert lines.writes == [once, once]


def test_nc_on_then_off():
    relay, lines = make_relay(Polarity.NC)

    relay.on()
    assert lines.current == PhysicalLineState(False, True)

    relay.off()
    assert lines.current == PhysicalLineState(True, False)


def test_no_toggle_round_trip():
    relay, lines = make_relay(Polarity.NO, initial=NO_OFF)

    assert relay.toggle() is LogicalRelayState.ON
    assert lines.current == NO_ON

    assert relay.toggle() is LogicalRelayState.OFF
    assert lines.current == NO_OFF


@pytest.mark.parametrize("polarity", list(Polarity))
@pytest.mark.parametrize("start", list(LogicalRelayState))
def test_toggle_twice_restores_lines(polarity, start):
    initial = to_lines(start, polarity)
    relay, lines = make_relay(polarity, initial=initial)

    relay.toggle()
    assert lines.current != initial
    relay.toggle()

    assert lines.current == initial


@pytest.mark.parametrize("initial", [(True, True), (False, False)])
def test_toggle_refuses_to_guess(initial):
    relay, lines = make_relay(initial=initial)

    with pytest.raises(UnknownState) as excinfo:
        relay.toggle()

    assert excinfo.value.lines == PhysicalLineState(*initial)
    assert lines.writes == []


def test_toggle_reports_failed_read():
    relay, lines = make_relay(initial=NO_OFF)
    lines.fail_get = True

    with pytest.raises(RelayIOError) as excinfo:
        relay.toggle()

    assert excinfo.value.operation == "get"
    assert lines.writes == []


def test_set_failure_is_not_retried():
    relay, lines = make_relay()
    lines.fail_set = True

    with pytest.raises(RelayIOError) as excinfo:
        relay.on()

    assert excinfo.value.operation == "set"
    assert lines.writes == []


@pytest.mark.parametrize("polarity", list(Polarity))
@pytest.mark.parametrize("initial", [(True, True), (False, False), (True, False), (False, True)])
def test_jog_always_ends_off(sleeps, polarity, initial):
    relay, lines = make_relay(polarity, initial=initial)

    relay.jog()

    assert lines.writes == [
        to_lines(LogicalRelayState.ON, polarity),
        to_lines(LogicalRelayState.OFF, polarity),
    ]
    assert sleeps == [JOG_HOLD_SECONDS]


def test_jog_hold_comes_from_configuration(sleeps):
    relay, _ = make_relay(jog_hold=1.25)

    relay.jog()

    assert sleeps == [1.25]


def test_timed_start_zero_matches_on(sleeps):
    timed, timed_lines = make_relay()
    immediate, immediate_lines = make_relay()

    timed.timed_start(0)
    immediate.on()

    assert timed_lines.writes == immediate_lines.writes == [NO_ON]
    assert sleeps == []


def test_timed_start_waits_then_switches_on(monkeypatch):
    from tty_relay.tools import usb_relay_controller

    relay, lines = make_relay()
    events = []
    monkeypatch.setattr(
        usb_relay_controller.time, "sleep", lambda seconds: events.append(("sleep", seconds, lines.writes[:]))
    )

    relay.timed_start(3)

    assert events == [("sleep", 3.0, [])]
    assert lines.writes == [NO_ON]


def test_timed_stop_waits_then_switches_off(sleeps):
    relay, lines = make_relay(Polarity.NC)

    relay.timed_stop("2.5")

    assert sleeps == [2.5]
    assert lines.writes == [to_lines(LogicalRelayState.OFF, Polarity.NC)]


@pytest.mark.parametrize("operation", ["timed_start", "timed_stop"])
@pytest.mark.parametrize("delay", [-1, -0.001, "-5", "soon", None, math.nan, math.inf, True])
def test_timed_rejects_bad_delay_without_touching_lines(sleeps, operation, delay):
    relay, lines = make_relay()

    with pytest.raises(InvalidArgument):
        getattr(relay, operation)(delay)

    assert lines.writes == []
    assert sleeps == []


def test_state_reads_lines():
    relay, _ = make_relay(Polarity.NC, initial=(False, True))
    assert relay.state() is LogicalRelayState.ON


def test_run_dispatches_by_name(sleeps):
    relay, lines = make_relay(initial=NO_OFF)

    relay.run("on")
    relay.run("off")
    assert relay.run("toggle") is LogicalRelayState.ON
    relay.run("timed_stop", 1)

    assert lines.writes == [NO_ON, NO_OFF, NO_ON, NO_OFF]
    assert sleeps == [1.0]


def test_run_rejects_unknown_command_and_missing_delay():
    relay, lines = make_relay()

    with pytest.raises(InvalidArgument):
        relay.run("reboot")
    with pytest.raises(InvalidArgument):
        relay.run("timed_start")

    assert lines.writes == []


def test_context_manager_opens_and_closes_lines():
    relay, lines = make_relay()

    with pytest.raises(RelayIOError):
        with relay:
            lines.fail_set = True
            relay.off()

    assert (lines.opened, lines.closed) == (1, 1)


def test_negative_jog_hold_is_rejected():
    with pytest.raises(InvalidArgument):
        make_relay(jog_hold=-1)


@pytest.mark.parametrize(
    "value, expected",
    [(0, 0.0), ("1.5", 1.5), (" 2 ", 2.0), (10, 10.0), (MAX_DELAY_SECONDS, 65535.0)],
)
def test_validate_delay(value, expected):
    assert validate_delay(value) == expected


@pytest.mark.parametrize("value", [10**400, 1e300, "1e300", MAX_DELAY_SECONDS + 0.5])
def test_validate_delay_rejects_huge_values(value):
    with pytest.raises(InvalidArgument):
        validate_delay(value)


def test_huge_delay_never_sleeps(sleeps):
    relay, lines = make_relay()

    with pytest.raises(InvalidArgument):
        relay.execute("timed_start", 1e300)

    assert sleeps == []
    assert lines.opened == 0


@pytest.mark.parametrize("polarity", list(Polarity))
@pytest.mark.parametrize(
    "command, first",
    [("on", LogicalRelayState.ON), ("off", LogicalRelayState.OFF), ("jog", LogicalRelayState.ON)],
)
def test_execute_opens_with_first_state(sleeps, polarity, command, first):
    relay, lines = make_relay(polarity)

    relay.execute(command)

    assert lines.opened_with == [to_lines(first, polarity)]
    assert (lines.opened, lines.closed) == (1, 1)


def test_execute_toggle_keeps_driver_lines():
    relay, lines = make_relay(initial=NO_OFF)

    assert relay.execute("toggle") is LogicalRelayState.ON

    assert lines.opened_with == [None]
    assert lines.writes == [NO_ON]


@pytest.mark.parametrize("command, target", [("timed_start", NO_ON), ("timed_stop", NO_OFF)])
def test_execute_waits_before_opening_port(monkeypatch, command, target):
    from tty_relay.tools import usb_relay_controller

    relay, lines = make_relay(initial=(True, True))
    seen = []
    monkeypatch.setattr(
        usb_relay_controller.time, "sleep", lambda seconds: seen.append((seconds, lines.opened, lines.current))
    )

    relay.execute(command, "30")

    assert seen == [(30.0, 0, PhysicalLineState(True, True))]
    assert lines.opened_with == [target]
    assert lines.writes == [target]
    assert lines.closed == 1


def test_execute_closes_port_after_failure():
    relay, lines = make_relay()
    lines.fail_set = True

    with pytest.raises(RelayIOError):
        relay.execute("off")

    assert (lines.opened, lines.closed) == (1, 1)
