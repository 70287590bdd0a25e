import threading
from unittest.mock import MagicMock

from lfrcli.poller import wait_for_state

from conftest import FakeClock


def scripted(*sequence):
    return MagicMock(side_effect=list(sequence))


def test_polls_until_target_observed():
    clock = FakeClock()
    get_state = scripted("pending", "pending", "running")

    assert wait_for_state(get_state, "bob-std-medium", "running", sleep=clock.sleep, clock=clock)
    assert get_state.call_count == 3
    get_state.assert_called_with("bob-std-medium")
    assert clock.sleeps == [5.0, 5.0]


def test_returns_immediately_when_already_in_state():
    clock = FakeClock()
    get_state = scripted("stopping")

    assert wait_for_state(get_state, "x", "stopping", sleep=clock.sleep, clock=clock)
    assert get_state.call_count == 1
    assert clock.sleeps == []


def test_fixed_interval_without_backoff():
    clock = FakeClock()
    get_state = scripted(*(["pending"] * 6 + ["running"]))

    wait_for_state(get_state, "x", "running", interval=2.5, sleep=clock.sleep, clock=clock)
    assert clock.sleeps == [2.5] * 6


def test_timeout_returns_false():
    clock = FakeClock()
    get_state = MagicMock(return_value="pending")

    assert not wait_for_state(
        get_state, "x", "running", timeout=12, sleep=clock.sleep, clock=clock
    )
    assert get_state.call_count == 4
    assert clock.now == 15


def test_cancel_stops_waiting():
    clock = FakeClock()
    cancel = threading.Event()
    cancel.set()
    get_state = MagicMock(return_value="pending")

    assert not wait_for_state(
        get_state, "x", "running", cancel=cancel, sleep=clock.sleep, clock=clock
    )
    assert get_state.call_count == 1


def test_state_comparison_is_opaque():
    clock = FakeClock()
    get_state = scripted("Running", "RUNNING", "running")

    assert wait_for_state(get_state, "x", "running", sleep=clock.sleep, clock=clock)
    assert get_state.call_count == 3
