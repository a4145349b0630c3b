"""Tests for the bounded polling helper."""

import threading

import pytest

from serial_audit.polling import AuditCancelled, PollOutcome, poll_until, raise_if_cancelled, wait_or_cancel


def test_poll_succeeds_immediately():
    calls = []

    def condition():
        calls.append(1)
        return True

    assert poll_until(condition, interval=0.01, timeout=1.0) is PollOutcome.SUCCESS
    assert len(calls) == 1


def test_poll_succeeds_after_retries():
    results = iter([False, False, True])

    assert poll_until(lambda: next(results), interval=0.001, timeout=5.0) is PollOutcome.SUCCESS


def test_poll_times_out():
    calls = []

    def condition():
        calls.append(1)
        return False

    assert poll_until(condition, interval=0.01, timeout=0.05) is PollOutcome.TIMEOUT
    assert len(calls) >= 2


def test_poll_uses_fixed_interval():
    """No backoff: checks happen until the deadline, never after it."""
    now = [0.0]
    calls = []

    def clock():
        return now[0]

    def condition():
        calls.append(now[0])
        now[0] += 1.0
        return False

    outcome = poll_until(condition, interval=0.0, timeout=5.0, clock=clock)

    assert outcome is PollOutcome.TIMEOUT
    assert calls == [0.0, 1.0, 2.0, 3.0, 4.0]


def test_condition_errors_propagate():
    def condition():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        poll_until(condition, interval=0.01, timeout=1.0)


def test_poll_cancelled_before_start():
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(AuditCancelled):
        poll_until(lambda: True, interval=0.01, timeout=1.0, cancel=cancel)


def test_poll_cancelled_while_waiting():
    cancel = threading.Event()
    timer = threading.Timer(0.05, cancel.set)
    timer.start()
    try:
        with pytest.raises(AuditCancelled):
            poll_until(lambda: False, interval=10.0, timeout=60.0, cancel=cancel)
    finally:
        timer.cancel()


def test_wait_or_cancel_returns_after_delay():
    wait_or_cancel(0.01, threading.Event())
    wait_or_cancel(0.0)


def test_wait_or_cancel_raises_when_cancelled():
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(AuditCancelled):
        wait_or_cancel(30.0, cancel)


def test_raise_if_cancelled():
    cancel = threading.Event()
    raise_if_cancelled(None)
    raise_if_cancelled(cancel)

    cancel.set()
    with pytest.raises(AuditCancelled):
        raise_if_cancelled(cancel)
