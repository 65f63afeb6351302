"""Tests for readiness polling"""

import os
import signal
import threading

import pytest

from pik3s.errors import CommandError, ReadinessTimeout, WaitCancelled
from pik3s.orchestrator.waiter import SystemClock, cancel_on_signal, wait_until

from tests.conftest import FakeClock


def ready_after(n):
    calls = {"count": 0}

    def predicate():
        calls["count"] += 1
        return calls["count"] > n

    predicate.calls = calls
    return predicate


class TestWaitUntil:
    """Test wait_until"""

    def test_ready_immediately_does_not_sleep(self):
        clock = FakeClock()
        assert wait_until(lambda: True, timeout=300, interval=5, clock=clock) == 0
        assert clock.sleeps == []

    def test_ready_after_polls(self):
        clock = FakeClock()
        elapsed = wait_until(ready_after(3), timeout=300, interval=5, clock=clock)
        assert elapsed == 15
        assert clock.sleeps == [5, 5, 5]

    def test_timeout_is_exactly_the_ceiling(self):
        clock = FakeClock()
        with pytest.raises(ReadinessTimeout) as exc:
            wait_until(lambda: False, timeout=300, interval=5, clock=clock)

        assert exc.value.elapsed == 300
        assert clock.t == 300
        assert len(clock.sleeps) == 60

    def test_last_sleep_is_truncated_to_the_deadline(self):
        clock = FakeClock()
        with pytest.raises(ReadinessTimeout):
            wait_until(lambda: False, timeout=300, interval=7, clock=clock)

        assert clock.t == 300
        assert clock.sleeps[-1] == 300 - 7 * 42

    def test_predicate_checked_at_deadline(self):
        clock = FakeClock()
        # 61st check happens at t=300
        elapsed = wait_until(ready_after(60), timeout=300, interval=5, clock=clock)
        assert elapsed == 300

    def test_command_error_counts_as_not_ready(self):
        clock = FakeClock()
        calls = {"count": 0}

        def predicate():
            calls["count"] += 1
            if calls["count"] < 3:
                raise CommandError(["kubectl", "get", "nodes"], 1, stderr="connection refused")
            return True

        assert wait_until(predicate, timeout=60, interval=5, clock=clock) == 10

    def test_other_errors_propagate(self):
        def predicate():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            wait_until(predicate, timeout=60, interval=5, clock=FakeClock())

    def test_zero_timeout_checks_once(self):
        clock = FakeClock()
        with pytest.raises(ReadinessTimeout):
            wait_until(lambda: False, timeout=0, interval=5, clock=clock)
        assert clock.sleeps == []

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            wait_until(lambda: True, timeout=10, interval=0, clock=FakeClock())

    def test_on_poll_reports_remaining_time(self):
        remaining = []
        wait_until(ready_after(2), timeout=20, interval=5, clock=FakeClock(), on_poll=remaining.append)
        assert remaining == [20, 15]


class TestSystemClock:
    """Test the cancellable clock"""

    def test_cancel_interrupts_sleep(self):
        clock = SystemClock()
        timer = threading.Timer(0.05, clock.cancel)
        timer.start()

        with pytest.raises(WaitCancelled):
            clock.sleep(30)

        assert clock.cancelled

    def test_cancelled_clock_stops_wait(self):
        clock = SystemClock()
        clock.cancel()

        with pytest.raises(WaitCancelled):
            wait_until(lambda: False, timeout=30, interval=5, clock=clock)

    def test_now_is_monotonic(self):
        clock = SystemClock()
        first = clock.now()
        clock.sleep(0)
        assert clock.now() >= first


class TestCancelOnSignal:
    """Test SIGTERM handling"""

    def test_sigterm_cancels_the_clock(self):
        clock = SystemClock()
        previous = signal.getsignal(signal.SIGTERM)

        with cancel_on_signal(clock):
            os.kill(os.getpid(), signal.SIGTERM)
            with pytest.raises(WaitCancelled):
                clock.sleep(5)

        assert clock.cancelled
        assert signal.getsignal(signal.SIGTERM) is previous

    def test_fake_clock_leaves_handlers_alone(self):
        previous = signal.getsignal(signal.SIGTERM)
        with cancel_on_signal(FakeClock()):
            assert signal.getsignal(signal.SIGTERM) is previous
