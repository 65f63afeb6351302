"""Cancellable wait-with-timeout for readiness polling"""

import signal
import threading
import time
from contextlib import contextmanager
from typing import Callable

from pik3s.errors import CommandError, ReadinessTimeout, WaitCancelled


class Clock:
    """Time source used by readiness waits"""

    def now(self) -> float:
        raise NotImplementedError

    def sleep(self, seconds: float) -> None:
        raise NotImplementedError

    @property
    def cancelled(self) -> bool:
        return False


class SystemClock(Clock):
    """Monotonic wall clock whose sleeps can be interrupted"""

    def __init__(self):
        self._cancelled = threading.Event()

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if self._cancelled.wait(max(seconds, 0)):
            raise WaitCancelled("Wait cancelled")

    def cancel(self) -> None:
        """Interrupt the current and all later sleeps"""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


@contextmanager
def cancel_on_signal(clock: Clock, signum: int = signal.SIGTERM):
    """Cancel ``clock`` when ``signum`` arrives; the previous handler is restored on exit.

    A no-op for clocks that cannot be cancelled.
    """
    if not isinstance(clock, SystemClock):
        yield
        return

    previous = signal.signal(signum, lambda received, frame: clock.cancel())
    try:
        yield
    finally:
        signal.signal(signum, previous)


def wait_until(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float,
    clock: Clock,
    on_poll: Callable[[float], None] = None,
) -> float:
    """Poll ``predicate`` until it holds; return the elapsed time.

    The predicate is checked immediately and then every ``interval`` seconds.
    The last sleep is shortened so the final check lands exactly on
    ``timeout``. A predicate raising ``CommandError`` counts as not ready.
    Raises ``ReadinessTimeout`` when the deadline passes.
    """
    if interval <= 0:
        raise ValueError("interval must be positive")

    start = clock.now()
    while True:
        try:
            ready = predicate()
        except CommandError:
            ready = False

        elapsed = clock.now() - start
        if ready:
            return elapsed
        if elapsed >= timeout:
            raise ReadinessTimeout(elapsed, timeout)

        if on_poll is not None:
            on_poll(timeout - elapsed)
        clock.sleep(min(interval, timeout - elapsed))
