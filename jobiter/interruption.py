"""
Shutdown checks: predicates the runner polls after every item.

They have to be cheap. Anything that reads shared state caches it for a poll
interval.
"""
import time
from typing import Callable

ShutdownCheck = Callable[[], bool]


def never() -> bool:
    return False


class TimeBudget:
    """True once `seconds` have passed since the check was created."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = float(seconds)
        self._clock = clock
        self._started = clock()

    def __call__(self) -> bool:
        return self._clock() - self._started >= self.seconds


class ShutdownFlag:
    """True once `read_flag()` reports a shutdown request."""

    def __init__(self, read_flag: Callable[[], bool], poll_interval: float = 1.0,
                 clock: Callable[[], float] = time.monotonic):
        self._read_flag = read_flag
        self.poll_interval = poll_interval
        self._clock = clock
        self._checked_at = None
        self._value = False

    def __call__(self) -> bool:
        if self._value:
            return True
        now = self._clock()
        if self._checked_at is None or now - self._checked_at >= self.poll_interval:
            self._checked_at = now
            self._value = bool(self._read_flag())
        return self._value


class ExactTimes:
    """True from the n-th check on. Lets tests interrupt after exactly n items."""

    def __init__(self, n: int):
        self.n = n
        self.calls = 0

    def __call__(self) -> bool:
        self.calls += 1
        return self.calls >= self.n


def any_of(*checks: ShutdownCheck) -> ShutdownCheck:
    def check() -> bool:
        return any(c() for c in checks)
    return check
