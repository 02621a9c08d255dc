"""Client-side request scheduler for the Strava read budget."""

import logging
import threading
import time
from collections import deque
from typing import Callable, Optional, TypeVar

__all__ = ["RequestScheduler"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestScheduler:
    """Serializes requests under a token-bucket budget.

    Jobs are admitted strictly one at a time in FIFO order. Each admission
    draws one unit from a reservoir that is refilled in full at every
    ``refresh_interval`` boundary (measured from creation), and consecutive
    admissions are at least ``min_time`` seconds apart.

    Usage:
        scheduler = RequestScheduler()
        data = scheduler.schedule(lambda: session.get(url).json())
    """

    def __init__(
        self,
        reservoir: int = 100,
        refresh_interval: float = 15 * 60,
        min_time: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize scheduler.

        Args:
            reservoir: Requests allowed per window
            refresh_interval: Window length in seconds
            min_time: Minimum spacing between request starts in seconds
            clock: Monotonic clock (injectable for tests)
            sleep: Sleep function (injectable for tests)
        """
        if reservoir < 1:
            raise ValueError("reservoir must be at least 1")
        self.capacity = reservoir
        self.refresh_interval = refresh_interval
        self.min_time = min_time
        self._clock = clock
        self._sleep = sleep

        self._remaining = reservoir
        self._window_start = clock()
        self._last_start: Optional[float] = None

        self._cond = threading.Condition()
        self._waiting: deque[object] = deque()
        self._running = False

    @property
    def remaining(self) -> int:
        """Budget left in the current window."""
        self._refill(self._clock())
        return self._remaining

    def schedule(self, func: Callable[[], T]) -> T:
        """Run ``func`` once it is admitted, returning its result.

        Exceptions from ``func`` propagate; the budget unit is still spent.
        """
        ticket = object()
        with self._cond:
            self._waiting.append(ticket)
            while self._running or self._waiting[0] is not ticket:
                self._cond.wait()
            self._waiting.popleft()
            self._running = True

        try:
            self._await_budget()
            return func()
        finally:
            with self._cond:
                self._running = False
                self._cond.notify_all()

    def _refill(self, now: float) -> None:
        elapsed = now - self._window_start
        if elapsed >= self.refresh_interval:
            windows = int(elapsed // self.refresh_interval)
            self._window_start += windows * self.refresh_interval
            self._remaining = self.capacity

    def _await_budget(self) -> None:
        """Block until the running job may start, then spend one unit."""
        while True:
            now = self._clock()
            self._refill(now)

            if self._remaining <= 0:
                delay = self._window_start + self.refresh_interval - now
                logger.info(
                    f"Request budget exhausted ({self.capacity} per "
                    f"{self.refresh_interval:.0f}s); waiting {delay:.1f}s"
                )
            elif self._last_start is not None:
                delay = self._last_start + self.min_time - now
                if delay > 0:
                    logger.debug(f"Spacing requests; waiting {delay:.3f}s")
            else:
                delay = 0

            if delay <= 0:
                break
            self._sleep(delay)

        self._remaining -= 1
        self._last_start = self._clock()
