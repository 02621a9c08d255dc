"""Retry policy for transient request failures."""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

__all__ = ["RetryConfig", "calculate_delay", "retry_with_backoff"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, Exception, float], None]


def calculate_delay(
    retry: int,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """Backoff before retry number ``retry`` (0-indexed), capped at ``max_delay``.

    Jitter spreads the delay by +/- 25%.
    """
    delay = min(base_delay * (exponential_base ** retry), max_delay)
    if jitter:
        delay += random.uniform(-0.25, 0.25) * delay
    return max(0.0, delay)


@dataclass(frozen=True)
class RetryConfig:
    """How often to retry and how long to wait in between.

    One initial attempt is always made; up to ``max_retries`` more follow
    while the caller's classifier accepts the error.
    """

    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    exponential_base: float = 2.0
    jitter: bool = True

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry: int) -> float:
        return calculate_delay(
            retry,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential_base=self.exponential_base,
            jitter=self.jitter,
        )


def _log_retry(retry: int, error: Exception, delay: float) -> None:
    logger.warning(f"Attempt {retry + 1} failed: {error}. Retrying in {delay:.1f}s...")


def retry_with_backoff(
    func: Callable[[], T],
    config: Optional[RetryConfig] = None,
    should_retry: Callable[[Exception], bool] = lambda e: True,
    on_retry: Optional[RetryCallback] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func`` until it succeeds or the policy gives up.

    Args:
        func: Zero-argument callable to run
        config: Retry policy; defaults to ``RetryConfig()``
        should_retry: Classifier; errors it rejects propagate immediately
        on_retry: Called as ``(retry, error, delay)`` before each sleep
        sleep: Sleep function (injectable for tests)

    Raises:
        Exception: The last error from ``func``, unchanged, once it is
            rejected by the classifier or the retries are spent
    """
    config = config or RetryConfig()
    notify = on_retry or _log_retry

    retry = 0
    while True:
        try:
            return func()
        except Exception as e:
            if not should_retry(e):
                raise
            if retry >= config.max_retries:
                logger.warning(f"Giving up after {config.max_attempts} attempts: {e}")
                raise
            delay = config.delay_for(retry)
            notify(retry, e, delay)
            sleep(delay)
            retry += 1
