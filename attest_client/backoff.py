"""
Exponential Backoff

Retries an operation with exponentially growing, jittered delays until it
succeeds or a deadline passes. Sleeps are clamped to the deadline and can be
interrupted through a threading.Event.
"""
import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryError(Exception):
    """The operation did not succeed before the deadline (or was cancelled)."""
    pass


@dataclass
class ExponentialBackoff:
    """
    Backoff schedule.

    Delays: initial_interval, then multiplied by multiplier each retry, capped
    at max_interval, each randomized by +/- randomization_factor.
    """
    initial_interval: float = 1.0
    multiplier: float = 2.0
    randomization_factor: float = 0.5
    max_interval: float = 60.0
    max_elapsed_time: float = 120.0

    def intervals(self):
        """Yield successive randomized delays."""
        interval = self.initial_interval
        while True:
            delta = self.randomization_factor * interval
            yield random.uniform(interval - delta, interval + delta)
            interval = min(interval * self.multiplier, self.max_interval)


def retry(
    operation: Callable[[], T],
    backoff: ExponentialBackoff,
    cancel: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """
    Call operation until it returns without raising.

    Every exception is treated as retryable. The deadline is
    max_elapsed_time after the first attempt; no sleep runs past it.

    Args:
        operation: Callable to retry
        backoff: Backoff schedule
        cancel: Set to stop retrying early
        clock: Monotonic time source (for tests)
        sleep: Sleep function (for tests); defaults to waiting on cancel

    Raises:
        RetryError: When the deadline passes or cancel is set; chained to the last error
    """
    cancel = cancel or threading.Event()
    if sleep is None:
        sleep = cancel.wait

    deadline = clock() + backoff.max_elapsed_time
    intervals = backoff.intervals()
    attempt = 0

    while True:
        attempt += 1
        try:
            return operation()
        except Exception as e:
            last_error = e

        remaining = deadline - clock()
        if remaining <= 0:
            raise RetryError(f"gave up after {attempt} attempts: {last_error}") from last_error
        if cancel.is_set():
            raise RetryError(f"cancelled after {attempt} attempts: {last_error}") from last_error

        delay = min(next(intervals), remaining)
        logger.debug(f"Attempt {attempt} failed ({last_error}), retrying in {delay:.1f}s")
        sleep(delay)
