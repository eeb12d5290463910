"""
Unit tests for exponential backoff.
"""
import threading

import pytest

from attest_client.backoff import ExponentialBackoff, RetryError, retry


class TestExponentialBackoff:

    def test_intervals_without_jitter(self):
        backoff = ExponentialBackoff(initial_interval=1.0, randomization_factor=0, max_interval=10.0)
        intervals = backoff.intervals()
        assert [next(intervals) for _ in range(6)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    def test_intervals_with_jitter(self):
        intervals = ExponentialBackoff(initial_interval=1.0, randomization_factor=0.5).intervals()
        first, second = next(intervals), next(intervals)
        assert 0.5 <= first <= 1.5
        assert 1.0 <= second <= 3.0


class TestRetry:

    def test_first_attempt_succeeds(self, clock):
        assert retry(lambda: 42, ExponentialBackoff(), clock=clock, sleep=clock.sleep) == 42
        assert clock.sleeps == []

    def test_succeeds_after_failures(self, clock):
        attempts = []

        def operation():
            attempts.append(clock())
            if len(attempts) < 4:
                raise OSError("not yet")
            return "done"

        backoff = ExponentialBackoff(randomization_factor=0)
        assert retry(operation, backoff, clock=clock, sleep=clock.sleep) == "done"
        assert clock.sleeps == [1.0, 2.0, 4.0]

    def test_gives_up_at_deadline(self, clock):
        def operation():
            raise OSError("missing")

        backoff = ExponentialBackoff(randomization_factor=0, max_elapsed_time=10.0)
        with pytest.raises(RetryError) as exc_info:
            retry(operation, backoff, clock=clock, sleep=clock.sleep)

        assert isinstance(exc_info.value.__cause__, OSError)
        # 1 + 2 + 4, then clamped to the remaining 3
        assert clock.sleeps == [1.0, 2.0, 4.0, 3.0]
        assert clock.now == 10.0

    def test_zero_elapsed_time_tries_once(self, clock):
        calls = []

        def operation():
            calls.append(1)
            raise OSError("missing")

        with pytest.raises(RetryError):
            retry(operation, ExponentialBackoff(max_elapsed_time=0), clock=clock, sleep=clock.sleep)
        assert len(calls) == 1

    def test_cancel(self, clock):
        cancel = threading.Event()

        def operation():
            cancel.set()
            raise OSError("missing")

        with pytest.raises(RetryError, match="cancelled"):
            retry(operation, ExponentialBackoff(), cancel=cancel, clock=clock, sleep=clock.sleep)
        assert clock.sleeps == []
