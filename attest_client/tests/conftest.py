"""
Shared fixtures for attestation client tests.
"""
import pytest


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
