"""
Unit tests for placement rate limiting.
"""
from fastapi.testclient import TestClient

from attest.api.main import create_app
from attest.api.rate_limiting import PlaceRateLimiter
from attest.api.service import AttestationService
from attest.core.config import Settings
from attest.core.files import MemoryFileStore
from attest.core.tokens import MemoryTokenStore
from attest.core.transport import Transport


class NullTransport(Transport):
    def place(self, token, identifier, path):
        pass


class TestPlaceRateLimiter:

    def test_burst_then_limited(self, clock):
        limiter = PlaceRateLimiter(rate_per_minute=6, burst_size=2, clock=clock)
        assert all(limiter.check_rate_limit("1.2.3.4") for _ in range(8))
        assert limiter.check_rate_limit("1.2.3.4") is False

    def test_refill(self, clock):
        limiter = PlaceRateLimiter(rate_per_minute=6, burst_size=0, clock=clock)
        for _ in range(6):
            limiter.check_rate_limit("1.2.3.4")
        assert limiter.check_rate_limit("1.2.3.4") is False

        clock.advance(10)
        assert limiter.check_rate_limit("1.2.3.4") is True

    def test_separate_buckets_per_ip(self, clock):
        limiter = PlaceRateLimiter(rate_per_minute=1, burst_size=0, clock=clock)
        assert limiter.check_rate_limit("1.1.1.1") is True
        assert limiter.check_rate_limit("1.1.1.1") is False
        assert limiter.check_rate_limit("2.2.2.2") is True

    def test_cleanup_old_entries(self, clock):
        limiter = PlaceRateLimiter(clock=clock)
        limiter.check_rate_limit("1.1.1.1")
        clock.advance(601)
        limiter.check_rate_limit("2.2.2.2")
        limiter.cleanup_old_entries()
        assert list(limiter.buckets) == ["2.2.2.2"]


class TestPlaceRateLimitMiddleware:

    def test_place_is_limited(self):
        service = AttestationService(MemoryTokenStore(100, 60), NullTransport(), MemoryFileStore(10, 60))
        settings = Settings(_env_file=None, place_rate_limit_per_minute=1)
        client = TestClient(create_app(service=service, settings=settings))

        # capacity is rate + burst (5)
        for _ in range(6):
            assert client.post("/v1/attest/place", json={"identifier": "C02XYZ"}).status_code == 200

        response = client.post("/v1/attest/place", json={"identifier": "C02XYZ"})
        assert response.status_code == 429
        assert response.json() == {"code": 429, "description": "Too Many Requests"}
        assert response.headers["Retry-After"] == "60"

        # other routes are not limited
        assert client.get("/health").status_code == 200
