"""
Placement Rate Limiting Middleware

Every placement sends an MDM command to a device, so placement routes are
rate limited per client IP.
"""
import logging
import time
from threading import Lock
from typing import Callable, Dict, Iterable, Tuple
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from attest.api.responses import error_envelope

logger = logging.getLogger(__name__)

# Buckets idle this long are dropped by cleanup_old_entries
IDLE_BUCKET_SECONDS = 600


class PlaceRateLimiter:
    """
    Token bucket rate limiter keyed by client IP.

    Thread-safe.
    """

    def __init__(self, rate_per_minute: int = 30, burst_size: int = 5, clock: Callable[[], float] = time.monotonic):
        self.rate_per_minute = rate_per_minute
        self.burst_size = burst_size
        self._clock = clock
        self.buckets: Dict[str, Tuple[float, float]] = {}  # ip -> (tokens, last_refill)
        self.lock = Lock()

        logger.info(f"Placement rate limiter initialized: {rate_per_minute} req/min per IP (burst {burst_size})")

    @property
    def capacity(self) -> float:
        return float(self.rate_per_minute + self.burst_size)

    def _refill_bucket(self, tokens: float, last_refill: float) -> Tuple[float, float]:
        """Refill token bucket based on elapsed time."""
        now = self._clock()
        elapsed = now - last_refill
        tokens = min(tokens + elapsed * (self.rate_per_minute / 60.0), self.capacity)
        return tokens, now

    def check_rate_limit(self, ip: str) -> bool:
        """Consume one token for ip. Returns False if the bucket is empty."""
        with self.lock:
            tokens, last_refill = self.buckets.get(ip, (self.capacity, self._clock()))
            tokens, last_refill = self._refill_bucket(tokens, last_refill)

            if tokens < 1:
                self.buckets[ip] = (tokens, last_refill)
                logger.warning(f"Placement rate limit exceeded for IP: {ip}")
                return False

            self.buckets[ip] = (tokens - 1, last_refill)
            return True

    def cleanup_old_entries(self) -> None:
        """Remove idle buckets to prevent memory bloat."""
        with self.lock:
            now = self._clock()
            self.buckets = {
                ip: bucket for ip, bucket in self.buckets.items()
                if now - bucket[1] < IDLE_BUCKET_SECONDS
            }


class PlaceRateLimitMiddleware(BaseHTTPMiddleware):
    """Apply a PlaceRateLimiter to requests for the given paths."""

    def __init__(self, app, limiter: PlaceRateLimiter, paths: Iterable[str]):
        super().__init__(app)
        self.limiter = limiter
        self.paths = set(paths)

    async def dispatch(self, request: Request, call_next):
        if request.url.path not in self.paths:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"

        if not self.limiter.check_rate_limit(client_ip):
            response = error_envelope(429)
            response.headers["Retry-After"] = "60"
            response.headers["X-RateLimit-Limit"] = str(self.limiter.rate_per_minute)
            return response

        return await call_next(request)
