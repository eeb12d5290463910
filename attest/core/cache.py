"""
TTL / LRU Cache

Thread-safe in-memory cache shared by the token store, the file stage and the
MDM lookup cache.

Features:
- Item count limit with least-recently-used eviction
- Fixed per-item TTL that is never extended by reads
- Lazy expiry on access plus a background sweep thread
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)


# Default interval between background sweeps
SWEEP_INTERVAL_SECONDS = 30.0


class TTLCache:
    """
    Bounded cache with TTL expiry.

    Reads move an item to the most-recently-used position but never move its
    expiry. A staged secret must become unrecoverable on schedule no matter how
    often it is polled.
    """

    def __init__(
        self,
        size_limit: int = 0,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
        name: str = "cache",
    ):
        """
        Args:
            size_limit: Maximum number of items (0 = unbounded)
            ttl: Item lifetime in seconds (None = items never expire)
            clock: Monotonic time source, injectable for tests
            sweep_interval: Seconds between background sweeps
            name: Label used in log messages
        """
        if size_limit < 0:
            raise ValueError(f"size_limit must be >= 0, got {size_limit}")
        if ttl is not None and ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")

        self.size_limit = size_limit
        self.ttl = ttl
        self.name = name
        self._clock = clock
        self._sweep_interval = sweep_interval
        # key -> (value, expires_at); order is recency, oldest first
        self._items: "OrderedDict[Hashable, Tuple[Any, Optional[float]]]" = OrderedDict()
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._sweep_thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the background sweep thread."""
        with self._lock:
            if self._sweep_thread is not None or self.ttl is None:
                return
            self._stop.clear()
            self._sweep_thread = threading.Thread(
                target=self._sweep_loop, name=f"{self.name}-sweep", daemon=True
            )
            self._sweep_thread.start()
        logger.info(f"{self.name}: sweep started (every {self._sweep_interval}s)")

    def stop(self) -> None:
        """Stop the background sweep thread."""
        self._stop.set()
        thread = self._sweep_thread
        if thread is not None:
            thread.join(timeout=5)
        self._sweep_thread = None
        logger.info(f"{self.name}: sweep stopped")

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self._sweep_interval):
            removed = self.purge_expired()
            if removed:
                logger.debug(f"{self.name}: swept {removed} expired items")

    def _expired(self, expires_at: Optional[float], now: float) -> bool:
        return expires_at is not None and now >= expires_at

    def purge_expired(self) -> int:
        """Remove all expired items and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, exp) in self._items.items() if self._expired(exp, now)]
            for key in expired:
                del self._items[key]
            return len(expired)

    def set(self, key: Hashable, value: Any) -> None:
        """Store value under key, evicting the LRU item if the cache is full."""
        with self._lock:
            now = self._clock()
            expires_at = now + self.ttl if self.ttl is not None else None

            if key in self._items:
                del self._items[key]
            elif self.size_limit and len(self._items) >= self.size_limit:
                self.purge_expired()
                while len(self._items) >= self.size_limit:
                    self._items.popitem(last=False)
                    logger.debug(f"{self.name}: evicted least recently used item")

            self._items[key] = (value, expires_at)

    def _lookup(self, key: Hashable) -> Any:
        """Return the live value for key or raise KeyError. Caller holds the lock."""
        try:
            value, expires_at = self._items[key]
        except KeyError:
            raise KeyError(key) from None

        if self._expired(expires_at, self._clock()):
            del self._items[key]
            raise KeyError(key)

        return value

    def get(self, key: Hashable) -> Any:
        """
        Return the value for key without renewing its TTL.

        Raises:
            KeyError: If key is absent or expired
        """
        with self._lock:
            value = self._lookup(key)
            self._items.move_to_end(key)
            return value

    def pop(self, key: Hashable) -> Any:
        """
        Remove key and return its value in one step.

        Among concurrent callers popping the same key, exactly one gets the value.

        Raises:
            KeyError: If key is absent or expired
        """
        with self._lock:
            value = self._lookup(key)
            del self._items[key]
            return value

    def remove(self, key: Hashable) -> bool:
        """Remove key. Returns True if it was present."""
        with self._lock:
            return self._items.pop(key, None) is not None

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            try:
                self._lookup(key)
            except KeyError:
                return False
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
