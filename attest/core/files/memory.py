"""
In-Memory File Store

Keeps staged files in a TTL/LRU cache. Reads never extend a file's lifetime.
"""

import logging
import secrets
from typing import Optional

from attest.core.cache import TTLCache
from attest.core.files.base import FileStore, FileStoreError, StagedFileNotFoundError

logger = logging.getLogger(__name__)

# Random path id size in bytes (128 bits)
PATH_ID_SIZE = 16


class MemoryFileStore(FileStore):
    """
    File store kept entirely in memory.

    Thread-safe: get removes the file in the same locked step as the read, so
    only one of several concurrent gets for a path succeeds.
    """

    def __init__(self, size: int, ttl: float, cache: Optional[TTLCache] = None):
        """
        Args:
            size: Maximum number of staged files
            ttl: File lifetime in seconds
            cache: Pre-built cache (for tests); size and ttl are ignored if given
        """
        self.files = cache if cache is not None else TTLCache(size_limit=size, ttl=ttl, name="files")

    def peek(self, path: str) -> bytes:
        try:
            return self.files.get(path)
        except KeyError:
            raise StagedFileNotFoundError(path) from None

    def get(self, path: str) -> bytes:
        try:
            return self.files.pop(path)
        except KeyError:
            raise StagedFileNotFoundError(path) from None

    def put(self, name: str, data: bytes) -> str:
        if not name or "/" in name:
            raise FileStoreError(f"invalid file name: {name!r}")

        path = f"{secrets.token_urlsafe(PATH_ID_SIZE)}/{name}"
        self.files.set(path, bytes(data))
        logger.debug(f"Staged {len(data)} bytes as {name}")
        return path

    def start(self) -> None:
        self.files.start()

    def stop(self) -> None:
        self.files.stop()
