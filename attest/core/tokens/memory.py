"""
In-Memory Token Store

Opaque random tokens mapped to identifiers in a TTL/LRU cache. Tokens are only
valid on the instance that issued them.
"""

import logging
import secrets
from typing import Optional

from attest.core.cache import TTLCache
from attest.core.tokens.base import InvalidTokenError, TokenStore

logger = logging.getLogger(__name__)

# Token entropy in bytes (256 bits)
TOKEN_SIZE = 32


class MemoryTokenStore(TokenStore):
    """
    Token store kept entirely in memory.

    The cache never extends an entry's TTL on read. With single_use=True a
    token is consumed by its first successful authentication.
    """

    def __init__(
        self,
        size: int,
        ttl: float,
        single_use: bool = False,
        cache: Optional[TTLCache] = None,
    ):
        """
        Args:
            size: Maximum number of live tokens
            ttl: Token lifetime in seconds
            single_use: Consume tokens on first successful authentication
            cache: Pre-built cache (for tests); size and ttl are ignored if given
        """
        self.tokens = cache if cache is not None else TTLCache(size_limit=size, ttl=ttl, name="tokens")
        self.single_use = single_use

    def issue(self, identifier: str) -> str:
        token = secrets.token_urlsafe(TOKEN_SIZE)
        self.tokens.set(token, identifier)
        return token

    def authenticate(self, token: str) -> str:
        try:
            if self.single_use:
                return self.tokens.pop(token)
            return self.tokens.get(token)
        except KeyError:
            raise InvalidTokenError("token not found") from None

    def start(self) -> None:
        self.tokens.start()

    def stop(self) -> None:
        self.tokens.stop()
