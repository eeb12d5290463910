"""
Token Stores

Issue and authenticate short-lived bearer tokens bound to device identifiers.

Strategies:
- JWTTokenStore: stateless, HMAC-signed JWTs
- MemoryTokenStore: random opaque tokens kept in an in-memory TTL cache
"""

from attest.core.tokens.base import InvalidTokenError, TokenStore, TokenStoreError
from attest.core.tokens.jwt_store import JWTTokenStore
from attest.core.tokens.memory import MemoryTokenStore

__all__ = [
    "InvalidTokenError",
    "TokenStoreError",
    "TokenStore",
    "JWTTokenStore",
    "MemoryTokenStore",
]
