"""
JWT Token Store

Stateless tokens: the identifier travels in the signed `sub` claim, so
verification needs only the shared HMAC key.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import jwt

from attest.core.tokens.base import InvalidTokenError, TokenStore, TokenStoreError

logger = logging.getLogger(__name__)

# Signing algorithm for new tokens
JWT_ALGORITHM = "HS256"

# Only the HMAC family is accepted on verification
ACCEPTED_ALGORITHMS = ["HS256", "HS384", "HS512"]

# nbf is backdated to tolerate clock drift between issuer and verifier
CLOCK_SKEW = timedelta(seconds=15)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JWTTokenStore(TokenStore):
    """
    Token store backed by HMAC-signed JWTs.

    If issuer or audience are set they are put in every token and checked by
    authenticate. A token is accepted when any one of the configured audiences
    matches.
    """

    def __init__(
        self,
        key: bytes,
        issuer: str = "",
        audience: Optional[List[str]] = None,
        duration: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            key: HMAC key, should be at least 256 bits
            issuer: Value of the iss claim (empty = not set, not checked)
            audience: Values of the aud claim (empty = not set, not checked)
            duration: Token lifetime
            clock: Source of the issue time, injectable for tests
        """
        if not key:
            raise ValueError("JWT key must not be empty")
        if len(key) < 32:
            logger.warning(f"JWT key is {len(key) * 8} bits; at least 256 bits is recommended")

        self._key = key
        self.issuer = issuer
        self.audience = list(audience or [])
        self.duration = duration
        self._clock = clock

    def issue(self, identifier: str) -> str:
        """Create a signed token with sub=identifier."""
        now = self._clock()
        payload = {
            "sub": identifier,
            "iat": now,
            "nbf": now - CLOCK_SKEW,
            "exp": now + self.duration,
        }
        if self.issuer:
            payload["iss"] = self.issuer
        if self.audience:
            payload["aud"] = self.audience

        try:
            return jwt.encode(payload, self._key, algorithm=JWT_ALGORITHM)
        except Exception as e:
            raise TokenStoreError(f"could not sign token: {e}") from e

    def authenticate(self, token: str) -> str:
        """
        Validate the token and return its subject.

        Validates:
        - Signature and algorithm (HMAC only)
        - exp / nbf window
        - Issuer, if one is configured
        - Audience, if any are configured
        """
        try:
            payload = jwt.decode(
                token,
                self._key,
                algorithms=ACCEPTED_ALGORITHMS,
                issuer=self.issuer or None,
                audience=self.audience or None,
                options={
                    "require": ["exp", "nbf", "sub"],
                    "verify_aud": bool(self.audience),
                },
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError(f"token is expired: {e}") from e
        except jwt.ImmatureSignatureError as e:
            raise InvalidTokenError(f"token is not yet valid: {e}") from e
        except jwt.InvalidIssuerError as e:
            raise InvalidTokenError(f"invalid issuer: {e}") from e
        except jwt.InvalidAudienceError as e:
            raise InvalidTokenError(f"invalid audience: {e}") from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"could not parse token: {e}") from e

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError("token has no subject")

        return subject
