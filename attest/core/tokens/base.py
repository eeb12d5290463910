"""
Base Token Store Interface

Defines the interface every token strategy implements and the errors it raises.
"""

from abc import ABC, abstractmethod


class InvalidTokenError(Exception):
    """The token failed verification (bad signature, expired, unknown, ...)."""
    pass


class TokenStoreError(Exception):
    """The token store could not complete the operation."""
    pass


class TokenStore(ABC):
    """
    Base interface for token stores.

    A token is bound to exactly one identifier when it is issued, and
    authenticating it yields that identifier or raises.
    """

    @abstractmethod
    def issue(self, identifier: str) -> str:
        """
        Generate a new token for identifier.

        Raises:
            TokenStoreError: If the token could not be created
        """

    @abstractmethod
    def authenticate(self, token: str) -> str:
        """
        Return the identifier the token was issued for.

        Raises:
            InvalidTokenError: If the token is not valid
            TokenStoreError: If the store failed for any other reason
        """

    def start(self) -> None:
        """Start background housekeeping, if the store has any."""

    def stop(self) -> None:
        """Stop background housekeeping."""
