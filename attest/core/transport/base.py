"""
Base Transport Interface

A transport securely carries a token to a device and places it at a path.
Implementations must make sure the token is never readable by non-root users,
both in transit and once written to disk.
"""

from abc import ABC, abstractmethod


class InvalidIdentifierError(Exception):
    """The client-given identifier is not known to the transport."""
    pass


class TransportError(Exception):
    """The transport failed to place the token."""
    pass


class Transport(ABC):
    """Base interface for token transports."""

    @abstractmethod
    def place(self, token: str, identifier: str, path: str) -> None:
        """
        Place token at path on the device identified by identifier.

        Raises:
            TransportError: If the token could not be placed
        """


class Transformer(ABC):
    """
    Optional transport capability: map a client-given identifier to the
    transport's own identifier space (e.g. serial number -> MDM UDID).
    """

    @abstractmethod
    def transform(self, identifier: str) -> str:
        """
        Raises:
            InvalidIdentifierError: If the identifier is not recognized
            TransportError: If the lookup failed for any other reason
        """
