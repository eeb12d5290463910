"""
Token Transports

Channels that deliver a token to a device.
"""

from attest.core.transport.base import (
    InvalidIdentifierError,
    Transformer,
    Transport,
    TransportError,
)
from attest.core.transport.mdm import MDMTransport

__all__ = [
    "InvalidIdentifierError",
    "Transformer",
    "Transport",
    "TransportError",
    "MDMTransport",
]
