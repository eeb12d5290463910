"""
Token Placement

Ties together token issuance and delivery:
validate -> transform identifier -> issue token -> choose path -> transport.place

The returned path is where the device will find its token once the transport
has delivered it.
"""

import logging
import posixpath
import secrets
from typing import Optional

from attest.core.tokens import TokenStore, TokenStoreError
from attest.core.transport import (
    InvalidIdentifierError,
    Transformer,
    Transport,
    TransportError,
)

logger = logging.getLogger(__name__)

# Random path id size in bytes (128 bits)
PATH_ID_SIZE = 16

# Device directory tokens are written to
DEFAULT_TOKEN_DIRECTORY = "/tmp"


class PlacementError(Exception):
    """
    Placement failed.

    status_code is the HTTP status the failure maps to: 500 unless the client
    is at fault.
    """

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class InvalidPlacementRequest(PlacementError):
    """The request was rejected because of the client-given identifier."""

    status_code = 400


class PlacementService:
    """Issues tokens and pushes them to devices."""

    def __init__(
        self,
        token_store: TokenStore,
        transport: Transport,
        token_directory: str = DEFAULT_TOKEN_DIRECTORY,
    ):
        if not posixpath.isabs(token_directory):
            raise ValueError(f"token directory must be absolute: {token_directory!r}")

        self.token_store = token_store
        self.transport = transport
        self.token_directory = token_directory

    def new_path(self) -> str:
        """Generate a fresh, unguessable token path on the device."""
        return posixpath.join(self.token_directory, secrets.token_urlsafe(PATH_ID_SIZE))

    def transform(self, identifier: str) -> str:
        """Map identifier into the transport's identifier space, if it has one."""
        if not isinstance(self.transport, Transformer):
            return identifier

        try:
            return self.transport.transform(identifier)
        except InvalidIdentifierError as e:
            raise InvalidPlacementRequest(f"could not transform identifier: {e}") from e
        except TransportError as e:
            raise PlacementError(f"could not transform identifier: {e}") from e

    def place(self, identifier: str) -> str:
        """
        Issue a token for identifier and push it to the device.

        Returns:
            Path on the device the token will be written to

        Raises:
            InvalidPlacementRequest: If the identifier is empty or unknown
            PlacementError: If any downstream step failed
        """
        if not isinstance(identifier, str) or not identifier.strip():
            raise InvalidPlacementRequest("empty identifier")

        identifier = self.transform(identifier)

        try:
            token = self.token_store.issue(identifier)
        except TokenStoreError as e:
            raise PlacementError(f"could not create token: {e}") from e

        path = self.new_path()

        try:
            self.transport.place(token, identifier, path)
        except TransportError as e:
            raise PlacementError(f"could not place token: {e}") from e

        logger.info(f"Placed token for {identifier}")
        return path
