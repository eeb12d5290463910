"""
MDM Transport

Places a token by pushing a signed installer package through the MDM:
the package's postinstall script, running as root, writes the token.
"""

import logging

from attest.core.files import FileStore, FileStoreError
from attest.core.mdm import MDM, DeviceNotFoundError, MDMError
from attest.core.package import PackageBuilder, PackageError, build_manifest
from attest.core.transport.base import (
    InvalidIdentifierError,
    Transformer,
    Transport,
    TransportError,
)

logger = logging.getLogger(__name__)

# Logical name of the staged package
PAYLOAD_NAME = "payload.pkg"


class MDMTransport(Transport, Transformer):
    """
    Transport using an MDM InstallEnterpriseApplication command.

    The signed package is staged in the file store and the device downloads it
    from url_prefix/<staged path>, so url_prefix must point at the files route.
    """

    def __init__(
        self,
        mdm: MDM,
        url_prefix: str,
        file_store: FileStore,
        builder: PackageBuilder,
    ):
        """
        Args:
            mdm: MDM client
            url_prefix: Public URL of the files route, e.g. https://attest.example.com/v1/attest/files
            file_store: Store the package is staged in
            builder: Builds and signs the payload package
        """
        self.mdm = mdm
        self.url_prefix = url_prefix.rstrip("/")
        self.file_store = file_store
        self.builder = builder

    def transform(self, identifier: str) -> str:
        """Resolve a serial number to the MDM UDID."""
        try:
            return self.mdm.transform(identifier)
        except DeviceNotFoundError as e:
            raise InvalidIdentifierError(f"invalid identifier: {identifier}") from e
        except MDMError as e:
            raise TransportError(f"could not resolve identifier: {e}") from e

    def place(self, token: str, identifier: str, path: str) -> None:
        try:
            package = self.builder.build(token, path)
        except PackageError as e:
            raise TransportError(f"could not create payload package: {e}") from e

        try:
            staged_path = self.file_store.put(PAYLOAD_NAME, package)
        except FileStoreError as e:
            raise TransportError(f"could not store payload package: {e}") from e

        manifest = build_manifest(
            package,
            f"{self.url_prefix}/{staged_path}",
            self.builder.identifier,
            self.builder.version,
        )

        try:
            self.mdm.install_enterprise_application(identifier, manifest)
        except MDMError as e:
            raise TransportError(f"could not execute install command: {e}") from e

        logger.info(f"Pushed payload package to {identifier}")
