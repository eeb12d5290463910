"""
Base File Store Interface

Temporary storage for files needed by transports (signed payload packages).
Paths have the form "<random id>/<name>".
"""

from abc import ABC, abstractmethod


class StagedFileNotFoundError(Exception):
    """No file is stored at the given path (never stored, consumed or expired)."""
    pass


class FileStoreError(Exception):
    """The file store could not complete the operation."""
    pass


class FileStore(ABC):
    """Base interface for file stores."""

    @abstractmethod
    def peek(self, path: str) -> bytes:
        """
        Return the file at path without removing it.

        Raises:
            StagedFileNotFoundError: If the file doesn't exist
        """

    @abstractmethod
    def get(self, path: str) -> bytes:
        """
        Return the file at path and remove it.

        Raises:
            StagedFileNotFoundError: If the file doesn't exist
        """

    @abstractmethod
    def put(self, name: str, data: bytes) -> str:
        """
        Store data under a random id with the given name.

        Returns:
            Path with format "<id>/<name>", usable with peek and get
        """

    def start(self) -> None:
        """Start background housekeeping, if the store has any."""

    def stop(self) -> None:
        """Stop background housekeeping."""
