"""
File Stores

Short-lived, randomly addressed storage for staged payloads.
"""

from attest.core.files.base import FileStore, FileStoreError, StagedFileNotFoundError
from attest.core.files.memory import MemoryFileStore

__all__ = ["FileStore", "FileStoreError", "StagedFileNotFoundError", "MemoryFileStore"]
