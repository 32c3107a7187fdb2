"""
Persistent blob storage for Launchpad Folders

A blob store keeps named text blobs. The folder store reads and writes its whole
collection as one blob, so the only operations needed are get and set.

Key Features:
- In-memory store for tests and embedding
- JSON file store with atomic temp-file-and-move writes
- Storage directory resolution from the environment
"""

import os
import shutil
import asyncio
import logging
import tempfile
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "LAUNCHPAD_FOLDERS_HOME"
DEFAULT_DATA_DIR = "~/.launchpad-folders"


class StorageError(Exception):
    """Base exception for storage operations"""
    pass


class BlobDecodeError(StorageError):
    """Exception raised when a persisted blob is not valid UTF-8 text"""
    pass


def resolve_data_directory(custom_path: Optional[str] = None) -> str:
    """
    Resolve the directory holding persisted blobs and preferences.

    Args:
        custom_path: Explicit directory; takes precedence over the environment

    Returns:
        Absolute directory path (not created)
    """
    if custom_path:
        return os.path.abspath(custom_path)
    return os.path.abspath(os.path.expanduser(os.environ.get(DATA_DIR_ENV) or DEFAULT_DATA_DIR))


class BlobStore:
    """Durable key/value storage of text blobs."""

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class MemoryBlobStore(BlobStore):
    """Blob store kept in a dictionary. Counts reads and writes for inspection."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.blobs: Dict[str, str] = dict(initial or {})
        self.get_count = 0
        self.set_count = 0

    async def get(self, key: str) -> Optional[str]:
        self.get_count += 1
        return self.blobs.get(key)

    async def set(self, key: str, value: str) -> None:
        self.set_count += 1
        self.blobs[key] = value


class JsonFileBlobStore(BlobStore):
    """
    Blob store writing one ``<key>.json`` file per key in a directory.

    File I/O runs in a worker thread so the event loop is not blocked.
    """

    def __init__(self, storage_path: Optional[str] = None):
        """
        Args:
            storage_path: Directory for blob files. Defaults to the resolved data directory.

        Raises:
            StorageError: If the directory cannot be created
        """
        self._storage_dir = resolve_data_directory(storage_path)
        try:
            os.makedirs(self._storage_dir, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create storage directory {self._storage_dir}: {e}")

    @property
    def storage_dir(self) -> str:
        return self._storage_dir

    def path_for(self, key: str) -> str:
        safe_key = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return os.path.join(self._storage_dir, f"{safe_key}.json")

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._read, self.path_for(key))

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(atomic_write_text, self.path_for(key), value)

    @staticmethod
    def _read(filepath: str) -> Optional[str]:
        if not os.path.exists(filepath):
            return None
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                return f.read()
        except UnicodeDecodeError as e:
            raise BlobDecodeError(f"{filepath} is not valid UTF-8: {e}")
        except OSError as e:
            raise StorageError(f"Failed to read {filepath}: {e}")


def atomic_write_text(filepath: str, text: str) -> None:
    """
    Perform atomic file write using temporary file and move operation.

    Args:
        filepath: Target file path
        text: Content to write

    Raises:
        StorageError: If write operation fails
    """
    # Temporary file in the same directory keeps the move on one filesystem
    temp_dir = os.path.dirname(filepath) or "."
    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode='w',
            encoding='utf-8',
            dir=temp_dir,
            delete=False,
            suffix='.tmp'
        ) as temp_file:
            temp_path = temp_file.name
            temp_file.write(text)

        if os.name == 'nt' and os.path.exists(filepath):
            os.remove(filepath)

        shutil.move(temp_path, filepath)

    except OSError as e:
        if temp_path and os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError as cleanup_error:
                logger.warning(f"Failed to remove temporary file {temp_path}: {cleanup_error}")
        raise StorageError(f"Atomic write failed for {filepath}: {e}")
