"""Storage abstraction for report and bill attachments.

Files land in a single flat uploads directory by default. They are served
only through authenticated API endpoints.
"""

import random
import time
from abc import ABC, abstractmethod
from pathlib import Path

from billdesk.config import settings


class StorageBackend(ABC):
    """Abstract storage backend for attachment bytes."""

    @abstractmethod
    async def save(self, key: str, data: bytes, content_type: str) -> str:
        """Save file data. Returns the storage key."""
        ...

    @abstractmethod
    async def load(self, key: str) -> bytes:
        """Load file data by key. Raises FileNotFoundError if missing."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete file by key. No-op if not found."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if file exists."""
        ...

    def location(self, key: str) -> str:
        """Where the backend keeps ``key``, recorded as the attachment's file path."""
        return key


class LocalStorageBackend(StorageBackend):
    """Flat directory on the local filesystem."""

    def __init__(self, base_dir: str | None = None):
        self._base_dir = Path(base_dir or settings.upload_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        # Keys never contain separators; strip them to prevent path traversal
        safe_key = key.replace("..", "").replace("/", "_").replace("\\", "_")
        return self._base_dir / safe_key

    def location(self, key: str) -> str:
        return str(self._path(key))

    async def save(self, key: str, data: bytes, content_type: str) -> str:
        self._path(key).write_bytes(data)
        return key

    async def load(self, key: str) -> bytes:
        path = self._path(key)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {key}")
        return path.read_bytes()

    async def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    async def exists(self, key: str) -> bool:
        return self._path(key).exists()


class InMemoryStorageBackend(StorageBackend):
    """In-memory storage for testing. No disk I/O."""

    def __init__(self):
        self._store: dict[str, bytes] = {}

    async def save(self, key: str, data: bytes, content_type: str) -> str:
        self._store[key] = data
        return key

    async def load(self, key: str) -> bytes:
        if key not in self._store:
            raise FileNotFoundError(f"File not found: {key}")
        return self._store[key]

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self._store


def sanitize_filename(filename: str) -> str:
    safe = "".join(c if c.isalnum() or c in (".", "-", "_") else "_" for c in filename)
    return safe.strip("._")[:100] or "file"


def generate_storage_key(filename: str) -> str:
    """Unique on-disk name: ``<ms timestamp>-<random int>-<sanitized name>``."""
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}-{sanitize_filename(filename)}"


# Module-level singleton, replaceable in tests
_storage: StorageBackend | None = None


def get_storage() -> StorageBackend:
    """Get the current storage backend."""
    global _storage
    if _storage is None:
        _storage = LocalStorageBackend()
    return _storage


def set_storage(backend: StorageBackend | None) -> None:
    """Set the storage backend (used for testing)."""
    global _storage
    _storage = backend
