"""
Durable key-value storage backends for discovery state.

Values are opaque strings (the store writes serialized JSON). Backends raise
StorageUnavailableError on any I/O failure; deciding how to degrade is the
caller's job.

Key components:
- KeyValueStorage: Abstract interface (get / set / delete)
- MemoryStorage: Process-local dictionary, used when no directory is configured
- FileStorage: One file per key in a directory, written atomically
"""

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..exceptions import StorageUnavailableError

logger = logging.getLogger("observatory")


class KeyValueStorage(ABC):
    """Minimal string key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent.

        Raises:
            StorageUnavailableError: If the backend cannot be read
        """

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one.

        Raises:
            StorageUnavailableError: If the backend cannot be written
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored.

        Raises:
            StorageUnavailableError: If the backend cannot be written
        """


class MemoryStorage(KeyValueStorage):
    """Dictionary-backed storage. Contents die with the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorage(KeyValueStorage):
    """
    Stores each key as a JSON file inside a directory.

    Keys are mapped to safe file names ("observatory:state" becomes
    "observatory_state.json"). Writes go to a temporary file that is then
    renamed over the target, so a crash never leaves a half-written record.

    Attributes:
        directory: Directory holding one file per key
    """

    _UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")

    def __init__(self, directory: Path) -> None:
        """
        Initialize file storage.

        The directory is created lazily on first write, so constructing a
        FileStorage never fails.

        Args:
            directory: Directory for the key files
        """
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        """File path used for a key."""
        return self.directory / f"{self._UNSAFE_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageUnavailableError(
                f"Failed to read {path.name}: {e}", key=key
            ) from e

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        temp_file = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                f.write(value)
            temp_file.replace(path)
            logger.debug(f"Atomic write to {path.name} successful")
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise StorageUnavailableError(
                f"Failed to write {path.name}: {e}", key=key
            ) from e

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailableError(
                f"Failed to delete {path.name}: {e}", key=key
            ) from e


__all__ = [
    "FileStorage",
    "KeyValueStorage",
    "MemoryStorage",
]
