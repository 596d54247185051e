"""
Settings Store

Key-value persistence for the mode, stealth config, contacts and
alert config. Values are UTF-8 strings (JSON documents).

ARCHITECTURE: All persistence goes through this interface so the
mobile host can back it with its own secure storage.
"""

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from desist.config.logging_config import get_logger
from desist.domain.exceptions import PersistenceError

logger = get_logger(__name__)


class SettingsStore(ABC):
    """
    Abstract key-value settings store.

    Implementations raise PersistenceError when the backing
    storage is unavailable.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Returns:
            Stored value, or None if the key is absent
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Write a value, replacing any previous one."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key (no error if absent)."""
        pass


class InMemorySettingsStore(SettingsStore):
    """Process-local store, used in development and tests."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileSettingsStore(SettingsStore):
    """
    Settings persisted as a single JSON object on disk.

    Writes go to a temp file and are renamed into place so a crash
    never leaves a half-written file. File I/O runs in a worker thread.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, key: str) -> Optional[str]:
        data = await asyncio.to_thread(self._read_all)
        value = data.get(key)
        return value if isinstance(value, str) or value is None else json.dumps(value)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            data[key] = value
            await asyncio.to_thread(self._write_all, data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            if key in data:
                del data[key]
                await asyncio.to_thread(self._write_all, data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Cannot read {self._path}: {e}") from e

        try:
            data = json.loads(raw) if raw.strip() else {}
        except ValueError:
            logger.warning("Settings file unreadable, starting empty", path=str(self._path))
            return {}

        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".settings-")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {self._path}: {e}") from e
