"""
Resilient Settings Writer

Fire-and-forget persistence for state whose in-memory copy is
authoritative (mode, stealth config, contacts).

Policy:
1. A write is attempted immediately and retried once.
2. If both attempts fail, the in-memory value stays authoritative and
   a background retry with exponential backoff continues.
3. A newer write for the same key supersedes an older one; the store
   always ends up holding the latest value.
"""

import asyncio
from typing import Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from desist.config.logging_config import get_logger
from desist.domain.exceptions import PersistenceError
from desist.infrastructure.metrics import track_persistence_failure
from desist.infrastructure.storage.settings_store import SettingsStore

logger = get_logger(__name__)


class ResilientSettingsWriter:
    """
    Serializes writes per key with retry and background recovery.

    Usage:
        writer = ResilientSettingsWriter(store)
        writer.write("mode", "stealth")  # returns immediately
        await writer.flush()              # e.g. on shutdown
    """

    def __init__(
        self,
        store: SettingsStore,
        *,
        background_multiplier: float = 1.0,
        background_max_seconds: float = 60.0,
    ) -> None:
        """
        Initialize writer.

        Args:
            store: Backing settings store
            background_multiplier: Exponential backoff multiplier for background retries
            background_max_seconds: Upper bound on background backoff
        """
        self._store = store
        self._background_multiplier = background_multiplier
        self._background_max = background_max_seconds

        self._pending: dict[str, str] = {}
        self._versions: dict[str, int] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._degraded: set[str] = set()

    @property
    def store(self) -> SettingsStore:
        return self._store

    @property
    def degraded_keys(self) -> frozenset[str]:
        """Keys currently only held in memory."""
        return frozenset(self._degraded)

    def write(self, key: str, value: str) -> asyncio.Task:
        """
        Schedule a write of `value` under `key`.

        Must be called from within the running event loop. Never blocks.

        Returns:
            The task draining writes for this key
        """
        self._pending[key] = value
        self._versions[key] = self._versions.get(key, 0) + 1

        task = self._tasks.get(key)
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._drain(key))
            task.add_done_callback(self._on_task_done)
            self._tasks[key] = task
        return task

    async def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for pending writes.

        Returns:
            True if every pending write finished within the timeout
        """
        tasks = [t for t in self._tasks.values() if not t.done()]
        if not tasks:
            return True
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        return not pending

    async def close(self) -> None:
        """Cancel outstanding writes (in-memory state is kept by owners)."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def _drain(self, key: str) -> None:
        while True:
            version = self._versions[key]
            await self._persist(key)
            if self._versions[key] == version:
                self._pending.pop(key, None)
                return

    async def _persist(self, key: str) -> None:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(2),
                retry=retry_if_exception_type(PersistenceError),
                reraise=True,
            ):
                with attempt:
                    await self._store.set(key, self._pending[key])
            return
        except PersistenceError as e:
            self._degraded.add(key)
            track_persistence_failure(key)
            logger.warning(
                "Persistence failed, in-memory state authoritative",
                key=key,
                error=str(e),
            )

        async for attempt in AsyncRetrying(
            wait=wait_exponential(
                multiplier=self._background_multiplier,
                max=self._background_max,
            ),
            retry=retry_if_exception_type(PersistenceError),
        ):
            with attempt:
                await self._store.set(key, self._pending[key])

        self._degraded.discard(key)
        logger.info("Background persistence recovered", key=key)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Settings writer stopped unexpectedly",
                error_type=type(error).__name__,
                error_message=str(error),
            )
