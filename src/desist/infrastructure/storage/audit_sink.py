"""
Audit Sink

Append-only record of committed transitions.

The core appends synchronously to an in-memory trail and hands entries
to the sink through a single consumer, so the sink sees entries in
commit order. Sink failures are logged and never reach the caller.
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from desist.config.logging_config import get_logger
from desist.domain.models.audit_entry import AuditEntry

logger = get_logger(__name__)


class AuditSink(ABC):
    """Abstract append-only audit destination."""

    @abstractmethod
    async def append(self, entry: AuditEntry) -> None:
        """Persist one entry."""
        pass


class InMemoryAuditSink(AuditSink):
    """Keeps entries in a list (development and tests)."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def append(self, entry: AuditEntry) -> None:
        self.entries.append(entry)


class JsonLinesAuditSink(AuditSink):
    """Appends one JSON document per line to a local file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def append(self, entry: AuditEntry) -> None:
        await asyncio.to_thread(self._append_line, entry.to_json_line())

    def _append_line(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")


class AuditTrail:
    """
    Ordered, non-blocking audit dispatcher.

    Usage:
        trail = AuditTrail(sink)
        trail.record(entry)     # sync, never blocks
        await trail.drain()     # wait until the sink has everything
    """

    def __init__(self, sink: Optional[AuditSink] = None) -> None:
        self._sink = sink
        self._entries: list[AuditEntry] = []
        self._queue: Optional[asyncio.Queue[AuditEntry]] = None
        self._consumer: Optional[asyncio.Task] = None

    def record(self, entry: AuditEntry) -> None:
        """Append an entry and schedule delivery to the sink."""
        self._entries.append(entry)
        if self._sink is None:
            return

        if self._queue is None:
            self._queue = asyncio.Queue()
        self._queue.put_nowait(entry)

        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.get_running_loop().create_task(self._consume())

    def entries(self) -> tuple[AuditEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    async def drain(self) -> None:
        """Wait until every recorded entry has been offered to the sink."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        await self.drain()
        if self._consumer is not None and not self._consumer.done():
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
        self._consumer = None

    async def _consume(self) -> None:
        assert self._queue is not None and self._sink is not None
        while True:
            entry = await self._queue.get()
            try:
                await self._sink.append(entry)
            except Exception as e:
                logger.warning(
                    "Audit sink append failed",
                    trigger=entry.trigger,
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
            finally:
                self._queue.task_done()
