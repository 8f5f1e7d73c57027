"""Background ingester used to ship log records without blocking the caller."""

from __future__ import annotations

import asyncio
import os

import structlog

from ..errors import IngestChannelError, MissingDatasetError
from .content import Event
from .options import IngestOptions
from .pipeline import DEFAULT_BATCH_SIZE, DEFAULT_FLUSH_INTERVAL, Ingester
from .status import IngestStatus

logger = structlog.get_logger(__name__)


class BackgroundIngester:
    """Queues events and ingests them in a background task.

    The queue holds at most one batch; `send` waits for room when it is full
    rather than dropping events. Ingest errors and partial failures are logged,
    never raised from the background task. After an ingest error the task
    keeps draining the queue, dropping (and counting) what arrives until
    `aclose`.
    """

    def __init__(
        self,
        ingester: Ingester,
        dataset: str | None = None,
        options: IngestOptions | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
    ) -> None:
        """Create a background ingester.

        Args:
            ingester: Pipeline the events are handed to.
            dataset: Target dataset; defaults to `AXIOM_DATASET`.
            options: Ingest options applied to every batch.
            batch_size: Max events per request, also the queue bound.
            flush_interval: Max seconds an event waits before being sent.
        """
        dataset = dataset or os.getenv("AXIOM_DATASET", "").strip()
        if not dataset:
            raise MissingDatasetError()

        self.dataset = dataset
        self._ingester = ingester
        self._options = options
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._queue: asyncio.Queue[Event | None] = asyncio.Queue(maxsize=batch_size)
        self._worker: asyncio.Task[None] | None = None
        self._closed = False
        self._close_queued = False
        self.status = IngestStatus()

    def _ensure_started(self) -> None:
        """Start the background ingest task if it hasn't been started yet."""
        if self._worker is not None:
            return
        self._worker = asyncio.create_task(self._run_worker(), name=f"axiom-ingest-{self.dataset}")

    async def send(self, event: Event) -> None:
        """Enqueue an event; waits while the queue is full."""
        if self._closed:
            raise RuntimeError("ingester closed")
        self._ensure_started()
        await self._queue.put(event)

    async def aclose(self) -> None:
        """Flush queued events and stop the background task.

        Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True
        if self._worker is not None:
            await self._queue.put(None)
            self._close_queued = True
            await self._worker

    async def _discard_until_closed(self) -> int:
        dropped = 0
        while True:
            # An empty queue after the close token was queued means the ingest
            # loop already consumed it.
            if self._close_queued and self._queue.empty():
                return dropped
            if await self._queue.get() is None:
                return dropped
            dropped += 1

    async def _run_worker(self) -> None:
        try:
            self.status = await self._ingester.ingest_channel(
                self.dataset,
                self._queue,
                self._options,
                batch_size=self._batch_size,
                flush_interval=self._flush_interval,
            )
        except Exception as exc:  # noqa: BLE001 - logging must not crash the application
            cause: BaseException = exc
            if isinstance(exc, IngestChannelError):
                self.status = exc.status
                cause = exc.error
            logger.error(
                "failed to ingest events",
                dataset=self.dataset,
                error=str(cause),
                ingested=self.status.ingested,
            )
            # Keep consuming so `send` and `aclose` never block on a full queue.
            dropped = await self._discard_until_closed()
            if dropped:
                logger.error("dropped events after ingest failure", dataset=self.dataset, dropped=dropped)
            return

        if self.status.failed > 0:
            first = self.status.failures[0] if self.status.failures else None
            logger.error(
                "events failed to ingest",
                dataset=self.dataset,
                failed=self.status.failed,
                timestamp=first.timestamp.isoformat() if first and first.timestamp else None,
                error=first.error if first else None,
            )
