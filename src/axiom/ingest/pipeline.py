"""Ingest entry points: raw payloads, event batches and event queues."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import IO

import structlog

from ..encoder import zstd_encoder
from ..errors import IngestChannelError, MissingDatasetError
from ..transport import HEADER_CONTENT_ENCODING, HEADER_CONTENT_TYPE, Sink, Transport, add_query_params
from .content import ContentEncoding, ContentType, Event, iter_ndjson
from .options import IngestOptions
from .status import IngestStatus

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 10_000
DEFAULT_FLUSH_INTERVAL = 1.0


class Ingester:
    """Ingest pipeline bound to a transport."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    def ingest_path(self, dataset: str, options: IngestOptions) -> str:
        """Path (or edge URL) ingest requests for `dataset` go to."""
        if not dataset:
            raise MissingDatasetError()
        path = self.transport.config.edge_ingest_url(dataset)
        if path is None:
            path = f"/v1/datasets/{dataset}/ingest"
        return add_query_params(path, options)

    async def ingest(
        self,
        dataset: str,
        data: bytes | IO[bytes],
        content_type: ContentType | str,
        content_encoding: ContentEncoding | str = ContentEncoding.IDENTITY,
        options: IngestOptions | None = None,
        *,
        get_body: Callable[[], IO[bytes]] | None = None,
    ) -> IngestStatus:
        """Upload a payload as-is.

        `data` must already be encoded as `content_type` and compressed with
        `content_encoding`. Pass `get_body` for non-seekable streams that
        should be retried.
        """
        content_type = ContentType.parse(content_type)
        content_encoding = ContentEncoding.parse(content_encoding)
        options = options or IngestOptions()

        headers = {HEADER_CONTENT_TYPE: content_type.value}
        if content_encoding is not ContentEncoding.IDENTITY:
            headers[HEADER_CONTENT_ENCODING] = content_encoding.value
        headers.update(options.headers())

        resp = await self.transport.send_stream(
            "POST",
            self.ingest_path(dataset, options),
            data,
            headers=headers,
            get_body=get_body,
            sink=Sink.decode(IngestStatus),
        )
        status: IngestStatus = resp.value
        return status.model_copy(update={"trace_id": resp.trace_id})

    async def ingest_events(
        self, dataset: str, events: Iterable[Event], options: IngestOptions | None = None
    ) -> IngestStatus:
        """Encode events as zstd-compressed NDJSON and upload them in one request.

        No request is made for an empty sequence.
        """
        batch = list(events)
        if not batch:
            return IngestStatus()

        def _body() -> IO[bytes]:
            return zstd_encoder(iter_ndjson(batch))

        return await self.ingest(
            dataset,
            _body(),
            ContentType.NDJSON,
            ContentEncoding.ZSTD,
            options,
            get_body=_body,
        )

    async def ingest_channel(
        self,
        dataset: str,
        events: asyncio.Queue[Event | None],
        options: IngestOptions | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
    ) -> IngestStatus:
        """Consume `events` until a `None` arrives, ingesting them in batches.

        A batch is flushed when it holds `batch_size` events, when
        `flush_interval` seconds passed since the last flush, and when the
        queue is closed. Returns the status of all flushes added together.
        Cancelling the awaiting task stops the loop, including an in-flight
        flush.

        Raises `IngestChannelError` carrying the status of the batches
        ingested so far when a flush fails.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1. Got: {batch_size}")
        if flush_interval <= 0:
            raise ValueError(f"flush_interval must be > 0. Got: {flush_interval}")

        loop = asyncio.get_running_loop()
        total = IngestStatus()
        batch: list[Event] = []
        deadline = loop.time() + flush_interval

        async def flush(reason: str) -> None:
            nonlocal batch, total
            if not batch:
                return
            pending, batch = batch, []
            logger.debug("flushing ingest batch", dataset=dataset, events=len(pending), reason=reason)
            try:
                status = await self.ingest_events(dataset, pending, options)
            except Exception as exc:
                raise IngestChannelError(total, exc) from exc
            total = total + status

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                await flush("interval")
                deadline = loop.time() + flush_interval
                continue

            try:
                event = events.get_nowait()
            except asyncio.QueueEmpty:
                try:
                    event = await asyncio.wait_for(events.get(), remaining)
                except TimeoutError:
                    continue

            if event is None:
                await flush("closed")
                return total

            batch.append(event)
            if len(batch) >= batch_size:
                await flush("batch_full")
                deadline = loop.time() + flush_interval
