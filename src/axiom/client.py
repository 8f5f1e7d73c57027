"""Axiom API client.

A `Client` owns one immutable `AxiomConfig`, one `requests.Session` and the
`Transport` built on top of them. It is safe to share between tasks; every
call runs its blocking HTTP I/O in a worker thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import IO, Any

from .config import AxiomConfig, ConfigBuilder, Option, set_no_env, set_session
from .datasets import DatasetsService
from .ingest import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_FLUSH_INTERVAL,
    BackgroundIngester,
    ContentEncoding,
    ContentType,
    Event,
    IngestOptions,
    IngestStatus,
    Ingester,
)
from .query import QueryOptions, Result
from .tracing import trace_call
from .transport import DISCARD, Sink, Transport, add_query_params
from .version import VersionService

QUERY_PATH = "/v1/datasets/_apl"


class Client:
    """Entry point to the Axiom API.

    Configuration comes from the given options and, unless `set_no_env()` is
    passed, from `AXIOM_*` environment variables. Construction fails with a
    `ConfigError` when the configuration is incomplete.
    """

    def __init__(self, *options: Option | None) -> None:
        builder = ConfigBuilder().apply(*options)
        self.config: AxiomConfig = builder.build()
        self._transport = Transport(self.config, builder.session)
        self._ingester = Ingester(self._transport)

        self.datasets = DatasetsService(self._transport)
        self.version = VersionService(self._transport)

    @property
    def transport(self) -> Transport:
        return self._transport

    def with_options(self, *options: Option | None) -> Client:
        """Return a new client from this client's configuration plus `options`.

        The new client shares the HTTP session; this client is left untouched.
        """
        snapshot = self.config.model_dump()

        def _restore(builder: ConfigBuilder) -> None:
            builder.values.update(snapshot)

        return Client(_restore, set_no_env(), set_session(self._transport.session), *options)

    def close(self) -> None:
        self._transport.close()

    async def aclose(self) -> None:
        await asyncio.to_thread(self._transport.close)

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def call(self, method: str, path: str, body: Any | None = None, *, result_type: Any = None) -> Any:
        """Send a request and decode the JSON response into `result_type`.

        With `result_type=None` the response body is discarded.
        """
        sink = Sink.decode(result_type) if result_type is not None else DISCARD
        resp = await self._transport.send_json(method, path, body, sink=sink)
        return resp.value

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
        """Ingest an encoded payload into `dataset`."""
        with trace_call("ingest", dataset_id=dataset):
            return await self._ingester.ingest(
                dataset, data, content_type, content_encoding, options, get_body=get_body
            )

    async def ingest_events(
        self, dataset: str, events: Iterable[Event], options: IngestOptions | None = None
    ) -> IngestStatus:
        """Ingest events into `dataset` with a single request."""
        with trace_call("ingest_events", dataset_id=dataset):
            return await self._ingester.ingest_events(dataset, events, options)

    async def ingest_channel(
        self,
        dataset: str,
        events: asyncio.Queue[Event | None],
        options: IngestOptions | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
    ) -> IngestStatus:
        """Ingest events read from `events` until `None` is received."""
        with trace_call("ingest_channel", dataset_id=dataset):
            return await self._ingester.ingest_channel(
                dataset, events, options, batch_size=batch_size, flush_interval=flush_interval
            )

    def background_ingester(
        self,
        dataset: str | None = None,
        options: IngestOptions | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
    ) -> BackgroundIngester:
        """Create a `BackgroundIngester` writing to `dataset` (or `AXIOM_DATASET`)."""
        return BackgroundIngester(
            self._ingester, dataset, options, batch_size=batch_size, flush_interval=flush_interval
        )

    async def query(self, apl: str, options: QueryOptions | None = None) -> Result:
        """Run an APL query and return its tabular result."""
        options = options or QueryOptions()
        path = self.config.edge_query_url() or QUERY_PATH
        path = add_query_params(path, {"format": "tabular"})

        with trace_call("query"):
            resp = await self._transport.send_json("POST", path, options.request_body(apl), sink=Sink.decode(Result))
        result: Result = resp.value
        return result.model_copy(update={"trace_id": resp.trace_id})
