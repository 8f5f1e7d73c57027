"""Ingest payload formats and helpers to produce or recognize them."""

from __future__ import annotations

import io
import json
from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from typing import IO, Any

from ..errors import AxiomError, UnknownContentEncodingError, UnknownContentTypeError
from ..models import json_default

Event = Mapping[str, Any]

_SNIFF_CHUNK_SIZE = 512


class ContentType(str, Enum):
    JSON = "application/json"
    NDJSON = "application/x-ndjson"
    CSV = "text/csv"

    @classmethod
    def parse(cls, value: ContentType | str) -> ContentType:
        try:
            return cls(value)
        except ValueError as exc:
            raise UnknownContentTypeError(value) from exc


class ContentEncoding(str, Enum):
    IDENTITY = ""
    GZIP = "gzip"
    ZSTD = "zstd"

    @classmethod
    def parse(cls, value: ContentEncoding | str | None) -> ContentEncoding:
        try:
            return cls(value or "")
        except ValueError as exc:
            raise UnknownContentEncodingError(value) from exc


def encode_event(event: Event) -> bytes:
    """Encode one event as a single NDJSON line."""
    return json.dumps(event, separators=(",", ":"), default=json_default).encode("utf-8") + b"\n"


def iter_ndjson(events: Iterable[Event]) -> Iterator[bytes]:
    """Lazily encode events as NDJSON, one line per chunk."""
    for event in events:
        yield encode_event(event)


class _PrefixedReader(io.RawIOBase):
    """Replays already consumed bytes before reading on from the stream."""

    def __init__(self, prefix: bytes, stream: IO[bytes]) -> None:
        super().__init__()
        self._prefix = prefix
        self._stream = stream

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        if self._prefix:
            n = min(len(buffer), len(self._prefix))
            buffer[:n] = self._prefix[:n]
            self._prefix = self._prefix[n:]
            return n
        data = self._stream.read(len(buffer)) or b""
        n = len(data)
        buffer[:n] = data
        return n


def _sniff(head: bytes) -> ContentType | None:
    stripped = head.lstrip()
    if not stripped:
        return None
    first = stripped[:1]
    if first == b"[":
        return ContentType.JSON
    if first == b"{":
        return ContentType.NDJSON
    return ContentType.CSV


def detect_content_type(data: bytes | IO[bytes]) -> tuple[bytes | IO[bytes], ContentType]:
    """Guess the content type of an uncompressed ingest payload.

    The first non-whitespace character decides: `[` is a JSON array, `{` is
    NDJSON and anything else is taken as CSV. Returns a payload equivalent to
    `data` (bytes consumed while sniffing are replayed) and the type.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        data = bytes(data)
        typ = _sniff(data)
        if typ is None:
            raise AxiomError("couldn't find beginning of supported ingestion format")
        return data, typ

    consumed = bytearray()
    while True:
        chunk = data.read(_SNIFF_CHUNK_SIZE)
        if not chunk:
            raise AxiomError("couldn't find beginning of supported ingestion format")
        consumed += chunk
        typ = _sniff(bytes(consumed))
        if typ is not None:
            return _PrefixedReader(bytes(consumed), data), typ
