"""HTTP transport shared by every client operation.

Responsibilities:

- Resolve request URLs against the configured base URL (or the edge endpoint)
  and enforce the API-token path policy before anything hits the network.
- Authenticate requests and set the standard headers.
- Send through a shared `requests.Session` in a worker thread, retrying 5xx
  responses and transient network failures with exponential backoff as long as
  the request body can be replayed.
- Decode error responses into the `axiom.errors` taxonomy, attach the parsed
  `Limit` and trace ID to every response and feed the client-side
  `LimitTracker`.
"""

from __future__ import annotations

import asyncio
import functools
import json
import random
import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import IO, Any, Literal
from urllib.parse import urlencode, urlsplit

import requests
import structlog
from pydantic import BaseModel, TypeAdapter

from .config import AxiomConfig
from .encoder import CHUNK_SIZE, PipeReader
from .errors import (
    AxiomError,
    ExistsError,
    HTTPError,
    NotFoundError,
    QuotaExceededError,
    RateLimitError,
    UnauthenticatedError,
    UnauthorizedError,
    UnprivilegedTokenError,
)
from .limit import Limit, LimitTracker, LimitType, limit_type_for_path, parse_limit
from .models import STRICT_DECODING, json_default

logger = structlog.get_logger(__name__)

HEADER_ACCEPT = "Accept"
HEADER_AUTHORIZATION = "Authorization"
HEADER_CONTENT_ENCODING = "Content-Encoding"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_ORGANIZATION_ID = "X-Axiom-Org-Id"
HEADER_TRACE_ID = "X-Axiom-Trace-Id"
HEADER_USER_AGENT = "User-Agent"

MEDIA_TYPE_JSON = "application/json"
MEDIA_TYPE_OCTET_STREAM = "application/octet-stream"

# Ingest, tabular query and legacy query endpoints.
_API_TOKEN_PATHS = re.compile(r"^/v1/datasets/([^/]+/(ingest|query)|_apl)(\?.+)?$")

_ERRORS_BY_STATUS: dict[int, type[HTTPError]] = {
    401: UnauthenticatedError,
    403: UnauthorizedError,
    404: NotFoundError,
    409: ExistsError,
}


@dataclass(frozen=True)
class Sink:
    """Where a successful response body goes.

    - `discard`: the body is dropped.
    - `decode`: the body is validated as JSON into `target` (a type, or `None`
      for plain JSON values).
    - `copy`: the raw body is streamed into the binary writer `target`.
    """

    kind: Literal["discard", "decode", "copy"]
    target: Any = None

    @classmethod
    def decode(cls, type_: Any = None) -> Sink:
        return cls("decode", type_)

    @classmethod
    def copy(cls, writer: IO[bytes]) -> Sink:
        return cls("copy", writer)


DISCARD = Sink("discard")


@dataclass(frozen=True)
class Response:
    """Envelope returned for every successful call."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    limit: Limit | None = None
    trace_id: str = ""
    value: Any = None


class _Body:
    """Request body that can be (re)opened for each attempt."""

    replayable = True

    def open(self, attempt: int) -> Any:
        return None

    def abort(self, error: BaseException) -> None:
        return None


class _BytesBody(_Body):
    def __init__(self, data: bytes) -> None:
        self._data = data

    def open(self, attempt: int) -> Any:
        return self._data


class _StreamBody(_Body):
    """A streaming body.

    Seekable streams are rewound to their initial offset before a retry;
    otherwise `get_body` is invoked once per retry. A stream with neither is
    sent once.
    """

    def __init__(self, stream: IO[bytes], get_body: Callable[[], IO[bytes]] | None) -> None:
        self._stream = stream
        self._get_body = get_body
        self._current: Any = None
        self._offset: int | None = None
        if _is_seekable(stream):
            self._offset = stream.tell()

    @property
    def replayable(self) -> bool:  # type: ignore[override]
        return self._offset is not None or self._get_body is not None

    def open(self, attempt: int) -> Any:
        if attempt == 1:
            self._current = self._stream
        elif self._offset is not None:
            self._stream.seek(self._offset)
            self._current = self._stream
        else:
            assert self._get_body is not None
            self._release()
            self._current = self._get_body()
        return self._current

    def abort(self, error: BaseException) -> None:
        if isinstance(self._current, PipeReader):
            self._current.close_with_error(error)

    def _release(self) -> None:
        # Stops the encoder thread of the attempt being replaced.
        if isinstance(self._current, PipeReader):
            self._current.close()


def _is_seekable(stream: Any) -> bool:
    seekable = getattr(stream, "seekable", None)
    if seekable is None:
        return False
    try:
        return bool(seekable())
    except (OSError, ValueError):
        return False


def encode_json(value: Any) -> bytes:
    """Serialize a request body. Models are dumped with their wire aliases."""
    if isinstance(value, BaseModel):
        return value.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
    if isinstance(value, list) and value and all(isinstance(v, BaseModel) for v in value):
        value = [v.model_dump(mode="json", by_alias=True, exclude_none=True) for v in value]
    return json.dumps(value, separators=(",", ":"), default=json_default).encode("utf-8")


def add_query_params(path: str, params: BaseModel | Mapping[str, Any] | None) -> str:
    """Append URL query parameters to `path`.

    Notes:
    - Models contribute their aliased, non-excluded fields.
    - `None` and empty values are omitted.
    - Lists/tuples are encoded as comma-separated values.
    - Booleans are encoded as "true"/"false".
    """
    if params is None:
        return path
    if isinstance(params, BaseModel):
        items = params.model_dump(mode="json", by_alias=True, exclude_none=True)
    else:
        items = dict(params)

    filtered: dict[str, str] = {}
    for key, value in items.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            filtered[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            if value:
                filtered[key] = ",".join(str(v) for v in value)
        else:
            filtered[key] = str(value)

    if not filtered:
        return path
    separator = "&" if "?" in path else "?"
    return path + separator + urlencode(filtered)


@functools.lru_cache(maxsize=128)
def _type_adapter(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


def _status_text(status: int, reason: str) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return reason or f"status {status}"


class Transport:
    """Authenticated, retrying HTTP transport bound to one config snapshot."""

    def __init__(self, config: AxiomConfig, session: requests.Session | None = None) -> None:
        self.config = config
        self.session = session or requests.Session()
        self.limits = LimitTracker()

    def close(self) -> None:
        self.session.close()

    async def send_json(self, method: str, path: str, body: Any | None = None, *, sink: Sink = DISCARD) -> Response:
        """Send `body` JSON-encoded (or no body at all)."""
        url = self.resolve_url(path)
        if body is None:
            return await self._do(method, url, _Body(), {}, sink)
        return await self._do(method, url, _BytesBody(encode_json(body)), {HEADER_CONTENT_TYPE: MEDIA_TYPE_JSON}, sink)

    async def send_stream(
        self,
        method: str,
        path: str,
        stream: bytes | IO[bytes],
        *,
        headers: Mapping[str, str] | None = None,
        get_body: Callable[[], IO[bytes]] | None = None,
        sink: Sink = DISCARD,
    ) -> Response:
        """Send a raw byte stream.

        `get_body` must produce a fresh, equivalent stream; it is called once
        per retry when `stream` cannot be rewound.
        """
        url = self.resolve_url(path)
        extra = {HEADER_CONTENT_TYPE: MEDIA_TYPE_OCTET_STREAM}
        extra.update(headers or {})
        body: _Body
        if isinstance(stream, (bytes, bytearray, memoryview)):
            body = _BytesBody(bytes(stream))
        else:
            body = _StreamBody(stream, get_body)
        return await self._do(method, url, body, extra, sink)

    def resolve_url(self, path: str) -> str:
        """Return the absolute URL for `path`.

        Raises:
        - `UnprivilegedTokenError` for an API token on a non-ingest/query path
        - `ValueError` for absolute URLs outside the configured edge endpoint
        """
        parts = urlsplit(path)
        if parts.scheme or parts.netloc:
            if not self._is_edge_url(path):
                raise ValueError(f"absolute URLs are only allowed for the edge endpoint. Got: {path!r}")
            return path
        if not path.startswith("/"):
            raise ValueError(f"path must start with '/'. Got: {path!r}")
        if self.config.is_api_token and not _API_TOKEN_PATHS.match(path):
            raise UnprivilegedTokenError(path)
        return self.config.url + path

    def _is_edge_url(self, url: str) -> bool:
        hosts = []
        if self.config.edge_url:
            edge = urlsplit(self.config.edge_url)
            hosts.append((edge.scheme, edge.netloc))
        if self.config.edge_region:
            hosts.append(("https", self.config.edge_region))
        parts = urlsplit(url)
        return (parts.scheme, parts.netloc) in hosts

    def _headers(self, extra: Mapping[str, str]) -> dict[str, str]:
        headers = {
            HEADER_ACCEPT: MEDIA_TYPE_JSON,
            HEADER_USER_AGENT: self.config.user_agent,
            HEADER_AUTHORIZATION: f"Bearer {self.config.token}",
        }
        if self.config.is_personal_token and self.config.org_id:
            headers[HEADER_ORGANIZATION_ID] = self.config.org_id
        headers.update(extra)
        return headers

    async def _do(self, method: str, url: str, body: _Body, extra: Mapping[str, str], sink: Sink) -> Response:
        method = method.upper()
        self._check_limit(url)
        headers = self._headers(extra)
        resp = await self._send_with_retries(method, url, body, headers)
        try:
            return await asyncio.to_thread(self._handle_response, resp, url, sink)
        finally:
            resp.close()

    def _check_limit(self, url: str) -> None:
        """Refuse requests against a limit known to be exhausted."""
        if self.config.no_limiting:
            return
        limit_type = limit_type_for_path(urlsplit(url).path)
        limit = self.limits.exhausted(limit_type)
        if limit is None:
            return

        message = f"{limit.scope.value} {limit_type.value} limit exceeded, not making remote request".lstrip()
        logger.info(
            "request refused, limit exhausted",
            url=url,
            limit_type=limit_type.value,
            scope=limit.scope.value,
            reset=limit.reset.isoformat() if limit.reset else None,
        )
        if limit_type is LimitType.RATE:
            raise RateLimitError(429, message, limit)
        raise QuotaExceededError(430, message, limit)

    def _send_request(self, method: str, url: str, data: Any, headers: Mapping[str, str]) -> requests.Response:
        """Execute one attempt synchronously (runs in a worker thread)."""
        return self.session.request(
            method,
            url,
            headers=dict(headers),
            data=data,
            timeout=self.config.timeout,
            stream=True,
        )

    async def _send_with_retries(
        self, method: str, url: str, body: _Body, headers: Mapping[str, str]
    ) -> requests.Response:
        """Send a request, retrying 5xx responses and transient network errors."""
        attempt = 0
        start = time.monotonic()

        try:
            while True:
                attempt += 1
                data = body.open(attempt)
                try:
                    resp = await asyncio.to_thread(self._send_request, method, url, data, headers)
                except (requests.ConnectionError, requests.Timeout) as exc:
                    delay = self._retry_delay(attempt, start, body)
                    if delay is None:
                        raise
                    logger.warning(
                        "retrying request after network error",
                        method=method,
                        url=url,
                        attempt=attempt,
                        delay=round(delay, 3),
                        error=str(exc),
                    )
                    await asyncio.sleep(delay)
                    continue

                if resp.status_code >= 500:
                    delay = self._retry_delay(attempt, start, body)
                    if delay is not None:
                        resp.close()
                        logger.warning(
                            "retrying request after server error",
                            method=method,
                            url=url,
                            attempt=attempt,
                            status=resp.status_code,
                            delay=round(delay, 3),
                        )
                        await asyncio.sleep(delay)
                        continue
                return resp
        except BaseException as exc:
            body.abort(exc)
            raise

    def _retry_delay(self, attempt: int, start: float, body: _Body) -> float | None:
        """Backoff before the next attempt, or None when no retry is allowed."""
        if not body.replayable or attempt >= self.config.max_attempts:
            return None

        delay = self.config.base_delay * (self.config.backoff_multiplier ** (attempt - 1))
        delay += random.uniform(0.0, delay * 0.1)  # small jitter

        if (time.monotonic() - start) + delay > self.config.max_delay:
            return None
        return delay

    def _handle_response(self, resp: requests.Response, url: str, sink: Sink) -> Response:
        """Decode a final response (runs in a worker thread)."""
        limit = parse_limit(resp.headers)
        if limit is not None:
            self.limits.update(limit)
        trace_id = resp.headers.get(HEADER_TRACE_ID, "")

        if resp.status_code >= 400:
            self._raise_for_status(resp, url, limit, trace_id)

        value: Any = None
        if sink.kind == "copy":
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                sink.target.write(chunk)
        elif sink.kind == "decode":
            content_type = resp.headers.get(HEADER_CONTENT_TYPE, "")
            if not content_type.startswith(MEDIA_TYPE_JSON):
                raise AxiomError(f"cannot decode response with unknown content type {content_type!r}")
            value = self._decode(resp.content, sink.target)

        return Response(
            status_code=resp.status_code,
            headers=resp.headers,
            limit=limit,
            trace_id=trace_id,
            value=value,
        )

    def _decode(self, content: bytes, type_: Any) -> Any:
        if type_ is None:
            return json.loads(content) if content else None
        return _type_adapter(type_).validate_json(content, context={STRICT_DECODING: self.config.strict_decoding})

    def _raise_for_status(self, resp: requests.Response, url: str, limit: Limit | None, trace_id: str) -> None:
        status = resp.status_code
        content_type = resp.headers.get(HEADER_CONTENT_TYPE, "")

        if content_type.startswith(MEDIA_TYPE_JSON):
            raw = resp.content
            try:
                payload = json.loads(raw) if raw else {}
            except ValueError as exc:
                raise AxiomError(f"error decoding {status} error response: {exc}") from exc
            message = payload.get("message", "") if isinstance(payload, dict) else ""
            if not message:
                message = raw.decode("utf-8", "replace").replace("\n", " ").strip()
        else:
            message = _status_text(status, getattr(resp, "reason", "") or "")

        if status in (429, 430):
            if limit is None:
                default_type = LimitType.RATE if status == 429 else limit_type_for_path(urlsplit(url).path)
                limit = Limit(type=default_type)
            error_cls = RateLimitError if status == 429 else QuotaExceededError
            raise error_cls(status, message, limit, trace_id=trace_id)

        raise _ERRORS_BY_STATUS.get(status, HTTPError)(status, message, trace_id=trace_id)
