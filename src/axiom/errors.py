"""Exception taxonomy for the Axiom client.

All errors raised by the library derive from `AxiomError`, except network
failures which surface unchanged from `requests`.

- Configuration errors are raised while a `Client` is constructed.
- `HTTPError` and its subclasses wrap non-2xx API responses.
- `LimitError` carries the `Limit` the server (or the client-side tracker)
  reported when a quota is exhausted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .ingest.status import IngestStatus
    from .limit import Limit


class AxiomError(Exception):
    """Base class for every error raised by the library."""


class ConfigError(AxiomError, ValueError):
    """Invalid or incomplete client configuration."""


class MissingTokenError(ConfigError):
    def __init__(self) -> None:
        super().__init__("missing token")


class MissingOrganizationIDError(ConfigError):
    def __init__(self) -> None:
        super().__init__("missing organization id")


class InvalidURLError(ConfigError):
    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"invalid url: {url!r}")


class MissingDatasetError(ConfigError):
    def __init__(self) -> None:
        super().__init__("missing dataset name")


class UnprivilegedTokenError(AxiomError):
    """An API token was used for an endpoint other than ingest or query."""

    def __init__(self, path: str = "") -> None:
        self.path = path
        super().__init__("using api token for non-ingest or non-query operation")


class UnknownContentTypeError(AxiomError, ValueError):
    def __init__(self, value: object) -> None:
        super().__init__(f"unknown content type: {value!r}")


class UnknownContentEncodingError(AxiomError, ValueError):
    def __init__(self, value: object) -> None:
        super().__init__(f"unknown content encoding: {value!r}")


class HTTPError(AxiomError):
    """Generic error for non-2xx API responses.

    Two errors compare equal when status and message match; the trace ID is
    ignored so callers can compare against a canonical instance.
    """

    def __init__(self, status: int, message: str, *, trace_id: str = "") -> None:
        self.status = status
        self.message = message
        self.trace_id = trace_id
        super().__init__(status, message)

    def __str__(self) -> str:
        return f"API error {self.status}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status!r}, message={self.message!r}, trace_id={self.trace_id!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HTTPError):
            return NotImplemented
        return self.status == other.status and self.message == other.message

    def __hash__(self) -> int:
        return hash((self.status, self.message))


class UnauthenticatedError(HTTPError):
    """HTTP 401: the token is not valid."""


class UnauthorizedError(HTTPError):
    """HTTP 403: the token lacks permissions for the operation."""


class NotFoundError(HTTPError):
    """HTTP 404."""


class ExistsError(HTTPError):
    """HTTP 409: the entity already exists."""


class LimitError(HTTPError):
    """A rate limit or quota has been exhausted."""

    def __init__(self, status: int, message: str, limit: Limit, *, trace_id: str = "") -> None:
        super().__init__(status, message, trace_id=trace_id)
        self.limit = limit

    def __str__(self) -> str:
        if self.limit.reset is None:
            return f"{self.limit.type.value} limit exceeded"
        seconds = int(max(0.0, (self.limit.reset - datetime.now(tz=timezone.utc)).total_seconds()))
        return f"{self.limit.type.value} limit exceeded: try again in {seconds}s"


class RateLimitError(LimitError):
    """HTTP 429: per-scope request rate exhausted."""


class QuotaExceededError(LimitError):
    """HTTP 430: ingest or query quota exhausted."""


class IngestChannelError(AxiomError):
    """A flush of the channel ingest loop failed.

    `status` adds up every batch ingested before the failure; the failing
    call's error is the `__cause__`.
    """

    def __init__(self, status: IngestStatus, error: BaseException) -> None:
        self.status = status
        self.error = error
        super().__init__(f"ingest failed after {status.ingested} ingested and {status.failed} failed events: {error}")
