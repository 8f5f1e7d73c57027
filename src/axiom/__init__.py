"""Client library for the Axiom event ingestion and query API.

- `Client` is the entry point; configure it with the `set_*` options or the
  `AXIOM_*` environment variables.
- `Client.ingest*` upload events (batched, zstd-compressed NDJSON).
- `Client.query` runs APL queries and returns tabular results.
"""

from .client import Client
from .config import (
    API_URL,
    AxiomConfig,
    Option,
    load_config,
    set_api_token_config,
    set_backoff,
    set_edge_region,
    set_edge_url,
    set_max_attempts,
    set_no_env,
    set_no_limiting,
    set_organization_id,
    set_personal_token_config,
    set_session,
    set_strict_decoding,
    set_timeout,
    set_token,
    set_url,
    set_user_agent,
)
from .encoder import gzip_encoder, gzip_encoder_with_level, zstd_encoder
from .errors import (
    AxiomError,
    ConfigError,
    ExistsError,
    HTTPError,
    IngestChannelError,
    InvalidURLError,
    LimitError,
    MissingDatasetError,
    MissingOrganizationIDError,
    MissingTokenError,
    NotFoundError,
    QuotaExceededError,
    RateLimitError,
    UnauthenticatedError,
    UnauthorizedError,
    UnknownContentEncodingError,
    UnknownContentTypeError,
    UnprivilegedTokenError,
)
from .ingest import (
    BackgroundIngester,
    ContentEncoding,
    ContentType,
    Event,
    IngestFailure,
    IngestOptions,
    IngestStatus,
    detect_content_type,
)
from .limit import Limit, LimitScope, LimitType
from .query import QueryOptions, Result

__all__ = [
    "API_URL",
    "AxiomConfig",
    "AxiomError",
    "BackgroundIngester",
    "Client",
    "ConfigError",
    "ContentEncoding",
    "ContentType",
    "Event",
    "ExistsError",
    "HTTPError",
    "IngestChannelError",
    "IngestFailure",
    "IngestOptions",
    "IngestStatus",
    "InvalidURLError",
    "Limit",
    "LimitError",
    "LimitScope",
    "LimitType",
    "MissingDatasetError",
    "MissingOrganizationIDError",
    "MissingTokenError",
    "NotFoundError",
    "Option",
    "QueryOptions",
    "QuotaExceededError",
    "RateLimitError",
    "Result",
    "UnauthenticatedError",
    "UnauthorizedError",
    "UnknownContentEncodingError",
    "UnknownContentTypeError",
    "UnprivilegedTokenError",
    "detect_content_type",
    "gzip_encoder",
    "gzip_encoder_with_level",
    "load_config",
    "set_api_token_config",
    "set_backoff",
    "set_edge_region",
    "set_edge_url",
    "set_max_attempts",
    "set_no_env",
    "set_no_limiting",
    "set_organization_id",
    "set_personal_token_config",
    "set_session",
    "set_strict_decoding",
    "set_timeout",
    "set_token",
    "set_url",
    "set_user_agent",
    "zstd_encoder",
]
