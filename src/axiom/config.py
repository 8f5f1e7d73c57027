"""Configuration loading and validation.

This module is responsible for:

- Loading `.env` into the process environment (without overriding existing vars).
- Merging explicit options with `AXIOM_*` environment variables, options winning.
- Validating required fields and producing an immutable `AxiomConfig` snapshot.

Options are plain callables applied in order to a `ConfigBuilder`; later
options override earlier ones.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from importlib.metadata import PackageNotFoundError, version
from typing import Any, TypeVar
from urllib.parse import urlsplit, urlunsplit

import dotenv
import requests
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidURLError, MissingOrganizationIDError, MissingTokenError

_T = TypeVar("_T", int, float)

API_URL = "https://api.axiom.co"

PERSONAL_TOKEN_PREFIX = "xapt-"
API_TOKEN_PREFIX = "xaat-"

EDGE_INGEST_PATH = "/v1/ingest/{dataset}"
EDGE_QUERY_PATH = "/v1/query/_apl"


def _default_user_agent() -> str:
    try:
        return f"axiom-py/{version('axiom-client')}"
    except PackageNotFoundError:
        return "axiom-py"


def is_personal_token(token: str) -> bool:
    return token.startswith(PERSONAL_TOKEN_PREFIX)


def is_api_token(token: str) -> bool:
    return token.startswith(API_TOKEN_PREFIX)


def _get_env_number(name: str, default: _T | None, cast: type[_T]) -> _T | None:
    """Read an int/float env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a {cast.__name__}. Got: {raw!r}") from exc


def _normalize_url(raw: str) -> str:
    """Validate an absolute http(s) URL and strip a trailing slash."""
    parts = urlsplit(raw.strip())
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise InvalidURLError(raw)
    return urlunsplit((parts.scheme, parts.netloc, parts.path.rstrip("/"), parts.query, ""))


class AxiomConfig(BaseModel):
    """Read-only configuration snapshot used by every request of a client."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(default=API_URL, description="Base URL of the Axiom API")
    token: str = Field(..., description="API (xaat-) or personal (xapt-) token")
    org_id: str = Field(default="", description="Organization ID (personal tokens only)")
    edge_url: str | None = Field(default=None, description="Edge endpoint URL for ingest and query")
    edge_region: str | None = Field(default=None, description="Edge region host for ingest and query")

    user_agent: str = Field(default_factory=_default_user_agent)
    strict_decoding: bool = Field(default=False, description="Reject unknown fields in responses")
    no_limiting: bool = Field(default=False, description="Disable client-side limit pre-checks")

    # Transport tuning knobs.
    max_attempts: int = Field(default=3, description="Max attempts per request, including the first")
    base_delay: float = Field(default=0.2, description="Initial retry delay (seconds)")
    backoff_multiplier: float = Field(default=2.0, description="Exponential backoff multiplier")
    max_delay: float = Field(default=10.0, description="Max total elapsed time before giving up retrying (seconds)")
    timeout: float = Field(default=30.0, description="Per-attempt HTTP timeout (seconds)")

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_attempts must be >= 1. Got: {v}")
        return v

    @property
    def is_personal_token(self) -> bool:
        return is_personal_token(self.token)

    @property
    def is_api_token(self) -> bool:
        return is_api_token(self.token)

    @property
    def is_edge_configured(self) -> bool:
        return bool(self.edge_url or self.edge_region)

    def edge_ingest_url(self, dataset: str) -> str | None:
        """URL ingest requests for `dataset` are sent to, if edge routing is on.

        An edge URL that carries a path is used verbatim; a bare host gets the
        canonical edge ingest path appended.
        """
        return self._edge_url_for(EDGE_INGEST_PATH.format(dataset=dataset))

    def edge_query_url(self) -> str | None:
        """URL tabular queries are sent to, if edge routing is on.

        A path on the edge URL names the ingest endpoint, so queries always go
        to the canonical query path of the edge host.
        """
        if self.edge_url:
            parts = urlsplit(self.edge_url)
            return f"{parts.scheme}://{parts.netloc}{EDGE_QUERY_PATH}"
        return self._edge_url_for(EDGE_QUERY_PATH)

    def _edge_url_for(self, path: str) -> str | None:
        if self.edge_url:
            if urlsplit(self.edge_url).path.rstrip("/"):
                return self.edge_url
            return self.edge_url + path
        if self.edge_region:
            return f"https://{self.edge_region}{path}"
        return None


class ConfigBuilder:
    """Mutable accumulator the option functions operate on.

    Unset values are `None` so that the environment only fills the gaps left
    by explicit options.
    """

    def __init__(self) -> None:
        self.values: dict[str, Any] = {}
        self.no_env = False
        self.session: requests.Session | None = None

    def apply(self, *options: Option | None) -> ConfigBuilder:
        for option in options:
            if option is not None:
                option(self)
        return self

    def incorporate_environment(self) -> None:
        """Fill unset values from `AXIOM_*` environment variables."""
        dotenv.load_dotenv()

        env: dict[str, Any] = {
            "url": os.getenv("AXIOM_URL", "").strip(),
            "token": os.getenv("AXIOM_TOKEN", "").strip(),
            "org_id": os.getenv("AXIOM_ORG_ID", "").strip(),
            "edge_url": os.getenv("AXIOM_EDGE_URL", "").strip(),
            "edge_region": os.getenv("AXIOM_EDGE", "").strip(),
            "max_attempts": _get_env_number("AXIOM_MAX_ATTEMPTS", None, int),
            "timeout": _get_env_number("AXIOM_TIMEOUT", None, float),
        }
        if env["url"]:
            env["url"] = _normalize_url(env["url"])
        if env["edge_url"]:
            env["edge_url"] = _normalize_url(env["edge_url"])

        for key, value in env.items():
            if value in (None, ""):
                continue
            self.values.setdefault(key, value)

    def build(self) -> AxiomConfig:
        """Resolve, validate and freeze the configuration.

        Raises:
        - `MissingTokenError` when no token is configured.
        - `MissingOrganizationIDError` for a personal token against the
          production endpoint without an organization ID.
        """
        if not self.no_env:
            self.incorporate_environment()

        values = dict(self.values)
        values.setdefault("url", API_URL)

        token = values.get("token", "")
        if not token:
            raise MissingTokenError()
        if is_personal_token(token) and not values.get("org_id") and values["url"] == API_URL:
            raise MissingOrganizationIDError()

        return AxiomConfig(**values)


Option = Callable[[ConfigBuilder], None]


def set_url(url: str) -> Option:
    """Set the base URL. Can also be specified using `AXIOM_URL`."""
    normalized = _normalize_url(url)

    def _apply(builder: ConfigBuilder) -> None:
        builder.values["url"] = normalized

    return _apply


def set_token(token: str) -> Option:
    """Set the access token. Can also be specified using `AXIOM_TOKEN`."""

    def _apply(builder: ConfigBuilder) -> None:
        builder.values["token"] = token

    return _apply


def set_organization_id(org_id: str) -> Option:
    """Set the organization ID. Can also be specified using `AXIOM_ORG_ID`."""

    def _apply(builder: ConfigBuilder) -> None:
        builder.values["org_id"] = org_id

    return _apply


def set_personal_token_config(token: str, org_id: str) -> Option:
    def _apply(builder: ConfigBuilder) -> None:
        builder.apply(set_token(token), set_organization_id(org_id))

    return _apply


def set_api_token_config(token: str) -> Option:
    return set_token(token)


def set_edge_url(edge_url: str) -> Option:
    """Route ingest and query requests to an explicit edge URL."""
    normalized = _normalize_url(edge_url)

    def _apply(builder: ConfigBuilder) -> None:
        builder.values["edge_url"] = normalized

    return _apply


def set_edge_region(region: str) -> Option:
    """Route ingest and query requests to the edge host of a region."""

    def _apply(builder: ConfigBuilder) -> None:
        builder.values["edge_region"] = region.strip().strip("/")

    return _apply


def set_no_env() -> Option:
    """Prevent the client from deriving configuration from the environment."""

    def _apply(builder: ConfigBuilder) -> None:
        builder.no_env = True

    return _apply


def set_session(session: requests.Session | None) -> Option:
    """Use a custom HTTP session. `None` keeps the default."""

    def _apply(builder: ConfigBuilder) -> None:
        if session is not None:
            builder.session = session

    return _apply


def set_user_agent(user_agent: str) -> Option:
    def _apply(builder: ConfigBuilder) -> None:
        builder.values["user_agent"] = user_agent

    return _apply


def set_strict_decoding(strict: bool = True) -> Option:
    """Fail when a response carries fields the models do not know about."""

    def _apply(builder: ConfigBuilder) -> None:
        builder.values["strict_decoding"] = strict

    return _apply


def set_no_limiting() -> Option:
    """Disable the client-side rate/quota pre-check."""

    def _apply(builder: ConfigBuilder) -> None:
        builder.values["no_limiting"] = True

    return _apply


def set_max_attempts(max_attempts: int) -> Option:
    def _apply(builder: ConfigBuilder) -> None:
        builder.values["max_attempts"] = max_attempts

    return _apply


def set_timeout(timeout: float) -> Option:
    def _apply(builder: ConfigBuilder) -> None:
        builder.values["timeout"] = timeout

    return _apply


def set_backoff(*, base_delay: float | None = None, multiplier: float | None = None, max_delay: float | None = None) -> Option:
    """Tune retry backoff; unset arguments keep their defaults."""

    def _apply(builder: ConfigBuilder) -> None:
        if base_delay is not None:
            builder.values["base_delay"] = base_delay
        if multiplier is not None:
            builder.values["backoff_multiplier"] = multiplier
        if max_delay is not None:
            builder.values["max_delay"] = max_delay

    return _apply


def load_config(*options: Option | None) -> AxiomConfig:
    """Build a validated configuration from options and the environment."""
    return ConfigBuilder().apply(*options).build()
