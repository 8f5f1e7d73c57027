"""Base model shared by every API payload.

Models validate against API payloads that may contain more fields than the
library knows about. Unknown fields are ignored unless strict decoding is
requested through the validation context, in which case they are rejected at
every nesting level.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationInfo, model_validator
from pydantic.alias_generators import to_camel

STRICT_DECODING = "strict_decoding"


def parse_rfc3339_datetime(value: Any) -> datetime | None:
    """Parse an RFC3339 timestamp into an aware datetime (UTC if tz missing)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value)
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def json_default(value: Any) -> Any:
    """`json.dumps` fallback for values the encoder does not know."""
    if isinstance(value, datetime):
        return format_rfc3339(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return str(value)


class AxiomModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _reject_unknown_fields(cls, data: Any, info: ValidationInfo) -> Any:
        """Reject unknown keys when validating with strict decoding enabled."""
        if not isinstance(data, dict) or not info.context or not info.context.get(STRICT_DECODING):
            return data
        known: set[str] = set()
        for name, field in cls.model_fields.items():
            known.add(name)
            if field.alias:
                known.add(field.alias)
        unknown = sorted(key for key in data if key not in known)
        if unknown:
            raise ValueError(f"unknown field(s) {', '.join(repr(k) for k in unknown)} for {cls.__name__}")
        return data

    def to_wire(self) -> dict[str, Any]:
        """Dump the model the way the API expects it."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
