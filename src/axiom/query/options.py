"""Optional parameters of a query request."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import field_serializer

from ..models import AxiomModel, format_rfc3339


class QueryOptions(AxiomModel):
    """Query time range, cursor and APL variables.

    Bounds may be datetimes (sent as RFC 3339) or strings understood by the
    server, such as `now-1h`.
    """

    start_time: datetime | str | None = None
    end_time: datetime | str | None = None
    cursor: str | None = None
    include_cursor: bool = False
    variables: dict[str, Any] | None = None

    @field_serializer("start_time", "end_time")
    def _format_time(self, v: datetime | str | None) -> str | None:
        if isinstance(v, datetime):
            return format_rfc3339(v)
        return v

    def request_body(self, apl: str) -> dict[str, Any]:
        """JSON body of a tabular query request; unset keys are omitted."""
        body: dict[str, Any] = {"apl": apl}
        body.update(self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude_defaults=True))
        return body
