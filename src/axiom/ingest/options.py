"""Optional parameters of an ingest request."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..models import json_default

# Field the server reads the ingestion time from unless told otherwise.
TIMESTAMP_FIELD = "_time"

HEADER_EVENT_LABELS = "X-Axiom-Event-Labels"
HEADER_CSV_FIELDS = "X-Axiom-CSV-Fields"


class IngestOptions(BaseModel):
    """Ingest parameters.

    The timestamp and CSV delimiter settings travel in the query string (the
    aliases are the parameter names); event labels and CSV field names are
    sent as headers.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp_field: str | None = Field(default=None, alias="timestamp-field")
    timestamp_format: str | None = Field(default=None, alias="timestamp-format")
    csv_delimiter: str | None = Field(default=None, alias="csv-delimiter")

    # Labels added to every event without rewriting the payload.
    event_labels: dict[str, Any] | None = Field(default=None, exclude=True)
    # Column names for headerless CSV.
    csv_fields: list[str] | None = Field(default=None, exclude=True)

    def headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.event_labels:
            headers[HEADER_EVENT_LABELS] = json.dumps(self.event_labels, separators=(",", ":"), default=json_default)
        if self.csv_fields:
            headers[HEADER_CSV_FIELDS] = ",".join(self.csv_fields)
        return headers
