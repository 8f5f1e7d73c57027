"""Ingest result models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, field_validator

from ..models import AxiomModel


class IngestFailure(AxiomModel):
    """A single event the server refused to ingest."""

    timestamp: datetime | None = None
    error: str = ""


class IngestStatus(AxiomModel):
    """Summary of one or more ingest requests.

    Statuses add up: `a + b` sums the counts, concatenates the failures and
    keeps the WAL length (and trace ID) of `b`, the most recent one.
    """

    ingested: int = 0
    failed: int = 0
    failures: list[IngestFailure] = Field(default_factory=list)
    processed_bytes: int = 0
    blocks_created: int = 0
    wal_length: int = 0

    # Taken from the response headers, never part of the body.
    trace_id: str = Field(default="", exclude=True)

    @field_validator("failures", mode="before")
    @classmethod
    def _null_failures(cls, v: Any) -> Any:
        return [] if v is None else v

    def __add__(self, other: object) -> IngestStatus:
        if not isinstance(other, IngestStatus):
            return NotImplemented
        return IngestStatus(
            ingested=self.ingested + other.ingested,
            failed=self.failed + other.failed,
            failures=[*self.failures, *other.failures],
            processed_bytes=self.processed_bytes + other.processed_bytes,
            blocks_created=self.blocks_created + other.blocks_created,
            wal_length=other.wal_length,
            trace_id=other.trace_id or self.trace_id,
        )
