"""Tabular query results.

The server returns tables column by column. `Rows` rebuilds the row view:
for columns `c[0..K-1]` of length N, row `i` is `(c[0][i], ..., c[K-1][i])`.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from datetime import datetime, timedelta
from typing import Any

import pydantic
from pydantic import field_serializer, field_validator

from ..models import AxiomModel


class Rows:
    """Lazy, restartable iterable over the rows of column-oriented data."""

    def __init__(self, columns: Sequence[Sequence[Any]]) -> None:
        self._columns = columns

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        if not self._columns:
            return iter(())
        return zip(*self._columns)

    def __len__(self) -> int:
        return len(self._columns[0]) if self._columns else 0

    def __repr__(self) -> str:
        return f"Rows(columns={len(self._columns)}, rows={len(self)})"


def rows(columns: Sequence[Sequence[Any]]) -> Rows:
    return Rows(columns)


class Source(AxiomModel):
    name: str


class Aggregation(AxiomModel):
    """Aggregation a field was computed with."""

    name: str
    args: list[Any] = pydantic.Field(default_factory=list)
    fields: list[str] = pydantic.Field(default_factory=list)


class Field(AxiomModel):
    name: str
    type: str = ""
    aggregation: Aggregation | None = pydantic.Field(default=None, alias="agg")


class Range(AxiomModel):
    """Time range a table covers."""

    field: str = ""
    start: datetime | None = None
    end: datetime | None = None


class Table(AxiomModel):
    name: str = ""
    sources: list[Source] = pydantic.Field(default_factory=list)
    fields: list[Field] = pydantic.Field(default_factory=list)
    range: Range | None = None
    columns: list[list[Any]] = pydantic.Field(default_factory=list)

    @field_validator("sources", "fields", "columns", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return [] if v is None else v

    def rows(self) -> Rows:
        return Rows(self.columns)

    def column(self, name: str) -> list[Any]:
        """Return the column of the field called `name`."""
        for i, f in enumerate(self.fields):
            if f.name == name:
                return self.columns[i]
        raise KeyError(name)


class QueryStatus(AxiomModel):
    """Execution statistics. `elapsed_time` is microseconds on the wire."""

    elapsed_time: timedelta = timedelta(0)
    rows_examined: int = 0
    rows_matched: int = 0
    min_cursor: str = ""
    max_cursor: str = ""

    @field_validator("elapsed_time", mode="before")
    @classmethod
    def _from_microseconds(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return timedelta(microseconds=v)
        return v

    @field_serializer("elapsed_time")
    def _to_microseconds(self, v: timedelta) -> int:
        return v // timedelta(microseconds=1)


class Result(AxiomModel):
    tables: list[Table] = pydantic.Field(default_factory=list)
    status: QueryStatus = pydantic.Field(default_factory=QueryStatus)

    # Taken from the response headers, never part of the body.
    trace_id: str = pydantic.Field(default="", exclude=True)

    @field_validator("tables", mode="before")
    @classmethod
    def _null_tables(cls, v: Any) -> Any:
        return [] if v is None else v
