from .options import QueryOptions
from .result import Aggregation, Field, QueryStatus, Range, Result, Rows, Source, Table, rows

__all__ = [
    "Aggregation",
    "Field",
    "QueryOptions",
    "QueryStatus",
    "Range",
    "Result",
    "Rows",
    "Source",
    "Table",
    "rows",
]
