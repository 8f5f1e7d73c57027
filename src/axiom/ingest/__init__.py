from .background import BackgroundIngester
from .content import ContentEncoding, ContentType, Event, detect_content_type, encode_event, iter_ndjson
from .options import HEADER_CSV_FIELDS, HEADER_EVENT_LABELS, TIMESTAMP_FIELD, IngestOptions
from .pipeline import DEFAULT_BATCH_SIZE, DEFAULT_FLUSH_INTERVAL, Ingester
from .status import IngestFailure, IngestStatus

__all__ = [
    "BackgroundIngester",
    "ContentEncoding",
    "ContentType",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_FLUSH_INTERVAL",
    "Event",
    "HEADER_CSV_FIELDS",
    "HEADER_EVENT_LABELS",
    "IngestFailure",
    "IngestOptions",
    "IngestStatus",
    "Ingester",
    "TIMESTAMP_FIELD",
    "detect_content_type",
    "encode_event",
    "iter_ndjson",
]
