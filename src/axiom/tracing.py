"""OpenTelemetry span helper wrapped around every resource call.

Only the OpenTelemetry API is used; without a configured SDK the spans are
no-ops. Applications install a tracer provider to export them.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

TRACER_NAME = "axiom"


def _tracer() -> trace.Tracer:
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def trace_call(name: str, **ids: Any) -> Iterator[Span]:
    """Run the body inside a span named `axiom.<name>`.

    Keyword arguments become `axiom.<key>` attributes (e.g. `dataset_id="logs"`
    yields `axiom.dataset_id`). Empty values are skipped. Exceptions are
    recorded on the span and re-raised.
    """
    attributes = {f"axiom.{key}": str(value) for key, value in ids.items() if value not in (None, "")}
    with _tracer().start_as_current_span(
        f"axiom.{name}",
        attributes=attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            raise
