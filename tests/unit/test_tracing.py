from __future__ import annotations

from contextlib import contextmanager
from typing import Any

import pytest
from opentelemetry.trace import StatusCode

from axiom import HTTPError, tracing

from fakes import FakeResponse, FakeSession, ingest_ok, make_client


class _FakeSpan:
    def __init__(self, name: str, attributes: dict[str, Any]) -> None:
        self.name = name
        self.attributes = attributes
        self.exceptions: list[BaseException] = []
        self.status: Any = None

    def record_exception(self, exc: BaseException) -> None:
        self.exceptions.append(exc)

    def set_status(self, status: Any) -> None:
        self.status = status


class _FakeTracer:
    def __init__(self) -> None:
        self.spans: list[_FakeSpan] = []

    @contextmanager
    def start_as_current_span(self, name: str, *, attributes: dict[str, Any], **_kwargs: Any):
        span = _FakeSpan(name, attributes)
        self.spans.append(span)
        yield span


@pytest.fixture
def tracer(monkeypatch: pytest.MonkeyPatch) -> _FakeTracer:
    fake = _FakeTracer()
    monkeypatch.setattr(tracing, "_tracer", lambda: fake)
    return fake


def test_trace_call_names_span_and_sets_attributes(tracer: _FakeTracer):
    with tracing.trace_call("datasets.get", dataset_id="logs", empty="") as span:
        pass

    assert span is tracer.spans[0]
    assert span.name == "axiom.datasets.get"
    assert span.attributes == {"axiom.dataset_id": "logs"}
    assert span.status is None


def test_trace_call_records_and_reraises(tracer: _FakeTracer):
    with pytest.raises(RuntimeError, match="boom"):
        with tracing.trace_call("query"):
            raise RuntimeError("boom")

    span = tracer.spans[0]
    assert [str(e) for e in span.exceptions] == ["boom"]
    assert span.status.status_code is StatusCode.ERROR


def test_trace_call_without_sdk_is_a_no_op():
    with tracing.trace_call("version.get") as span:
        assert not span.is_recording()


@pytest.mark.asyncio
async def test_client_operations_are_traced(tracer: _FakeTracer):
    client = make_client(FakeSession(handler=ingest_ok))

    await client.ingest_events("logs", [{"a": 1}])

    assert [s.name for s in tracer.spans] == ["axiom.ingest_events"]
    assert tracer.spans[0].attributes == {"axiom.dataset_id": "logs"}


@pytest.mark.asyncio
async def test_failed_operations_mark_the_span(tracer: _FakeTracer):
    client = make_client(FakeSession(FakeResponse(400, {"message": "down"})))

    with pytest.raises(HTTPError, match="down"):
        await client.ingest("logs", b'{"a":1}', "application/x-ndjson")

    assert tracer.spans[0].status.status_code is StatusCode.ERROR
