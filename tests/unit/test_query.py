from __future__ import annotations

from datetime import datetime, timezone

import pytest

from axiom import QueryOptions, UnprivilegedTokenError, set_edge_region, set_edge_url, set_organization_id

from fakes import PERSONAL_TOKEN, FakeResponse, FakeSession, make_client

TABULAR = {
    "tables": [
        {
            "name": "0",
            "fields": [{"name": "host", "type": "string"}, {"name": "n", "type": "integer"}],
            "columns": [["a1", "a2", "a3"], [1, 2, 3]],
        }
    ],
    "status": {"elapsedTime": 42, "rowsExamined": 3, "rowsMatched": 3},
}


@pytest.mark.asyncio
async def test_query_sends_tabular_request():
    session = FakeSession(FakeResponse(200, TABULAR, headers={"X-Axiom-Trace-Id": "q-1"}))
    client = make_client(session)

    result = await client.query("['logs'] | count by host")

    req = session.requests[0]
    assert req.method == "POST"
    assert req.path == "/v1/datasets/_apl"
    assert req.query == {"format": ["tabular"]}
    assert req.headers["Content-Type"] == "application/json"
    assert req.json() == {"apl": "['logs'] | count by host"}

    assert result.trace_id == "q-1"
    assert list(result.tables[0].rows()) == [("a1", 1), ("a2", 2), ("a3", 3)]
    assert result.status.rows_matched == 3


@pytest.mark.asyncio
async def test_query_options_are_sent_in_the_body():
    session = FakeSession(FakeResponse(200, TABULAR))
    client = make_client(session)
    options = QueryOptions(
        start_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end_time="now",
        cursor="c0",
        include_cursor=True,
        variables={"env": "prod"},
    )

    await client.query("['logs']", options)

    assert session.requests[0].json() == {
        "apl": "['logs']",
        "startTime": "2024-01-01T00:00:00Z",
        "endTime": "now",
        "cursor": "c0",
        "includeCursor": True,
        "variables": {"env": "prod"},
    }


def test_naive_datetimes_are_sent_as_utc():
    body = QueryOptions(start_time=datetime(2024, 1, 1, 12, 30)).request_body("x")
    assert body == {"apl": "x", "startTime": "2024-01-01T12:30:00Z"}


@pytest.mark.asyncio
async def test_query_is_routed_to_edge_region():
    session = FakeSession(FakeResponse(200, TABULAR))
    client = make_client(session, set_edge_region("eu-central-1.aws.edge.axiom.co"))

    await client.query("['logs']")

    assert session.requests[0].url == "https://eu-central-1.aws.edge.axiom.co/v1/query/_apl?format=tabular"


@pytest.mark.asyncio
async def test_edge_url_path_does_not_apply_to_queries():
    session = FakeSession(FakeResponse(200, TABULAR))
    client = make_client(session, set_edge_url("https://edge.example.com/custom/ingest"))

    await client.query("['logs']")

    assert session.requests[0].url == "https://edge.example.com/v1/query/_apl?format=tabular"


@pytest.mark.asyncio
async def test_other_calls_stay_on_the_main_host_with_edge_configured():
    session = FakeSession(FakeResponse(200, []))
    client = make_client(
        session,
        set_edge_region("eu-central-1.aws.edge.axiom.co"),
        set_organization_id("org-1"),
        token=PERSONAL_TOKEN,
    )

    await client.call("GET", "/v2/datasets")

    assert session.requests[0].url == "https://api.axiom.co/v2/datasets"


@pytest.mark.asyncio
async def test_absolute_urls_outside_the_edge_are_refused():
    session = FakeSession(FakeResponse(200, TABULAR))
    client = make_client(session, set_edge_region("eu-central-1.aws.edge.axiom.co"))

    with pytest.raises(ValueError, match="edge endpoint"):
        await client.call("POST", "https://evil.example.com/v1/query/_apl", {"apl": "x"})
    with pytest.raises(UnprivilegedTokenError):
        await client.call("GET", "/v2/datasets")
    assert session.requests == []


@pytest.mark.asyncio
async def test_empty_result():
    session = FakeSession(FakeResponse(200, {"tables": [], "status": {}}))
    client = make_client(session)

    result = await client.query("['logs'] | where false")

    assert result.tables == []
