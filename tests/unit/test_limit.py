from __future__ import annotations

from datetime import datetime, timedelta, timezone

from axiom.limit import Limit, LimitScope, LimitTracker, LimitType, limit_type_for_path, parse_limit


def _epoch(delta: timedelta) -> str:
    return str(int((datetime.now(tz=timezone.utc) + delta).timestamp()))


def test_parse_rate_limit_headers():
    reset = _epoch(timedelta(minutes=1))
    limit = parse_limit(
        {
            "X-RateLimit-Scope": "organization",
            "X-RateLimit-Limit": "1000",
            "X-RateLimit-Remaining": "999",
            "X-RateLimit-Reset": reset,
        }
    )
    assert limit is not None
    assert limit.type is LimitType.RATE
    assert limit.scope is LimitScope.ORGANIZATION
    assert limit.limit == 1000
    assert limit.remaining == 999
    assert limit.reset == datetime.fromtimestamp(int(reset), tz=timezone.utc)
    assert limit.until() > timedelta(0)


def test_headers_are_case_insensitive():
    limit = parse_limit({"x-querylimit-limit": "10", "x-querylimit-remaining": "3", "x-querylimit-reset": "0"})
    assert limit is not None
    assert limit.type is LimitType.QUERY
    assert limit.scope is LimitScope.UNKNOWN
    assert limit.remaining == 3
    assert limit.reset is None


def test_ingest_wins_over_query_and_rate():
    headers = {
        "X-RateLimit-Limit": "1000",
        "X-QueryLimit-Limit": "50",
        "X-IngestLimit-Limit": "100",
        "X-IngestLimit-Remaining": "0",
    }
    limit = parse_limit(headers)
    assert limit is not None
    assert limit.type is LimitType.INGEST
    assert limit.limit == 100


def test_query_wins_over_rate():
    limit = parse_limit({"X-RateLimit-Limit": "1000", "X-QueryLimit-Remaining": "7"})
    assert limit is not None
    assert limit.type is LimitType.QUERY
    assert limit.remaining == 7


def test_no_limit_headers():
    assert parse_limit({"Content-Type": "application/json"}) is None


def test_unknown_scope_is_tolerated():
    limit = parse_limit({"X-RateLimit-Scope": "galaxy", "X-RateLimit-Limit": "1"})
    assert limit is not None
    assert limit.scope is LimitScope.UNKNOWN


def test_until_is_zero_for_past_reset():
    limit = Limit(type=LimitType.RATE, reset=datetime.now(tz=timezone.utc) - timedelta(seconds=5))
    assert limit.until() == timedelta(0)


def test_limit_type_for_path():
    assert limit_type_for_path("/v1/datasets/logs/ingest?timestamp-field=ts") is LimitType.INGEST
    assert limit_type_for_path("/v1/ingest/logs") is LimitType.INGEST
    assert limit_type_for_path("/v1/datasets/_apl?format=tabular") is LimitType.QUERY
    assert limit_type_for_path("/v1/query/_apl") is LimitType.QUERY
    assert limit_type_for_path("/v1/datasets/logs/query") is LimitType.QUERY
    assert limit_type_for_path("/v2/datasets") is LimitType.RATE


def test_tracker_reports_only_exhausted_limits():
    tracker = LimitTracker()
    future = datetime.now(tz=timezone.utc) + timedelta(minutes=1)

    tracker.update(Limit(type=LimitType.RATE, scope=LimitScope.USER, limit=10, remaining=5, reset=future))
    assert tracker.exhausted(LimitType.RATE) is None

    exhausted = Limit(type=LimitType.RATE, scope=LimitScope.USER, limit=10, remaining=0, reset=future)
    tracker.update(exhausted)
    assert tracker.exhausted(LimitType.RATE) == exhausted
    assert tracker.exhausted(LimitType.INGEST) is None


def test_tracker_forgets_limits_after_reset():
    tracker = LimitTracker()
    past = datetime.now(tz=timezone.utc) - timedelta(seconds=1)
    tracker.update(Limit(type=LimitType.INGEST, remaining=0, reset=past))
    assert tracker.exhausted(LimitType.INGEST) is None
