from __future__ import annotations

import asyncio
import os
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from axiom import Client, QueryOptions, load_config


def _has_real_axiom_creds() -> bool:
    # `load_config()` loads `.env` before reading the environment, so call it
    # first; reading os.environ directly would skip when only `.env` is set.
    try:
        load_config()
    except Exception:
        return False
    return bool(os.getenv("AXIOM_DATASET"))


@pytest.mark.asyncio
@pytest.mark.integration
async def test_integration_ingest_then_query() -> None:
    """Ingests a tagged event into a real dataset and reads it back.

    To run:
    - set AXIOM_TOKEN (and AXIOM_ORG_ID for personal tokens) and AXIOM_DATASET
    - run: pytest -m integration
    """
    if not _has_real_axiom_creds():
        pytest.skip("Missing AXIOM_TOKEN/AXIOM_DATASET; skipping network integration test.")

    dataset = os.environ["AXIOM_DATASET"]
    marker = uuid.uuid4().hex
    now = datetime.now(tz=timezone.utc)

    async with Client() as client:
        status = await client.ingest_events(dataset, [{"_time": now, "marker": marker, "source": "integration"}])
        assert status.ingested == 1
        assert status.failed == 0

        # Ingested events become queryable after a short delay.
        options = QueryOptions(start_time=now - timedelta(minutes=5), end_time=now + timedelta(minutes=5))
        apl = f"['{dataset}'] | where marker == '{marker}' | count"
        for _ in range(10):
            result = await client.query(apl, options)
            counts = [row[0] for table in result.tables for row in table.rows()]
            if counts and counts[0] >= 1:
                break
            await asyncio.sleep(2)
        else:
            pytest.fail("ingested event never showed up in query results")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_integration_channel_ingest() -> None:
    if not _has_real_axiom_creds():
        pytest.skip("Missing AXIOM_TOKEN/AXIOM_DATASET; skipping network integration test.")

    dataset = os.environ["AXIOM_DATASET"]
    events: asyncio.Queue = asyncio.Queue()
    for i in range(25):
        events.put_nowait({"n": i, "source": "integration-channel"})
    events.put_nowait(None)

    async with Client() as client:
        status = await client.ingest_channel(dataset, events, batch_size=10)

    assert status.ingested + status.failed == 25
