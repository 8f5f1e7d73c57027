from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _no_threads_in_unit_tests(monkeypatch: pytest.MonkeyPatch):
    """Run `asyncio.to_thread` inline for unit tests.

    The transport uses `asyncio.to_thread` to avoid introducing an async HTTP
    dependency. In unit tests, this can create threadpool workers that keep the
    Python process alive longer than expected under some runtimes.
    """

    async def _to_thread(func, /, *args, **kwargs):  # noqa: ANN001, D401
        return func(*args, **kwargs)

    monkeypatch.setattr("axiom.transport.asyncio.to_thread", _to_thread)
    yield


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch):
    """Hide developer credentials (env vars and `.env`) from unit tests."""
    for name in list(os.environ):
        if name.startswith("AXIOM_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("axiom.config.dotenv.load_dotenv", lambda *args, **kwargs: False)
    yield
