"""Server version endpoint."""

from __future__ import annotations

from .models import AxiomModel
from .tracing import trace_call
from .transport import Sink, Transport


class _VersionResponse(AxiomModel):
    current_version: str = ""


class VersionService:
    base_path = "/v2/version"

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def get(self) -> str:
        """Return the version of the server the client talks to."""
        with trace_call("version.get"):
            resp = await self._transport.send_json("GET", self.base_path, sink=Sink.decode(_VersionResponse))
            return resp.value.current_version
