"""Dataset management endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta
from urllib.parse import quote

from pydantic import Field

from .models import AxiomModel
from .tracing import trace_call
from .transport import Sink, Transport


class Dataset(AxiomModel):
    id: str
    name: str = ""
    description: str = ""
    created_by: str = Field(default="", alias="who")
    created: datetime | None = None


class DatasetCreateRequest(AxiomModel):
    name: str
    description: str = ""


class DatasetUpdateRequest(AxiomModel):
    description: str


class TrimResult(AxiomModel):
    blocks_deleted: int = Field(default=0, alias="numDeleted")


def _format_duration(value: timedelta) -> str:
    """Render a duration the way the API parses it (e.g. `3600s`)."""
    return f"{int(value.total_seconds())}s"


class DatasetsService:
    """CRUD operations on datasets (`/v2/datasets`)."""

    base_path = "/v2/datasets"

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    def _path(self, dataset_id: str, *suffix: str) -> str:
        return "/".join([self.base_path, quote(dataset_id, safe=""), *suffix])

    async def list(self) -> list[Dataset]:
        with trace_call("datasets.list"):
            resp = await self._transport.send_json("GET", self.base_path, sink=Sink.decode(list[Dataset]))
            return resp.value

    async def get(self, dataset_id: str) -> Dataset:
        with trace_call("datasets.get", dataset_id=dataset_id):
            resp = await self._transport.send_json("GET", self._path(dataset_id), sink=Sink.decode(Dataset))
            return resp.value

    async def create(self, request: DatasetCreateRequest) -> Dataset:
        with trace_call("datasets.create", dataset_id=request.name):
            resp = await self._transport.send_json("POST", self.base_path, request, sink=Sink.decode(Dataset))
            return resp.value

    async def update(self, dataset_id: str, request: DatasetUpdateRequest) -> Dataset:
        with trace_call("datasets.update", dataset_id=dataset_id):
            resp = await self._transport.send_json("PUT", self._path(dataset_id), request, sink=Sink.decode(Dataset))
            return resp.value

    async def delete(self, dataset_id: str) -> None:
        with trace_call("datasets.delete", dataset_id=dataset_id):
            await self._transport.send_json("DELETE", self._path(dataset_id))

    async def trim(self, dataset_id: str, max_duration: timedelta) -> TrimResult:
        """Delete blocks older than `max_duration`."""
        with trace_call("datasets.trim", dataset_id=dataset_id):
            resp = await self._transport.send_json(
                "POST",
                self._path(dataset_id, "trim"),
                {"maxDuration": _format_duration(max_duration)},
                sink=Sink.decode(TrimResult),
            )
            return resp.value
