from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from entity_sync.engine.sync import SyncClients
from entity_sync.exceptions import DatadogAPIError


def make_entity(name: str, kind: str = "Component", namespace: str | None = None, **metadata: Any) -> dict:
    entity_metadata = {"name": name, **metadata}
    if namespace:
        entity_metadata["namespace"] = namespace
    return {
        "apiVersion": "backstage.io/v1alpha1",
        "kind": kind,
        "metadata": entity_metadata,
        "spec": {"type": "service", "lifecycle": "production", "owner": "team-a"},
    }


@dataclass
class FakeCatalog:
    entities: list[dict] = field(default_factory=list)
    error: Exception | None = None
    calls: list[tuple[Any, Any]] = field(default_factory=list)

    async def get_entities(self, filter, credentials=None):
        self.calls.append((filter, credentials))
        if self.error is not None:
            raise self.error
        return list(self.entities)


@dataclass
class FakeDatadog:
    fail_for: tuple[str, ...] = ()
    bodies: list[str] = field(default_factory=list)

    async def upsert_catalog_entity(self, body: str):
        name = json.loads(body)["metadata"]["name"]
        if name in self.fail_for:
            raise DatadogAPIError(f"rejected {name}", status_code=400)
        self.bodies.append(body)
        return {"data": [{"name": name}]}


@dataclass
class FakeAuth:
    token: str = "service-token"

    async def get_own_service_credentials(self):
        return self.token


@dataclass
class FakeHistory:
    runs: list[Any] = field(default_factory=list)

    def record_sync_run(self, result):
        self.runs.append(result.get_summary())


@dataclass
class RecordingSleep:
    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def entity_factory():
    return make_entity


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def datadog() -> FakeDatadog:
    return FakeDatadog()


@pytest.fixture
def clients(catalog, datadog) -> SyncClients:
    return SyncClients(datadog=datadog, catalog=catalog, auth=FakeAuth())


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def history() -> FakeHistory:
    return FakeHistory()
