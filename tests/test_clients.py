from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
import requests

from entity_sync.connectors.backstage import BackstageConnector
from entity_sync.connectors.datadog import DatadogConnector
from entity_sync.exceptions import BackstageAPIError, DatadogAPIError
from entity_sync.integrations.backstage.client import (
    BackstageCatalogClient,
    build_filter_params,
    encode_filter_clause,
)
from entity_sync.integrations.datadog.client import DatadogCatalogClient
from entity_sync.models.config import CATALOG_FILTER_EXISTS


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str | None = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)
        self.content = self.text.encode() if self.text else b""

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class RecordingSession:
    def __init__(self, response: FakeResponse) -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []

    def __call__(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.response


def test_encode_filter_clause_handles_lists_and_exists() -> None:
    clause = {"kind": ["component", "api"], "spec.owner": CATALOG_FILTER_EXISTS, "spec.type": "service"}

    assert encode_filter_clause(clause) == "kind=component,kind=api,spec.owner,spec.type=service"


def test_build_filter_params_one_param_per_alternative() -> None:
    assert build_filter_params([{"kind": "Component"}, {"kind": "API"}]) == [
        ("filter", "kind=Component"),
        ("filter", "kind=API"),
    ]
    assert build_filter_params([{"kind": "Component"}, {}]) == []


def test_backstage_get_entities_sends_filter_and_token(monkeypatch) -> None:
    client = BackstageCatalogClient("https://backstage.example.com/")
    session = RecordingSession(FakeResponse(payload=[{"kind": "Component", "metadata": {"name": "billing"}}]))
    monkeypatch.setattr(client.session, "request", session)

    entities = client.get_entities([{"kind": "Component"}], token="secret")

    assert entities == [{"kind": "Component", "metadata": {"name": "billing"}}]
    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://backstage.example.com/api/catalog/entities"
    assert call["params"] == [("filter", "kind=Component")]
    assert call["headers"] == {"Authorization": "Bearer secret"}


def test_backstage_accepts_paginated_item_envelope(monkeypatch) -> None:
    client = BackstageCatalogClient("https://backstage.example.com")
    monkeypatch.setattr(client.session, "request", RecordingSession(FakeResponse(payload={"items": [{"kind": "API"}]})))

    assert client.get_entities([{"kind": "API"}]) == [{"kind": "API"}]


def test_backstage_http_error_raises_with_status(monkeypatch) -> None:
    client = BackstageCatalogClient("https://backstage.example.com")
    monkeypatch.setattr(client.session, "request", RecordingSession(FakeResponse(status_code=401, payload={})))

    with pytest.raises(BackstageAPIError) as exc_info:
        client.get_entities([{"kind": "Component"}])

    assert exc_info.value.status_code == 401


def test_backstage_invalid_json_raises(monkeypatch) -> None:
    client = BackstageCatalogClient("https://backstage.example.com")
    monkeypatch.setattr(client.session, "request", RecordingSession(FakeResponse(text="<html>")))

    with pytest.raises(BackstageAPIError, match="invalid JSON"):
        client.get_entities([{"kind": "Component"}])


def test_datadog_upsert_posts_definition(monkeypatch) -> None:
    client = DatadogCatalogClient(api_key="api", app_key="app", site="datadoghq.eu")
    session = RecordingSession(FakeResponse(payload={"data": [{"id": "1"}]}))
    monkeypatch.setattr(client.session, "request", session)

    result = client.upsert_catalog_entity({"metadata": {"name": "billing"}})

    assert result == {"data": [{"id": "1"}]}
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://api.datadoghq.eu/api/v2/catalog/entity"
    assert json.loads(call["data"]) == {"metadata": {"name": "billing"}}
    assert client.session.headers["DD-API-KEY"] == "api"
    assert client.session.headers["DD-APPLICATION-KEY"] == "app"


def test_datadog_error_response_raises(monkeypatch) -> None:
    client = DatadogCatalogClient(api_key="api", app_key="app")
    monkeypatch.setattr(client.session, "request", RecordingSession(FakeResponse(status_code=400, text="bad entity")))

    with pytest.raises(DatadogAPIError) as exc_info:
        client.upsert_catalog_entity("{}")

    assert exc_info.value.status_code == 400
    assert "bad entity" in str(exc_info.value)


def test_datadog_validate(monkeypatch) -> None:
    client = DatadogCatalogClient(api_key="api", app_key="app")
    monkeypatch.setattr(client.session, "request", RecordingSession(FakeResponse(payload={"valid": True})))

    assert client.validate() is True


def test_datadog_connector_requires_keys() -> None:
    with pytest.raises(ValueError, match="app_key"):
        DatadogConnector(credentials={"api_key": "api"})


def test_connectors_run_clients_off_the_event_loop() -> None:
    class FakeDatadogClient:
        def upsert_catalog_entity(self, body):
            return {"echo": json.loads(body)}

    class FakeBackstageClient:
        def get_entities(self, filter, token):
            return [{"filter": filter, "token": token}]

    datadog = DatadogConnector(client=FakeDatadogClient())
    backstage = BackstageConnector(client=FakeBackstageClient())

    async def scenario():
        written = await datadog.upsert_catalog_entity('{"kind": "Component"}')
        read = await backstage.get_entities([{"kind": "Component"}], credentials="token")
        return written, read

    written, read = asyncio.run(scenario())

    assert written == {"echo": {"kind": "Component"}}
    assert read == [{"filter": [{"kind": "Component"}], "token": "token"}]
