from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from entity_sync.core.config import load_sync_configs, parse_sync_configs
from entity_sync.exceptions import ConfigurationError
from entity_sync.models.config import HumanDuration, RateLimit, SyncConfig, TaskSchedule


def test_sync_config_defaults() -> None:
    config = SyncConfig(sync_id="catalog-sync")

    assert config.enabled is False
    assert config.entity_filter == {"kind": "Component"}
    assert config.rate_limit.count == 300
    assert config.rate_limit.interval.total_seconds() == 3600
    assert config.schedule is None


def test_sync_config_accepts_camel_case_keys() -> None:
    config = SyncConfig.model_validate(
        {
            "syncId": "catalog-sync",
            "entityFilter": [{"kind": "Component"}, {"kind": "API"}],
            "rateLimit": {"count": 10, "interval": {"minutes": 1}},
            "schedule": {"frequency": {"minutes": 30}, "initialDelay": {"seconds": 15}},
            "appBaseUrl": "https://backstage.example.com",
            "enabled": True,
        }
    )

    assert config.entity_filter == [{"kind": "Component"}, {"kind": "API"}]
    assert config.rate_limit.interval.total_seconds() == 60
    assert config.schedule.initial_delay.total_seconds() == 15
    assert config.app_base_url == "https://backstage.example.com"


def test_rate_limit_without_interval_has_no_pause() -> None:
    rate = RateLimit(count=2)

    assert rate.interval is None


def test_rate_limit_rejects_zero_count() -> None:
    with pytest.raises(ValidationError):
        RateLimit(count=0)


def test_human_duration_rejects_unknown_units() -> None:
    with pytest.raises(ValidationError):
        HumanDuration.model_validate({"weeks": 1})


@pytest.mark.parametrize(
    "schedule",
    [
        {},
        {"frequency": {"minutes": 5}, "cron": "*/5 * * * *"},
        {"cron": "every five minutes"},
    ],
)
def test_schedule_requires_one_valid_cadence(schedule) -> None:
    with pytest.raises(ValidationError):
        TaskSchedule.model_validate(schedule)


def test_parse_sync_configs_uses_mapping_key_as_id() -> None:
    configs = parse_sync_configs({"catalog-sync": {"syncId": "ignored", "enabled": True}})

    assert configs["catalog-sync"].sync_id == "catalog-sync"
    assert configs["catalog-sync"].enabled is True


def test_parse_sync_configs_wraps_validation_errors() -> None:
    with pytest.raises(ConfigurationError, match="catalog-sync"):
        parse_sync_configs({"catalog-sync": {"rateLimit": {"count": 0}}})


def test_load_sync_configs_reads_nested_layout(tmp_path) -> None:
    path = tmp_path / "syncs.json"
    path.write_text(json.dumps({"datadog": {"sync": {"datadog-entities-from-catalog": {"enabled": True}}}}))

    configs = load_sync_configs(str(path))

    assert list(configs) == ["datadog-entities-from-catalog"]


def test_load_sync_configs_uses_environment(tmp_path, monkeypatch) -> None:
    path = tmp_path / "syncs.json"
    path.write_text(json.dumps({"catalog-sync": {}}))
    monkeypatch.setenv("ENTITY_SYNC_CONFIG_FILE", str(path))

    assert list(load_sync_configs()) == ["catalog-sync"]


def test_load_sync_configs_without_file_is_empty(monkeypatch) -> None:
    monkeypatch.delenv("ENTITY_SYNC_CONFIG_FILE", raising=False)

    assert load_sync_configs() == {}


def test_load_sync_configs_rejects_invalid_json(tmp_path) -> None:
    path = tmp_path / "syncs.json"
    path.write_text("{not json")

    with pytest.raises(ConfigurationError):
        load_sync_configs(str(path))


def test_app_base_url_falls_back_to_environment(tmp_path, monkeypatch) -> None:
    path = tmp_path / "syncs.json"
    path.write_text(json.dumps({"a": {}, "b": {"appBaseUrl": "https://configured.example.com"}}))
    monkeypatch.setenv("BACKSTAGE_APP_BASE_URL", "https://backstage.example.com")

    configs = load_sync_configs(str(path))

    assert configs["a"].app_base_url == "https://backstage.example.com"
    assert configs["b"].app_base_url == "https://configured.example.com"
