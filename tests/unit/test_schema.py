import copy

import pytest

from jpweather.common.errors import ConfigError
from jpweather.common.schema import validate_pipeline_config, validate_source_config

METRICS = ["average_temperature", "max_temperature", "min_temperature"]

BASE_PIPELINE = {
    "run": {"name": "test"},
    "season": {"start_month": 6, "start_day": 1, "length_days": 122},
    "metrics": list(METRICS),
    "source_priority": ["summer"],
    "metadata": {"path": "config/stations.csv"},
    "resolver": {"max_distance_km": 50},
    "http": {},
    "sources": {
        "summer": {
            "kind": "yearly_json",
            "enabled": True,
            "path": "summer.json",
            "entity_id": "47662",
            "metric": "average_temperature",
        }
    },
    "output": {"filename": "observations.csv"},
}


def _pipeline(**changes) -> dict:
    cfg = copy.deepcopy(BASE_PIPELINE)
    cfg.update(changes)
    return cfg


def test_validate_pipeline_config_accepts_valid_shape():
    validated = validate_pipeline_config(_pipeline())
    assert validated["sources"]["summer"]["kind"] == "yearly_json"


def test_validate_pipeline_config_rejects_unknown_key_by_default():
    bad = _pipeline(unexpected=True)
    with pytest.raises(ConfigError):
        validate_pipeline_config(bad)


def test_validate_pipeline_config_allows_unknown_when_enabled():
    validate_pipeline_config(_pipeline(extra=1), allow_unknown=True)


@pytest.mark.parametrize(
    "season",
    [
        {"start_month": 2, "start_day": 29, "length_days": 10},
        {"start_month": 13, "start_day": 1, "length_days": 10},
        {"start_month": 6, "start_day": 1, "length_days": 0},
        {"start_month": 6, "start_day": 1, "length_days": 400},
        {"start_month": 6, "start_day": 1},
    ],
)
def test_validate_pipeline_config_rejects_bad_season(season):
    with pytest.raises(ConfigError):
        validate_pipeline_config(_pipeline(season=season))


@pytest.mark.parametrize("metrics", [[], ["rainfall"], ["max_temperature", "max_temperature"]])
def test_validate_pipeline_config_rejects_bad_metrics(metrics):
    with pytest.raises(ConfigError):
        validate_pipeline_config(_pipeline(metrics=metrics))


def test_validate_pipeline_config_rejects_unknown_priority_source():
    with pytest.raises(ConfigError):
        validate_pipeline_config(_pipeline(source_priority=["summer", "missing"]))


def test_validate_pipeline_config_rejects_inverted_plausibility():
    with pytest.raises(ConfigError):
        validate_pipeline_config(_pipeline(plausibility={"max_temperature": {"min": 50, "max": -50}}))


def test_validate_source_config_rejects_unknown_kind_and_unit():
    with pytest.raises(ConfigError):
        validate_source_config("x", {"kind": "csv_dump", "enabled": True}, METRICS)
    with pytest.raises(ConfigError):
        validate_source_config(
            "x",
            {"kind": "yearly_json", "enabled": True, "path": "a.json", "entity_id": "1", "metric": "max_temperature", "unit": "R"},
            METRICS,
        )


def test_validate_source_config_requires_single_locator():
    source = {
        "kind": "yearly_json",
        "enabled": True,
        "path": "a.json",
        "url": "https://example.test/a.json",
        "entity_id": "1",
        "metric": "max_temperature",
    }
    with pytest.raises(ConfigError):
        validate_source_config("x", source, METRICS)


def test_validate_source_config_rejects_metric_not_enabled():
    source = {
        "kind": "html_table",
        "enabled": True,
        "path": "a.html",
        "entity_id": "47662",
        "year": 2023,
        "month": 8,
        "day_column": 0,
        "columns": {"dew_point": 3},
    }
    with pytest.raises(ConfigError):
        validate_source_config("x", source, METRICS)


def test_validate_station_api_needs_stations():
    source = {
        "kind": "station_api",
        "enabled": True,
        "endpoint": "https://example.test/daily",
        "start_date": "2023-06-01",
        "fields": {"tmax": "max_temperature"},
        "stations": [],
    }
    with pytest.raises(ConfigError):
        validate_source_config("x", source, METRICS)

    source["stations"] = [{"station_id": "47662"}]
    assert validate_source_config("x", source, METRICS) is source
