"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from datetime import date

from jpweather.common.constants import METRICS, SOURCE_KINDS, UNITS
from jpweather.common.errors import ConfigError

PIPELINE_REQUIRED = {
    "run",
    "season",
    "metrics",
    "source_priority",
    "metadata",
    "resolver",
    "http",
    "sources",
    "output",
}
PIPELINE_KNOWN = PIPELINE_REQUIRED | {"plausibility"}

SOURCE_COMMON_KNOWN = {"kind", "enabled", "unit", "path", "url", "encoding"}
SOURCE_KIND_KNOWN = {
    "yearly_json": {"metric", "entity_id", "entity_layout", "series_key", "lat", "lon"},
    "html_table": {
        "table_selector",
        "table_index",
        "skip_rows",
        "min_cells",
        "entity_id",
        "entity_column",
        "date_column",
        "date_format",
        "year",
        "month",
        "day_column",
        "columns",
        "lat",
        "lon",
    },
    "station_api": {
        "endpoint",
        "stations",
        "start_date",
        "end_date",
        "fields",
        "params",
        "data_key",
        "date_field",
        "max_days_per_request",
        "api_key_env",
        "api_key_header",
    },
}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_metrics(values, enabled: list[str], ctx: str) -> None:
    bad = sorted(set(values) - set(enabled))
    if bad:
        raise ConfigError(f"{ctx} references metrics not enabled for this run: {', '.join(bad)}")


def _validate_season(season: dict) -> None:
    _assert_required_keys(season, {"start_month", "start_day", "length_days"}, "season")
    try:
        # Non-leap reference year: the start must exist in every year.
        date(2001, int(season["start_month"]), int(season["start_day"]))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid season start: {exc}") from exc
    if int(season["length_days"]) <= 0:
        raise ConfigError("season.length_days must be positive")
    if int(season["length_days"]) > 366:
        raise ConfigError("season.length_days must not exceed one year")


def _validate_locator(name: str, source: dict) -> None:
    has_path = bool(source.get("path"))
    has_url = bool(source.get("url"))
    if has_path == has_url:
        raise ConfigError(f"sources.{name} needs exactly one of path or url")


def _validate_yearly_json(name: str, source: dict, metrics: list[str]) -> None:
    _validate_locator(name, source)
    _assert_required_keys(source, {"metric"}, f"sources.{name}")
    _assert_metrics([source["metric"]], metrics, f"sources.{name}")
    layout = source.get("entity_layout", "flat")
    if layout not in {"flat", "nested"}:
        raise ConfigError(f"sources.{name}.entity_layout must be flat or nested")
    if layout == "flat" and not source.get("entity_id"):
        raise ConfigError(f"sources.{name}.entity_id is required for a flat layout")


def _validate_html_table(name: str, source: dict, metrics: list[str]) -> None:
    _validate_locator(name, source)
    _assert_required_keys(source, {"columns"}, f"sources.{name}")
    columns = source["columns"]
    if not isinstance(columns, dict) or not columns:
        raise ConfigError(f"sources.{name}.columns must be a non-empty mapping")
    _assert_metrics(columns, metrics, f"sources.{name}.columns")
    if not source.get("entity_id") and source.get("entity_column") is None:
        raise ConfigError(f"sources.{name} needs entity_id or entity_column")
    if source.get("date_column") is not None:
        if not source.get("date_format"):
            raise ConfigError(f"sources.{name}.date_format is required with date_column")
    else:
        _assert_required_keys(source, {"year", "month", "day_column"}, f"sources.{name}")


def _validate_station_api(name: str, source: dict, metrics: list[str]) -> None:
    _assert_required_keys(source, {"endpoint", "stations", "start_date", "fields"}, f"sources.{name}")
    stations = source["stations"]
    if not isinstance(stations, list) or not stations:
        raise ConfigError(f"sources.{name}.stations must be a non-empty list")
    for idx, station in enumerate(stations):
        _assert_required_keys(station, {"station_id"}, f"sources.{name}.stations[{idx}]")
    fields = source["fields"]
    if not isinstance(fields, dict) or not fields:
        raise ConfigError(f"sources.{name}.fields must be a non-empty mapping")
    _assert_metrics(fields.values(), metrics, f"sources.{name}.fields")
    if int(source.get("max_days_per_request", 1)) <= 0:
        raise ConfigError(f"sources.{name}.max_days_per_request must be positive")


_KIND_VALIDATORS = {
    "yearly_json": _validate_yearly_json,
    "html_table": _validate_html_table,
    "station_api": _validate_station_api,
}


def validate_source_config(name: str, source: dict, metrics: list[str], *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(source, {"kind", "enabled"}, f"sources.{name}")
    kind = source["kind"]
    if kind not in SOURCE_KINDS:
        raise ConfigError(f"sources.{name}.kind is not supported: {kind}")
    _assert_no_unknown_keys(
        source,
        SOURCE_COMMON_KNOWN | SOURCE_KIND_KNOWN[kind],
        f"sources.{name}",
        allow_unknown,
    )
    if source.get("unit", "C") not in UNITS:
        raise ConfigError(f"sources.{name}.unit must be one of {', '.join(UNITS)}")
    _KIND_VALIDATORS[kind](name, source, metrics)
    return source


def validate_pipeline_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, PIPELINE_REQUIRED, "pipeline config")
    _assert_no_unknown_keys(cfg, PIPELINE_KNOWN, "pipeline config", allow_unknown)

    _validate_season(cfg["season"])

    metrics = cfg["metrics"]
    if not isinstance(metrics, list) or not metrics:
        raise ConfigError("metrics must be a non-empty list")
    unknown_metrics = sorted(set(metrics) - set(METRICS))
    if unknown_metrics:
        raise ConfigError(f"Unknown metrics: {', '.join(unknown_metrics)}")
    if len(metrics) != len(set(metrics)):
        raise ConfigError("metrics must not repeat")

    for metric, bounds in (cfg.get("plausibility") or {}).items():
        _assert_metrics([metric], metrics, "plausibility")
        _assert_required_keys(bounds, {"min", "max"}, f"plausibility.{metric}")
        if float(bounds["min"]) >= float(bounds["max"]):
            raise ConfigError(f"plausibility.{metric}.min must be below max")

    _assert_required_keys(cfg["metadata"], {"path"}, "metadata")
    _assert_required_keys(cfg["output"], {"filename"}, "output")
    _assert_required_keys(cfg["resolver"], set(), "resolver")
    _assert_required_keys(cfg["http"], set(), "http")

    sources = cfg["sources"]
    if not isinstance(sources, dict) or not sources:
        raise ConfigError("sources must be a non-empty mapping")
    for name, source in sources.items():
        validate_source_config(name, source, metrics, allow_unknown=allow_unknown)

    priority = cfg["source_priority"]
    if not isinstance(priority, list):
        raise ConfigError("source_priority must be a list")
    unknown_sources = sorted(set(priority) - set(sources))
    if unknown_sources:
        raise ConfigError(f"source_priority names unknown sources: {', '.join(unknown_sources)}")

    return cfg
