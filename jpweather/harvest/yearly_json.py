"""Reader for season time series documents keyed by year.

The document maps a four digit year to the list of daily values observed
from the season start, e.g. ``{"1876": [22.1, "23.0", null, ...]}``. With
``entity_layout: nested`` the years sit one level below an entity key. A
dotted ``series_key`` selects the series inside a larger document.
"""

from __future__ import annotations

from jpweather.common.errors import MalformedSource
from jpweather.common.http import HttpClient
from jpweather.common.models import RawValue, ReaderResult, SourceRecord
from jpweather.harvest.locator import describe_locator, read_source_json

SOURCE_KIND = "yearly_json"


def _select_series(source_name: str, document: object, series_key: str | None) -> object:
    if not series_key:
        return document
    node = document
    for part in series_key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise MalformedSource(source_name, f"series_key {series_key!r} not found")
        node = node[part]
    return node


def _parse_year(source_name: str, key: object) -> int:
    text = str(key).strip()
    if len(text) != 4 or not text.isdigit():
        raise MalformedSource(source_name, f"expected a four digit year key, got {key!r}")
    return int(text)


def _yearly_series(source_name: str, node: object) -> list[tuple[int, list]]:
    if not isinstance(node, dict) or not node:
        raise MalformedSource(source_name, "expected a non-empty mapping keyed by year")
    series = []
    for key, values in node.items():
        year = _parse_year(source_name, key)
        if not isinstance(values, list):
            raise MalformedSource(source_name, f"values for {year} must be a list")
        series.append((year, values))
    return sorted(series, key=lambda item: item[0])


def _optional_float(value: object) -> float | None:
    return None if value is None else float(value)


def read_yearly_json(
    source_name: str,
    source_config: dict,
    http_client: HttpClient,
) -> ReaderResult:
    document = read_source_json(source_name, source_config, http_client, source_type="jma")
    node = _select_series(source_name, document, source_config.get("series_key"))

    if source_config.get("entity_layout", "flat") == "nested":
        if not isinstance(node, dict) or not node:
            raise MalformedSource(source_name, "expected a mapping keyed by entity")
        per_entity = [(str(entity), _yearly_series(source_name, inner)) for entity, inner in sorted(node.items())]
    else:
        per_entity = [(str(source_config["entity_id"]), _yearly_series(source_name, node))]

    metric = source_config["metric"]
    unit = source_config.get("unit", "C")
    lat = _optional_float(source_config.get("lat"))
    lon = _optional_float(source_config.get("lon"))
    ref = describe_locator(source_config)

    records: list[SourceRecord] = []
    warnings: list[str] = []
    for entity_key, series in per_entity:
        for year, values in series:
            if not values:
                warnings.append(f"EMPTY_SEASON:{entity_key}:{year}")
            for offset, value in enumerate(values):
                records.append(
                    SourceRecord(
                        source_name=source_name,
                        source_kind=SOURCE_KIND,
                        record_index=len(records),
                        entity_key=entity_key,
                        fields={metric: RawValue.of(value)},
                        unit=unit,
                        year=year,
                        offset=offset,
                        lat=lat,
                        lon=lon,
                        raw_payload_ref=ref,
                    )
                )

    return ReaderResult(source_name=source_name, source_kind=SOURCE_KIND, records=records, warnings=warnings)
