"""Reader for remote station-measurement APIs returning daily readings."""

from __future__ import annotations

import os
from datetime import date, timedelta
from typing import Iterator

from jpweather.common.errors import MalformedSource, SourceUnavailable
from jpweather.common.http import HttpClient, HttpRequestError, InvalidPayloadError
from jpweather.common.models import RawValue, ReaderResult, SourceRecord
from jpweather.common.time_utils import parse_iso_date

SOURCE_KIND = "station_api"
DEFAULT_MAX_DAYS_PER_REQUEST = 3650
DEFAULT_API_KEY_HEADER = "x-api-key"


def date_windows(start: date, end: date, max_days: int) -> Iterator[tuple[date, date]]:
    """Split an inclusive date range into consecutive windows of at most ``max_days``."""
    current = start
    while current <= end:
        window_end = min(end, current + timedelta(days=max_days - 1))
        yield current, window_end
        current = window_end + timedelta(days=1)


def _headers(source_name: str, source_config: dict) -> dict[str, str] | None:
    env_name = source_config.get("api_key_env")
    if not env_name:
        return None
    api_key = os.environ.get(env_name)
    if not api_key:
        raise SourceUnavailable(source_name, f"API key environment variable {env_name} is not set")
    return {source_config.get("api_key_header", DEFAULT_API_KEY_HEADER): api_key}


def _date_range(source_name: str, source_config: dict) -> tuple[date, date]:
    try:
        start = parse_iso_date(source_config["start_date"])
        end_value = source_config.get("end_date")
        end = parse_iso_date(end_value) if end_value else date.today()
    except ValueError as exc:
        raise MalformedSource(source_name, f"invalid date range: {exc}") from exc
    if start > end:
        raise MalformedSource(source_name, f"start_date {start} is after end_date {end}")
    return start, end


def _rows(source_name: str, payload: object, data_key: str) -> list[dict]:
    if not isinstance(payload, dict):
        raise MalformedSource(source_name, "expected a JSON object")
    rows = payload.get(data_key)
    if rows is None:
        return []
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        raise MalformedSource(source_name, f"{data_key!r} must be a list of objects")
    return rows


def _optional_float(value: object) -> float | None:
    return None if value is None else float(value)


def read_station_api(
    source_name: str,
    source_config: dict,
    http_client: HttpClient,
) -> ReaderResult:
    endpoint = source_config["endpoint"]
    fields = dict(source_config["fields"])
    data_key = source_config.get("data_key", "data")
    date_field = source_config.get("date_field", "date")
    extra_params = dict(source_config.get("params") or {})
    max_days = int(source_config.get("max_days_per_request", DEFAULT_MAX_DAYS_PER_REQUEST))
    unit = source_config.get("unit", "C")
    headers = _headers(source_name, source_config)
    start, end = _date_range(source_name, source_config)

    records: list[SourceRecord] = []
    warnings: list[str] = []
    for station in source_config["stations"]:
        station_id = str(station["station_id"])
        entity_key = str(station.get("entity_id") or station_id)
        lat = _optional_float(station.get("lat"))
        lon = _optional_float(station.get("lon"))
        station_rows = 0

        for window_start, window_end in date_windows(start, end, max_days):
            params = {
                **extra_params,
                "station": station_id,
                "start": window_start.isoformat(),
                "end": window_end.isoformat(),
            }
            try:
                payload = http_client.get_json(endpoint, source_type="station_api", params=params, headers=headers)
            except InvalidPayloadError as exc:
                raise MalformedSource(source_name, f"station {station_id}: {exc}") from exc
            except HttpRequestError as exc:
                raise SourceUnavailable(source_name, f"station {station_id}: {exc}") from exc

            for row in _rows(source_name, payload, data_key):
                if row.get(date_field) in (None, ""):
                    raise MalformedSource(source_name, f"station {station_id} row without {date_field!r}")
                try:
                    row_date = parse_iso_date(row[date_field])
                except ValueError as exc:
                    raise MalformedSource(source_name, f"station {station_id}: bad date {row[date_field]!r}") from exc

                records.append(
                    SourceRecord(
                        source_name=source_name,
                        source_kind=SOURCE_KIND,
                        record_index=len(records),
                        entity_key=entity_key,
                        fields={metric: RawValue.of(row.get(raw_field)) for raw_field, metric in fields.items()},
                        unit=unit,
                        date=row_date,
                        lat=lat,
                        lon=lon,
                        raw_payload_ref=f"{endpoint}?station={station_id}",
                    )
                )
                station_rows += 1

        if station_rows == 0:
            warnings.append(f"NO_ROWS:{station_id}")

    return ReaderResult(source_name=source_name, source_kind=SOURCE_KIND, records=records, warnings=warnings)
