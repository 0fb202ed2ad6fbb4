"""Reader orchestration with fail-soft semantics."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from jpweather.common.config_loader import ConfigBundle
from jpweather.common.errors import SourceError, StageError
from jpweather.common.http import HttpClient
from jpweather.common.logging import get_logger, log_event
from jpweather.common.models import ReaderResult, SourceRecord
from jpweather.harvest.html_table import read_html_table
from jpweather.harvest.station_api import read_station_api
from jpweather.harvest.yearly_json import read_yearly_json

READERS = {
    "yearly_json": read_yearly_json,
    "html_table": read_html_table,
    "station_api": read_station_api,
}
MAX_READER_THREADS = 8


@dataclass(frozen=True)
class HarvestResult:
    results: dict[str, ReaderResult]
    failed_sources: dict[str, str]
    failure_details: dict[str, str] = field(default_factory=dict)
    records: list[SourceRecord] = field(default_factory=list)


def merge_records(results: dict[str, ReaderResult], source_priority: dict[str, int]) -> list[SourceRecord]:
    """Concatenate reader output in priority order, independent of completion order."""
    ordered = sorted(
        results.values(),
        key=lambda result: (source_priority.get(result.source_name, 9999), result.source_name),
    )
    return [record for result in ordered for record in result.records]


def _call_reader(name: str, source_config: dict, client: HttpClient, run_date: str | None) -> ReaderResult:
    kind = source_config["kind"]
    if kind == "station_api" and not source_config.get("end_date"):
        source_config = {**source_config, "end_date": run_date}
    return READERS[kind](name, source_config, client)


def run_readers(
    bundle: ConfigBundle,
    *,
    run_date: str | None = None,
    run_id: str | None = None,
    http_client: HttpClient | None = None,
    logger: logging.Logger | None = None,
) -> HarvestResult:
    logger = get_logger(logger)
    enabled = bundle.enabled_sources()
    if not enabled:
        raise StageError("No sources are enabled")

    results: dict[str, ReaderResult] = {}
    failed: dict[str, str] = {}
    details: dict[str, str] = {}

    owns_client = http_client is None
    client = http_client or HttpClient(timeout=bundle.timeout(), retry=bundle.retry())
    try:
        with ThreadPoolExecutor(max_workers=min(MAX_READER_THREADS, len(enabled))) as pool:
            started = {name: time.monotonic() for name in enabled}
            futures = {
                pool.submit(_call_reader, name, source_config, client, run_date): name
                for name, source_config in enabled.items()
            }
            for future in as_completed(futures):
                name = futures[future]
                duration_ms = int((time.monotonic() - started[name]) * 1000)
                try:
                    result = future.result()
                except SourceError as exc:
                    failed[name] = exc.error_code
                    details[name] = exc.detail
                except Exception as exc:
                    failed[name] = "UNEXPECTED_ERROR"
                    details[name] = f"{type(exc).__name__}: {exc}"
                else:
                    results[name] = result
                    log_event(
                        logger,
                        f"source {name} read",
                        run_id=run_id,
                        stage="read",
                        source=name,
                        event="SOURCE_OK",
                        status="ok",
                        duration_ms=duration_ms,
                        rows_out=result.row_count,
                    )
                    continue

                log_event(
                    logger,
                    f"source {name} failed: {details[name]}",
                    run_id=run_id,
                    stage="read",
                    source=name,
                    event="SOURCE_FAIL",
                    status="error",
                    duration_ms=duration_ms,
                    error_code=failed[name],
                )
    finally:
        if owns_client:
            client.close()

    if len(failed) >= len(enabled):
        raise StageError(f"All enabled sources failed: {', '.join(sorted(failed))}")

    return HarvestResult(
        results=results,
        failed_sources=dict(sorted(failed.items())),
        failure_details=dict(sorted(details.items())),
        records=merge_records(results, bundle.source_priority()),
    )
