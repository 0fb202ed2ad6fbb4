"""End-to-end assembly of the normalised observation table."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from jpweather.common.config_loader import ConfigBundle
from jpweather.common.http import HttpClient
from jpweather.common.logging import get_logger, stage_timer
from jpweather.common.models import Observation, SourceRecord, StationMeta
from jpweather.harvest.runner import run_readers
from jpweather.pipeline.dates import SeasonWindow, resolve_dates
from jpweather.pipeline.exclusions import ExclusionLedger
from jpweather.pipeline.export import sort_output_rows
from jpweather.pipeline.normalise import normalise_records
from jpweather.pipeline.resolve import StationResolver, load_station_metadata, resolve_observations
from jpweather.pipeline.units import canonicalise, derive_humidity_index
from jpweather.pipeline.validate import validate_output_table


@dataclass(frozen=True)
class PipelineResult:
    rows: list[Observation]
    ledger: ExclusionLedger
    stats: dict
    quality: dict
    failed_sources: dict[str, str] = field(default_factory=dict)
    failure_details: dict[str, str] = field(default_factory=dict)
    source_rows: dict[str, int] = field(default_factory=dict)
    source_warnings: dict[str, list[str]] = field(default_factory=dict)

    @property
    def status(self) -> str:
        if self.ledger.has_hard_errors:
            return "error"
        if self.failed_sources or self.ledger.total:
            return "partial"
        return "success"


def build_output_table(
    records: Iterable[SourceRecord],
    *,
    metrics: list[str],
    season: SeasonWindow,
    bounds: dict[str, dict[str, float]],
    resolver: StationResolver,
    ledger: ExclusionLedger,
    strict: bool = False,
    logger: logging.Logger | None = None,
    run_id: str | None = None,
) -> tuple[list[Observation], dict]:
    """Run every stage after the readers. ``records`` must be in merge order."""
    logger = get_logger(logger)
    stats: dict = {}

    with stage_timer(logger, "normalise", run_id=run_id) as counts:
        pending, stats["normalise"] = normalise_records(records, metrics)
        counts.update(rows_in=stats["normalise"]["rows_in"], rows_out=len(pending))

    with stage_timer(logger, "dates", run_id=run_id) as counts:
        dated = resolve_dates(pending, season, ledger, strict=strict)
        counts.update(rows_in=len(pending), rows_out=len(dated))
    stats["dates"] = dict(counts)
    # Explicitly dated rows are kept even when they fall outside the season.
    stats["dates"]["outside_season"] = sum(1 for obs in dated if not season.contains(obs.date))

    with stage_timer(logger, "coerce", run_id=run_id) as counts:
        canonical = canonicalise(dated, bounds, ledger)
        counts.update(rows_in=len(dated), rows_out=len(canonical))
    stats["coerce"] = dict(counts)

    with stage_timer(logger, "resolve", run_id=run_id) as counts:
        resolved, stats["resolve"] = resolve_observations(canonical, resolver, ledger)
        counts.update(rows_in=len(canonical), rows_out=len(resolved))

    with stage_timer(logger, "derive", run_id=run_id) as counts:
        if "humidity_index" in metrics:
            combined = derive_humidity_index(resolved, bounds, ledger)
        else:
            combined = resolved
        counts.update(rows_in=len(resolved), rows_out=len(combined))
    stats["derive"] = dict(counts)

    return sort_output_rows(combined), stats


def run_pipeline(
    bundle: ConfigBundle,
    *,
    stations: list[StationMeta] | None = None,
    run_date: str | None = None,
    run_id: str | None = None,
    http_client: HttpClient | None = None,
    logger: logging.Logger | None = None,
    strict: bool = False,
) -> PipelineResult:
    logger = get_logger(logger)
    if stations is None:
        stations = load_station_metadata(bundle.metadata_path())
    resolver = StationResolver(stations, max_distance_km=bundle.max_distance_km())

    harvest = run_readers(bundle, run_date=run_date, run_id=run_id, http_client=http_client, logger=logger)

    ledger = ExclusionLedger()
    rows, stats = build_output_table(
        harvest.records,
        metrics=bundle.metrics,
        season=SeasonWindow.from_config(bundle.pipeline["season"]),
        bounds=bundle.plausibility(),
        resolver=resolver,
        ledger=ledger,
        strict=strict,
        logger=logger,
        run_id=run_id,
    )

    with stage_timer(logger, "validate", run_id=run_id) as counts:
        quality = validate_output_table(rows, bundle.metrics)
        counts.update(rows_in=len(rows), rows_out=len(rows))

    return PipelineResult(
        rows=rows,
        ledger=ledger,
        stats=stats,
        quality=quality,
        failed_sources=harvest.failed_sources,
        failure_details=harvest.failure_details,
        source_rows={name: result.row_count for name, result in sorted(harvest.results.items())},
        source_warnings={name: list(result.warnings) for name, result in sorted(harvest.results.items())},
    )
