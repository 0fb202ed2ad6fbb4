"""Project tagged source records onto the common observation shape."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from jpweather.common.models import PendingObservation, SourceRecord


def normalise_records(
    records: Iterable[SourceRecord],
    metrics: Iterable[str],
) -> tuple[list[PendingObservation], dict]:
    """One pending observation per enabled metric a record carries.

    Absent fields are expected (not every source reports max/min) and are
    counted as missing rather than excluded.
    """
    enabled = list(metrics)
    pending: list[PendingObservation] = []
    missing_by_source: dict[str, int] = defaultdict(int)
    ignored_by_source: dict[str, int] = defaultdict(int)
    rows_in = 0

    for record in records:
        rows_in += 1
        for field_name in record.fields:
            if field_name not in enabled:
                ignored_by_source[record.source_name] += 1

        for metric in enabled:
            raw = record.fields.get(metric)
            if raw is None:
                continue
            if raw.is_missing:
                missing_by_source[record.source_name] += 1
                continue
            pending.append(
                PendingObservation(
                    source_name=record.source_name,
                    record_index=record.record_index,
                    entity_key=record.entity_key,
                    metric=metric,
                    value=raw,
                    unit=record.unit,
                    date=record.date,
                    year=record.year,
                    offset=record.offset,
                    lat=record.lat,
                    lon=record.lon,
                )
            )

    stats = {
        "rows_in": rows_in,
        "rows_out": len(pending),
        "missing_values": dict(sorted(missing_by_source.items())),
        "ignored_fields": dict(sorted(ignored_by_source.items())),
    }
    return pending, stats
