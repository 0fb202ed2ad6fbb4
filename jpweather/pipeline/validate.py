"""Output table contract checks and quality statistics."""

from __future__ import annotations

import math
from collections import Counter
from datetime import date

from jpweather.common.errors import ContractError
from jpweather.common.models import Observation


def validate_output_table(rows: list[Observation], metrics: list[str]) -> dict:
    errors: list[str] = []

    duplicates = sum(count - 1 for count in Counter(row.key for row in rows).values() if count > 1)
    if duplicates:
        errors.append(f"DUPLICATE_KEYS:{duplicates}")

    if any(not isinstance(row.date, date) for row in rows):
        errors.append("UNRESOLVED_DATES")

    unknown_metrics = sorted({row.metric for row in rows} - set(metrics))
    if unknown_metrics:
        errors.append(f"UNKNOWN_METRICS:{','.join(unknown_metrics)}")

    if any(not isinstance(row.value, float) or not math.isfinite(row.value) for row in rows):
        errors.append("NON_FINITE_VALUES")

    if any(not row.entity_id for row in rows):
        errors.append("EMPTY_ENTITY_IDS")

    if errors:
        raise ContractError(";".join(errors))

    dates = [row.date for row in rows]
    return {
        "rows": len(rows),
        "entities": len({row.entity_id for row in rows}),
        "rows_by_metric": dict(sorted(Counter(row.metric for row in rows).items())),
        "rows_by_source": dict(sorted(Counter(row.source_name for row in rows).items())),
        "first_date": min(dates).isoformat() if dates else None,
        "last_date": max(dates).isoformat() if dates else None,
    }
