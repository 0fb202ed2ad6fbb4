"""Normalised observation table export."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from jpweather.common.fs import write_csv
from jpweather.common.models import Observation

OUTPUT_HEADERS = [
    "entity_id",
    "display_name",
    "parent_region",
    "date",
    "metric",
    "value",
    "source_name",
    "match_method",
    "match_distance_km",
]
VALUE_DECIMALS = 3


def sort_output_rows(rows: Iterable[Observation]) -> list[Observation]:
    return sorted(rows, key=lambda row: row.key)


def _serialize_row(row: Observation) -> dict:
    out = {}
    for key, value in row.to_dict().items():
        if value is None:
            out[key] = ""
        elif isinstance(value, float):
            # Adding 0.0 turns a rounded -0.0 into 0.0.
            out[key] = f"{round(value, VALUE_DECIMALS) + 0.0:.{VALUE_DECIMALS}f}"
        elif key == "date":
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out


def write_output_csv(out_path: Path, rows: Iterable[Observation]) -> Path:
    serialized_rows = [_serialize_row(row) for row in sort_output_rows(rows)]
    write_csv(out_path, OUTPUT_HEADERS, serialized_rows)
    return out_path
