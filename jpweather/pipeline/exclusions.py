"""Counting ledger for records excluded from the output table."""

from __future__ import annotations

from collections import defaultdict

from jpweather.common.constants import MAX_EXCLUSION_SAMPLES
from jpweather.common.errors import OffsetOutOfRange, RecordError

# Codes that mark the run as failed rather than partial.
HARD_ERROR_CODES = frozenset({OffsetOutOfRange.error_code})


class ExclusionLedger:
    def __init__(self, max_samples: int = MAX_EXCLUSION_SAMPLES) -> None:
        self.max_samples = max_samples
        self.by_code: dict[str, int] = defaultdict(int)
        self.by_source: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.samples: list[dict] = []

    def record(self, error: RecordError, *, source_name: str, stage: str) -> None:
        code = error.error_code
        self.by_code[code] += 1
        self.by_source[source_name][code] += 1
        if len(self.samples) < self.max_samples:
            self.samples.append(
                {
                    "stage": stage,
                    "source_name": source_name,
                    "error_code": code,
                    "entity_id": error.entity_id,
                    "metric": error.metric,
                    "detail": error.detail,
                }
            )

    def count(self, code: str) -> int:
        return self.by_code.get(code, 0)

    @property
    def total(self) -> int:
        return sum(self.by_code.values())

    @property
    def has_hard_errors(self) -> bool:
        return any(self.by_code.get(code) for code in HARD_ERROR_CODES)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "by_code": dict(sorted(self.by_code.items())),
            "by_source": {
                source: dict(sorted(codes.items())) for source, codes in sorted(self.by_source.items())
            },
            "samples": list(self.samples),
        }
