"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any

VALUE_NUMBER = "number"
VALUE_TEXT = "text"
VALUE_MISSING = "missing"


@dataclass(frozen=True)
class RawValue:
    """A source value as it arrived: numeric, textual, or absent."""

    kind: str
    raw: Any = None

    @classmethod
    def of(cls, value: Any) -> "RawValue":
        if value is None:
            return cls(VALUE_MISSING)
        if isinstance(value, bool):
            return cls(VALUE_TEXT, str(value))
        if isinstance(value, (int, float)):
            return cls(VALUE_NUMBER, value)
        text = str(value)
        if not text.strip():
            return cls(VALUE_MISSING, text)
        return cls(VALUE_TEXT, text)

    @property
    def is_missing(self) -> bool:
        return self.kind == VALUE_MISSING


@dataclass(frozen=True)
class SourceRecord:
    source_name: str
    source_kind: str
    record_index: int
    entity_key: str | None
    fields: dict[str, RawValue]
    unit: str = "C"
    date: date | None = None
    year: int | None = None
    offset: int | None = None
    lat: float | None = None
    lon: float | None = None
    raw_payload_ref: str | None = None


@dataclass(frozen=True)
class ReaderResult:
    source_name: str
    source_kind: str
    records: list[SourceRecord]
    warnings: list[str] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class PendingObservation:
    """Normalised shape whose date may still be a (year, offset) placeholder."""

    source_name: str
    record_index: int
    entity_key: str | None
    metric: str
    value: RawValue
    unit: str
    date: date | None = None
    year: int | None = None
    offset: int | None = None
    lat: float | None = None
    lon: float | None = None


@dataclass(frozen=True)
class CanonicalObservation:
    source_name: str
    record_index: int
    entity_key: str | None
    date: date
    metric: str
    value: float
    lat: float | None = None
    lon: float | None = None


@dataclass(frozen=True)
class StationMeta:
    entity_id: str
    display_name: str
    parent_region: str
    lat: float | None
    lon: float | None
    aliases: tuple[str, ...] = ()

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass(frozen=True)
class Observation:
    entity_id: str
    date: date
    metric: str
    value: float
    display_name: str
    parent_region: str
    source_name: str
    match_method: str
    match_distance_km: float | None = None

    @property
    def key(self) -> tuple[str, date, str]:
        return self.entity_id, self.date, self.metric

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
