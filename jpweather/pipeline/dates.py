"""Season windows and reconstruction of calendar dates from day offsets."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from functools import lru_cache
from typing import Iterable

from jpweather.common.errors import ContractError, OffsetOutOfRange, StageError
from jpweather.common.models import PendingObservation
from jpweather.pipeline.exclusions import ExclusionLedger


@dataclass(frozen=True)
class SeasonWindow:
    start_month: int
    start_day: int
    length_days: int

    @classmethod
    def from_config(cls, season: dict) -> "SeasonWindow":
        return cls(
            start_month=int(season["start_month"]),
            start_day=int(season["start_day"]),
            length_days=int(season["length_days"]),
        )

    def start_for(self, year: int) -> date:
        return date(year, self.start_month, self.start_day)

    def end_for(self, year: int) -> date:
        return self.start_for(year) + timedelta(days=self.length_days - 1)

    def contains(self, day: date) -> bool:
        # A window may run past New Year, so the previous season is checked too.
        for year in (day.year, day.year - 1):
            if self.start_for(year) <= day <= self.end_for(year):
                return True
        return False


def reconstruct_dates(start_date: date, length: int) -> list[date]:
    """Exactly ``length`` consecutive calendar dates beginning at ``start_date``."""
    if length < 0:
        raise ValueError("length must not be negative")
    return [start_date + timedelta(days=offset) for offset in range(length)]


@lru_cache(maxsize=256)
def season_dates(season: SeasonWindow, year: int) -> tuple[date, ...]:
    """Every calendar date of the season starting in ``year``."""
    return tuple(reconstruct_dates(season.start_for(year), season.length_days))


def date_for_offset(season: SeasonWindow, year: int, offset: int) -> date:
    if offset < 0 or offset >= season.length_days:
        raise OffsetOutOfRange(
            f"offset {offset} outside season of {season.length_days} days starting {season.start_for(year)}"
        )
    return season_dates(season, year)[offset]


def resolve_dates(
    pending: Iterable[PendingObservation],
    season: SeasonWindow,
    ledger: ExclusionLedger,
    *,
    strict: bool = False,
) -> list[PendingObservation]:
    resolved: list[PendingObservation] = []
    for obs in pending:
        if obs.date is not None:
            resolved.append(obs)
            continue
        if obs.year is None or obs.offset is None:
            raise ContractError(f"{obs.source_name} record {obs.record_index} has neither a date nor an offset")
        try:
            day = date_for_offset(season, obs.year, obs.offset)
        except OffsetOutOfRange as exc:
            exc.entity_id = obs.entity_key
            exc.metric = obs.metric
            if strict:
                raise StageError(f"{obs.source_name}: {exc}") from exc
            ledger.record(exc, source_name=obs.source_name, stage="dates")
            continue
        resolved.append(replace(obs, date=day, year=None, offset=None))
    return resolved
