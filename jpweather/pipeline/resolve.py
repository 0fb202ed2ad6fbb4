"""Station/region metadata join and de-duplication.

Matching order: exact ``entity_id``, then a declared alias, then the
nearest station by geodesic distance when the observation carries
coordinates. Equidistant candidates are broken by the lexicographically
smallest ``entity_id``. When several raw identities land on the same
``(entity_id, date, metric)`` the first observation in merge order wins.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from pyproj import Geod

from jpweather.common.errors import ConfigError, UnresolvedEntity
from jpweather.common.fs import read_csv_dicts
from jpweather.common.models import CanonicalObservation, Observation, StationMeta
from jpweather.pipeline.exclusions import ExclusionLedger

METHOD_KEY = "key"
METHOD_ALIAS = "alias"
METHOD_NEAREST = "nearest"
METADATA_COLUMNS = ("entity_id", "display_name", "parent_region", "lat", "lon")
TIE_TOLERANCE_KM = 1e-9

_GEOD = Geod(ellps="WGS84")


def geodesic_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    _fwd, _back, metres = _GEOD.inv(lon1, lat1, lon2, lat2)
    return metres / 1000.0


def _optional_float(value: str | None, ctx: str) -> float | None:
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid coordinate in {ctx}: {value!r}") from exc


def load_station_metadata(path: Path) -> list[StationMeta]:
    if not path.exists():
        raise ConfigError(f"Missing station metadata: {path}")
    rows = read_csv_dicts(path)
    if rows:
        missing = set(METADATA_COLUMNS) - set(rows[0])
        if missing:
            raise ConfigError(f"Station metadata missing columns: {', '.join(sorted(missing))}")

    stations = []
    for idx, row in enumerate(rows):
        entity_id = (row.get("entity_id") or "").strip()
        if not entity_id:
            raise ConfigError(f"Station metadata row {idx + 2} has no entity_id")
        aliases = tuple(alias.strip() for alias in (row.get("aliases") or "").split(";") if alias.strip())
        stations.append(
            StationMeta(
                entity_id=entity_id,
                display_name=(row.get("display_name") or entity_id).strip(),
                parent_region=(row.get("parent_region") or "").strip(),
                lat=_optional_float(row.get("lat"), f"row {idx + 2}"),
                lon=_optional_float(row.get("lon"), f"row {idx + 2}"),
                aliases=aliases,
            )
        )
    return stations


@dataclass(frozen=True)
class Resolution:
    meta: StationMeta
    method: str
    distance_km: float | None = None


class StationResolver:
    def __init__(self, stations: Iterable[StationMeta], *, max_distance_km: float | None = None) -> None:
        self.max_distance_km = max_distance_km
        self.by_id: dict[str, StationMeta] = {}
        self.by_alias: dict[str, StationMeta] = {}

        for station in stations:
            if station.entity_id in self.by_id:
                raise ConfigError(f"Duplicate station entity_id: {station.entity_id}")
            self.by_id[station.entity_id] = station

        for station in self.by_id.values():
            for alias in station.aliases:
                if alias in self.by_id and alias != station.entity_id:
                    raise ConfigError(f"Alias {alias} of {station.entity_id} shadows another entity_id")
                claimed = self.by_alias.get(alias)
                if claimed is not None and claimed.entity_id != station.entity_id:
                    raise ConfigError(f"Alias {alias} claimed by {claimed.entity_id} and {station.entity_id}")
                self.by_alias[alias] = station

        self._located = sorted(
            (station for station in self.by_id.values() if station.has_coordinates),
            key=lambda station: station.entity_id,
        )
        self._nearest_memo: dict[tuple[float, float], tuple[StationMeta, float] | None] = {}

    def nearest(self, lat: float, lon: float) -> tuple[StationMeta, float] | None:
        memo_key = (lat, lon)
        if memo_key in self._nearest_memo:
            return self._nearest_memo[memo_key]

        best: tuple[StationMeta, float] | None = None
        # _located is sorted by entity_id, so keeping the earlier one on a tie
        # gives the lexicographic tie-break.
        for station in self._located:
            distance = geodesic_distance_km(lat, lon, station.lat, station.lon)
            if best is None or distance < best[1] - TIE_TOLERANCE_KM:
                best = (station, distance)

        self._nearest_memo[memo_key] = best
        return best

    def resolve(self, entity_key: str | None, lat: float | None = None, lon: float | None = None) -> Resolution:
        if entity_key is not None:
            station = self.by_id.get(entity_key)
            if station is not None:
                return Resolution(station, METHOD_KEY)
            station = self.by_alias.get(entity_key)
            if station is not None:
                return Resolution(station, METHOD_ALIAS)

        if lat is None or lon is None:
            raise UnresolvedEntity(f"no station metadata for {entity_key!r}", entity_id=entity_key)

        found = self.nearest(lat, lon)
        if found is None:
            raise UnresolvedEntity(f"no located stations to match {entity_key!r}", entity_id=entity_key)
        station, distance = found
        if self.max_distance_km is not None and distance > self.max_distance_km:
            raise UnresolvedEntity(
                f"nearest station to {entity_key!r} is {station.entity_id} at {distance:.1f} km",
                entity_id=entity_key,
            )
        return Resolution(station, METHOD_NEAREST, distance)


def resolve_observations(
    observations: Iterable[CanonicalObservation],
    resolver: StationResolver,
    ledger: ExclusionLedger,
) -> tuple[list[Observation], dict]:
    """Attach metadata and keep the first resolved observation per key.

    ``observations`` must already be in merge order.
    """
    resolved: list[Observation] = []
    seen: set[tuple] = set()
    duplicates_by_source: dict[str, int] = defaultdict(int)
    method_counts: dict[str, int] = defaultdict(int)
    rows_in = 0

    for obs in observations:
        rows_in += 1
        try:
            resolution = resolver.resolve(obs.entity_key, obs.lat, obs.lon)
        except UnresolvedEntity as exc:
            exc.metric = obs.metric
            ledger.record(exc, source_name=obs.source_name, stage="resolve")
            continue

        key = (resolution.meta.entity_id, obs.date, obs.metric)
        if key in seen:
            duplicates_by_source[obs.source_name] += 1
            continue
        seen.add(key)
        method_counts[resolution.method] += 1

        resolved.append(
            Observation(
                entity_id=resolution.meta.entity_id,
                date=obs.date,
                metric=obs.metric,
                value=obs.value,
                display_name=resolution.meta.display_name,
                parent_region=resolution.meta.parent_region,
                source_name=obs.source_name,
                match_method=resolution.method,
                match_distance_km=resolution.distance_km,
            )
        )

    stats = {
        "rows_in": rows_in,
        "rows_out": len(resolved),
        "duplicates_dropped": dict(sorted(duplicates_by_source.items())),
        "match_methods": dict(sorted(method_counts.items())),
    }
    return resolved, stats
