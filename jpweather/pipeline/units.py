"""Value coercion, unit canonicalisation and plausibility checks.

Every temperature leaving this module is in degrees Celsius. The humidity
index (humidex) is derived only from values that are already canonical.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import replace
from datetime import date
from typing import Iterable

from jpweather.common.errors import ConfigError, ImplausibleValue, UnparseableValue
from jpweather.common.models import (
    VALUE_NUMBER,
    VALUE_TEXT,
    CanonicalObservation,
    Observation,
    PendingObservation,
    RawValue,
)
from jpweather.pipeline.exclusions import ExclusionLedger

DERIVED_SOURCE_NAME = "derived"

# JMA tables append ")" for quasi-normal and "]" for insufficient-data values.
_QUALITY_MARKERS = ")]"
_FULLWIDTH = str.maketrans("０１２３４５６７８９－．＋", "0123456789-.+")
_MINUS_SIGNS = ("−", "‒", "–", "—")


def _clean_numeric_text(text: str) -> str:
    cleaned = text.strip().translate(_FULLWIDTH)
    for sign in _MINUS_SIGNS:
        cleaned = cleaned.replace(sign, "-")
    return cleaned.rstrip(_QUALITY_MARKERS).strip()


def coerce_value(raw: RawValue) -> float:
    if raw.kind == VALUE_NUMBER:
        value = float(raw.raw)
    elif raw.kind == VALUE_TEXT:
        cleaned = _clean_numeric_text(str(raw.raw))
        try:
            value = float(cleaned)
        except ValueError as exc:
            raise UnparseableValue(f"not a number: {raw.raw!r}") from exc
    else:
        raise UnparseableValue("value is missing")

    if not math.isfinite(value):
        raise UnparseableValue(f"not a finite number: {raw.raw!r}")
    return value


def fahrenheit_to_celsius(value: float) -> float:
    return (value - 32.0) * 5.0 / 9.0


def celsius_to_fahrenheit(value: float) -> float:
    return value * 9.0 / 5.0 + 32.0


def kelvin_to_celsius(value: float) -> float:
    return value - 273.15


_TO_CELSIUS = {
    "C": lambda value: value,
    "F": fahrenheit_to_celsius,
    "K": kelvin_to_celsius,
}


def to_celsius(value: float, unit: str) -> float:
    try:
        convert = _TO_CELSIUS[unit]
    except KeyError as exc:
        raise ConfigError(f"Unsupported unit: {unit}") from exc
    return convert(value)


def check_plausible(metric: str, value: float, bounds: dict[str, dict[str, float]]) -> float:
    limits = bounds[metric]
    if not limits["min"] <= value <= limits["max"]:
        raise ImplausibleValue(f"{metric}={value:.2f} outside [{limits['min']}, {limits['max']}]")
    return value


def canonicalise(
    pending: Iterable[PendingObservation],
    bounds: dict[str, dict[str, float]],
    ledger: ExclusionLedger,
) -> list[CanonicalObservation]:
    canonical: list[CanonicalObservation] = []
    for obs in pending:
        try:
            value = check_plausible(obs.metric, to_celsius(coerce_value(obs.value), obs.unit), bounds)
        except (UnparseableValue, ImplausibleValue) as exc:
            exc.entity_id = obs.entity_key
            exc.metric = obs.metric
            ledger.record(exc, source_name=obs.source_name, stage="coerce")
            continue
        canonical.append(
            CanonicalObservation(
                source_name=obs.source_name,
                record_index=obs.record_index,
                entity_key=obs.entity_key,
                date=obs.date,
                metric=obs.metric,
                value=value,
                lat=obs.lat,
                lon=obs.lon,
            )
        )
    return canonical


def humidity_index(temperature_c: float, dew_point_c: float) -> float:
    """Humidex from air temperature and dew point, both in Celsius."""
    vapour_pressure = 6.11 * math.exp(5417.7530 * (1.0 / 273.16 - 1.0 / (273.15 + dew_point_c)))
    return temperature_c + 0.5555 * (vapour_pressure - 10.0)


def derive_humidity_index(
    observations: list[Observation],
    bounds: dict[str, dict[str, float]],
    ledger: ExclusionLedger,
) -> list[Observation]:
    """Add humidity_index rows where a source did not supply one."""
    by_key: dict[tuple[str, date], dict[str, Observation]] = defaultdict(dict)
    for obs in observations:
        by_key[(obs.entity_id, obs.date)][obs.metric] = obs

    derived: list[Observation] = []
    for (entity_id, day), metrics in by_key.items():
        if "humidity_index" in metrics:
            continue
        temperature = metrics.get("average_temperature")
        dew_point = metrics.get("dew_point")
        if temperature is None or dew_point is None:
            continue
        try:
            value = check_plausible(
                "humidity_index",
                humidity_index(temperature.value, dew_point.value),
                bounds,
            )
        except ImplausibleValue as exc:
            exc.entity_id = entity_id
            exc.metric = "humidity_index"
            ledger.record(exc, source_name=DERIVED_SOURCE_NAME, stage="derive")
            continue
        derived.append(
            replace(
                temperature,
                metric="humidity_index",
                value=value,
                source_name=DERIVED_SOURCE_NAME,
            )
        )
    return observations + derived
