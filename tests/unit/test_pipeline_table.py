from datetime import date

import pytest

from jpweather.common.constants import DEFAULT_PLAUSIBILITY
from jpweather.common.errors import StageError
from jpweather.common.models import RawValue, SourceRecord, StationMeta
from jpweather.pipeline.dates import SeasonWindow
from jpweather.pipeline.exclusions import ExclusionLedger
from jpweather.pipeline.resolve import StationResolver
from jpweather.pipeline.run import build_output_table

SUMMER = SeasonWindow(start_month=6, start_day=1, length_days=122)
STATIONS = [
    StationMeta("47662", "Tokyo", "Kanto", 35.6917, 139.75, ("tokyo",)),
    StationMeta("47772", "Osaka", "Kinki", 34.6817, 135.5183),
]
METRICS = ["average_temperature", "max_temperature", "min_temperature", "dew_point", "humidity_index"]


def _yearly(source, year, values, entity="47662"):
    return [
        SourceRecord(
            source_name=source,
            source_kind="yearly_json",
            record_index=offset,
            entity_key=entity,
            fields={"average_temperature": RawValue.of(value)},
            year=year,
            offset=offset,
        )
        for offset, value in enumerate(values)
    ]


def _daily(source, index, day, fields, *, entity="47662", unit="C", lat=None, lon=None):
    return SourceRecord(
        source_name=source,
        source_kind="station_api",
        record_index=index,
        entity_key=entity,
        fields={name: RawValue.of(value) for name, value in fields.items()},
        unit=unit,
        date=day,
        lat=lat,
        lon=lon,
    )


def _build(records, ledger=None, **kwargs):
    return build_output_table(
        records,
        metrics=METRICS,
        season=SUMMER,
        bounds=DEFAULT_PLAUSIBILITY,
        resolver=StationResolver(STATIONS, max_distance_km=50),
        ledger=ledger or ExclusionLedger(),
        **kwargs,
    )


def test_offset_series_becomes_dated_rows():
    rows, stats = _build(_yearly("summer", 1876, [21.5, 22.0, 22.8]))

    assert [(row.date, row.value) for row in rows] == [
        (date(1876, 6, 1), 21.5),
        (date(1876, 6, 2), 22.0),
        (date(1876, 6, 3), 22.8),
    ]
    assert {row.display_name for row in rows} == {"Tokyo"}
    assert stats["normalise"]["rows_out"] == 3


def test_overlapping_sources_keep_first_in_merge_order():
    day = date(2023, 6, 1)
    records = [
        _daily("jma", 0, day, {"max_temperature": "29.0"}),
        _daily("api", 0, day, {"max_temperature": 86.0}, entity="RJTT0", unit="F", lat=35.5533, lon=139.7811),
        _daily("api", 1, date(2023, 6, 2), {"max_temperature": 86.0}, entity="RJTT0", unit="F", lat=35.5533, lon=139.7811),
    ]

    rows, stats = _build(records)

    assert [(row.date, row.source_name, row.match_method) for row in rows] == [
        (date(2023, 6, 1), "jma", "key"),
        (date(2023, 6, 2), "api", "nearest"),
    ]
    assert rows[1].value == pytest.approx(30.0)
    assert stats["resolve"]["duplicates_dropped"] == {"api": 1}


def test_humidity_index_derived_after_conversion():
    records = [_daily("api", 0, date(2023, 8, 1), {"average_temperature": 86.0, "dew_point": 59.0}, unit="F")]

    rows, _ = _build(records)

    by_metric = {row.metric: row for row in rows}
    assert by_metric["average_temperature"].value == pytest.approx(30.0)
    assert by_metric["dew_point"].value == pytest.approx(15.0)
    assert by_metric["humidity_index"].value == pytest.approx(33.97, abs=0.05)
    assert by_metric["humidity_index"].source_name == "derived"


def test_bad_values_are_counted_not_emitted():
    ledger = ExclusionLedger()
    records = _yearly("summer", 1877, [22.1, "×", None, "22.1)"]) + [
        _daily("api", 0, date(2023, 8, 1), {"max_temperature": 30.0}, entity="XYZ"),
    ]

    rows, stats = _build(records, ledger=ledger)

    assert [row.date for row in rows] == [date(1877, 6, 1), date(1877, 6, 4)]
    assert ledger.count("UNPARSEABLE_VALUE") == 1
    assert ledger.count("UNRESOLVED_ENTITY") == 1
    assert stats["normalise"]["missing_values"] == {"summer": 1}


def test_offset_past_season_aborts_in_strict_mode():
    records = _yearly("summer", 1876, [20.0] * 123)

    with pytest.raises(StageError):
        _build(records, strict=True)

    ledger = ExclusionLedger()
    rows, _ = _build(records, ledger=ledger)
    assert len(rows) == 122
    assert ledger.has_hard_errors


def test_explicit_dates_outside_season_are_kept_and_counted():
    records = [
        _daily("api", 0, date(2023, 7, 1), {"max_temperature": 31.0}),
        _daily("api", 1, date(2023, 12, 25), {"max_temperature": 9.5}),
    ]

    rows, stats = _build(records)

    assert [row.date for row in rows] == [date(2023, 7, 1), date(2023, 12, 25)]
    assert stats["dates"]["outside_season"] == 1
