from datetime import date, timedelta

import pytest

from jpweather.common.errors import OffsetOutOfRange, StageError
from jpweather.common.models import PendingObservation, RawValue
from jpweather.pipeline.dates import SeasonWindow, date_for_offset, reconstruct_dates, resolve_dates, season_dates
from jpweather.pipeline.exclusions import ExclusionLedger

SUMMER = SeasonWindow(start_month=6, start_day=1, length_days=122)


def _pending(year: int, offset: int, value: float = 22.0) -> PendingObservation:
    return PendingObservation(
        source_name="tokyo_json",
        record_index=offset,
        entity_key="47662",
        metric="average_temperature",
        value=RawValue.of(value),
        unit="C",
        year=year,
        offset=offset,
    )


@pytest.mark.parametrize(
    "start, length",
    [
        (date(1876, 6, 1), 3),
        (date(1876, 6, 1), 122),
        (date(2024, 2, 27), 5),
        (date(2023, 2, 27), 5),
        (date(1999, 12, 30), 4),
        (date(2000, 1, 1), 0),
    ],
)
def test_reconstruct_dates_gives_consecutive_days(start, length):
    days = reconstruct_dates(start, length)

    assert len(days) == length
    if days:
        assert days[0] == start
    for earlier, later in zip(days, days[1:]):
        assert later - earlier == timedelta(days=1)


def test_reconstruct_dates_crosses_leap_day():
    assert reconstruct_dates(date(2024, 2, 28), 3) == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]


def test_reconstruct_dates_rejects_negative_length():
    with pytest.raises(ValueError):
        reconstruct_dates(date(2024, 6, 1), -1)


def test_offsets_map_from_season_start():
    assert [date_for_offset(SUMMER, 1876, offset) for offset in (0, 1, 2)] == [
        date(1876, 6, 1),
        date(1876, 6, 2),
        date(1876, 6, 3),
    ]
    assert date_for_offset(SUMMER, 2023, 121) == date(2023, 9, 30)


@pytest.mark.parametrize("offset", [-1, 122, 500])
def test_offset_outside_season_raises(offset):
    with pytest.raises(OffsetOutOfRange):
        date_for_offset(SUMMER, 2023, offset)


def test_season_window_contains_and_wraps_year_end():
    assert SUMMER.contains(date(2023, 9, 30))
    assert not SUMMER.contains(date(2023, 10, 1))

    winter = SeasonWindow(start_month=12, start_day=1, length_days=90)
    assert winter.contains(date(2024, 1, 15))
    assert winter.end_for(2023) == date(2024, 2, 28)


def test_partial_season_keeps_alignment_from_start():
    ledger = ExclusionLedger()
    pending = [_pending(1877, offset) for offset in range(4)]

    resolved = resolve_dates(pending, SUMMER, ledger)

    assert [obs.date for obs in resolved] == reconstruct_dates(date(1877, 6, 1), 4)
    assert all(obs.offset is None for obs in resolved)
    assert ledger.total == 0


def test_out_of_window_offset_is_recorded_not_dropped_silently():
    ledger = ExclusionLedger()
    pending = [_pending(1876, 0), _pending(1876, 122)]

    resolved = resolve_dates(pending, SUMMER, ledger)

    assert len(resolved) == 1
    assert ledger.count("OFFSET_OUT_OF_RANGE") == 1
    assert ledger.has_hard_errors
    assert ledger.samples[0]["entity_id"] == "47662"


def test_out_of_window_offset_aborts_in_strict_mode():
    with pytest.raises(StageError):
        resolve_dates([_pending(1876, 200)], SUMMER, ExclusionLedger(), strict=True)


def test_explicit_dates_pass_through():
    obs = PendingObservation(
        source_name="jma",
        record_index=0,
        entity_key="47662",
        metric="max_temperature",
        value=RawValue.of("35.0"),
        unit="C",
        date=date(2023, 12, 25),
    )

    assert resolve_dates([obs], SUMMER, ExclusionLedger()) == [obs]


def test_offsets_index_the_reconstructed_season():
    days = season_dates(SUMMER, 2024)

    assert days == tuple(reconstruct_dates(date(2024, 6, 1), 122))
    assert [date_for_offset(SUMMER, 2024, offset) for offset in range(122)] == list(days)
    assert days[-1] == SUMMER.end_for(2024)
