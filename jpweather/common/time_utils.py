"""UTC-focused helpers for run identifiers and date parsing."""

from __future__ import annotations

from datetime import date, datetime, timezone


def generate_run_id() -> str:
    # Sorts by start time.
    return datetime.now(tz=timezone.utc).strftime("run-%Y%m%dT%H%M%S%fZ")


def utc_today_iso() -> str:
    return datetime.now(tz=timezone.utc).date().isoformat()


def parse_run_date(value: str | None) -> str:
    if not value:
        return utc_today_iso()
    return date.fromisoformat(value).isoformat()


def parse_iso_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # API payloads sometimes carry a time component ("2023-06-01 00:00:00").
    return date.fromisoformat(str(value).strip()[:10])


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")
