"""Reader for fixed-layout HTML tables such as the JMA ``etrn`` statistics pages."""

from __future__ import annotations

from datetime import date, datetime

from bs4 import BeautifulSoup

from jpweather.common.errors import MalformedSource
from jpweather.common.http import HttpClient
from jpweather.common.models import RawValue, ReaderResult, SourceRecord
from jpweather.harvest.locator import describe_locator, read_source_text

SOURCE_KIND = "html_table"


def _find_table(source_name: str, soup: BeautifulSoup, source_config: dict):
    selector = source_config.get("table_selector")
    if selector:
        table = soup.select_one(selector)
        if table is None:
            raise MalformedSource(source_name, f"no table matches selector {selector!r}")
        return table

    index = int(source_config.get("table_index", 0))
    tables = soup.find_all("table")
    if index >= len(tables):
        raise MalformedSource(source_name, f"expected at least {index + 1} tables, found {len(tables)}")
    return tables[index]


def _required_cells(source_config: dict) -> int:
    indexes = [int(idx) for idx in source_config["columns"].values()]
    for key in ("entity_column", "date_column", "day_column"):
        if source_config.get(key) is not None:
            indexes.append(int(source_config[key]))
    return max(indexes) + 1


def _row_date(cells: list[str], source_config: dict) -> date | None:
    if source_config.get("date_column") is not None:
        text = cells[int(source_config["date_column"])]
        try:
            return datetime.strptime(text, source_config["date_format"]).date()
        except ValueError:
            return None

    day_text = cells[int(source_config["day_column"])]
    if not day_text.isdigit():
        return None
    try:
        return date(int(source_config["year"]), int(source_config["month"]), int(day_text))
    except ValueError:
        return None


def _optional_float(value: object) -> float | None:
    return None if value is None else float(value)


def parse_html_table(source_name: str, html: str, source_config: dict) -> ReaderResult:
    soup = BeautifulSoup(html, "html.parser")
    table = _find_table(source_name, soup, source_config)

    min_cells = int(source_config.get("min_cells") or _required_cells(source_config))
    skip_rows = int(source_config.get("skip_rows", 0))
    columns = {metric: int(idx) for metric, idx in source_config["columns"].items()}
    unit = source_config.get("unit", "C")
    lat = _optional_float(source_config.get("lat"))
    lon = _optional_float(source_config.get("lon"))
    ref = describe_locator(source_config)

    records: list[SourceRecord] = []
    warnings: list[str] = []
    for row_number, tr in enumerate(table.find_all("tr")):
        if row_number < skip_rows:
            continue
        tds = tr.find_all("td")
        if not tds:
            # Header rows carry <th> cells only.
            continue
        cells = [td.get_text(strip=True) for td in tds]
        if len(cells) < min_cells:
            warnings.append(f"SHORT_ROW:{row_number}")
            continue

        row_date = _row_date(cells, source_config)
        if row_date is None:
            warnings.append(f"UNDATED_ROW:{row_number}")
            continue

        if source_config.get("entity_column") is not None:
            entity_key = cells[int(source_config["entity_column"])] or None
        else:
            entity_key = str(source_config["entity_id"])
        if entity_key is None:
            warnings.append(f"NO_ENTITY_ROW:{row_number}")
            continue

        records.append(
            SourceRecord(
                source_name=source_name,
                source_kind=SOURCE_KIND,
                record_index=len(records),
                entity_key=entity_key,
                fields={metric: RawValue.of(cells[idx]) for metric, idx in columns.items()},
                unit=unit,
                date=row_date,
                lat=lat,
                lon=lon,
                raw_payload_ref=ref,
            )
        )

    if not records:
        raise MalformedSource(source_name, f"no data rows matched the configured layout ({len(warnings)} rows skipped)")

    return ReaderResult(source_name=source_name, source_kind=SOURCE_KIND, records=records, warnings=warnings)


def read_html_table(
    source_name: str,
    source_config: dict,
    http_client: HttpClient,
) -> ReaderResult:
    html = read_source_text(source_name, source_config, http_client, source_type="jma")
    return parse_html_table(source_name, html, source_config)
