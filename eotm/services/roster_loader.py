"""External employee roster (spreadsheet export) loader.

Two layouts are accepted:

* ``.xlsx`` workbooks from the payroll export, read with openpyxl. Columns are
  matched by header text ("Legal First Name", "Position ID", "Home Department
  Description", ...).
* Legacy delimited text with a header row and quoted fields
  (``Name,Department,Job Title,Location,Reports To,Number of Direct Reports``).

Headers are compared after lowercasing and dropping everything that is not a
letter or digit, so "Reports To" and "reports_to" are the same column. Rows
without a usable name are skipped. A missing or unreadable file yields an
empty roster together with a ``FetchError``.
"""

from __future__ import annotations

import asyncio
import csv
import logging
import math
import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from eotm.models.employee import ExternalRosterRecord
from eotm.models.sync import FetchResult
from eotm.services.name_normalizer import full_name, to_display_order

logger = logging.getLogger(__name__)

SOURCE = "roster"

_HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "employeename", "employee", "fullname"),
    "first_name": ("legalfirstname", "firstname"),
    "middle_name": ("legalmiddlename", "middlename"),
    "last_name": ("legallastname", "lastname"),
    "position_id": ("positionid",),
    "company_code": ("companycode",),
    "job_title": ("jobtitle", "jobtitledescription", "title"),
    "department": ("department", "homedepartment", "homedepartmentdescription"),
    "location": ("location", "locationdescription", "worklocation"),
    "position_status": ("positionstatus",),
    "hire_date": ("hiredate",),
    "rehire_date": ("rehiredate",),
    "reports_to": ("reportsto", "reportstoname", "reportstolegalname"),
    "direct_reports": ("numberofdirectreports", "directreports", "directreportscount"),
}

_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d", "%m/%d/%Y", "%d.%m.%Y")


def normalize_header(header: Any) -> str:
    return re.sub(r"[^a-z0-9]", "", str(header or "").lower())


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def parse_date(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)  # noqa: DTZ007
                break
            except ValueError:
                continue
        else:
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                logger.debug("Unparseable roster date %r", text)
                return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_count(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else int(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        try:
            return int(float(text))
        except ValueError:
            return None


def _column_positions(header: Sequence[Any]) -> dict[str, int]:
    normalized = [normalize_header(cell) for cell in header]
    positions: dict[str, int] = {}
    for field_name, aliases in _HEADER_ALIASES.items():
        for alias in aliases:
            if alias in normalized:
                positions[field_name] = normalized.index(alias)
                break
    return positions


def parse_rows(rows: Iterable[Sequence[Any]]) -> list[ExternalRosterRecord]:
    """Turn a header row plus data rows into roster records."""
    iterator = iter(rows)
    header: Sequence[Any] | None = None
    for row in iterator:
        if any(_clean(cell) for cell in row):
            header = row
            break
    if header is None:
        return []

    columns = _column_positions(header)

    def get(cells: Sequence[Any], field_name: str) -> Any:
        index = columns.get(field_name)
        if index is None or index >= len(cells):
            return None
        return cells[index]

    records: list[ExternalRosterRecord] = []
    for row_id, cells in enumerate(iterator, start=1):
        if not any(_clean(cell) for cell in cells):
            continue

        first = _clean(get(cells, "first_name"))
        middle = _clean(get(cells, "middle_name"))
        last = _clean(get(cells, "last_name"))
        raw_name = _clean(get(cells, "name")) or full_name(first, middle, last)
        if not raw_name:
            continue

        reports_to = _clean(get(cells, "reports_to"))
        records.append(
            ExternalRosterRecord(
                row_id=row_id,
                name=to_display_order(raw_name),
                raw_name=raw_name,
                first_name=first,
                middle_name=middle,
                last_name=last,
                position_id=_clean(get(cells, "position_id")),
                company_code=_clean(get(cells, "company_code")),
                job_title=_clean(get(cells, "job_title")),
                department=_clean(get(cells, "department")),
                location=_clean(get(cells, "location")),
                position_status=_clean(get(cells, "position_status")),
                hire_date=parse_date(get(cells, "hire_date")),
                rehire_date=parse_date(get(cells, "rehire_date")),
                reports_to=to_display_order(reports_to) if reports_to else None,
                direct_reports=parse_count(get(cells, "direct_reports")),
            )
        )
    return records


def read_roster_file(path: Path) -> list[ExternalRosterRecord]:
    if path.suffix.lower() in (".xlsx", ".xlsm"):
        workbook = load_workbook(path, read_only=True, data_only=True)
        try:
            sheet = workbook.active
            return parse_rows(sheet.iter_rows(values_only=True))
        finally:
            workbook.close()

    with path.open(encoding="utf-8-sig", newline="") as handle:
        return parse_rows(csv.reader(handle))


class RosterLoader:
    def __init__(self, path: str | None = None) -> None:
        self.path = path or None
        self._cache: list[ExternalRosterRecord] | None = None

    def set_path(self, path: str | None) -> None:
        self.path = path or None
        self._cache = None

    async def load(self) -> FetchResult[list[ExternalRosterRecord]]:
        if self._cache is not None:
            return FetchResult(self._cache)
        if not self.path:
            return FetchResult([])

        try:
            records = await asyncio.to_thread(read_roster_file, Path(self.path))
        except Exception as e:
            logger.warning("Unable to read employee roster at %s: %s", self.path, e)
            return FetchResult.failure([], SOURCE, f"Unable to read roster {self.path}: {e}")

        logger.info("Loaded %d roster records from %s", len(records), self.path)
        self._cache = records
        return FetchResult(records)
