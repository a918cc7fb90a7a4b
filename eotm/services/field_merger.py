"""Combine a directory employee with its roster row."""

from __future__ import annotations

import math
from typing import Any, Literal

from eotm.models.employee import EmployeeRecord, ExternalRosterRecord
from eotm.services.name_normalizer import full_name

PrimarySource = Literal["directory", "roster"]

# EmployeeRecord attribute -> ExternalRosterRecord attribute
_TEXT_FIELDS: list[tuple[str, str]] = [
    ("first_name", "first_name"),
    ("middle_name", "middle_name"),
    ("last_name", "last_name"),
    ("department", "department"),
    ("position", "job_title"),
    ("job_title", "job_title"),
    ("position_id", "position_id"),
    ("location", "location"),
    ("company_code", "company_code"),
    ("position_status", "position_status"),
    ("reports_to", "reports_to"),
]

_DATE_FIELDS: list[tuple[str, str]] = [
    ("hire_date", "hire_date"),
    ("rehire_date", "rehire_date"),
]


def clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def clean_number(value: Any) -> int | float | None:
    """Zero is a value; None and NaN are not."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    return value


def _pick(directory_value: Any, roster_value: Any, primary: PrimarySource) -> Any:
    first, second = (directory_value, roster_value) if primary == "directory" else (roster_value, directory_value)
    return first if first is not None else second


def merge(
    directory: EmployeeRecord,
    roster: ExternalRosterRecord,
    primary: PrimarySource = "directory",
) -> EmployeeRecord:
    """Merge ``roster`` into ``directory``.

    Organizational fields take the primary source's value when it is present
    and non-blank, otherwise the other source's. ``id`` and ``email`` always
    come from the directory since it owns login identity.
    """
    pairs: list[tuple[str, Any, Any]] = []
    for employee_field, roster_field in _TEXT_FIELDS:
        pairs.append(
            (employee_field, clean_text(getattr(directory, employee_field)), clean_text(getattr(roster, roster_field)))
        )
    for employee_field, roster_field in _DATE_FIELDS:
        pairs.append((employee_field, getattr(directory, employee_field), getattr(roster, roster_field)))
    pairs.append(
        ("direct_reports_count", clean_number(directory.direct_reports_count), clean_number(roster.direct_reports))
    )

    updates: dict[str, Any] = {}
    roster_contributed = False
    for name, directory_value, roster_value in pairs:
        chosen = _pick(directory_value, roster_value, primary)
        updates[name] = chosen
        if chosen is not None and chosen != directory_value:
            roster_contributed = True

    if updates["direct_reports_count"] is not None:
        updates["direct_reports_count"] = int(updates["direct_reports_count"])

    updates["full_name"] = (
        clean_text(directory.full_name)
        or full_name(updates["first_name"], updates["middle_name"], updates["last_name"])
        or roster.name
    )
    updates["source"] = "merged" if roster_contributed else "directory"
    return directory.model_copy(update=updates)
