"""Voting-group assignment.

``location`` and ``department`` strategies use the employee's value as the
group label. ``custom`` and ``mixed`` look the location up first, then the
department, across every configured mapping table, and fall back to
``fallback_strategy`` when nothing matches.
"""

from __future__ import annotations

from eotm.models.configuration import VotingGroupConfig
from eotm.models.employee import EmployeeRecord

UNKNOWN = "unknown"


def normalize_value(value: str | None) -> str | None:
    """Trimmed value, or None for blanks and the "Unknown" placeholder."""
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed or trimmed.lower() == UNKNOWN:
        return None
    return trimmed


def _lookup_tables(config: VotingGroupConfig) -> tuple[dict[str, str], dict[str, str]]:
    """Lower-cased location and department keys -> group name. First writer wins."""
    by_location: dict[str, str] = {}
    by_department: dict[str, str] = {}

    def put(table: dict[str, str], key: str, group: str) -> None:
        normalized = normalize_value(key)
        if normalized:
            table.setdefault(normalized.lower(), group)

    for location_mapping in config.location_group_mappings:
        for location in location_mapping.locations:
            put(by_location, location, location_mapping.group_name)
    for department_mapping in config.department_group_mappings:
        for department in department_mapping.departments:
            put(by_department, department, department_mapping.group_name)
    for mixed in config.mixed_group_mappings:
        for location in mixed.locations:
            put(by_location, location, mixed.group_name)
        for department in mixed.departments:
            put(by_department, department, mixed.group_name)

    # Legacy keys are untyped, so they may name either a location or a department
    for keys, group in config.custom_mappings.items():
        for key in keys.split(","):
            put(by_location, key, group)
            put(by_department, key, group)

    return by_location, by_department


def _by_field(employee: EmployeeRecord, strategy: str) -> str | None:
    if strategy == "location":
        return normalize_value(employee.location)
    if strategy == "department":
        return normalize_value(employee.department)
    return None


class VotingGroupAssigner:
    """Holds the lookup tables for one configuration across many employees."""

    def __init__(self, config: VotingGroupConfig) -> None:
        self.config = config
        self.by_location, self.by_department = _lookup_tables(config)

    def assign(self, employee: EmployeeRecord) -> str | None:
        if self.config.strategy in ("location", "department"):
            return _by_field(employee, self.config.strategy)

        location = normalize_value(employee.location)
        if location and location.lower() in self.by_location:
            return self.by_location[location.lower()]

        department = normalize_value(employee.department)
        if department and department.lower() in self.by_department:
            return self.by_department[department.lower()]

        return _by_field(employee, self.config.fallback_strategy)


def assign_voting_group(employee: EmployeeRecord, config: VotingGroupConfig) -> str | None:
    return VotingGroupAssigner(config).assign(employee)
