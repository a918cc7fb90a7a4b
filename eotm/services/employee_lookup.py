"""Name/field search over stored employees for pickers and autocomplete."""

from __future__ import annotations

from eotm.models.employee import AutocompleteResult, EmployeeRecord

MIN_QUERY_LENGTH = 2
AUTOCOMPLETE_LIMIT = 10


def _searchable(employee: EmployeeRecord) -> list[str]:
    values = [employee.full_name, employee.email, employee.department, employee.position, employee.location]
    return [v.lower() for v in values if v]


def autocomplete(
    employees: list[EmployeeRecord],
    query: str,
    limit: int = AUTOCOMPLETE_LIMIT,
) -> AutocompleteResult:
    """Employees whose name, email, department, position or location contains ``query``.

    Names starting with the query come first, then names containing it, then
    field-only hits; ties are ordered by name.
    """
    needle = query.strip().lower()
    if not needle:
        return AutocompleteResult()

    hits = [e for e in employees if any(needle in value for value in _searchable(e))]

    def rank(employee: EmployeeRecord) -> tuple[bool, bool, str]:
        name = (employee.full_name or "").lower()
        return (not name.startswith(needle), needle not in name, name)

    hits.sort(key=rank)
    return AutocompleteResult(employees=hits[:limit], total=len(hits))
