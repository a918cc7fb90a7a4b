"""Name-keyed matching of directory employees against roster rows.

The index is keyed by :func:`candidate_keys`, so "Gomez, Maria" in the roster
and "Maria Gomez" in the directory land on the same key. When a key holds
several rows, the row whose department matches wins; otherwise the first row
in roster order is taken. That tie-break is deterministic, not clever.

Names that miss the index fall back to a subset test over name tokens
("Maria Gomez" vs "Maria Gomez Perez"). Single-token names never take part
in the fallback. The fallback scans every row, which is fine for rosters of a
few thousand people.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Literal

from eotm.models.employee import EmployeeRecord, ExternalRosterRecord
from eotm.services.name_normalizer import candidate_keys, normalize, tokens

logger = logging.getLogger(__name__)

MatchMethod = Literal["exact", "partial"]

MIN_PARTIAL_TOKENS = 2


@dataclass(frozen=True)
class MatchOutcome:
    employee: EmployeeRecord
    matched: ExternalRosterRecord | None = None
    method: MatchMethod | None = None


@dataclass
class MatchReport:
    outcomes: list[MatchOutcome] = field(default_factory=list)
    unmatched_employees: list[EmployeeRecord] = field(default_factory=list)
    unmatched_records: list[ExternalRosterRecord] = field(default_factory=list)

    @property
    def matched_record_count(self) -> int:
        return len({o.matched.row_id for o in self.outcomes if o.matched is not None})


def _is_token_subset(left: list[str], right: list[str]) -> bool:
    shorter, longer = (left, right) if len(left) <= len(right) else (right, left)
    return set(shorter) <= set(longer)


class RecordMatcher:
    def __init__(self, records: list[ExternalRosterRecord]) -> None:
        self.records = list(records)
        self.index: dict[str, list[ExternalRosterRecord]] = defaultdict(list)
        for record in self.records:
            for key in candidate_keys(record.raw_name) | candidate_keys(record.name):
                self.index[key].append(record)

    def resolve(self, employee: EmployeeRecord) -> MatchOutcome:
        name = employee.full_name or ""

        for key in sorted(candidate_keys(name)):
            candidates = self.index.get(key)
            if not candidates:
                continue
            if len(candidates) == 1:
                return MatchOutcome(employee, candidates[0], "exact")
            return MatchOutcome(employee, self._break_tie(employee, candidates), "exact")

        partial = self._find_partial(name)
        if partial is not None:
            logger.debug("Partial name match: %r <-> %r", name, partial.name)
            return MatchOutcome(employee, partial, "partial")
        return MatchOutcome(employee)

    def match_all(self, employees: list[EmployeeRecord]) -> MatchReport:
        report = MatchReport()
        matched_ids: set[int] = set()

        for employee in employees:
            outcome = self.resolve(employee)
            report.outcomes.append(outcome)
            if outcome.matched is None:
                report.unmatched_employees.append(employee)
            else:
                matched_ids.add(outcome.matched.row_id)

        report.unmatched_records = [r for r in self.records if r.row_id not in matched_ids]
        return report

    @staticmethod
    def _break_tie(
        employee: EmployeeRecord,
        candidates: list[ExternalRosterRecord],
    ) -> ExternalRosterRecord:
        department = normalize(employee.department)
        if department:
            for candidate in candidates:
                if normalize(candidate.department) == department:
                    return candidate
        return candidates[0]

    def _find_partial(self, name: str) -> ExternalRosterRecord | None:
        employee_tokens = tokens(name)
        if len(employee_tokens) < MIN_PARTIAL_TOKENS:
            return None

        for record in self.records:
            record_tokens = tokens(record.name)
            if len(record_tokens) < MIN_PARTIAL_TOKENS:
                continue
            if _is_token_subset(employee_tokens, record_tokens):
                return record
        return None
