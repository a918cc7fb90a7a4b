"""Directory + roster reconciliation into the employee store.

A full sync runs through ``fetching -> matching -> evaluating -> diffing ->
persisting -> done``; any step can end in ``failed``. Problems local to one
employee, one later directory page or the roster file are recorded in
``SyncResult.errors``. Only a failed first directory page, a configuration
store error or an unreadable employee store aborts the run with
:class:`SyncFatalError`.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable
from typing import Any, TypeVar

from eotm.models.configuration import EligibilityConfig, VotingGroupConfig
from eotm.models.employee import (
    EmployeeRecord,
    ExternalRosterRecord,
    RecomputeResult,
    SingleSyncResult,
    SyncError,
    SyncResult,
    SyncStatus,
)
from eotm.models.sync import FetchResult, SyncState
from eotm.services import eligibility as eligibility_rules
from eotm.services.field_merger import PrimarySource, merge
from eotm.services.protocols import ConfigStore, DirectoryClient, EmployeeStore, RosterSource
from eotm.services.record_matcher import MatchOutcome, RecordMatcher
from eotm.services.voting_groups import VotingGroupAssigner

logger = logging.getLogger(__name__)

T = TypeVar("T")

# A stored record is rewritten when any of these differ from the incoming one
TRACKED_FIELDS = (
    "first_name",
    "last_name",
    "full_name",
    "email",
    "department",
    "position",
    "job_title",
    "company_code",
    "reports_to",
    "direct_reports_count",
    "location",
    "is_active",
    "hire_date",
    "rehire_date",
    "voting_eligible",
    "ineligibility_reason",
    "voting_group",
)


class SyncFatalError(Exception):
    """The sync could not produce a trustworthy result and wrote nothing further."""


class SyncInProgressError(Exception):
    """Another full sync holds the run lock."""


def has_changes(existing: EmployeeRecord, incoming: EmployeeRecord) -> bool:
    return any(getattr(existing, name) != getattr(incoming, name) for name in TRACKED_FIELDS)


class EmployeeSyncService:
    def __init__(
        self,
        directory: DirectoryClient,
        roster: RosterSource,
        employees: EmployeeStore,
        eligibility_configs: ConfigStore[EligibilityConfig],
        voting_group_configs: ConfigStore[VotingGroupConfig],
        *,
        page_size: int = 999,
        max_employees: int = 10_000,
        timeout_seconds: float = 60.0,
        primary_source: PrimarySource = "directory",
    ) -> None:
        self.directory = directory
        self.roster = roster
        self.employees = employees
        self.eligibility_configs = eligibility_configs
        self.voting_group_configs = voting_group_configs
        self.page_size = page_size
        self.max_employees = max_employees
        self.timeout_seconds = timeout_seconds
        self.primary_source = primary_source

        self.state = SyncState.DONE
        self.last_result: SyncResult | None = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def _set_state(self, state: SyncState) -> None:
        self.state = state
        logger.debug("Sync state -> %s", state.value)

    async def _bounded(self, call: Awaitable[T]) -> T:
        return await asyncio.wait_for(call, timeout=self.timeout_seconds)

    async def _bounded_fetch(
        self,
        call: Awaitable[FetchResult[T]],
        empty: T,
        source: str,
    ) -> FetchResult[T]:
        try:
            return await self._bounded(call)
        except asyncio.TimeoutError:
            logger.warning("%s fetch timed out after %.0fs", source, self.timeout_seconds)
            return FetchResult.failure(empty, source, f"{source} fetch timed out after {self.timeout_seconds:.0f}s")

    def evaluate_eligibility(
        self,
        employee: EmployeeRecord,
        config: EligibilityConfig,
    ) -> eligibility_rules.EligibilityDecision:
        return eligibility_rules.check_eligibility(employee, config)

    def assign_voting_group(self, employee: EmployeeRecord, config: VotingGroupConfig) -> str | None:
        return VotingGroupAssigner(config).assign(employee)

    def _annotate(
        self,
        employee: EmployeeRecord,
        eligibility_config: EligibilityConfig,
        assigner: VotingGroupAssigner,
    ) -> EmployeeRecord:
        decision = self.evaluate_eligibility(employee, eligibility_config)
        return employee.model_copy(
            update={
                "voting_eligible": decision.eligible,
                "ineligibility_reason": decision.failed_rule,
                "voting_group": assigner.assign(employee),
            }
        )

    def _merged(self, outcome: MatchOutcome) -> EmployeeRecord:
        if outcome.matched is None:
            return outcome.employee
        return merge(outcome.employee, outcome.matched, self.primary_source)

    async def _load_configs(self) -> tuple[EligibilityConfig, VotingGroupConfig]:
        try:
            eligibility_config = await self._bounded(self.eligibility_configs.get())
            voting_group_config = await self._bounded(self.voting_group_configs.get())
        except Exception as e:
            logger.exception("Failed to load sync configuration")
            raise SyncFatalError(f"Configuration store unavailable: {e}") from e
        return eligibility_config, voting_group_config

    async def _fetch_roster(self, errors: list[SyncError]) -> list[ExternalRosterRecord]:
        result = await self._bounded_fetch(self.roster.load(), [], "roster")
        if result.error:
            errors.append(SyncError(message=result.error.message))
        return result.value

    async def _fetch_directory(self, errors: list[SyncError]) -> tuple[list[EmployeeRecord], bool]:
        """All active directory employees, plus whether the listing is complete."""
        employees: list[EmployeeRecord] = []
        token: str | None = None
        seen_tokens: set[str] = set()
        # Excluded users make pages shorter than page_size
        max_pages = 2 * math.ceil(self.max_employees / self.page_size) + 1
        page_number = 0

        while True:
            page_number += 1
            result = await self._bounded_fetch(
                self.directory.list_active_employees(self.page_size, token),
                None,
                "directory",
            )
            if result.error or result.value is None:
                message = result.error.message if result.error else "directory returned no page"
                if page_number == 1:
                    raise SyncFatalError(message)
                logger.error("Directory page %d failed, stopping pagination: %s", page_number, message)
                errors.append(SyncError(message=f"Directory page {page_number}: {message}"))
                return employees, False

            page = result.value
            employees.extend(page.employees)
            logger.info("Fetched directory page %d (%d employees so far)", page_number, len(employees))

            if len(employees) >= self.max_employees:
                if len(employees) > self.max_employees or page.has_more:
                    logger.warning("Directory listing capped at %d employees", self.max_employees)
                    return employees[: self.max_employees], False
                return employees, True
            if not page.has_more:
                return employees, True
            if page.next_page_token in seen_tokens or page_number >= max_pages:
                logger.warning(
                    "Directory paging stopped after %d pages (token repeated or page limit %d reached)",
                    page_number,
                    max_pages,
                )
                return employees, False
            token = page.next_page_token
            seen_tokens.add(token)

    async def run_full_sync(self, dry_run: bool = False) -> SyncResult:
        if self._lock.locked():
            raise SyncInProgressError("A full sync is already running")

        async with self._lock:
            try:
                result = await self._run_full_sync(dry_run)
            except SyncFatalError:
                self._set_state(SyncState.FAILED)
                raise
            except Exception as e:
                self._set_state(SyncState.FAILED)
                logger.exception("Full sync failed")
                raise SyncFatalError(str(e)) from e

        self.last_result = result
        return result

    async def _run_full_sync(self, dry_run: bool) -> SyncResult:
        result = SyncResult()

        self._set_state(SyncState.FETCHING)
        eligibility_config, voting_group_config = await self._load_configs()
        records = await self._fetch_roster(result.errors)
        directory_employees, complete = await self._fetch_directory(result.errors)

        self._set_state(SyncState.MATCHING)
        report = RecordMatcher(records).match_all(directory_employees)
        result.matched_external_records = report.matched_record_count
        result.unmatched_azure_employees = len(report.unmatched_employees)
        result.unmatched_external_records = len(report.unmatched_records)
        if report.unmatched_records:
            logger.info("%d roster rows matched no directory employee", len(report.unmatched_records))

        self._set_state(SyncState.EVALUATING)
        assigner = VotingGroupAssigner(voting_group_config)
        incoming: dict[str, EmployeeRecord] = {}
        for outcome in report.outcomes:
            employee = self._annotate(self._merged(outcome), eligibility_config, assigner)
            if employee.id in incoming:
                logger.warning("Duplicate directory id %s, keeping the first occurrence", employee.id)
                continue
            incoming[employee.id] = employee

        self._set_state(SyncState.DIFFING)
        try:
            stored = {e.id: e for e in await self._bounded(self.employees.find_all())}
        except Exception as e:
            logger.exception("Failed to read stored employees")
            raise SyncFatalError(f"Employee store unavailable: {e}") from e

        creates: list[EmployeeRecord] = []
        updates: list[EmployeeRecord] = []
        deactivations: list[EmployeeRecord] = []

        for employee in incoming.values():
            result.total_processed += 1
            existing = stored.get(employee.id)
            if existing is None:
                creates.append(employee)
            elif existing.exclude_from_sync:
                result.skipped_users += 1
            elif has_changes(existing, employee):
                updates.append(employee.model_copy(update={"created_at": existing.created_at}))

        if complete:
            for existing in stored.values():
                if existing.id in incoming or not existing.is_active or existing.exclude_from_sync:
                    continue
                inactive = existing.model_copy(update={"is_active": False})
                deactivations.append(self._annotate(inactive, eligibility_config, assigner))
        else:
            logger.warning("Directory listing incomplete, skipping deactivation pass")

        if dry_run:
            result.new_users = len(creates)
            result.updated_users = len(updates)
            result.deactivated_users = len(deactivations)
            self._set_state(SyncState.DONE)
            result.state = SyncState.DONE.value
            logger.info("Dry run: %s", result.model_dump(exclude={"errors"}))
            return result

        self._set_state(SyncState.PERSISTING)
        for employee in creates:
            if await self._persist(self.employees.create, employee, "create", result.errors):
                result.new_users += 1
        for employee in updates:
            if await self._persist(self.employees.update, employee, "update", result.errors):
                result.updated_users += 1
        for employee in deactivations:
            if await self._persist(self.employees.update, employee, "deactivate", result.errors):
                result.deactivated_users += 1

        self._set_state(SyncState.DONE)
        result.state = SyncState.DONE.value
        logger.info(
            "Sync complete: %d new, %d updated, %d deactivated, %d skipped, %d errors",
            result.new_users,
            result.updated_users,
            result.deactivated_users,
            result.skipped_users,
            len(result.errors),
        )
        return result

    async def _persist(
        self,
        write: Any,
        employee: EmployeeRecord,
        action: str,
        errors: list[SyncError],
    ) -> bool:
        try:
            await self._bounded(write(employee))
        except Exception as e:
            logger.exception("Failed to %s employee %s", action, employee.id)
            errors.append(SyncError(employee_id=employee.id, message=f"Failed to {action} employee: {e}"))
            return False
        return True

    async def run_single_employee_sync(self, employee_id: str) -> SingleSyncResult:
        fetched = await self._bounded_fetch(self.directory.get_by_id(employee_id), None, "directory")
        if fetched.error:
            return SingleSyncResult(success=False, message=fetched.error.message)
        if fetched.value is None:
            return SingleSyncResult(success=False, message=f"Employee {employee_id} not found in directory")

        eligibility_config, voting_group_config = await self._load_configs()
        roster_errors: list[SyncError] = []
        records = await self._fetch_roster(roster_errors)
        outcome = RecordMatcher(records).resolve(fetched.value)
        employee = self._annotate(self._merged(outcome), eligibility_config, VotingGroupAssigner(voting_group_config))
        matched = outcome.matched is not None

        try:
            existing = await self._bounded(self.employees.find_by_id(employee_id))
            if existing is None:
                saved = await self._bounded(self.employees.create(employee))
                message = "Employee created"
            elif existing.exclude_from_sync:
                return SingleSyncResult(
                    success=False,
                    message="Employee is excluded from sync",
                    employee=existing,
                    matched_with_external=matched,
                )
            elif has_changes(existing, employee):
                saved = await self._bounded(
                    self.employees.update(employee.model_copy(update={"created_at": existing.created_at}))
                )
                message = "Employee updated"
            else:
                saved = existing
                message = "Employee already up to date"
        except Exception as e:
            logger.exception("Failed to sync employee %s", employee_id)
            return SingleSyncResult(success=False, message=f"Failed to save employee: {e}")

        if roster_errors:
            message = f"{message} without roster data ({roster_errors[0].message})"
        return SingleSyncResult(success=True, message=message, employee=saved, matched_with_external=matched)

    async def _recompute(self, annotate: Any, label: str) -> RecomputeResult:
        result = RecomputeResult()
        for employee in await self._bounded(self.employees.find_all()):
            updated = annotate(employee)
            if not has_changes(employee, updated):
                continue
            try:
                await self._bounded(self.employees.update(updated))
                result.total_updated += 1
            except Exception as e:
                logger.exception("Failed to update %s for employee %s", label, employee.id)
                result.errors.append(SyncError(employee_id=employee.id, message=str(e)))
        logger.info("Recomputed %s: %d employees updated", label, result.total_updated)
        return result

    async def recompute_eligibility_for_all(self, config: EligibilityConfig | None = None) -> RecomputeResult:
        config = config or await self._bounded(self.eligibility_configs.get())

        def annotate(employee: EmployeeRecord) -> EmployeeRecord:
            decision = self.evaluate_eligibility(employee, config)
            return employee.model_copy(
                update={"voting_eligible": decision.eligible, "ineligibility_reason": decision.failed_rule}
            )

        return await self._recompute(annotate, "eligibility")

    async def recompute_voting_groups_for_all(self, config: VotingGroupConfig | None = None) -> RecomputeResult:
        assigner = VotingGroupAssigner(config or await self._bounded(self.voting_group_configs.get()))

        def annotate(employee: EmployeeRecord) -> EmployeeRecord:
            return employee.model_copy(update={"voting_group": assigner.assign(employee)})

        return await self._recompute(annotate, "voting groups")

    async def get_sync_status(self) -> SyncStatus:
        directory_count = await self._bounded(
            self.directory.count_active_employees(self.page_size, self.max_employees)
        )
        stored_count = await self._bounded(self.employees.count(active_only=True))
        return SyncStatus(
            directory_employee_count=directory_count,
            stored_employee_count=stored_count,
            sync_needed=directory_count != stored_count,
        )
