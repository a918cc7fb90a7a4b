"""Employee models stored in the Cosmos DB ``employees`` container."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Source = Literal["directory", "roster", "merged"]


class CamelModel(BaseModel):
    """Stored documents and API payloads use camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class EmployeeRecord(CamelModel):
    id: str
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    email: str | None = None

    department: str | None = None
    position: str | None = None
    job_title: str | None = None
    position_id: str | None = None
    location: str | None = None
    company_code: str | None = None
    position_status: str | None = None
    reports_to: str | None = None
    direct_reports_count: int | None = None

    is_active: bool = True
    hire_date: datetime | None = None
    rehire_date: datetime | None = None

    source: Source = "directory"
    voting_eligible: bool = False
    ineligibility_reason: str | None = None
    voting_group: str | None = None
    exclude_from_sync: bool = False

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, raw: dict) -> EmployeeRecord:
        # Drop Cosmos system properties (_rid, _etag, _ts, ...)
        return cls.model_validate({k: v for k, v in raw.items() if not k.startswith("_")})


class ExternalRosterRecord(BaseModel):
    """One row of the spreadsheet roster. Lives for a single sync pass."""

    row_id: int
    name: str
    raw_name: str
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    position_id: str | None = None
    company_code: str | None = None
    job_title: str | None = None
    department: str | None = None
    location: str | None = None
    position_status: str | None = None
    hire_date: datetime | None = None
    rehire_date: datetime | None = None
    reports_to: str | None = None
    direct_reports: int | None = None


class EmployeeFilters(BaseModel):
    is_active: bool | None = None
    department: str | None = None
    position: str | None = None
    location: str | None = None
    voting_group: str | None = None


class SyncError(CamelModel):
    employee_id: str | None = None
    message: str


class SyncResult(CamelModel):
    new_users: int = 0
    updated_users: int = 0
    deactivated_users: int = 0
    skipped_users: int = 0
    total_processed: int = 0
    matched_external_records: int = 0
    unmatched_azure_employees: int = 0
    unmatched_external_records: int = 0
    errors: list[SyncError] = Field(default_factory=list)
    state: str = "done"


class SingleSyncResult(CamelModel):
    success: bool
    message: str
    employee: EmployeeRecord | None = None
    matched_with_external: bool = False


class RecomputeResult(CamelModel):
    total_updated: int = 0
    errors: list[SyncError] = Field(default_factory=list)


class SyncStatus(CamelModel):
    directory_employee_count: int
    stored_employee_count: int
    sync_needed: bool


class AutocompleteResult(CamelModel):
    employees: list[EmployeeRecord] = Field(default_factory=list)
    total: int = 0
