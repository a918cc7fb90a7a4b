"""Collaborator interfaces injected into :class:`EmployeeSyncService`."""

from __future__ import annotations

from typing import Any, Protocol, TypeVar

from eotm.models.employee import EmployeeFilters, EmployeeRecord, ExternalRosterRecord
from eotm.models.sync import DirectoryPage, FetchResult

ConfigT = TypeVar("ConfigT", covariant=True)


class DirectoryClient(Protocol):
    async def list_active_employees(
        self,
        page_size: int = ...,
        page_token: str | None = ...,
    ) -> FetchResult[DirectoryPage]: ...

    async def get_by_id(self, employee_id: str) -> FetchResult[EmployeeRecord | None]: ...

    async def count_active_employees(self, page_size: int = ..., max_employees: int = ...) -> int: ...


class RosterSource(Protocol):
    async def load(self) -> FetchResult[list[ExternalRosterRecord]]: ...


class EmployeeStore(Protocol):
    async def create(self, employee: EmployeeRecord) -> EmployeeRecord: ...

    async def find_by_id(self, employee_id: str) -> EmployeeRecord | None: ...

    async def find_all(self, filters: EmployeeFilters | None = ...) -> list[EmployeeRecord]: ...

    async def update(self, employee: EmployeeRecord) -> EmployeeRecord: ...

    async def count(self, active_only: bool = ...) -> int: ...


class ConfigStore(Protocol[ConfigT]):
    async def get(self) -> ConfigT: ...

    async def upsert(self, partial: dict[str, Any]) -> ConfigT: ...

    async def reset(self) -> ConfigT: ...
