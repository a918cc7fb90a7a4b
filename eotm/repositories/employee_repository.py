"""Cosmos DB employee store. Documents are partitioned by ``/id``."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from azure.cosmos.exceptions import CosmosResourceNotFoundError

from eotm.core.cosmos import CosmosDatabase
from eotm.models.employee import EmployeeFilters, EmployeeRecord

logger = logging.getLogger(__name__)

# EmployeeFilters attribute -> stored document key
_FILTER_FIELDS: list[tuple[str, str]] = [
    ("is_active", "isActive"),
    ("department", "department"),
    ("position", "position"),
    ("location", "location"),
    ("voting_group", "votingGroup"),
]

# Lookup name -> stored document key
DISTINCT_FIELDS: dict[str, str] = {
    "voting_group": "votingGroup",
    "location": "location",
    "department": "department",
    "position": "position",
}


def build_query(filters: EmployeeFilters | None) -> tuple[str, list[dict[str, Any]]]:
    conditions: list[str] = []
    params: list[dict[str, Any]] = []

    if filters:
        for attribute, key in _FILTER_FIELDS:
            value = getattr(filters, attribute)
            if value is None or value == "":
                continue
            conditions.append(f"c.{key} = @{key}")
            params.append({"name": f"@{key}", "value": value})

    query = "SELECT * FROM c"
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY c.fullName"
    return query, params


class EmployeeRepository:
    def __init__(self, database: CosmosDatabase, container_name: str = "employees") -> None:
        self.database = database
        self.container_name = container_name

    @property
    def container(self) -> Any:
        return self.database.container(self.container_name)

    async def _query(self, query: str, params: list[dict[str, Any]]) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        async for item in self.container.query_items(
            query=query,
            parameters=params,
            enable_cross_partition_query=True,
        ):
            items.append(item)
        return items

    async def create(self, employee: EmployeeRecord) -> EmployeeRecord:
        now = datetime.now(timezone.utc)
        stamped = employee.model_copy(update={"created_at": employee.created_at or now, "updated_at": now})
        created = await self.container.create_item(body=stamped.to_document())
        return EmployeeRecord.from_document(created)

    async def find_by_id(self, employee_id: str) -> EmployeeRecord | None:
        try:
            raw = await self.container.read_item(item=employee_id, partition_key=employee_id)
        except CosmosResourceNotFoundError:
            return None
        return EmployeeRecord.from_document(raw)

    async def find_by_email(self, email: str) -> EmployeeRecord | None:
        items = await self._query(
            "SELECT * FROM c WHERE c.email = @email",
            [{"name": "@email", "value": email.lower()}],
        )
        return EmployeeRecord.from_document(items[0]) if items else None

    async def find_all(self, filters: EmployeeFilters | None = None) -> list[EmployeeRecord]:
        query, params = build_query(filters)
        return [EmployeeRecord.from_document(item) for item in await self._query(query, params)]

    async def update(self, employee: EmployeeRecord) -> EmployeeRecord:
        stamped = employee.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        replaced = await self.container.replace_item(item=employee.id, body=stamped.to_document())
        return EmployeeRecord.from_document(replaced)

    async def delete(self, employee_id: str) -> None:
        await self.container.delete_item(item=employee_id, partition_key=employee_id)

    async def count(self, active_only: bool = False) -> int:
        query = "SELECT VALUE COUNT(1) FROM c"
        if active_only:
            query += " WHERE c.isActive = true"
        items = await self._query(query, [])
        return int(items[0]) if items else 0

    async def set_exclude_from_sync(self, employee_id: str, exclude: bool) -> EmployeeRecord | None:
        employee = await self.find_by_id(employee_id)
        if not employee:
            return None
        return await self.update(employee.model_copy(update={"exclude_from_sync": exclude}))

    async def distinct_values(self, field: str) -> list[str]:
        """Sorted non-blank values of ``field`` across active employees."""
        key = DISTINCT_FIELDS.get(field)
        if key is None:
            raise ValueError(f"Unsupported lookup field: {field}")
        items = await self._query(f"SELECT DISTINCT VALUE c.{key} FROM c WHERE c.isActive = true", [])
        return sorted({str(v).strip() for v in items if v is not None and str(v).strip()})
