from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from azure.cosmos.exceptions import CosmosResourceNotFoundError
from pydantic import ValidationError

from eotm.models.configuration import EligibilityConfig, VotingGroupConfig
from eotm.models.employee import EmployeeFilters, EmployeeRecord
from eotm.repositories.configuration_repository import eligibility_repository, voting_group_repository
from eotm.repositories.employee_repository import EmployeeRepository, build_query

SAMPLE_DOC = {
    "id": "aad-1",
    "firstName": "Ana",
    "lastName": "Perez",
    "fullName": "Ana Perez",
    "email": "ana@example.com",
    "department": "Sales",
    "isActive": True,
    "hireDate": "2019-04-01T00:00:00Z",
    "votingEligible": True,
    "votingGroup": "North",
    "_rid": "abc",
    "_etag": '"0000"',
    "_ts": 1700000000,
}


def _database(container: MagicMock) -> MagicMock:
    database = MagicMock()
    database.container.return_value = container
    return database


def _not_found() -> CosmosResourceNotFoundError:
    return CosmosResourceNotFoundError(status_code=404, message="Entity with the specified id does not exist")


def test_build_query_without_filters():
    query, params = build_query(None)
    assert query == "SELECT * FROM c ORDER BY c.fullName"
    assert params == []


def test_build_query_with_filters():
    query, params = build_query(EmployeeFilters(is_active=True, location="Tijuana"))

    assert "c.isActive = @isActive" in query
    assert "c.location = @location" in query
    assert {"name": "@isActive", "value": True} in params
    assert {"name": "@location", "value": "Tijuana"} in params


@pytest.mark.anyio
async def test_find_by_id_maps_document_and_drops_system_fields():
    container = MagicMock()
    container.read_item = AsyncMock(return_value=SAMPLE_DOC)
    repository = EmployeeRepository(_database(container))

    employee = await repository.find_by_id("aad-1")

    assert employee.full_name == "Ana Perez"
    assert employee.voting_group == "North"
    assert employee.hire_date.year == 2019
    container.read_item.assert_awaited_once_with(item="aad-1", partition_key="aad-1")


@pytest.mark.anyio
async def test_find_by_id_not_found_returns_none():
    container = MagicMock()
    container.read_item = AsyncMock(side_effect=_not_found())
    repository = EmployeeRepository(_database(container))

    assert await repository.find_by_id("missing") is None


@pytest.mark.anyio
async def test_find_all_passes_filters_to_query():
    container = MagicMock()
    captured: dict = {}

    async def mock_query_items(**kwargs):
        captured.update(kwargs)
        yield SAMPLE_DOC

    container.query_items = mock_query_items
    repository = EmployeeRepository(_database(container))

    employees = await repository.find_all(EmployeeFilters(department="Sales"))

    assert [e.id for e in employees] == ["aad-1"]
    assert captured["parameters"] == [{"name": "@department", "value": "Sales"}]
    assert captured["enable_cross_partition_query"] is True


@pytest.mark.anyio
async def test_find_by_email_lowercases():
    container = MagicMock()
    captured: dict = {}

    async def mock_query_items(**kwargs):
        captured.update(kwargs)
        return
        yield  # makes this an async generator

    container.query_items = mock_query_items
    repository = EmployeeRepository(_database(container))

    assert await repository.find_by_email("Ana@Example.com") is None
    assert captured["parameters"] == [{"name": "@email", "value": "ana@example.com"}]


@pytest.mark.anyio
async def test_create_stamps_timestamps_and_writes_camel_case():
    container = MagicMock()
    container.create_item = AsyncMock(side_effect=lambda body: body)
    repository = EmployeeRepository(_database(container))
    employee = EmployeeRecord(id="aad-1", full_name="Ana Perez", voting_group="North")
    created = await repository.create(employee)

    body = container.create_item.call_args.kwargs["body"]
    assert body["fullName"] == "Ana Perez"
    assert body["votingGroup"] == "North"
    assert body["createdAt"] is not None
    assert created.updated_at is not None


@pytest.mark.anyio
async def test_set_exclude_from_sync_missing_employee():
    container = MagicMock()
    container.read_item = AsyncMock(side_effect=_not_found())
    container.replace_item = AsyncMock()
    repository = EmployeeRepository(_database(container))

    assert await repository.set_exclude_from_sync("missing", True) is None
    container.replace_item.assert_not_awaited()


@pytest.mark.anyio
async def test_set_exclude_from_sync_replaces_document():
    container = MagicMock()
    container.read_item = AsyncMock(return_value=SAMPLE_DOC)
    container.replace_item = AsyncMock(side_effect=lambda item, body: body)
    repository = EmployeeRepository(_database(container))

    employee = await repository.set_exclude_from_sync("aad-1", True)

    assert employee.exclude_from_sync is True
    assert container.replace_item.call_args.kwargs["body"]["excludeFromSync"] is True


@pytest.mark.anyio
async def test_count():
    container = MagicMock()

    async def mock_query_items(**kwargs):
        yield 42

    container.query_items = mock_query_items
    repository = EmployeeRepository(_database(container))

    assert await repository.count() == 42


@pytest.mark.anyio
async def test_config_get_missing_document_returns_defaults():
    container = MagicMock()
    container.read_item = AsyncMock(side_effect=_not_found())
    repository = eligibility_repository(_database(container))

    config = await repository.get()

    assert isinstance(config, EligibilityConfig)
    assert config.id == "eligibility"
    assert config.minimum_days_for_eligibility == 365


@pytest.mark.anyio
async def test_config_get_parses_legacy_custom_mappings():
    container = MagicMock()
    container.read_item = AsyncMock(
        return_value={"id": "voting-group", "strategy": "custom", "customMappings": '{"Tijuana": "North"}'}
    )
    repository = voting_group_repository(_database(container))

    config = await repository.get()

    assert isinstance(config, VotingGroupConfig)
    assert config.custom_mappings == {"Tijuana": "North"}
    container.read_item.assert_awaited_once_with(item="voting-group", partition_key="voting-group")


@pytest.mark.anyio
async def test_config_upsert_merges_partial_update():
    container = MagicMock()
    container.read_item = AsyncMock(
        return_value={"id": "eligibility", "minimumDaysForEligibility": 180, "excludedDepartments": ["HR"]}
    )
    container.upsert_item = AsyncMock(side_effect=lambda body: body)
    repository = eligibility_repository(_database(container))

    config = await repository.upsert({"excluded_job_titles": ["Director"], "requireActiveStatus": False})

    assert config.minimum_days_for_eligibility == 180
    assert config.excluded_departments == ["HR"]
    assert config.excluded_job_titles == ["Director"]
    assert config.require_active_status is False
    assert config.updated_at is not None
    body = container.upsert_item.call_args.kwargs["body"]
    assert body["id"] == "eligibility"


@pytest.mark.anyio
async def test_config_upsert_rejects_negative_minimum_days():
    container = MagicMock()
    container.read_item = AsyncMock(side_effect=_not_found())
    container.upsert_item = AsyncMock()
    repository = eligibility_repository(_database(container))

    with pytest.raises(ValidationError):
        await repository.upsert({"minimumDaysForEligibility": -1})
    container.upsert_item.assert_not_awaited()


@pytest.mark.anyio
async def test_config_reset_writes_defaults():
    container = MagicMock()
    container.upsert_item = AsyncMock(side_effect=lambda body: body)
    repository = voting_group_repository(_database(container))

    config = await repository.reset()

    assert config.strategy == "location"
    assert config.created_at is not None


@pytest.mark.anyio
async def test_delete_uses_id_as_partition_key():
    container = MagicMock()
    container.delete_item = AsyncMock()
    repository = EmployeeRepository(_database(container))

    await repository.delete("aad-1")

    container.delete_item.assert_awaited_once_with(item="aad-1", partition_key="aad-1")


@pytest.mark.anyio
async def test_count_active_only_filters_on_is_active():
    container = MagicMock()
    captured: dict = {}

    async def mock_query_items(**kwargs):
        captured.update(kwargs)
        yield 7

    container.query_items = mock_query_items
    repository = EmployeeRepository(_database(container))

    assert await repository.count(active_only=True) == 7
    assert captured["query"] == "SELECT VALUE COUNT(1) FROM c WHERE c.isActive = true"


@pytest.mark.anyio
async def test_distinct_values_sorted_without_blanks():
    container = MagicMock()
    captured: dict = {}

    async def mock_query_items(**kwargs):
        captured.update(kwargs)
        for value in ["Tijuana", None, "  ", "Mexicali", "Tijuana "]:
            yield value

    container.query_items = mock_query_items
    repository = EmployeeRepository(_database(container))

    assert await repository.distinct_values("location") == ["Mexicali", "Tijuana"]
    assert captured["query"] == "SELECT DISTINCT VALUE c.location FROM c WHERE c.isActive = true"


@pytest.mark.anyio
async def test_distinct_values_rejects_unknown_field():
    repository = EmployeeRepository(_database(MagicMock()))

    with pytest.raises(ValueError, match="Unsupported lookup field"):
        await repository.distinct_values("email")
