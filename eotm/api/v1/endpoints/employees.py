from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from eotm.core.dependencies import get_current_user, get_employee_repository, require_admin
from eotm.models.auth import UserInfo
from eotm.models.employee import AutocompleteResult, EmployeeFilters, EmployeeRecord
from eotm.repositories.employee_repository import EmployeeRepository
from eotm.services.employee_lookup import MIN_QUERY_LENGTH, autocomplete

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["employees"])


@router.get("", response_model=list[EmployeeRecord])
async def list_employees(
    is_active: bool | None = None,
    department: str | None = None,
    position: str | None = None,
    location: str | None = None,
    voting_group: str | None = None,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeRepository = Depends(get_employee_repository),  # noqa: B008
):
    filters = EmployeeFilters(
        is_active=is_active,
        department=department,
        position=position,
        location=location,
        voting_group=voting_group,
    )
    try:
        return await employees.find_all(filters)
    except Exception as err:
        logger.exception("Failed to list employees")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve employees",
        ) from err


@router.get("/eligible", response_model=list[EmployeeRecord])
async def list_eligible_employees(
    voting_group: str | None = None,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeRepository = Depends(get_employee_repository),  # noqa: B008
):
    try:
        active = await employees.find_all(EmployeeFilters(is_active=True, voting_group=voting_group))
    except Exception as err:
        logger.exception("Failed to list eligible employees")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve employees",
        ) from err
    return [e for e in active if e.voting_eligible]


@router.get("/autocomplete", response_model=AutocompleteResult)
async def autocomplete_employees(
    q: str = Query(""),
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeRepository = Depends(get_employee_repository),  # noqa: B008
):
    if len(q.strip()) < MIN_QUERY_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Query must be at least {MIN_QUERY_LENGTH} characters",
        )
    try:
        active = await employees.find_all(EmployeeFilters(is_active=True))
    except Exception as err:
        logger.exception("Failed to autocomplete employees")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve employees",
        ) from err
    return autocomplete(active, q)


async def _distinct(employees: EmployeeRepository, field: str) -> list[str]:
    try:
        return await employees.distinct_values(field)
    except Exception as err:
        logger.exception("Failed to list distinct %s values", field)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve {field.replace('_', ' ')} values",
        ) from err


@router.get("/voting-groups", response_model=list[str])
async def list_voting_groups(
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeRepository = Depends(get_employee_repository),  # noqa: B008
):
    return await _distinct(employees, "voting_group")


@router.get("/locations", response_model=list[str])
async def list_locations(
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeRepository = Depends(get_employee_repository),  # noqa: B008
):
    return await _distinct(employees, "location")


@router.get("/departments", response_model=list[str])
async def list_departments(
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeRepository = Depends(get_employee_repository),  # noqa: B008
):
    return await _distinct(employees, "department")


@router.get("/positions", response_model=list[str])
async def list_positions(
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeRepository = Depends(get_employee_repository),  # noqa: B008
):
    return await _distinct(employees, "position")


@router.get("/{employee_id}", response_model=EmployeeRecord)
async def get_employee(
    employee_id: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeRepository = Depends(get_employee_repository),  # noqa: B008
):
    try:
        employee = await employees.find_by_id(employee_id)
    except Exception as err:
        logger.exception("Failed to get employee %s", employee_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve employee",
        ) from err

    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee '{employee_id}' not found",
        )
    return employee


async def _set_exclusion(employees: EmployeeRepository, employee_id: str, exclude: bool) -> EmployeeRecord:
    try:
        employee = await employees.set_exclude_from_sync(employee_id, exclude)
    except Exception as err:
        logger.exception("Failed to update sync exclusion for %s", employee_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update employee",
        ) from err

    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee '{employee_id}' not found",
        )
    logger.info("Employee %s exclude_from_sync=%s", employee_id, exclude)
    return employee


@router.post("/{employee_id}/exclude-from-sync", response_model=EmployeeRecord)
async def exclude_from_sync(
    employee_id: str,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    employees: EmployeeRepository = Depends(get_employee_repository),  # noqa: B008
):
    return await _set_exclusion(employees, employee_id, True)


@router.post("/{employee_id}/include-in-sync", response_model=EmployeeRecord)
async def include_in_sync(
    employee_id: str,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    employees: EmployeeRepository = Depends(get_employee_repository),  # noqa: B008
):
    return await _set_exclusion(employees, employee_id, False)
