from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from eotm.core.dependencies import get_current_user, get_sync_service, require_admin
from eotm.models.auth import UserInfo
from eotm.models.employee import RecomputeResult, SingleSyncResult, SyncResult, SyncStatus
from eotm.services.sync_service import EmployeeSyncService, SyncFatalError, SyncInProgressError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["sync"])


@router.post("/sync", response_model=SyncResult)
async def run_full_sync(
    dry_run: bool = False,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    sync_service: EmployeeSyncService = Depends(get_sync_service),  # noqa: B008
):
    logger.info("Full sync requested by %s (dry_run=%s)", user.email, dry_run)
    try:
        return await sync_service.run_full_sync(dry_run=dry_run)
    except SyncInProgressError as err:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A sync is already running",
        ) from err
    except SyncFatalError as err:
        logger.error("Full sync failed: %s", err)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Sync failed: {err}",
        ) from err


@router.get("/sync/status", response_model=SyncStatus)
async def sync_status(
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    sync_service: EmployeeSyncService = Depends(get_sync_service),  # noqa: B008
):
    try:
        return await sync_service.get_sync_status()
    except Exception as err:
        logger.exception("Failed to compute sync status")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute sync status",
        ) from err


@router.post("/{employee_id}/sync", response_model=SingleSyncResult)
async def sync_single_employee(
    employee_id: str,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    sync_service: EmployeeSyncService = Depends(get_sync_service),  # noqa: B008
):
    try:
        result = await sync_service.run_single_employee_sync(employee_id)
    except SyncFatalError as err:
        logger.error("Sync of employee %s failed: %s", employee_id, err)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Sync failed: {err}",
        ) from err

    if not result.success:
        logger.warning("Sync of employee %s did not complete: %s", employee_id, result.message)
    return result


@router.post("/voting-groups/update", response_model=RecomputeResult)
async def update_voting_groups(
    user: UserInfo = Depends(require_admin),  # noqa: B008
    sync_service: EmployeeSyncService = Depends(get_sync_service),  # noqa: B008
):
    logger.info("Voting group recompute requested by %s", user.email)
    try:
        return await sync_service.recompute_voting_groups_for_all()
    except Exception as err:
        logger.exception("Failed to recompute voting groups")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update voting groups",
        ) from err
