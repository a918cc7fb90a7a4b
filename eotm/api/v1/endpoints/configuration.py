from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from eotm.core.dependencies import get_configuration_service, get_current_user, require_admin
from eotm.models.auth import UserInfo
from eotm.models.configuration import EligibilityConfig, VotingGroupConfig
from eotm.services.configuration_service import ConfigUpdate, ConfigurationError, ConfigurationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/configuration", tags=["configuration"])


def _update_response(update: ConfigUpdate[Any], label: str) -> dict[str, Any]:
    body: dict[str, Any] = {"config": update.config.to_document()}
    if update.warning:
        body["message"] = f"{label} configuration updated, but employee update failed"
        body["warning"] = update.warning
    else:
        body["message"] = f"{label} configuration updated successfully"
        body["employeesUpdated"] = update.employees_updated
        body["updateErrors"] = [e.to_document() for e in update.update_errors]
    return body


def _bad_request(err: ConfigurationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid configuration: {err}")


@router.get("/eligibility", response_model=EligibilityConfig)
async def get_eligibility_config(
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    configuration: ConfigurationService = Depends(get_configuration_service),  # noqa: B008
):
    try:
        return await configuration.get_eligibility_config()
    except Exception as err:
        logger.exception("Failed to read eligibility configuration")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve eligibility configuration",
        ) from err


@router.put("/eligibility")
async def update_eligibility_config(
    partial: dict[str, Any] = Body(...),  # noqa: B008
    user: UserInfo = Depends(require_admin),  # noqa: B008
    configuration: ConfigurationService = Depends(get_configuration_service),  # noqa: B008
):
    try:
        update = await configuration.update_eligibility_config(partial)
    except ConfigurationError as err:
        raise _bad_request(err) from err
    except Exception as err:
        logger.exception("Failed to update eligibility configuration")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update eligibility configuration",
        ) from err
    return _update_response(update, "Eligibility")


@router.post("/eligibility/reset", response_model=EligibilityConfig)
async def reset_eligibility_config(
    user: UserInfo = Depends(require_admin),  # noqa: B008
    configuration: ConfigurationService = Depends(get_configuration_service),  # noqa: B008
):
    try:
        config = await configuration.reset_eligibility_config()
    except Exception as err:
        logger.exception("Failed to reset eligibility configuration")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reset eligibility configuration",
        ) from err
    logger.info("Eligibility configuration reset to defaults by %s", user.email)
    return config


@router.get("/voting-groups", response_model=VotingGroupConfig)
async def get_voting_group_config(
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    configuration: ConfigurationService = Depends(get_configuration_service),  # noqa: B008
):
    try:
        return await configuration.get_voting_group_config()
    except Exception as err:
        logger.exception("Failed to read voting group configuration")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve voting group configuration",
        ) from err


@router.put("/voting-groups")
async def update_voting_group_config(
    partial: dict[str, Any] = Body(...),  # noqa: B008
    user: UserInfo = Depends(require_admin),  # noqa: B008
    configuration: ConfigurationService = Depends(get_configuration_service),  # noqa: B008
):
    try:
        update = await configuration.update_voting_group_config(partial)
    except ConfigurationError as err:
        raise _bad_request(err) from err
    except Exception as err:
        logger.exception("Failed to update voting group configuration")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update voting group configuration",
        ) from err
    return _update_response(update, "Voting group")


@router.post("/voting-groups/reset", response_model=VotingGroupConfig)
async def reset_voting_group_config(
    user: UserInfo = Depends(require_admin),  # noqa: B008
    configuration: ConfigurationService = Depends(get_configuration_service),  # noqa: B008
):
    try:
        config = await configuration.reset_voting_group_config()
    except Exception as err:
        logger.exception("Failed to reset voting group configuration")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reset voting group configuration",
        ) from err
    logger.info("Voting group configuration reset to defaults by %s", user.email)
    return config
