from __future__ import annotations

import logging

from fastapi import Depends, Header, HTTPException, Request, status

from eotm.core.auth import extract_roles_from_token, validate_token
from eotm.core.config import settings
from eotm.core.wiring import Services
from eotm.models.auth import UserInfo
from eotm.repositories.employee_repository import EmployeeRepository
from eotm.services.configuration_service import ConfigurationService
from eotm.services.sync_service import EmployeeSyncService

logger = logging.getLogger(__name__)


async def get_current_user(authorization: str | None = Header(None)) -> UserInfo:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization.split(" ", 1)[1]

    try:
        payload = await validate_token(
            token,
            settings.AZURE_AD_TENANT_ID,
            settings.AZURE_AD_CLIENT_ID,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Token validation error: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    return UserInfo(
        id=payload.get("oid"),
        name=payload.get("name"),
        email=payload.get("preferred_username"),
        roles=extract_roles_from_token(payload),
    )


def require_role(*roles: str):
    async def _check_role(user: UserInfo = Depends(get_current_user)) -> UserInfo:
        if not user.has_any_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {', '.join(roles)}",
            )
        return user

    return _check_role


require_admin = require_role(settings.ADMIN_ROLE)


def get_services(request: Request) -> Services:
    services: Services | None = getattr(request.app.state, "services", None)
    if services is None or not services.database.initialized:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Employee store not configured",
        )
    return services


def get_employee_repository(services: Services = Depends(get_services)) -> EmployeeRepository:  # noqa: B008
    return services.employees


def get_sync_service(services: Services = Depends(get_services)) -> EmployeeSyncService:  # noqa: B008
    return services.sync


def get_configuration_service(services: Services = Depends(get_services)) -> ConfigurationService:  # noqa: B008
    return services.configuration
