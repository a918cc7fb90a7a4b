from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Request

from eotm.core.config import settings
from eotm.core.cosmos import cosmos_database
from eotm.services.directory_service import directory_service

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(request: Request):
    services: dict[str, str] = {}

    try:
        if cosmos_database.initialized:
            ok = await cosmos_database.check_connection(settings.COSMOS_DB_EMPLOYEES_CONTAINER)
            services["cosmos_db"] = "ok" if ok else "error"
        else:
            services["cosmos_db"] = "not_configured"
    except Exception:
        services["cosmos_db"] = "error"

    try:
        if directory_service.initialized:
            services["directory"] = "ok" if await directory_service.check_connection() else "error"
        else:
            services["directory"] = "not_configured"
    except Exception:
        services["directory"] = "error"

    roster_path = settings.EMPLOYEE_ROSTER_PATH
    if not roster_path:
        services["roster"] = "not_configured"
    else:
        services["roster"] = "ok" if Path(roster_path).is_file() else "error"

    all_ok = all(v in ("ok", "not_configured") for v in services.values())

    sync_service = getattr(getattr(request.app.state, "services", None), "sync", None)
    return {
        "status": "healthy" if all_ok else "degraded",
        "version": settings.APP_VERSION,
        "services": services,
        "sync_running": bool(sync_service and sync_service.running),
    }


@router.get("/ready")
async def readiness_probe():
    return {"ready": True}
