from fastapi import APIRouter

from eotm.api.v1.endpoints import configuration, employees, health, sync

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router)
# Registered before employees so /employees/sync is not read as an employee id
api_router.include_router(sync.router)
api_router.include_router(employees.router)
api_router.include_router(configuration.router)
