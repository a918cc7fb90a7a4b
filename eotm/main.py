from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eotm.api.v1.router import api_router
from eotm.core.config import settings
from eotm.core.cosmos import cosmos_database
from eotm.core.wiring import build_services
from eotm.services.directory_service import directory_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    try:
        await cosmos_database.initialize(settings)
    except Exception:
        logger.exception("Failed to initialize CosmosDatabase — continuing without DB")
    try:
        await directory_service.initialize(settings)
    except Exception:
        logger.exception("Failed to initialize GraphDirectoryService — continuing without directory")

    application.state.services = build_services(settings, cosmos_database, directory_service)
    yield
    await cosmos_database.close()
    await directory_service.close()


app = FastAPI(
    title="Employee of the Month API",
    description="Employee directory sync, eligibility and voting groups",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "Employee of the Month API"}
