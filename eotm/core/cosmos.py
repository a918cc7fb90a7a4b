"""Shared async Cosmos DB client for the repositories."""

from __future__ import annotations

import logging
from typing import Any

from azure.cosmos.aio import CosmosClient

from eotm.core.config import Settings

logger = logging.getLogger(__name__)


class CosmosDatabase:
    def __init__(self) -> None:
        self.client: CosmosClient | None = None
        self.database: Any = None
        self.containers: dict[str, Any] = {}
        self.initialized: bool = False

    async def initialize(self, settings: Settings) -> None:
        if self.initialized:
            return

        if not settings.COSMOS_DB_ENDPOINT or not settings.COSMOS_DB_KEY:
            logger.warning("Cosmos DB credentials missing — database not initialized")
            return

        self.client = CosmosClient(settings.COSMOS_DB_ENDPOINT, settings.COSMOS_DB_KEY)
        self.database = self.client.get_database_client(settings.COSMOS_DB_DATABASE)
        self.initialized = True
        logger.info("CosmosDatabase initialized (database=%s)", settings.COSMOS_DB_DATABASE)

    async def close(self) -> None:
        if self.client:
            await self.client.close()
        self.client = None
        self.database = None
        self.containers = {}
        self.initialized = False

    def container(self, name: str) -> Any:
        if not self.initialized:
            raise RuntimeError("Cosmos DB not initialized")
        if name not in self.containers:
            self.containers[name] = self.database.get_container_client(name)
        return self.containers[name]

    async def check_connection(self, container_name: str) -> bool:
        if not self.initialized:
            return False
        try:
            async for _ in self.container(container_name).query_items(
                query="SELECT VALUE COUNT(1) FROM c",
                enable_cross_partition_query=True,
            ):
                return True
            return True
        except Exception:
            logger.exception("Cosmos DB connection check failed")
            return False


cosmos_database = CosmosDatabase()
