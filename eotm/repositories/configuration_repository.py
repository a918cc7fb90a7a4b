"""Singleton configuration documents (one document per config kind)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from azure.cosmos.exceptions import CosmosResourceNotFoundError

from eotm.core.cosmos import CosmosDatabase
from eotm.models.configuration import (
    ELIGIBILITY_CONFIG_ID,
    VOTING_GROUP_CONFIG_ID,
    EligibilityConfig,
    VotingGroupConfig,
)
from eotm.models.employee import CamelModel

logger = logging.getLogger(__name__)

ConfigT = TypeVar("ConfigT", bound=CamelModel)


class ConfigurationRepository(Generic[ConfigT]):
    """Reads and writes the document ``config_id`` as a ``model`` instance.

    A missing document reads as the model's defaults; nothing is written
    until the first ``upsert`` or ``reset``.
    """

    def __init__(
        self,
        database: CosmosDatabase,
        model: type[ConfigT],
        config_id: str,
        container_name: str = "configuration",
    ) -> None:
        self.database = database
        self.model = model
        self.config_id = config_id
        self.container_name = container_name
        # Both field names and their camelCase aliases are accepted in updates
        self._aliases: dict[str, str] = {}
        for name, info in model.model_fields.items():
            alias = info.alias or name
            self._aliases[name] = alias
            self._aliases[alias] = alias

    @property
    def container(self) -> Any:
        return self.database.container(self.container_name)

    def _from_document(self, raw: dict[str, Any]) -> ConfigT:
        return self.model.model_validate({k: v for k, v in raw.items() if not k.startswith("_")})

    async def get(self) -> ConfigT:
        try:
            raw = await self.container.read_item(item=self.config_id, partition_key=self.config_id)
        except CosmosResourceNotFoundError:
            logger.info("No stored %s configuration, using defaults", self.config_id)
            return self.model(id=self.config_id)
        return self._from_document(raw)

    async def upsert(self, partial: dict[str, Any]) -> ConfigT:
        """Overlay ``partial`` (camelCase or snake_case keys) on the stored config.

        Raises pydantic ``ValidationError`` when the merged document is invalid;
        nothing is written in that case.
        """
        current = await self.get()
        merged = current.to_document()
        for key, value in partial.items():
            alias = self._aliases.get(key)
            if alias is None:
                logger.warning("Ignoring unknown %s configuration key %r", self.config_id, key)
                continue
            merged[alias] = value

        now = datetime.now(timezone.utc)
        merged["id"] = self.config_id
        merged["createdAt"] = merged.get("createdAt") or current.created_at or now
        merged["updatedAt"] = now
        validated = self.model.model_validate(merged)

        stored = await self.container.upsert_item(body=validated.to_document())
        return self._from_document(stored)

    async def reset(self) -> ConfigT:
        now = datetime.now(timezone.utc)
        defaults = self.model(id=self.config_id, created_at=now, updated_at=now)
        stored = await self.container.upsert_item(body=defaults.to_document())
        logger.info("Reset %s configuration to defaults", self.config_id)
        return self._from_document(stored)


def eligibility_repository(
    database: CosmosDatabase,
    container_name: str = "configuration",
) -> ConfigurationRepository[EligibilityConfig]:
    return ConfigurationRepository(database, EligibilityConfig, ELIGIBILITY_CONFIG_ID, container_name)


def voting_group_repository(
    database: CosmosDatabase,
    container_name: str = "configuration",
) -> ConfigurationRepository[VotingGroupConfig]:
    return ConfigurationRepository(database, VotingGroupConfig, VOTING_GROUP_CONFIG_ID, container_name)
