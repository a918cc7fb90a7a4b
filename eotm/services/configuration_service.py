"""Eligibility and voting-group configuration updates.

Saving a configuration re-derives the matching annotation on every stored
employee. A failed re-derivation keeps the saved configuration and is
reported as a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from eotm.models.configuration import EligibilityConfig, VotingGroupConfig
from eotm.models.employee import SyncError
from eotm.services.protocols import ConfigStore
from eotm.services.sync_service import EmployeeSyncService

logger = logging.getLogger(__name__)

ConfigT = TypeVar("ConfigT")

ELIGIBILITY_WARNING = "Employees may need manual eligibility update"
VOTING_GROUP_WARNING = "Employees may need manual voting group update"


class ConfigurationError(Exception):
    """A configuration update was rejected; nothing was saved."""


@dataclass
class ConfigUpdate(Generic[ConfigT]):
    config: ConfigT
    employees_updated: int = 0
    update_errors: list[SyncError] = field(default_factory=list)
    warning: str | None = None


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in detail['loc'])}: {detail['msg']}" for detail in error.errors()
    )


class ConfigurationService:
    def __init__(
        self,
        eligibility_configs: ConfigStore[EligibilityConfig],
        voting_group_configs: ConfigStore[VotingGroupConfig],
        sync_service: EmployeeSyncService,
    ) -> None:
        self.eligibility_configs = eligibility_configs
        self.voting_group_configs = voting_group_configs
        self.sync_service = sync_service

    async def get_eligibility_config(self) -> EligibilityConfig:
        return await self.eligibility_configs.get()

    async def get_voting_group_config(self) -> VotingGroupConfig:
        return await self.voting_group_configs.get()

    async def update_eligibility_config(self, partial: dict[str, Any]) -> ConfigUpdate[EligibilityConfig]:
        try:
            config = await self.eligibility_configs.upsert(partial)
        except ValidationError as e:
            raise ConfigurationError(_describe(e)) from e
        logger.info("Eligibility configuration updated")

        try:
            recomputed = await self.sync_service.recompute_eligibility_for_all(config)
        except Exception:
            logger.exception("Eligibility configuration saved but employee update failed")
            return ConfigUpdate(config, warning=ELIGIBILITY_WARNING)
        return ConfigUpdate(config, recomputed.total_updated, recomputed.errors)

    async def update_voting_group_config(self, partial: dict[str, Any]) -> ConfigUpdate[VotingGroupConfig]:
        try:
            config = await self.voting_group_configs.upsert(partial)
        except ValidationError as e:
            raise ConfigurationError(_describe(e)) from e
        logger.info("Voting group configuration updated (strategy=%s)", config.strategy)

        try:
            recomputed = await self.sync_service.recompute_voting_groups_for_all(config)
        except Exception:
            logger.exception("Voting group configuration saved but employee update failed")
            return ConfigUpdate(config, warning=VOTING_GROUP_WARNING)
        return ConfigUpdate(config, recomputed.total_updated, recomputed.errors)

    async def reset_eligibility_config(self) -> EligibilityConfig:
        return await self.eligibility_configs.reset()

    async def reset_voting_group_config(self) -> VotingGroupConfig:
        return await self.voting_group_configs.reset()
