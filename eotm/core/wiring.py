"""Builds the service graph from ``Settings``; shared by the API and scripts."""

from __future__ import annotations

from dataclasses import dataclass

from eotm.core.config import Settings
from eotm.core.cosmos import CosmosDatabase
from eotm.models.configuration import EligibilityConfig, VotingGroupConfig
from eotm.repositories.configuration_repository import (
    ConfigurationRepository,
    eligibility_repository,
    voting_group_repository,
)
from eotm.repositories.employee_repository import EmployeeRepository
from eotm.services.configuration_service import ConfigurationService
from eotm.services.directory_service import GraphDirectoryService
from eotm.services.roster_loader import RosterLoader
from eotm.services.sync_service import EmployeeSyncService


@dataclass
class Services:
    database: CosmosDatabase
    directory: GraphDirectoryService
    roster: RosterLoader
    employees: EmployeeRepository
    eligibility_configs: ConfigurationRepository[EligibilityConfig]
    voting_group_configs: ConfigurationRepository[VotingGroupConfig]
    sync: EmployeeSyncService
    configuration: ConfigurationService


def build_services(settings: Settings, database: CosmosDatabase, directory: GraphDirectoryService) -> Services:
    employees = EmployeeRepository(database, settings.COSMOS_DB_EMPLOYEES_CONTAINER)
    eligibility_configs = eligibility_repository(database, settings.COSMOS_DB_CONFIGURATION_CONTAINER)
    voting_group_configs = voting_group_repository(database, settings.COSMOS_DB_CONFIGURATION_CONTAINER)
    roster = RosterLoader(settings.EMPLOYEE_ROSTER_PATH)

    primary_source = "roster" if settings.SYNC_PRIMARY_SOURCE.strip().lower() == "roster" else "directory"
    sync = EmployeeSyncService(
        directory,
        roster,
        employees,
        eligibility_configs,
        voting_group_configs,
        page_size=settings.SYNC_PAGE_SIZE,
        max_employees=settings.SYNC_MAX_EMPLOYEES,
        timeout_seconds=settings.SYNC_EXTERNAL_TIMEOUT_SECONDS,
        primary_source=primary_source,
    )

    return Services(
        database=database,
        directory=directory,
        roster=roster,
        employees=employees,
        eligibility_configs=eligibility_configs,
        voting_group_configs=voting_group_configs,
        sync=sync,
        configuration=ConfigurationService(eligibility_configs, voting_group_configs, sync),
    )
