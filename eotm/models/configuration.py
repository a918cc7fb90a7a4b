"""Singleton configuration documents in the ``configuration`` container."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Literal

from pydantic import Field, field_validator

from eotm.models.employee import CamelModel

logger = logging.getLogger(__name__)

ELIGIBILITY_CONFIG_ID = "eligibility"
VOTING_GROUP_CONFIG_ID = "voting-group"

VotingGroupStrategy = Literal["location", "department", "custom", "mixed"]
FallbackStrategy = Literal["location", "department", "none"]


class CustomRules(CamelModel):
    allowed_company_codes: list[str] = Field(default_factory=list)
    excluded_company_codes: list[str] = Field(default_factory=list)
    # Managers with this many reports or more are excluded
    min_direct_reports_for_exclusion: int | None = Field(default=None, ge=0)


class WinnersFormula(CamelModel):
    divisor: int = Field(default=25, gt=0)
    min_winners: int = Field(default=1, ge=0)


class EligibilityConfig(CamelModel):
    id: str = ELIGIBILITY_CONFIG_ID
    minimum_days_for_eligibility: int = Field(default=365, ge=0)
    require_active_status: bool = True
    excluded_job_titles: list[str] = Field(default_factory=list)
    excluded_departments: list[str] = Field(default_factory=list)
    excluded_positions: list[str] = Field(default_factory=list)
    excluded_position_keywords: list[str] = Field(default_factory=list)
    custom_rules: CustomRules = Field(default_factory=CustomRules)
    winners_formula: WinnersFormula = Field(default_factory=WinnersFormula)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DepartmentGroupMapping(CamelModel):
    group_name: str
    departments: list[str] = Field(default_factory=list)


class LocationGroupMapping(CamelModel):
    group_name: str
    locations: list[str] = Field(default_factory=list)


class MixedGroupMapping(CamelModel):
    group_name: str
    departments: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)


class VotingGroupConfig(CamelModel):
    id: str = VOTING_GROUP_CONFIG_ID
    strategy: VotingGroupStrategy = "location"
    department_group_mappings: list[DepartmentGroupMapping] = Field(default_factory=list)
    location_group_mappings: list[LocationGroupMapping] = Field(default_factory=list)
    mixed_group_mappings: list[MixedGroupMapping] = Field(default_factory=list)
    # Legacy form: {"Tijuana, Mexicali": "North"}
    custom_mappings: dict[str, str] = Field(default_factory=dict)
    fallback_strategy: FallbackStrategy = "location"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("custom_mappings", mode="before")
    @classmethod
    def _parse_custom_mappings(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            if not value.strip():
                return {}
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                logger.exception("Invalid JSON in custom voting group mappings — using no mappings")
                return {}
        if not isinstance(value, dict):
            logger.error("Custom voting group mappings must be an object, got %s", type(value).__name__)
            return {}
        return {str(k): str(v) for k, v in value.items()}
