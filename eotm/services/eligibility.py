from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from eotm.models.configuration import EligibilityConfig
from eotm.models.employee import EmployeeRecord

RULE_INACTIVE = "inactive"
RULE_EXCLUDED_JOB_TITLE = "excluded_job_title"
RULE_EXCLUDED_DEPARTMENT = "excluded_department"
RULE_EXCLUDED_POSITION = "excluded_position"
RULE_EXCLUDED_POSITION_KEYWORD = "excluded_position_keyword"
RULE_COMPANY_CODE_NOT_ALLOWED = "company_code_not_allowed"
RULE_EXCLUDED_COMPANY_CODE = "excluded_company_code"
RULE_TOO_MANY_DIRECT_REPORTS = "too_many_direct_reports"
RULE_MISSING_HIRE_DATE = "missing_hire_date"
RULE_INSUFFICIENT_TENURE = "insufficient_tenure"


@dataclass(frozen=True)
class EligibilityDecision:
    eligible: bool
    failed_rule: str | None = None


ELIGIBLE = EligibilityDecision(eligible=True)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _tenure_start(employee: EmployeeRecord) -> datetime | None:
    start = employee.rehire_date or employee.hire_date
    return _aware(start) if start else None


def check_eligibility(
    employee: EmployeeRecord,
    config: EligibilityConfig,
    now: datetime | None = None,
) -> EligibilityDecision:
    """Apply the eligibility rules in order and stop at the first failure.

    Tenure uses plain elapsed time (``now - start``) against a day count; no
    calendar-month arithmetic.
    """
    if config.require_active_status and not employee.is_active:
        return EligibilityDecision(False, RULE_INACTIVE)

    if employee.job_title and employee.job_title in config.excluded_job_titles:
        return EligibilityDecision(False, RULE_EXCLUDED_JOB_TITLE)
    if employee.department and employee.department in config.excluded_departments:
        return EligibilityDecision(False, RULE_EXCLUDED_DEPARTMENT)
    if employee.position and employee.position in config.excluded_positions:
        return EligibilityDecision(False, RULE_EXCLUDED_POSITION)
    if employee.position:
        position = employee.position.lower()
        if any(k.strip() and k.strip().lower() in position for k in config.excluded_position_keywords):
            return EligibilityDecision(False, RULE_EXCLUDED_POSITION_KEYWORD)

    rules = config.custom_rules
    if rules.allowed_company_codes and employee.company_code not in rules.allowed_company_codes:
        return EligibilityDecision(False, RULE_COMPANY_CODE_NOT_ALLOWED)
    if employee.company_code and employee.company_code in rules.excluded_company_codes:
        return EligibilityDecision(False, RULE_EXCLUDED_COMPANY_CODE)

    threshold = rules.min_direct_reports_for_exclusion
    reports = employee.direct_reports_count
    if threshold is not None and reports is not None and reports >= threshold:
        return EligibilityDecision(False, RULE_TOO_MANY_DIRECT_REPORTS)

    start = _tenure_start(employee)
    if start is None:
        return EligibilityDecision(False, RULE_MISSING_HIRE_DATE)

    now = _aware(now) if now else datetime.now(timezone.utc)
    if now - start < timedelta(days=config.minimum_days_for_eligibility):
        return EligibilityDecision(False, RULE_INSUFFICIENT_TENURE)

    return ELIGIBLE


def is_eligible(employee: EmployeeRecord, config: EligibilityConfig, now: datetime | None = None) -> bool:
    return check_eligibility(employee, config, now).eligible


def years_of_service(
    hire_date: datetime | None,
    rehire_date: datetime | None = None,
    now: datetime | None = None,
) -> int:
    start = rehire_date or hire_date
    if not start:
        return 0
    now = _aware(now) if now else datetime.now(timezone.utc)
    return max(0, math.floor((now - _aware(start)) / timedelta(days=365)))
