"""Microsoft Graph directory reads (users), over plain REST with aiohttp."""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timezone
from typing import Any
from urllib.parse import parse_qs, quote, urlparse

import aiohttp

from eotm.core.config import Settings
from eotm.models.employee import EmployeeRecord
from eotm.models.sync import DirectoryPage, FetchResult
from eotm.services.name_normalizer import capitalize_words

logger = logging.getLogger(__name__)

SOURCE = "directory"

USER_FIELDS = (
    "id",
    "displayName",
    "givenName",
    "surname",
    "mail",
    "userPrincipalName",
    "department",
    "jobTitle",
    "officeLocation",
    "companyName",
    "employeeType",
    "employeeHireDate",
    "accountEnabled",
)

_TOKEN_REFRESH_MARGIN_SECONDS = 60


def _clean(value: Any) -> str | None:
    text = str(value).strip() if value is not None else ""
    return text or None


def _parse_graph_date(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def transform_user(user: dict[str, Any]) -> EmployeeRecord:
    first = _clean(user.get("givenName"))
    last = _clean(user.get("surname"))
    constructed = " ".join(p for p in (first, last) if p)
    email = _clean(user.get("mail")) or _clean(user.get("userPrincipalName"))

    return EmployeeRecord(
        id=user["id"],
        first_name=capitalize_words(first),
        last_name=capitalize_words(last),
        full_name=capitalize_words(constructed) if constructed else _clean(user.get("displayName")),
        email=email.lower() if email else None,
        department=_clean(user.get("department")),
        position=_clean(user.get("jobTitle")),
        job_title=_clean(user.get("jobTitle")),
        location=_clean(user.get("officeLocation")),
        is_active=user.get("accountEnabled", True) is not False,
        hire_date=_parse_graph_date(user.get("employeeHireDate")),
        source="directory",
    )


def next_page_token(next_link: str | None) -> str | None:
    if not next_link:
        return None
    values = parse_qs(urlparse(next_link).query).get("$skiptoken")
    return values[0] if values else None


class GraphDirectoryService:
    def __init__(self) -> None:
        self.initialized = False
        self.tenant_id = ""
        self.client_id = ""
        self.client_secret = ""
        self.api_base_url = ""
        self.login_base_url = ""
        self.exclude_domains: list[str] = []
        self.exclude_patterns: list[str] = []
        self.timeout_seconds = 30.0
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def initialize(self, settings: Settings) -> None:
        if self.initialized:
            return

        self.exclude_domains = Settings.split_list(settings.SYNC_EXCLUDE_DOMAINS)
        self.exclude_patterns = Settings.split_list(settings.SYNC_EXCLUDE_PATTERNS)

        if not settings.GRAPH_TENANT_ID or not settings.GRAPH_CLIENT_ID or not settings.GRAPH_CLIENT_SECRET:
            logger.warning("Graph credentials missing — GraphDirectoryService not initialized")
            return

        self.tenant_id = settings.GRAPH_TENANT_ID
        self.client_id = settings.GRAPH_CLIENT_ID
        self.client_secret = settings.GRAPH_CLIENT_SECRET
        self.api_base_url = settings.GRAPH_API_BASE_URL.rstrip("/")
        self.login_base_url = settings.GRAPH_LOGIN_BASE_URL.rstrip("/")
        self.timeout_seconds = settings.SYNC_EXTERNAL_TIMEOUT_SECONDS
        self.initialized = True
        logger.info(
            "GraphDirectoryService initialized (exclude domains=%s, patterns=%s)",
            self.exclude_domains,
            self.exclude_patterns,
        )

    async def close(self) -> None:
        self.initialized = False
        self._token = None
        self._token_expires_at = 0.0

    def should_exclude(self, user: dict[str, Any]) -> bool:
        mail = (user.get("mail") or "").lower()
        if not mail:
            return True
        return any(domain in mail for domain in self.exclude_domains) or any(
            pattern in mail for pattern in self.exclude_patterns
        )

    async def _get_token(self, session: aiohttp.ClientSession) -> str:
        if self._token and time.time() < self._token_expires_at - _TOKEN_REFRESH_MARGIN_SECONDS:
            return self._token

        url = f"{self.login_base_url}/{self.tenant_id}/oauth2/v2.0/token"
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": "https://graph.microsoft.com/.default",
            "grant_type": "client_credentials",
        }
        async with session.post(url, data=data) as response:
            if response.status != 200:
                error_text = await response.text()
                raise RuntimeError(f"Token request failed: {response.status} - {error_text}")
            payload = await response.json()

        self._token = payload["access_token"]
        self._token_expires_at = time.time() + float(payload.get("expires_in", 3600))
        return self._token

    async def _get_json(self, path: str, params: dict[str, str]) -> dict[str, Any] | None:
        """GET a Graph resource; None on 404, RuntimeError on other failures."""
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            token = await self._get_token(session)
            headers = {"Authorization": f"Bearer {token}", "ConsistencyLevel": "eventual"}
            async with session.get(f"{self.api_base_url}{path}", headers=headers, params=params) as response:
                if response.status == 200:
                    return await response.json()
                if response.status == 404:
                    return None
                error_text = await response.text()
                raise RuntimeError(f"Graph request failed: {response.status} - {error_text}")

    async def list_active_employees(
        self,
        page_size: int = 999,
        page_token: str | None = None,
    ) -> FetchResult[DirectoryPage]:
        if not self.initialized:
            return FetchResult.failure(DirectoryPage(), SOURCE, "Directory service not configured")

        params = {
            "$filter": "accountEnabled eq true",
            "$select": ",".join(USER_FIELDS),
            "$top": str(page_size),
        }
        if page_token:
            params["$skiptoken"] = page_token

        try:
            data = await self._get_json("/users", params) or {}
        except Exception as e:
            logger.exception("Failed to fetch directory page")
            return FetchResult.failure(DirectoryPage(), SOURCE, f"Directory page fetch failed: {e}")

        users = data.get("value", [])
        kept = [u for u in users if not self.should_exclude(u)]
        if len(kept) != len(users):
            logger.info("Excluded %d of %d directory users by configured rules", len(users) - len(kept), len(users))

        page = DirectoryPage(
            employees=[transform_user(u) for u in kept],
            next_page_token=next_page_token(data.get("@odata.nextLink")),
        )
        logger.debug("Fetched %d directory users, has_more=%s", len(page.employees), page.has_more)
        return FetchResult(page)

    async def get_by_id(self, employee_id: str) -> FetchResult[EmployeeRecord | None]:
        if not self.initialized:
            return FetchResult.failure(None, SOURCE, "Directory service not configured")
        try:
            user = await self._get_json(f"/users/{quote(employee_id)}", {"$select": ",".join(USER_FIELDS)})
        except Exception as e:
            logger.exception("Failed to fetch directory user %s", employee_id)
            return FetchResult.failure(None, SOURCE, f"Directory lookup failed: {e}")
        return FetchResult(transform_user(user) if user else None)

    async def get_by_email(self, email: str) -> FetchResult[EmployeeRecord | None]:
        if not self.initialized:
            return FetchResult.failure(None, SOURCE, "Directory service not configured")

        escaped = email.replace("'", "''")
        params = {
            "$filter": f"mail eq '{escaped}' or userPrincipalName eq '{escaped}'",
            "$select": ",".join(USER_FIELDS),
        }
        try:
            data = await self._get_json("/users", params) or {}
        except Exception as e:
            logger.exception("Failed to fetch directory user by email")
            return FetchResult.failure(None, SOURCE, f"Directory lookup failed: {e}")

        users = data.get("value", [])
        return FetchResult(transform_user(users[0]) if users else None)

    async def count_active_employees(self, page_size: int = 999, max_employees: int = 10_000) -> int:
        total = 0
        token: str | None = None
        seen_tokens: set[str] = set()
        max_pages = 2 * math.ceil(max_employees / page_size) + 1
        for _ in range(max_pages):
            result = await self.list_active_employees(page_size, token)
            if not result.ok:
                break
            total += len(result.value.employees)
            token = result.value.next_page_token
            if not token or token in seen_tokens or total >= max_employees:
                break
            seen_tokens.add(token)
        return min(total, max_employees)

    async def check_connection(self) -> bool:
        if not self.initialized:
            return False
        result = await self.list_active_employees(page_size=1)
        return result.ok


directory_service = GraphDirectoryService()
