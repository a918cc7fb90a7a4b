from __future__ import annotations

import base64
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from jose import jwt
from starlette.testclient import TestClient

from eotm.core.auth import clear_jwks_cache
from eotm.core.dependencies import get_current_user, get_services
from eotm.core.wiring import Services
from eotm.main import app
from eotm.models.auth import UserInfo
from eotm.models.configuration import EligibilityConfig, VotingGroupConfig
from eotm.models.employee import EmployeeRecord, ExternalRosterRecord
from eotm.services.configuration_service import ConfigurationService
from eotm.services.sync_service import EmployeeSyncService
from tests.fakes import FakeDirectory, FakeRoster, InMemoryConfigStore, InMemoryEmployeeStore

TEST_TENANT_ID = "test-tenant-00000000-0000-0000-0000-000000000000"
TEST_CLIENT_ID = "test-client-00000000-0000-0000-0000-000000000000"
TEST_KID = "test-kid-1"

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _int_to_base64url(value: int) -> str:
    byte_length = (value.bit_length() + 7) // 8
    return base64.urlsafe_b64encode(value.to_bytes(byte_length, byteorder="big")).rstrip(b"=").decode("ascii")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _auth_settings():
    from eotm.core.config import settings

    original_tenant = settings.AZURE_AD_TENANT_ID
    original_client = settings.AZURE_AD_CLIENT_ID
    settings.AZURE_AD_TENANT_ID = TEST_TENANT_ID
    settings.AZURE_AD_CLIENT_ID = TEST_CLIENT_ID
    clear_jwks_cache()
    yield
    settings.AZURE_AD_TENANT_ID = original_tenant
    settings.AZURE_AD_CLIENT_ID = original_client


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def rsa_test_keys():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("utf-8")

    pub = private_key.public_key().public_numbers()
    jwk_dict = {
        "kty": "RSA",
        "kid": TEST_KID,
        "use": "sig",
        "alg": "RS256",
        "n": _int_to_base64url(pub.n),
        "e": _int_to_base64url(pub.e),
    }
    jwks_response = {"keys": [jwk_dict]}
    return private_pem, jwks_response


def _make_token(
    private_pem: str,
    *,
    oid: str = "test-oid-123",
    name: str = "Test User",
    email: str = "test@example.com",
    roles: list[str] | None = None,
    expired: bool = False,
    audience: str = TEST_CLIENT_ID,
) -> str:
    now = int(time.time())
    claims = {
        "oid": oid,
        "name": name,
        "preferred_username": email,
        "roles": roles or [],
        "iss": f"https://login.microsoftonline.com/{TEST_TENANT_ID}/v2.0",
        "aud": audience,
        "exp": now - 3600 if expired else now + 3600,
        "iat": now - 60,
        "nbf": now - 60,
    }
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": TEST_KID})


def make_employee(employee_id: str, full_name: str, **fields) -> EmployeeRecord:
    first, _, last = full_name.partition(" ")
    defaults = {
        "first_name": first,
        "last_name": last or None,
        "email": f"{employee_id}@example.com",
        "hire_date": datetime(2020, 1, 15, tzinfo=timezone.utc),
    }
    defaults.update(fields)
    return EmployeeRecord(id=employee_id, full_name=full_name, **defaults)


def make_roster_row(row_id: int, raw_name: str, **fields) -> ExternalRosterRecord:
    from eotm.services.name_normalizer import to_display_order

    return ExternalRosterRecord(row_id=row_id, raw_name=raw_name, name=to_display_order(raw_name), **fields)


@pytest.fixture
def mock_user_viewer():
    return UserInfo(id="viewer-1", name="Viewer User", email="viewer@example.com", roles=["viewer"])


@pytest.fixture
def mock_user_admin():
    return UserInfo(id="admin-1", name="Admin User", email="admin@example.com", roles=["admin"])


@pytest.fixture
def employee_store():
    return InMemoryEmployeeStore(
        [
            make_employee("e1", "Ana Perez", department="Sales", location="Tijuana", voting_eligible=True),
            make_employee("e2", "John Smith", department="IT", location="Mexicali", is_active=False),
        ]
    )


@pytest.fixture
def fake_services(employee_store):
    directory = FakeDirectory([[make_employee("e1", "Ana Perez", department="Sales", location="Tijuana")]])
    roster = FakeRoster()
    eligibility_configs = InMemoryConfigStore(EligibilityConfig())
    voting_group_configs = InMemoryConfigStore(VotingGroupConfig())
    sync = EmployeeSyncService(directory, roster, employee_store, eligibility_configs, voting_group_configs)
    return Services(
        database=MagicMock(initialized=True),
        directory=directory,
        roster=roster,
        employees=employee_store,
        eligibility_configs=eligibility_configs,
        voting_group_configs=voting_group_configs,
        sync=sync,
        configuration=ConfigurationService(eligibility_configs, voting_group_configs, sync),
    )


@pytest.fixture
def authenticated_client(mock_user_admin, fake_services):
    app.dependency_overrides[get_current_user] = lambda: mock_user_admin
    app.dependency_overrides[get_services] = lambda: fake_services
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def viewer_client(mock_user_viewer, fake_services):
    app.dependency_overrides[get_current_user] = lambda: mock_user_viewer
    app.dependency_overrides[get_services] = lambda: fake_services
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
