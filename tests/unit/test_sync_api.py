from __future__ import annotations

from unittest.mock import AsyncMock, patch

from eotm.services.sync_service import SyncInProgressError
from tests.conftest import make_employee


def test_full_sync_creates_new_directory_employees(authenticated_client, fake_services, employee_store):
    fake_services.directory.pages[0].append(make_employee("e3", "Luis Gomez", location="Ensenada"))

    response = authenticated_client.post("/api/v1/employees/sync")

    assert response.status_code == 200
    data = response.json()
    assert data["newUsers"] == 1
    assert data["totalProcessed"] == 2
    assert data["deactivatedUsers"] == 0
    assert data["state"] == "done"
    assert "e3" in employee_store.items


def test_full_sync_dry_run_writes_nothing(authenticated_client, fake_services, employee_store):
    fake_services.directory.pages[0].append(make_employee("e3", "Luis Gomez"))

    response = authenticated_client.post("/api/v1/employees/sync", params={"dry_run": "true"})

    assert response.status_code == 200
    assert response.json()["newUsers"] == 1
    assert "e3" not in employee_store.items
    assert employee_store.creates == 0


def test_full_sync_already_running_is_409(authenticated_client, fake_services):
    with patch.object(fake_services.sync, "run_full_sync", AsyncMock(side_effect=SyncInProgressError("busy"))):
        response = authenticated_client.post("/api/v1/employees/sync")

    assert response.status_code == 409
    assert response.json()["detail"] == "A sync is already running"


def test_full_sync_directory_down_is_502(authenticated_client, fake_services, employee_store):
    fake_services.directory.failures[0] = "Graph API returned 503"

    response = authenticated_client.post("/api/v1/employees/sync")

    assert response.status_code == 502
    assert "Graph API returned 503" in response.json()["detail"]
    assert employee_store.updates == 0


def test_viewer_cannot_run_full_sync(viewer_client):
    response = viewer_client.post("/api/v1/employees/sync")
    assert response.status_code == 403


def test_sync_status(viewer_client):
    response = viewer_client.get("/api/v1/employees/sync/status")

    assert response.status_code == 200
    assert response.json() == {
        "directoryEmployeeCount": 1,
        "storedEmployeeCount": 1,
        "syncNeeded": False,
    }


def test_single_employee_sync(authenticated_client):
    response = authenticated_client.post("/api/v1/employees/e1/sync")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["employee"]["id"] == "e1"
    assert data["matchedWithExternal"] is False


def test_single_employee_sync_not_in_directory(authenticated_client):
    response = authenticated_client.post("/api/v1/employees/e9/sync")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["message"] == "Employee e9 not found in directory"


def test_update_voting_groups_recomputes_stored_employees(authenticated_client, employee_store):
    response = authenticated_client.post("/api/v1/employees/voting-groups/update")

    assert response.status_code == 200
    assert response.json() == {"totalUpdated": 2, "errors": []}
    assert employee_store.items["e1"].voting_group == "Tijuana"
    assert employee_store.items["e2"].voting_group == "Mexicali"


def test_viewer_cannot_update_voting_groups(viewer_client):
    response = viewer_client.post("/api/v1/employees/voting-groups/update")
    assert response.status_code == 403
