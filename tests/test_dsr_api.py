"""Tests for the data subject request API.

Covers:
- Gateway identity header (401 without it) and admin HTTP Basic auth
- Create / list / detail / download for users, export started for Access and Portability
- Pending, status and assignment routes for admins
- camelCase response bodies with history
"""

from __future__ import annotations

import base64
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from src.models.data_subject_request import DataSubjectRequest, DataSubjectRequestHistory
from src.services.exceptions import DuplicateRequestError, InvalidRequestError, RequestNotFoundError

USER = {"X-User-Id": "user-42"}
T0 = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


def _make_auth_header(username: str = "admin", password: str = "testpass123") -> dict[str, str]:
    """Build HTTP Basic Auth header."""
    credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
    return {"Authorization": f"Basic {credentials}"}


def _make_request(id_=1, request_type="Access", status="Pending", history=None, **overrides):
    values = {
        "id": id_,
        "user_id": "user-42",
        "request_type": request_type,
        "status": status,
        "submitted_at": T0,
        "deadline_at": T0 + timedelta(days=30),
        "identity_verified": True,
        "verification_method": "authenticated-session",
        "verified_at": T0,
    }
    values.update(overrides)
    if history is not None:
        values["history"] = history
    return DataSubjectRequest(**values)


def _make_history(id_, action, performed_at=T0):
    return DataSubjectRequestHistory(
        id=id_, request_id=1, action=action, performed_by="user-42",
        performed_by_role="User", performed_at=performed_at,
    )


@pytest.fixture
def mock_settings():
    """Patch auth settings to use a test password and the default header."""
    with patch("src.api.auth.settings") as mock:
        mock.security.admin_web_password = "testpass123"
        mock.security.user_id_header = "X-User-Id"
        yield mock


@pytest.fixture
def mock_service():
    """Patch the request service used by the router."""
    with (
        patch("src.api.data_subject_requests.request_service") as service,
        patch("src.api.data_subject_requests.emit", new_callable=AsyncMock),
    ):
        service.create_request = AsyncMock()
        service.get_user_requests = AsyncMock(return_value=[])
        service.get_request_by_id = AsyncMock(return_value=None)
        service.get_pending_requests = AsyncMock(return_value=[])
        service.get_requests_nearing_deadline = AsyncMock(return_value=[])
        service.update_request_status = AsyncMock()
        service.assign_request = AsyncMock()
        yield service


@pytest.fixture
def mock_export():
    """Patch the background export job started on create."""
    with patch("src.api.data_subject_requests.generate_export", new_callable=AsyncMock) as mock:
        yield mock


@pytest.fixture
def client(mock_settings, mock_service, mock_export):
    """Test client with the DB session dependency overridden."""
    from fastapi import FastAPI

    from src.api.data_subject_requests import router
    from src.db.engine import get_session

    async def fake_session():
        yield AsyncMock()

    test_app = FastAPI()
    test_app.include_router(router)
    test_app.dependency_overrides[get_session] = fake_session
    return TestClient(test_app)


# ── Authentication ───────────────────────────────────────────────────


class TestAuth:
    def test_401_without_user_header(self, client):
        resp = client.get("/api/data-subject-requests/my-requests")
        assert resp.status_code == 401

    def test_401_admin_without_credentials(self, client):
        resp = client.get("/api/data-subject-requests/admin/pending")
        assert resp.status_code == 401

    def test_401_admin_wrong_password(self, client):
        resp = client.get(
            "/api/data-subject-requests/admin/pending",
            headers=_make_auth_header(password="wrong"),
        )
        assert resp.status_code == 401

    def test_503_when_admin_password_unset(self, client, mock_settings):
        mock_settings.security.admin_web_password = ""
        resp = client.get("/api/data-subject-requests/admin/pending", headers=_make_auth_header())
        assert resp.status_code == 503


# ── User routes ──────────────────────────────────────────────────────


class TestCreate:
    def test_201_with_dto(self, client, mock_service):
        mock_service.create_request.return_value = _make_request(
            request_type="Deletion", history=[_make_history(10, "Created")]
        )

        resp = client.post(
            "/api/data-subject-requests",
            json={"requestType": "Deletion", "description": "Forget me"},
            headers={**USER, "User-Agent": "pytest"},
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["requestType"] == "Deletion"
        assert body["userId"] == "user-42"
        assert body["history"][0]["action"] == "Created"

        args = mock_service.create_request.call_args[0]
        assert args[1:4] == ("user-42", "Deletion", "Forget me")
        assert args[5] == "pytest"

    def test_400_on_invalid_type(self, client, mock_service):
        mock_service.create_request.side_effect = InvalidRequestError("Invalid request type: Nope")

        resp = client.post("/api/data-subject-requests", json={"requestType": "Nope"}, headers=USER)

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid request type: Nope"

    def test_400_on_duplicate(self, client, mock_service):
        mock_service.create_request.side_effect = DuplicateRequestError("User already has a pending Access request")

        resp = client.post("/api/data-subject-requests", json={"requestType": "Access"}, headers=USER)

        assert resp.status_code == 400

    def test_422_without_type(self, client):
        resp = client.post("/api/data-subject-requests", json={}, headers=USER)
        assert resp.status_code == 422

    @pytest.mark.parametrize("request_type", ["Access", "Portability"])
    def test_export_types_start_export(self, client, mock_service, mock_export, request_type):
        mock_service.create_request.return_value = _make_request(
            id_=5, request_type=request_type, history=[_make_history(10, "Created")]
        )

        resp = client.post("/api/data-subject-requests", json={"requestType": request_type}, headers=USER)

        assert resp.status_code == 201
        assert resp.json()["status"] == "Pending"
        mock_export.assert_called_once_with(5)

    def test_deletion_does_not_start_export(self, client, mock_service, mock_export):
        mock_service.create_request.return_value = _make_request(request_type="Deletion", history=[])

        resp = client.post("/api/data-subject-requests", json={"requestType": "Deletion"}, headers=USER)

        assert resp.status_code == 201
        mock_export.assert_not_called()

    def test_rejected_create_does_not_start_export(self, client, mock_service, mock_export):
        mock_service.create_request.side_effect = DuplicateRequestError("User already has a pending Access request")

        client.post("/api/data-subject-requests", json={"requestType": "Access"}, headers=USER)

        mock_export.assert_not_called()


class TestMyRequests:
    def test_lists_in_service_order_with_empty_history(self, client, mock_service):
        mock_service.get_user_requests.return_value = [_make_request(id_=2), _make_request(id_=1)]

        resp = client.get("/api/data-subject-requests/my-requests", headers=USER)

        assert resp.status_code == 200
        body = resp.json()
        assert [r["id"] for r in body] == [2, 1]
        assert all(r["history"] == [] for r in body)
        mock_service.get_user_requests.assert_awaited_once()
        assert mock_service.get_user_requests.call_args[0][1] == "user-42"


class TestGetRequest:
    def test_returns_history_in_order(self, client, mock_service):
        mock_service.get_request_by_id.return_value = _make_request(history=[
            _make_history(10, "Created", T0),
            _make_history(11, "StatusChanged", T0 + timedelta(days=1)),
        ])

        resp = client.get("/api/data-subject-requests/1", headers=USER)

        assert resp.status_code == 200
        assert [h["id"] for h in resp.json()["history"]] == [10, 11]
        assert mock_service.get_request_by_id.call_args[0][1:] == (1, "user-42")

    def test_404_when_not_owned(self, client):
        resp = client.get("/api/data-subject-requests/5", headers=USER)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Request 5 not found"


class TestDownload:
    def test_serves_export_file(self, client, mock_service, tmp_path):
        export = tmp_path / "export_42.json"
        export.write_text('{"profile": {}}')
        mock_service.get_request_by_id.return_value = _make_request(
            history=[],
            export_file_path=str(export),
            export_expires_at=datetime.now(UTC) + timedelta(days=1),
        )

        resp = client.get("/api/data-subject-requests/1/download", headers=USER)

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/json")
        assert resp.json() == {"profile": {}}

    def test_400_for_non_export_type(self, client, mock_service):
        mock_service.get_request_by_id.return_value = _make_request(request_type="Deletion", history=[])

        resp = client.get("/api/data-subject-requests/1/download", headers=USER)

        assert resp.status_code == 400

    def test_404_when_not_generated(self, client, mock_service):
        mock_service.get_request_by_id.return_value = _make_request(history=[])

        resp = client.get("/api/data-subject-requests/1/download", headers=USER)

        assert resp.status_code == 404
        assert "not yet generated" in resp.json()["detail"]

    def test_410_when_expired(self, client, mock_service, tmp_path):
        export = tmp_path / "export_42.json"
        export.write_text("{}")
        mock_service.get_request_by_id.return_value = _make_request(
            request_type="Portability",
            history=[],
            export_file_path=str(export),
            export_expires_at=datetime.now(UTC) - timedelta(minutes=1),
        )

        resp = client.get("/api/data-subject-requests/1/download", headers=USER)

        assert resp.status_code == 410

    def test_404_when_file_missing(self, client, mock_service, tmp_path):
        mock_service.get_request_by_id.return_value = _make_request(
            history=[], export_file_path=str(tmp_path / "gone.json")
        )

        resp = client.get("/api/data-subject-requests/1/download", headers=USER)

        assert resp.status_code == 404
        assert resp.json()["detail"] == "Export file not found on server"


# ── Admin routes ─────────────────────────────────────────────────────


class TestAdmin:
    def test_pending(self, client, mock_service):
        mock_service.get_pending_requests.return_value = [_make_request(id_=3), _make_request(id_=4)]

        resp = client.get("/api/data-subject-requests/admin/pending", headers=_make_auth_header())

        assert resp.status_code == 200
        assert [r["id"] for r in resp.json()] == [3, 4]

    def test_nearing_deadline_passes_days(self, client, mock_service):
        resp = client.get(
            "/api/data-subject-requests/admin/nearing-deadline?days=3",
            headers=_make_auth_header(),
        )

        assert resp.status_code == 200
        assert mock_service.get_requests_nearing_deadline.call_args[0][1] == 3

    def test_admin_get_any_request(self, client, mock_service):
        mock_service.get_request_by_id.return_value = _make_request(id_=9, history=[])

        resp = client.get("/api/data-subject-requests/admin/9", headers=_make_auth_header())

        assert resp.status_code == 200
        assert mock_service.get_request_by_id.call_args[0][1:] == (9,)

    def test_update_status(self, client, mock_service):
        mock_service.update_request_status.return_value = _make_request(
            status="Completed", completed_at=T0 + timedelta(days=3), history=[]
        )

        resp = client.put(
            "/api/data-subject-requests/1/status",
            json={"status": "Completed", "adminNotes": "Sent"},
            headers=_make_auth_header(username="dpo"),
        )

        assert resp.status_code == 200
        assert resp.json()["status"] == "Completed"
        assert resp.json()["completedAt"] is not None
        assert mock_service.update_request_status.call_args[0][1:] == (1, "Completed", "Sent", "dpo", "Admin")

    def test_update_status_404(self, client, mock_service):
        mock_service.update_request_status.side_effect = RequestNotFoundError("Request 1 not found")

        resp = client.put(
            "/api/data-subject-requests/1/status",
            json={"status": "Completed"},
            headers=_make_auth_header(),
        )

        assert resp.status_code == 404

    def test_update_status_400(self, client, mock_service):
        mock_service.update_request_status.side_effect = InvalidRequestError("Invalid status: Closed")

        resp = client.put(
            "/api/data-subject-requests/1/status",
            json={"status": "Closed"},
            headers=_make_auth_header(),
        )

        assert resp.status_code == 400

    def test_assign(self, client, mock_service):
        mock_service.assign_request.return_value = _make_request(
            status="InProgress", assigned_to_admin_id="admin-2", history=[]
        )

        resp = client.put(
            "/api/data-subject-requests/1/assign",
            json={"assignToAdminId": "admin-2"},
            headers=_make_auth_header(username="admin-1"),
        )

        assert resp.status_code == 200
        assert resp.json()["assignedToAdminId"] == "admin-2"
        assert mock_service.assign_request.call_args[0][1:] == (1, "admin-2", "admin-1")

    def test_assign_404(self, client, mock_service):
        mock_service.assign_request.side_effect = RequestNotFoundError("Request 1 not found")

        resp = client.put(
            "/api/data-subject-requests/1/assign",
            json={"assignToAdminId": "admin-2"},
            headers=_make_auth_header(),
        )

        assert resp.status_code == 404
