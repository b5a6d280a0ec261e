"""Tests for the Access / Portability data export job."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.config import settings
from src.models.audit import AuditLog
from src.models.data_subject_request import DataSubjectRequest, DataSubjectRequestHistory
from src.models.privacy_policy import PrivacyPolicyVersion, UserPrivacyPolicyAcceptance
from src.schemas.data_subject_request import UserDataExport
from src.schemas.events import EventType
from src.security.data_export import build_user_export, generate_export

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


def _make_scope(db):
    """Build a mock session_scope yielding db."""
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=db)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=ctx)


def _make_rows(rows):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


def _make_request(id_=5, request_type="Access"):
    return DataSubjectRequest(
        id=id_,
        user_id="user-42",
        request_type=request_type,
        status="Pending",
        submitted_at=T0,
        deadline_at=T0 + timedelta(days=30),
        identity_verified=True,
        history=[
            DataSubjectRequestHistory(
                id=10, request_id=id_, action="Created", performed_by="user-42",
                performed_by_role="User", performed_at=T0,
            ),
        ],
    )


def _make_acceptance():
    acceptance = UserPrivacyPolicyAcceptance(
        id=3,
        user_id="user-42",
        policy_version_id=1,
        accepted_at=T0 - timedelta(days=10),
        acceptance_method="explicit",
        was_shown_changes_summary=False,
    )
    acceptance.policy_version = PrivacyPolicyVersion(
        id=1, version="2.0", content_html="<p>Policy</p>", effective_date=T0 - timedelta(days=30)
    )
    return acceptance


def _make_export(request_type="Access"):
    return UserDataExport(
        exported_at=T0,
        user_id="user-42",
        legal_basis="GDPR Article 15 - Right of Access",
        data_categories=("dataSubjectRequests",),
        data={"dataSubjectRequests": [{"id": 5, "requestType": request_type}]},
    )


# ── build_user_export ────────────────────────────────────────────────


class TestBuildUserExport:
    @pytest.mark.asyncio()
    async def test_collects_requests_acceptances_and_audit_trail(self):
        audit = AuditLog(
            event_type="dsr.created", user_id="user-42", actor_id="user-42",
            actor_role="User", data={"request_id": 5}, occurred_at=T0,
        )
        db = AsyncMock()
        db.execute = AsyncMock(side_effect=[
            _make_rows([_make_request()]),
            _make_rows([_make_acceptance()]),
            _make_rows([audit]),
        ])

        export = await build_user_export(db, "user-42", "Access")

        assert export.user_id == "user-42"
        assert export.legal_basis == "GDPR Article 15 - Right of Access"
        assert export.data_categories == ("dataSubjectRequests", "privacyPolicyAcceptances", "auditTrail")

        request = export.data["dataSubjectRequests"][0]
        assert request["requestType"] == "Access"
        assert [h["action"] for h in request["history"]] == ["Created"]
        assert export.data["privacyPolicyAcceptances"][0]["policyVersion"] == "2.0"
        assert export.data["auditTrail"] == [{
            "eventType": "dsr.created",
            "occurredAt": T0.isoformat(),
            "actorId": "user-42",
            "actorRole": "User",
            "data": {"request_id": 5},
        }]

    @pytest.mark.asyncio()
    async def test_portability_basis_and_empty_categories_omitted(self):
        db = AsyncMock()
        db.execute = AsyncMock(side_effect=[
            _make_rows([_make_request(request_type="Portability")]),
            _make_rows([]),
            _make_rows([]),
        ])

        export = await build_user_export(db, "user-42", "Portability")

        assert export.legal_basis == "GDPR Article 20 - Right to Data Portability"
        assert export.data_categories == ("dataSubjectRequests",)
        assert export.data["auditTrail"] == []

    def test_serializes_with_camel_case_keys(self):
        payload = json.loads(_make_export().model_dump_json(by_alias=True))
        assert set(payload) == {"exportedAt", "userId", "legalBasis", "dataCategories", "data"}


# ── generate_export ──────────────────────────────────────────────────


class TestGenerateExport:
    @pytest.mark.asyncio()
    async def test_writes_file_and_completes_request(self, tmp_path):
        db = AsyncMock()
        request = MagicMock(id=5, user_id="user-42", request_type="Access")
        export_dir = tmp_path / "exports"

        with (
            patch.object(settings.gdpr, "export_dir", str(export_dir)),
            patch("src.security.data_export.session_scope", _make_scope(db)),
            patch("src.security.data_export.request_service") as service,
            patch("src.security.data_export.build_user_export", AsyncMock(return_value=_make_export())),
            patch("src.security.data_export.emit", new_callable=AsyncMock) as mock_emit,
        ):
            service.get_request_by_id = AsyncMock(return_value=request)
            service.update_request_status = AsyncMock()
            service.record_history = AsyncMock()
            path = await generate_export(5)

        assert path is not None
        assert path.parent == export_dir
        assert path.name.startswith("data-export-5-")
        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["userId"] == "user-42"
        assert payload["data"]["dataSubjectRequests"][0]["id"] == 5

        assert request.export_file_path == str(path)
        remaining = request.export_expires_at - datetime.now(UTC)
        assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)

        service.update_request_status.assert_awaited_once_with(
            db,
            5,
            "Completed",
            "Data export generated successfully. Download link will expire in 7 days.",
            "System",
            "System",
        )
        history_args = service.record_history.call_args[0]
        assert history_args[2] == "ExportGenerated"
        assert history_args[3] == f"Data export generated: {path.name} ({path.stat().st_size} bytes)"

        event = mock_emit.call_args[0][0]
        assert event.event_type == EventType.DSR_EXPORT_GENERATED
        assert event.data["request_id"] == 5

    @pytest.mark.asyncio()
    async def test_missing_request_is_skipped(self):
        build = AsyncMock()
        with (
            patch("src.security.data_export.session_scope", _make_scope(AsyncMock())),
            patch("src.security.data_export.request_service") as service,
            patch("src.security.data_export.build_user_export", build),
        ):
            service.get_request_by_id = AsyncMock(return_value=None)
            assert await generate_export(99) is None

        build.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_failure_reopens_request(self):
        db = AsyncMock()
        scope = _make_scope(db)
        request = MagicMock(id=5, user_id="user-42", request_type="Access")

        with (
            patch("src.security.data_export.session_scope", scope),
            patch("src.security.data_export.request_service") as service,
            patch(
                "src.security.data_export.build_user_export",
                AsyncMock(side_effect=RuntimeError("disk full")),
            ),
            patch("src.security.data_export.emit", new_callable=AsyncMock) as mock_emit,
        ):
            service.get_request_by_id = AsyncMock(return_value=request)
            service.update_request_status = AsyncMock()
            service.record_history = AsyncMock()
            assert await generate_export(5) is None

        assert scope.call_count == 2
        service.update_request_status.assert_awaited_once_with(
            db, 5, "InProgress", "Export generation failed: disk full", "System", "System"
        )
        history_args = service.record_history.call_args[0]
        assert history_args[2] == "ExportFailed"
        assert history_args[3] == "Error: disk full"
        mock_emit.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_failure_while_recording_failure_is_logged(self):
        request = MagicMock(id=5, user_id="user-42", request_type="Access")

        with (
            patch("src.security.data_export.session_scope", _make_scope(AsyncMock())),
            patch("src.security.data_export.request_service") as service,
            patch(
                "src.security.data_export.build_user_export",
                AsyncMock(side_effect=RuntimeError("disk full")),
            ),
            patch("src.security.data_export.logger") as mock_logger,
        ):
            service.get_request_by_id = AsyncMock(return_value=request)
            service.update_request_status = AsyncMock(side_effect=RuntimeError("db down"))
            assert await generate_export(5) is None

        assert mock_logger.exception.call_count == 2
