"""GDPR Art. 15/20 data export — builds the downloadable file of an Access or Portability request.

The export holds everything this service keeps about the subject: their
data subject requests with history, privacy policy acceptances and audit
trail. It is written as camelCase JSON to the export directory, and the
request is completed with a time-limited download link.

Usage:
    from src.security.data_export import generate_export

    background_tasks.add_task(generate_export, request.id)
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.config import settings
from src.db.engine import session_scope
from src.events import emit
from src.mappers.data_subject_request import to_dto_list
from src.mappers.privacy_policy import acceptance_to_dto
from src.models.audit import AuditLog
from src.models.data_subject_request import DataSubjectRequest
from src.models.enums import ActorRole, DataSubjectRequestStatus, DataSubjectRequestType, HistoryAction
from src.models.privacy_policy import UserPrivacyPolicyAcceptance
from src.schemas.data_subject_request import UserDataExport
from src.schemas.events import EventType, SystemEvent
from src.services.data_subject_requests import request_service

logger = logging.getLogger(__name__)

_LEGAL_BASIS = {
    DataSubjectRequestType.ACCESS.value: "GDPR Article 15 - Right of Access",
    DataSubjectRequestType.PORTABILITY.value: "GDPR Article 20 - Right to Data Portability",
}


def _audit_entry(entry: AuditLog) -> dict[str, Any]:
    return {
        "eventType": entry.event_type,
        "occurredAt": entry.occurred_at.isoformat() if entry.occurred_at else None,
        "actorId": entry.actor_id,
        "actorRole": entry.actor_role,
        "data": entry.data or {},
    }


async def build_user_export(db: AsyncSession, user_id: str, request_type: str) -> UserDataExport:
    """Collect a user's data into one export document."""
    # ── 1. Data subject requests with history ─────────────────────
    result = await db.execute(
        select(DataSubjectRequest)
        .where(DataSubjectRequest.user_id == user_id)
        .options(selectinload(DataSubjectRequest.history))
        .order_by(DataSubjectRequest.submitted_at)
    )
    requests = to_dto_list(result.scalars().all())

    # ── 2. Privacy policy acceptances ─────────────────────────────
    result = await db.execute(
        select(UserPrivacyPolicyAcceptance)
        .where(UserPrivacyPolicyAcceptance.user_id == user_id)
        .options(selectinload(UserPrivacyPolicyAcceptance.policy_version))
        .order_by(UserPrivacyPolicyAcceptance.accepted_at)
    )
    acceptances = [acceptance_to_dto(a) for a in result.scalars().all()]

    # ── 3. Audit trail ────────────────────────────────────────────
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.user_id == user_id)
        .order_by(AuditLog.occurred_at)
    )
    audit_trail = [_audit_entry(e) for e in result.scalars().all()]

    data: dict[str, Any] = {
        "dataSubjectRequests": [r.model_dump(mode="json", by_alias=True) for r in requests],
        "privacyPolicyAcceptances": [a.model_dump(mode="json", by_alias=True) for a in acceptances],
        "auditTrail": audit_trail,
    }

    return UserDataExport(
        exported_at=datetime.now(UTC),
        user_id=user_id,
        legal_basis=_LEGAL_BASIS.get(request_type, _LEGAL_BASIS[DataSubjectRequestType.ACCESS.value]),
        data_categories=tuple(key for key, value in data.items() if value),
        data=data,
    )


async def generate_export(request_id: int) -> Path | None:
    """Write the export for a request and complete it.

    Runs after the HTTP response in its own transaction. On failure the
    request is put back to InProgress with an ExportFailed history entry so
    an admin can retry; the error is logged, not raised.
    """
    try:
        async with session_scope() as db:
            request = await request_service.get_request_by_id(db, request_id)
            if request is None:
                logger.warning("Export skipped, request %s not found", request_id)
                return None

            export = await build_user_export(db, request.user_id, request.request_type)

            now = datetime.now(UTC)
            export_dir = Path(settings.gdpr.export_dir)
            export_dir.mkdir(parents=True, exist_ok=True)
            path = export_dir / f"data-export-{request.id}-{now:%Y%m%d%H%M%S}.json"
            path.write_text(export.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
            size = path.stat().st_size

            link_days = settings.gdpr.export_link_days
            request.export_file_path = str(path)
            request.export_expires_at = now + timedelta(days=link_days)

            await request_service.update_request_status(
                db,
                request.id,
                DataSubjectRequestStatus.COMPLETED.value,
                f"Data export generated successfully. Download link will expire in {link_days} days.",
                ActorRole.SYSTEM.value,
                ActorRole.SYSTEM.value,
            )
            await request_service.record_history(
                db,
                request.id,
                HistoryAction.EXPORT_GENERATED.value,
                f"Data export generated: {path.name} ({size} bytes)",
                ActorRole.SYSTEM.value,
                ActorRole.SYSTEM.value,
                None,
            )

            await emit(SystemEvent(
                event_type=EventType.DSR_EXPORT_GENERATED,
                user_id=request.user_id,
                actor_id=ActorRole.SYSTEM.value,
                actor_role=ActorRole.SYSTEM.value,
                data={
                    "request_id": request.id,
                    "categories": list(export.data_categories),
                    "size_bytes": size,
                },
                source_module="security.data_export",
            ))
    except Exception as exc:
        logger.exception("Data export failed for request %s", request_id)
        await _record_export_failure(request_id, exc)
        return None

    logger.info("Data export generated: request=%s file=%s (%d bytes)", request_id, path.name, size)
    return path


async def _record_export_failure(request_id: int, exc: Exception) -> None:
    try:
        async with session_scope() as db:
            await request_service.update_request_status(
                db,
                request_id,
                DataSubjectRequestStatus.IN_PROGRESS.value,
                f"Export generation failed: {exc}",
                ActorRole.SYSTEM.value,
                ActorRole.SYSTEM.value,
            )
            await request_service.record_history(
                db,
                request_id,
                HistoryAction.EXPORT_FAILED.value,
                f"Error: {exc}",
                ActorRole.SYSTEM.value,
                ActorRole.SYSTEM.value,
                None,
            )
    except Exception:
        logger.exception("Failed to record export failure for request %s", request_id)
