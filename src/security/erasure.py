"""Right-to-erasure processor — GDPR Art. 17 deletion for completed Deletion requests.

Deletes what this service may delete and anonymizes network identifiers on
records it must keep. Recent policy acceptances (Art. 7(1) proof of
consent), the requests themselves and the audit log (Art. 5(2)
accountability) are retained and reported in the retention summary.
Uses bulk SQL for performance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.events import emit
from src.models.audit import AuditLog
from src.models.data_subject_request import DataSubjectRequest, DataSubjectRequestHistory
from src.models.enums import ActorRole
from src.models.privacy_policy import UserPrivacyPolicyAcceptance
from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)


@dataclass
class ErasureResult:
    """What an erasure removed and what it had to keep."""

    deleted: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)

    @property
    def deletion_summary(self) -> str:
        return "; ".join(self.deleted) if self.deleted else "No data deleted"

    @property
    def retention_summary(self) -> str:
        return "; ".join(self.retained) if self.retained else "No data retained"


class ErasureProcessor:
    """Processes GDPR right-to-erasure requests."""

    async def execute_deletion(
        self,
        db: AsyncSession,
        user_id: str,
        admin_id: str | None,
        request_id: int | None = None,
    ) -> ErasureResult:
        """Erase a user's deletable data inside the caller's transaction.

        Preserves: recent policy acceptances, data subject requests (with
        their history) and audit_log entries.
        """
        result = ErasureResult()
        retention_days = settings.gdpr.acceptance_retention_days
        cutoff = datetime.now(UTC) - timedelta(days=retention_days)

        # 1. Delete policy acceptances past the retention window
        del_result = await db.execute(
            delete(UserPrivacyPolicyAcceptance).where(
                UserPrivacyPolicyAcceptance.user_id == user_id,
                UserPrivacyPolicyAcceptance.accepted_at < cutoff,
            )
        )
        old_acceptances = del_result.rowcount  # type: ignore[attr-defined]
        if old_acceptances:
            result.deleted.append(
                f"{old_acceptances} old privacy acceptances (>{retention_days} days)"
            )

        # 2. Recent acceptances stay as proof of consent
        recent_acceptances = (await db.execute(
            select(func.count()).select_from(UserPrivacyPolicyAcceptance).where(
                UserPrivacyPolicyAcceptance.user_id == user_id,
                UserPrivacyPolicyAcceptance.accepted_at >= cutoff,
            )
        )).scalar_one()
        if recent_acceptances:
            result.retained.append(
                f"{recent_acceptances} recent privacy acceptances "
                f"(required for {retention_days} days per GDPR Article 7)"
            )

        # 3. Strip network identifiers from the user's requests and their history
        ids_result = await db.execute(
            select(DataSubjectRequest.id).where(DataSubjectRequest.user_id == user_id)
        )
        request_ids = list(ids_result.scalars().all())

        if request_ids:
            upd_result = await db.execute(
                update(DataSubjectRequest)
                .where(DataSubjectRequest.id.in_(request_ids))
                .values(ip_address=None, user_agent=None)
            )
            anonymized = upd_result.rowcount  # type: ignore[attr-defined]
            if anonymized:
                result.deleted.append(
                    f"IP address and user agent on {anonymized} data subject requests (anonymized)"
                )

            upd_result = await db.execute(
                update(DataSubjectRequestHistory)
                .where(
                    DataSubjectRequestHistory.request_id.in_(request_ids),
                    DataSubjectRequestHistory.ip_address.is_not(None),
                )
                .values(ip_address=None)
            )
            anonymized = upd_result.rowcount  # type: ignore[attr-defined]
            if anonymized:
                result.deleted.append(f"IP address on {anonymized} request history entries (anonymized)")

            result.retained.append(
                f"{len(request_ids)} data subject request records (required for audit trail)"
            )

        # 4. The audit log is append-only
        audit_entries = (await db.execute(
            select(func.count()).select_from(AuditLog).where(AuditLog.user_id == user_id)
        )).scalar_one()
        if audit_entries:
            result.retained.append(f"{audit_entries} audit log entries (required per GDPR Article 5(2))")

        await db.flush()

        await emit(SystemEvent(
            event_type=EventType.DSR_ERASURE_EXECUTED,
            user_id=user_id,
            actor_id=admin_id,
            actor_role=ActorRole.ADMIN.value,
            data={
                "request_id": request_id,
                "deleted": result.deletion_summary,
                "retained": result.retention_summary,
            },
            source_module="security.erasure",
        ))

        logger.warning(
            "Data deletion completed for user %s. Deleted: %s. Retained: %s",
            user_id,
            result.deletion_summary,
            result.retention_summary,
        )
        return result


# Module-level singleton
erasure_processor = ErasureProcessor()
