"""Audit log subscriber — persists every SystemEvent to the audit_log table.

Registered as a global subscriber at startup. Per-request history lives on
the request itself; audit_log is the system-wide trail used for compliance
reporting (who accepted which policy, who touched which request).
"""

from __future__ import annotations

import logging

from src.db.engine import session_scope
from src.models.audit import AuditLog
from src.schemas.events import SystemEvent

logger = logging.getLogger(__name__)


async def audit_on_event(event: SystemEvent) -> None:
    """Write a SystemEvent to the audit_log table.

    Failures are logged and swallowed so a broken audit write never fails
    the workflow that emitted the event.
    """
    try:
        async with session_scope() as db:
            db.add(AuditLog(
                id=event.id,
                event_type=event.event_type.value,
                user_id=event.user_id,
                actor_id=event.actor_id,
                actor_role=event.actor_role,
                data=event.data,
                source_module=event.source_module,
                occurred_at=event.timestamp,
            ))
    except Exception:
        logger.exception(
            "Failed to persist audit event: %s (user=%s)",
            event.event_type.value,
            event.user_id,
        )
