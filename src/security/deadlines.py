"""Deadline reminders for open data subject requests.

GDPR Art. 12(3) gives one month to answer a request. This job finds open
requests due within the warning window and records a DeadlineReminder
history entry on each, so operators see it in the request timeline and
the audit log.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from src.db.engine import session_scope
from src.events import emit
from src.models.enums import ActorRole, HistoryAction
from src.schemas.events import EventType, SystemEvent
from src.services.data_subject_requests import request_service

logger = logging.getLogger(__name__)


async def send_deadline_reminders(days_threshold: int | None = None) -> int:
    """Record a reminder for every open request nearing its deadline.

    Returns the number of reminders recorded. Errors are logged and re-raised
    so the scheduler sees the failed run.
    """
    logger.info("Starting data subject request deadline check")

    try:
        async with session_scope() as db:
            requests = await request_service.get_requests_nearing_deadline(db, days_threshold)
            if not requests:
                logger.info("No requests nearing deadline")
                return 0

            logger.warning("Found %d data subject requests nearing deadline", len(requests))

            now = datetime.now(UTC)
            for request in requests:
                days_remaining = (request.deadline_at - now).days
                await request_service.record_history(
                    db,
                    request.id,
                    HistoryAction.DEADLINE_REMINDER.value,
                    f"Deadline reminder sent ({days_remaining} days remaining)",
                    ActorRole.SYSTEM.value,
                    ActorRole.SYSTEM.value,
                    None,
                )
                await emit(SystemEvent(
                    event_type=EventType.DSR_DEADLINE_APPROACHING,
                    user_id=request.user_id,
                    actor_id=ActorRole.SYSTEM.value,
                    actor_role=ActorRole.SYSTEM.value,
                    data={
                        "request_id": request.id,
                        "request_type": request.request_type,
                        "days_remaining": days_remaining,
                    },
                    source_module="security.deadlines",
                ))
                logger.warning(
                    "Data subject request %s is due in %d days", request.id, days_remaining
                )
    except Exception:
        logger.exception("Failed to process request deadline reminders")
        raise

    logger.info("Request deadline check completed: %d reminders", len(requests))
    return len(requests)
