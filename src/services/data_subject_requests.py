"""Data subject request workflow — create, list, transition, assign.

Every state change appends a history row to the request and emits a
SystemEvent for the global audit log. The service is stateless: the
AsyncSession is passed per call and committed by the caller.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.config import settings
from src.events import emit
from src.models.data_subject_request import DataSubjectRequest, DataSubjectRequestHistory
from src.models.enums import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    ActorRole,
    DataSubjectRequestStatus,
    DataSubjectRequestType,
    HistoryAction,
)
from src.schemas.events import EventType, SystemEvent
from src.security.erasure import erasure_processor
from src.services.exceptions import DuplicateRequestError, InvalidRequestError, RequestNotFoundError

logger = logging.getLogger(__name__)

_REQUEST_TYPES = frozenset(t.value for t in DataSubjectRequestType)
_STATUSES = frozenset(s.value for s in DataSubjectRequestStatus)


class DataSubjectRequestService:
    """Stateless request operations — AsyncSession passed per call."""

    async def create_request(
        self,
        db: AsyncSession,
        user_id: str,
        request_type: str,
        description: str | None,
        ip_address: str | None,
        user_agent: str | None,
    ) -> DataSubjectRequest:
        """Create a PENDING request with its Created history entry.

        Raises InvalidRequestError for an unknown type and
        DuplicateRequestError if the user already has one open.
        """
        if request_type not in _REQUEST_TYPES:
            msg = f"Invalid request type: {request_type}"
            raise InvalidRequestError(msg)

        if await self.has_pending_request_of_type(db, user_id, request_type):
            msg = f"User already has a pending {request_type} request"
            raise DuplicateRequestError(msg)

        now = datetime.now(UTC)
        request = DataSubjectRequest(
            user_id=user_id,
            request_type=request_type,
            description=description,
            status=DataSubjectRequestStatus.PENDING.value,
            submitted_at=now,
            deadline_at=now + timedelta(days=settings.gdpr.response_deadline_days),
            ip_address=ip_address,
            user_agent=user_agent,
            # The caller is authenticated by the gateway
            identity_verified=True,
            verification_method="authenticated-session",
            verified_at=now,
            history=[
                DataSubjectRequestHistory(
                    action=HistoryAction.CREATED.value,
                    details=f"User submitted {request_type} request",
                    performed_by=user_id,
                    performed_by_role=ActorRole.USER.value,
                    performed_at=now,
                    ip_address=ip_address,
                ),
            ],
        )
        db.add(request)
        await db.flush()

        await emit(SystemEvent(
            event_type=EventType.DSR_CREATED,
            user_id=user_id,
            actor_id=user_id,
            actor_role=ActorRole.USER.value,
            data={"request_id": request.id, "request_type": request_type},
            source_module="services.data_subject_requests",
        ))

        logger.info(
            "Data subject request created: request=%s user=%s type=%s",
            request.id,
            user_id,
            request_type,
        )
        return request

    async def get_request_by_id(
        self, db: AsyncSession, request_id: int, user_id: str | None = None
    ) -> DataSubjectRequest | None:
        """Load a request with its history; scoped to user_id when given."""
        stmt = (
            select(DataSubjectRequest)
            .where(DataSubjectRequest.id == request_id)
            .options(selectinload(DataSubjectRequest.history))
        )
        if user_id is not None:
            stmt = stmt.where(DataSubjectRequest.user_id == user_id)

        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_requests(self, db: AsyncSession, user_id: str) -> list[DataSubjectRequest]:
        """All of a user's requests, newest first. History is not loaded."""
        result = await db.execute(
            select(DataSubjectRequest)
            .where(DataSubjectRequest.user_id == user_id)
            .order_by(DataSubjectRequest.submitted_at.desc())
        )
        return list(result.scalars().all())

    async def get_pending_requests(self, db: AsyncSession) -> list[DataSubjectRequest]:
        """Open requests for admin review, most urgent first."""
        result = await db.execute(
            select(DataSubjectRequest)
            .where(DataSubjectRequest.status.in_(OPEN_STATUSES))
            .order_by(DataSubjectRequest.deadline_at)
        )
        return list(result.scalars().all())

    async def get_requests_nearing_deadline(
        self, db: AsyncSession, days_threshold: int | None = None
    ) -> list[DataSubjectRequest]:
        """Open requests due within days_threshold (overdue ones included)."""
        if days_threshold is None:
            days_threshold = settings.gdpr.deadline_warning_days
        threshold = datetime.now(UTC) + timedelta(days=days_threshold)

        result = await db.execute(
            select(DataSubjectRequest)
            .where(
                DataSubjectRequest.status.in_(OPEN_STATUSES),
                DataSubjectRequest.deadline_at <= threshold,
            )
            .order_by(DataSubjectRequest.deadline_at)
        )
        return list(result.scalars().all())

    async def update_request_status(
        self,
        db: AsyncSession,
        request_id: int,
        new_status: str,
        admin_notes: str | None,
        performed_by: str | None,
        performed_by_role: str | None,
    ) -> DataSubjectRequest:
        """Transition a request and record the change in its history.

        Completing a Deletion request runs the erasure and stores its
        deletion and retention summaries on the request.
        """
        if new_status not in _STATUSES:
            msg = f"Invalid status: {new_status}"
            raise InvalidRequestError(msg)

        request = await self.get_request_by_id(db, request_id)
        if request is None:
            msg = f"Request {request_id} not found"
            raise RequestNotFoundError(msg)

        now = datetime.now(UTC)
        old_status = request.status
        request.status = new_status
        if admin_notes is not None:
            request.admin_notes = admin_notes
        if new_status in TERMINAL_STATUSES:
            request.completed_at = now

        request.history.append(DataSubjectRequestHistory(
            action=HistoryAction.STATUS_CHANGED.value,
            old_status=old_status,
            new_status=new_status,
            details=admin_notes,
            performed_by=performed_by,
            performed_by_role=performed_by_role,
            performed_at=now,
        ))
        await db.flush()

        if (
            new_status == DataSubjectRequestStatus.COMPLETED.value
            and old_status != new_status
            and request.request_type == DataSubjectRequestType.DELETION.value
        ):
            erasure = await erasure_processor.execute_deletion(
                db, request.user_id, performed_by, request_id
            )
            request.deletion_summary = erasure.deletion_summary
            request.retention_summary = erasure.retention_summary
            request.history.append(DataSubjectRequestHistory(
                action=HistoryAction.DATA_ERASED.value,
                details=f"Deletion completed. {erasure.deletion_summary}",
                performed_by=performed_by,
                performed_by_role=performed_by_role,
                performed_at=now,
            ))
            await db.flush()

        await emit(SystemEvent(
            event_type=EventType.DSR_STATUS_CHANGED,
            user_id=request.user_id,
            actor_id=performed_by,
            actor_role=performed_by_role,
            data={"request_id": request_id, "old_status": old_status, "new_status": new_status},
            source_module="services.data_subject_requests",
        ))

        logger.info(
            "Request status updated: request=%s %s -> %s",
            request_id,
            old_status,
            new_status,
        )
        return request

    async def assign_request(
        self, db: AsyncSession, request_id: int, admin_id: str, performed_by: str | None
    ) -> DataSubjectRequest:
        """Assign a request to an admin; a Pending request moves to InProgress."""
        request = await self.get_request_by_id(db, request_id)
        if request is None:
            msg = f"Request {request_id} not found"
            raise RequestNotFoundError(msg)

        previous_admin_id = request.assigned_to_admin_id
        request.assigned_to_admin_id = admin_id

        old_status = request.status
        if request.status == DataSubjectRequestStatus.PENDING.value:
            request.status = DataSubjectRequestStatus.IN_PROGRESS.value

        details = f"Request assigned to admin {admin_id}"
        if previous_admin_id is not None:
            details += f" (previously: {previous_admin_id})"

        request.history.append(DataSubjectRequestHistory(
            action=HistoryAction.ASSIGNED.value,
            old_status=old_status if old_status != request.status else None,
            new_status=request.status if old_status != request.status else None,
            details=details,
            performed_by=performed_by,
            performed_by_role=ActorRole.ADMIN.value,
            performed_at=datetime.now(UTC),
        ))
        await db.flush()

        await emit(SystemEvent(
            event_type=EventType.DSR_ASSIGNED,
            user_id=request.user_id,
            actor_id=performed_by,
            actor_role=ActorRole.ADMIN.value,
            data={"request_id": request_id, "assigned_to": admin_id, "previous": previous_admin_id},
            source_module="services.data_subject_requests",
        ))

        logger.info("Request assigned: request=%s admin=%s", request_id, admin_id)
        return request

    async def record_history(
        self,
        db: AsyncSession,
        request_id: int,
        action: str,
        details: str | None,
        performed_by: str | None,
        performed_by_role: str | None,
        ip_address: str | None,
        old_status: str | None = None,
        new_status: str | None = None,
    ) -> DataSubjectRequestHistory:
        """Append one history row without loading the request."""
        entry = DataSubjectRequestHistory(
            request_id=request_id,
            action=action,
            details=details,
            performed_by=performed_by,
            performed_by_role=performed_by_role,
            ip_address=ip_address,
            old_status=old_status,
            new_status=new_status,
            performed_at=datetime.now(UTC),
        )
        db.add(entry)
        await db.flush()
        return entry

    async def has_pending_request_of_type(
        self, db: AsyncSession, user_id: str, request_type: str
    ) -> bool:
        """True if the user has an open request of this type."""
        result = await db.execute(
            select(
                exists().where(
                    DataSubjectRequest.user_id == user_id,
                    DataSubjectRequest.request_type == request_type,
                    DataSubjectRequest.status.in_(OPEN_STATUSES),
                )
            )
        )
        return bool(result.scalar())


# Module-level singleton
request_service = DataSubjectRequestService()
