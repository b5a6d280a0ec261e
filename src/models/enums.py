"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization. Values are stored verbatim
in String columns, so they double as the wire representation.
"""

from __future__ import annotations

from enum import Enum


class DataSubjectRequestType(str, Enum):
    """GDPR Art. 15-22 rights a user can exercise."""

    ACCESS = "Access"
    DELETION = "Deletion"
    PORTABILITY = "Portability"
    RECTIFICATION = "Rectification"
    RESTRICTION = "Restriction"
    OBJECTION = "Objection"
    RETENTION_INQUIRY = "RetentionInquiry"


class DataSubjectRequestStatus(str, Enum):
    """Data subject request lifecycle states."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


class HistoryAction(str, Enum):
    """Actions recorded in a request's history."""

    CREATED = "Created"
    STATUS_CHANGED = "StatusChanged"
    ASSIGNED = "Assigned"
    DEADLINE_REMINDER = "DeadlineReminder"
    EXPORT_GENERATED = "ExportGenerated"
    EXPORT_FAILED = "ExportFailed"
    DATA_ERASED = "DataErased"


class ActorRole(str, Enum):
    """Who performed a history action."""

    USER = "User"
    ADMIN = "Admin"
    SYSTEM = "System"


# Requests still awaiting an outcome; at most one per user and type
OPEN_STATUSES: tuple[str, ...] = (
    DataSubjectRequestStatus.PENDING.value,
    DataSubjectRequestStatus.IN_PROGRESS.value,
)

# Reaching one of these stamps completed_at
TERMINAL_STATUSES: tuple[str, ...] = (
    DataSubjectRequestStatus.COMPLETED.value,
    DataSubjectRequestStatus.REJECTED.value,
)

# Only these request types produce a downloadable export
EXPORT_REQUEST_TYPES: tuple[str, ...] = (
    DataSubjectRequestType.ACCESS.value,
    DataSubjectRequestType.PORTABILITY.value,
)
