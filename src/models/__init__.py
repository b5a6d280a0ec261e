"""SQLAlchemy ORM models for the privacy service.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from src.models.audit import AuditLog
from src.models.base import Base
from src.models.data_subject_request import DataSubjectRequest, DataSubjectRequestHistory
from src.models.enums import (
    ActorRole,
    DataSubjectRequestStatus,
    DataSubjectRequestType,
    HistoryAction,
)
from src.models.privacy_policy import PrivacyPolicyVersion, UserPrivacyPolicyAcceptance

__all__ = [
    # Base
    "Base",
    # Models
    "AuditLog",
    "DataSubjectRequest",
    "DataSubjectRequestHistory",
    "PrivacyPolicyVersion",
    "UserPrivacyPolicyAcceptance",
    # Enums
    "ActorRole",
    "DataSubjectRequestStatus",
    "DataSubjectRequestType",
    "HistoryAction",
]
