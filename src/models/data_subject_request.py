"""DataSubjectRequest and its history — GDPR Art. 15-22 request workflow.

A request owns its history entries (composition). History rows are
append-only: they are inserted once and never updated or deleted.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base
from src.models.enums import DataSubjectRequestStatus


class DataSubjectRequest(Base):
    """A data subject request raised by a user."""

    __tablename__ = "data_subject_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    request_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), default=DataSubjectRequestStatus.PENDING.value, nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(String(2000))

    # Timeline
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deadline_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Submission provenance
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(String(500))

    # Operator handling
    assigned_to_admin_id: Mapped[str | None] = mapped_column(String(255))
    admin_notes: Mapped[str | None] = mapped_column(String(2000))

    # Access / portability results
    export_file_path: Mapped[str | None] = mapped_column(String(500))
    export_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Deletion results
    deletion_summary: Mapped[str | None] = mapped_column(String(2000))
    retention_summary: Mapped[str | None] = mapped_column(String(2000))

    # Identity verification
    identity_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verification_method: Mapped[str | None] = mapped_column(String(100))
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Never lazy-loaded; callers selectinload when they need it
    history: Mapped[list[DataSubjectRequestHistory]] = relationship(
        "DataSubjectRequestHistory",
        back_populates="request",
        order_by="DataSubjectRequestHistory.performed_at",
        cascade="all, delete-orphan",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<DataSubjectRequest id={self.id} type={self.request_type} status={self.status}>"


class DataSubjectRequestHistory(Base):
    """One immutable audit entry for a data subject request."""

    __tablename__ = "data_subject_request_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("data_subject_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )

    action: Mapped[str] = mapped_column(String(100), nullable=False)
    old_status: Mapped[str | None] = mapped_column(String(50))
    new_status: Mapped[str | None] = mapped_column(String(50))
    details: Mapped[str | None] = mapped_column(String(2000))

    # Actor
    performed_by: Mapped[str | None] = mapped_column(String(255), comment="User ID, admin ID, or 'System'")
    performed_by_role: Mapped[str | None] = mapped_column(String(50), comment="User, Admin, System")
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(45))

    request: Mapped[DataSubjectRequest] = relationship("DataSubjectRequest", back_populates="history")

    def __repr__(self) -> str:
        return f"<DataSubjectRequestHistory request={self.request_id} action={self.action}>"
