"""AuditLog model — system-wide trail of every emitted SystemEvent.

Rows are keyed by the event id, so an event is recorded at most once.
Append-only: nothing updates or deletes audit rows.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base


class AuditLog(Base):
    """Immutable audit trail entry."""

    __tablename__ = "audit_log"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, comment="SystemEvent.id")
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Not every event concerns a data subject (e.g. policy publishing)
    user_id: Mapped[str | None] = mapped_column(String(255), index=True, comment="Data subject")
    actor_id: Mapped[str | None] = mapped_column(String(255), comment="User ID, admin ID, or 'System'")
    actor_role: Mapped[str | None] = mapped_column(String(50), comment="User, Admin, System")

    data: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    source_module: Mapped[str | None] = mapped_column(String(100))

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<AuditLog event={self.event_type} user={self.user_id}>"
