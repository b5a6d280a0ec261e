"""SystemEvent schema — the event type that flows through the whole service.

Every workflow action emits a SystemEvent. Subscribers (the audit logger
and anything registered at startup) consume these events asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Data subject requests
    DSR_CREATED = "dsr.created"
    DSR_STATUS_CHANGED = "dsr.status_changed"
    DSR_ASSIGNED = "dsr.assigned"
    DSR_DEADLINE_APPROACHING = "dsr.deadline_approaching"
    DSR_EXPORT_GENERATED = "dsr.export_generated"
    DSR_EXPORT_DOWNLOADED = "dsr.export_downloaded"
    DSR_ERASURE_EXECUTED = "dsr.erasure_executed"

    # Privacy policy
    POLICY_PUBLISHED = "policy.published"
    POLICY_ACCEPTED = "policy.accepted"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"
    SYSTEM_MAINTENANCE = "system.maintenance"


class SystemEvent(BaseModel):
    """Core event carried by the event system.

    Immutable once created. Consumed by the audit logger, which writes
    each one to the audit_log table.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Context (optional — system events have no subject)
    user_id: str | None = None
    actor_id: str | None = None
    actor_role: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
