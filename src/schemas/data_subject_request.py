"""Pydantic DTOs for data subject requests.

Response DTOs are frozen and serialize with camelCase keys, which is the
contract existing clients read. Request bodies accept either spelling.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DataSubjectRequestHistoryDto(_CamelModel):
    """One audit entry of a request, as sent to clients."""

    model_config = ConfigDict(frozen=True)

    id: int
    request_id: int
    action: str
    old_status: str | None = None
    new_status: str | None = None
    details: str | None = None
    performed_by: str | None = None
    performed_by_role: str | None = None
    performed_at: datetime
    ip_address: str | None = None


class DataSubjectRequestDto(_CamelModel):
    """A data subject request with its history, as sent to clients.

    History is a flat tuple with no back-reference to the request, so the
    payload never contains a cycle.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: str
    request_type: str
    status: str
    description: str | None = None
    submitted_at: datetime
    deadline_at: datetime
    completed_at: datetime | None = None
    ip_address: str | None = None
    assigned_to_admin_id: str | None = None
    admin_notes: str | None = None
    export_file_path: str | None = None
    export_expires_at: datetime | None = None
    deletion_summary: str | None = None
    retention_summary: str | None = None
    identity_verified: bool = False
    verification_method: str | None = None
    verified_at: datetime | None = None
    history: tuple[DataSubjectRequestHistoryDto, ...] = ()


# ── Request bodies ───────────────────────────────────────────────────


class CreateDataSubjectRequestDto(_CamelModel):
    """Body of POST /api/data-subject-requests."""

    request_type: str = Field(min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=2000)


class UpdateRequestStatusDto(_CamelModel):
    """Body of PUT /{id}/status (admin only)."""

    status: str = Field(min_length=1, max_length=50)
    admin_notes: str | None = Field(default=None, max_length=2000)


class AssignRequestDto(_CamelModel):
    """Body of PUT /{id}/assign (admin only)."""

    assign_to_admin_id: str = Field(min_length=1, max_length=255)


# ── Data export ──────────────────────────────────────────────────────


class UserDataExport(_CamelModel):
    """Everything this service holds about one data subject.

    Written to disk as the downloadable file of an Access or Portability
    request.
    """

    model_config = ConfigDict(frozen=True)

    exported_at: datetime
    user_id: str
    legal_basis: str
    data_categories: tuple[str, ...] = ()
    data: dict[str, Any] = Field(default_factory=dict)
