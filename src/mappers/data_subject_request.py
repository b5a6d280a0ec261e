"""Entity → DTO mapping for data subject requests.

Pure projections: every field is copied by value, nothing is validated or
recomputed, and the source entity is never modified. A request whose
history is absent maps to an empty history tuple.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import inspect as sa_inspect

from src.models.data_subject_request import DataSubjectRequest, DataSubjectRequestHistory
from src.schemas.data_subject_request import DataSubjectRequestDto, DataSubjectRequestHistoryDto


def _loaded_history(entity: Any) -> Iterable[DataSubjectRequestHistory] | None:
    """Return the history collection, or None when it is absent.

    An ORM relationship that was never loaded counts as absent; touching it
    would trigger I/O (or raise, since the relationship is lazy="raise").
    """
    state = sa_inspect(entity, raiseerr=False)
    if state is not None and "history" in state.unloaded:
        return None
    return getattr(entity, "history", None)


def history_to_dto(entity: DataSubjectRequestHistory) -> DataSubjectRequestHistoryDto:
    """Map one history entry to its DTO."""
    if entity is None:
        msg = "Cannot map a missing DataSubjectRequestHistory"
        raise ValueError(msg)

    return DataSubjectRequestHistoryDto(
        id=entity.id,
        request_id=entity.request_id,
        action=entity.action,
        old_status=entity.old_status,
        new_status=entity.new_status,
        details=entity.details,
        performed_by=entity.performed_by,
        performed_by_role=entity.performed_by_role,
        performed_at=entity.performed_at,
        ip_address=entity.ip_address,
    )


def to_dto(entity: DataSubjectRequest) -> DataSubjectRequestDto:
    """Map a request and its history to a DTO, preserving history order."""
    if entity is None:
        msg = "Cannot map a missing DataSubjectRequest"
        raise ValueError(msg)

    history = _loaded_history(entity)
    history_dtos = tuple(history_to_dto(h) for h in history) if history is not None else ()

    return DataSubjectRequestDto(
        id=entity.id,
        user_id=entity.user_id,
        request_type=entity.request_type,
        status=entity.status,
        description=entity.description,
        submitted_at=entity.submitted_at,
        deadline_at=entity.deadline_at,
        completed_at=entity.completed_at,
        ip_address=entity.ip_address,
        assigned_to_admin_id=entity.assigned_to_admin_id,
        admin_notes=entity.admin_notes,
        export_file_path=entity.export_file_path,
        export_expires_at=entity.export_expires_at,
        deletion_summary=entity.deletion_summary,
        retention_summary=entity.retention_summary,
        identity_verified=entity.identity_verified,
        verification_method=entity.verification_method,
        verified_at=entity.verified_at,
        history=history_dtos,
    )


def to_dto_list(entities: Iterable[DataSubjectRequest]) -> list[DataSubjectRequestDto]:
    """Map each request independently, keeping input order."""
    return [to_dto(e) for e in entities]
