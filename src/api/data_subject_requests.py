"""Data subject request API — user self-service plus admin processing.

User routes take the subject from the gateway header; admin routes require
HTTP Basic auth via verify_admin.
"""
# ruff: noqa: B008  — Depends() in function defaults is standard FastAPI

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import client_ip, current_user_id, verify_admin
from src.config import settings
from src.db.engine import get_session
from src.events import emit
from src.mappers.data_subject_request import to_dto, to_dto_list
from src.models.enums import EXPORT_REQUEST_TYPES, ActorRole
from src.schemas.data_subject_request import (
    AssignRequestDto,
    CreateDataSubjectRequestDto,
    DataSubjectRequestDto,
    UpdateRequestStatusDto,
)
from src.schemas.events import EventType, SystemEvent
from src.security.data_export import generate_export
from src.services.data_subject_requests import request_service
from src.services.exceptions import DuplicateRequestError, InvalidRequestError, RequestNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/data-subject-requests", tags=["data-subject-requests"])


# ── User routes ──────────────────────────────────────────────────────


@router.post("", response_model=DataSubjectRequestDto, status_code=status.HTTP_201_CREATED)
async def create_request(
    body: CreateDataSubjectRequestDto,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user_id),
) -> DataSubjectRequestDto:
    """Submit a new request (Access, Deletion, Portability, ...).

    Access and Portability requests start the data export in the background.
    """
    try:
        dsr = await request_service.create_request(
            db,
            user_id,
            body.request_type,
            body.description,
            client_ip(request),
            request.headers.get("user-agent"),
        )
    except (InvalidRequestError, DuplicateRequestError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if dsr.request_type in EXPORT_REQUEST_TYPES:
        # The export job opens its own session and must see the new row
        await db.commit()
        background_tasks.add_task(generate_export, dsr.id)

    return to_dto(dsr)


@router.get("/my-requests", response_model=list[DataSubjectRequestDto])
async def my_requests(
    db: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user_id),
) -> list[DataSubjectRequestDto]:
    """All of the caller's requests, newest first."""
    requests = await request_service.get_user_requests(db, user_id)
    return to_dto_list(requests)


# ── Admin routes ─────────────────────────────────────────────────────


@router.get("/admin/pending", response_model=list[DataSubjectRequestDto])
async def pending_requests(
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> list[DataSubjectRequestDto]:
    """Open requests ordered by deadline."""
    requests = await request_service.get_pending_requests(db)
    return to_dto_list(requests)


@router.get("/admin/nearing-deadline", response_model=list[DataSubjectRequestDto])
async def nearing_deadline(
    days: int = Query(default=settings.gdpr.deadline_warning_days, ge=0, le=365),
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> list[DataSubjectRequestDto]:
    requests = await request_service.get_requests_nearing_deadline(db, days)
    return to_dto_list(requests)


@router.get("/admin/{request_id}", response_model=DataSubjectRequestDto)
async def admin_get_request(
    request_id: int,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> DataSubjectRequestDto:
    """Any request with its full history."""
    dsr = await request_service.get_request_by_id(db, request_id)
    if dsr is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Request {request_id} not found")
    return to_dto(dsr)


@router.put("/{request_id}/status", response_model=DataSubjectRequestDto)
async def update_status(
    request_id: int,
    body: UpdateRequestStatusDto,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> DataSubjectRequestDto:
    try:
        dsr = await request_service.update_request_status(
            db, request_id, body.status, body.admin_notes, admin, ActorRole.ADMIN.value
        )
    except RequestNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return to_dto(dsr)


@router.put("/{request_id}/assign", response_model=DataSubjectRequestDto)
async def assign(
    request_id: int,
    body: AssignRequestDto,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> DataSubjectRequestDto:
    try:
        dsr = await request_service.assign_request(db, request_id, body.assign_to_admin_id, admin)
    except RequestNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return to_dto(dsr)


# ── User routes with a path id (declared last so static paths win) ───


@router.get("/{request_id}", response_model=DataSubjectRequestDto)
async def get_request(
    request_id: int,
    db: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user_id),
) -> DataSubjectRequestDto:
    """One of the caller's own requests, with history."""
    dsr = await request_service.get_request_by_id(db, request_id, user_id)
    if dsr is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Request {request_id} not found")
    return to_dto(dsr)


@router.get("/{request_id}/download")
async def download_export(
    request_id: int,
    db: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user_id),
) -> FileResponse:
    """Download the generated export of an Access or Portability request."""
    dsr = await request_service.get_request_by_id(db, request_id, user_id)
    if dsr is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Request {request_id} not found")

    if dsr.request_type not in EXPORT_REQUEST_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only access and portability requests have downloadable exports",
        )

    if not dsr.export_file_path:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Export file not yet generated or not available",
        )

    if dsr.export_expires_at is not None and dsr.export_expires_at < datetime.now(UTC):
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Export link has expired. Please submit a new request.",
        )

    path = Path(dsr.export_file_path)
    if not path.is_file():
        logger.warning("Export file missing on disk: request=%s", request_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Export file not found on server")

    await emit(SystemEvent(
        event_type=EventType.DSR_EXPORT_DOWNLOADED,
        user_id=user_id,
        actor_id=user_id,
        actor_role=ActorRole.USER.value,
        data={"request_id": request_id},
        source_module="api.data_subject_requests",
    ))

    return FileResponse(path, media_type=settings.gdpr.export_media_type, filename=path.name)
