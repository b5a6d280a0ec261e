"""Privacy policy API — public current version, user acceptance, admin publishing."""
# ruff: noqa: B008  — Depends() in function defaults is standard FastAPI

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import client_ip, current_user_id, verify_admin
from src.db.engine import get_session
from src.mappers.privacy_policy import acceptance_to_dto, policy_to_dto
from src.models.privacy_policy import PrivacyPolicyVersion
from src.schemas.privacy_policy import (
    AcceptPolicyDto,
    CreatePolicyVersionDto,
    PolicyAcceptanceDto,
    PrivacyPolicyDto,
)
from src.services.privacy_policy import policy_service

router = APIRouter(prefix="/api/privacy-policy", tags=["privacy-policy"])


@router.get("/current", response_model=PrivacyPolicyDto)
async def current_policy(db: AsyncSession = Depends(get_session)) -> PrivacyPolicyDto:
    """The active policy. Public — no authentication."""
    policy = await policy_service.get_current_policy(db)
    if policy is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active privacy policy found")
    return policy_to_dto(policy)


@router.get("/versions", response_model=list[PrivacyPolicyDto])
async def all_versions(
    db: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user_id),
) -> list[PrivacyPolicyDto]:
    versions = await policy_service.get_all_versions(db)
    return [policy_to_dto(v) for v in versions]


@router.get("/acceptance-required")
async def acceptance_required(
    db: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user_id),
) -> dict[str, bool]:
    required = await policy_service.check_user_acceptance_required(db, user_id)
    return {"acceptanceRequired": required}


@router.get("/my-acceptances", response_model=list[PolicyAcceptanceDto])
async def my_acceptances(
    db: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user_id),
) -> list[PolicyAcceptanceDto]:
    acceptances = await policy_service.get_user_acceptance_history(db, user_id)
    return [acceptance_to_dto(a) for a in acceptances]


@router.post("/accept", response_model=PolicyAcceptanceDto)
async def accept_policy(
    body: AcceptPolicyDto,
    request: Request,
    db: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user_id),
) -> PolicyAcceptanceDto:
    """Record acceptance of a version (0 = the current one)."""
    version_id = body.policy_version_id
    if version_id == 0:
        current = await policy_service.get_current_policy(db)
        if current is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active privacy policy found")
        version_id = current.id
    elif await policy_service.get_policy_version(db, version_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Privacy policy version not found")

    acceptance = await policy_service.record_acceptance(
        db,
        user_id,
        version_id,
        client_ip(request),
        request.headers.get("user-agent"),
        body.acceptance_method,
    )
    return acceptance_to_dto(acceptance)


@router.post("", response_model=PrivacyPolicyDto, status_code=status.HTTP_201_CREATED)
async def create_policy_version(
    body: CreatePolicyVersionDto,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> PrivacyPolicyDto:
    """Publish a new version. A current version replaces the previous one."""
    policy = PrivacyPolicyVersion(
        version=body.version,
        content_html=body.content_html,
        content_plain_text=body.content_plain_text,
        effective_date=body.effective_date,
        is_current=body.is_current,
        requires_re_acceptance=body.requires_re_acceptance,
        changes_summary=body.changes_summary,
        created_by=admin,
    )
    created = await policy_service.create_policy_version(db, policy)
    return policy_to_dto(created)


@router.get("/{version_id}", response_model=PrivacyPolicyDto)
async def get_policy_version(
    version_id: int,
    db: AsyncSession = Depends(get_session),
    user_id: str = Depends(current_user_id),
) -> PrivacyPolicyDto:
    policy = await policy_service.get_policy_version(db, version_id)
    if policy is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Privacy policy version not found")
    return policy_to_dto(policy)
