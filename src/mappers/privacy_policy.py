"""Entity → DTO mapping for privacy policy versions and acceptances."""

from __future__ import annotations

from sqlalchemy import inspect as sa_inspect

from src.models.privacy_policy import PrivacyPolicyVersion, UserPrivacyPolicyAcceptance
from src.schemas.privacy_policy import PolicyAcceptanceDto, PrivacyPolicyDto


def policy_to_dto(entity: PrivacyPolicyVersion) -> PrivacyPolicyDto:
    if entity is None:
        msg = "Cannot map a missing PrivacyPolicyVersion"
        raise ValueError(msg)

    return PrivacyPolicyDto(
        id=entity.id,
        version=entity.version,
        effective_date=entity.effective_date,
        content_html=entity.content_html,
        content_plain_text=entity.content_plain_text,
        created_at=entity.created_at,
        created_by=entity.created_by,
        is_current=entity.is_current,
        requires_re_acceptance=entity.requires_re_acceptance,
        changes_summary=entity.changes_summary,
    )


def acceptance_to_dto(entity: UserPrivacyPolicyAcceptance) -> PolicyAcceptanceDto:
    """Map an acceptance; the version label is included only when already loaded."""
    if entity is None:
        msg = "Cannot map a missing UserPrivacyPolicyAcceptance"
        raise ValueError(msg)

    state = sa_inspect(entity, raiseerr=False)
    loaded = state is None or "policy_version" not in state.unloaded
    policy = getattr(entity, "policy_version", None) if loaded else None

    return PolicyAcceptanceDto(
        id=entity.id,
        user_id=entity.user_id,
        policy_version_id=entity.policy_version_id,
        accepted_at=entity.accepted_at,
        ip_address=entity.ip_address,
        acceptance_method=entity.acceptance_method,
        was_shown_changes_summary=entity.was_shown_changes_summary,
        policy_version=policy.version if policy is not None else None,
    )
