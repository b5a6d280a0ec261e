"""Pydantic DTOs for privacy policy versions and acceptances."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PrivacyPolicyDto(BaseModel):
    """A policy version as rendered by the privacy policy page."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    version: str
    effective_date: datetime
    content_html: str
    content_plain_text: str | None = None
    created_at: datetime
    created_by: str | None = None
    is_current: bool = False
    requires_re_acceptance: bool = False
    changes_summary: str | None = None


class PolicyAcceptanceDto(BaseModel):
    """One recorded acceptance of a policy version."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    user_id: str
    policy_version_id: int
    accepted_at: datetime
    ip_address: str | None = None
    acceptance_method: str | None = None
    was_shown_changes_summary: bool = False
    policy_version: str | None = None


class CreatePolicyVersionDto(BaseModel):
    """Body of POST /api/privacy-policy (admin only)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: str = Field(min_length=1, max_length=10)
    content_html: str = Field(min_length=1)
    content_plain_text: str | None = None
    effective_date: datetime
    is_current: bool = False
    requires_re_acceptance: bool = False
    changes_summary: str | None = Field(default=None, max_length=2000)


class AcceptPolicyDto(BaseModel):
    """Body of POST /api/privacy-policy/accept. Version 0 means the current one."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    policy_version_id: int = Field(default=0, ge=0)
    acceptance_method: str | None = Field(default=None, max_length=50)
