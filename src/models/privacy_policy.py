"""Privacy policy versions and per-user acceptance records."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base


class PrivacyPolicyVersion(Base):
    """A published version of the privacy policy."""

    __tablename__ = "privacy_policy_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    version: Mapped[str] = mapped_column(String(10), nullable=False)
    content_html: Mapped[str] = mapped_column(Text, nullable=False)
    content_plain_text: Mapped[str | None] = mapped_column(Text, comment="Used in email notifications")

    effective_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    created_by: Mapped[str | None] = mapped_column(String(255))

    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    requires_re_acceptance: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    changes_summary: Mapped[str | None] = mapped_column(String(2000))

    acceptances: Mapped[list[UserPrivacyPolicyAcceptance]] = relationship(
        "UserPrivacyPolicyAcceptance", back_populates="policy_version", lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<PrivacyPolicyVersion version={self.version} current={self.is_current}>"


class UserPrivacyPolicyAcceptance(Base):
    """Records that a user accepted a given policy version. Immutable."""

    __tablename__ = "user_privacy_policy_acceptances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    policy_version_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("privacy_policy_versions.id"), nullable=False, index=True
    )

    accepted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(String(500))
    acceptance_method: Mapped[str | None] = mapped_column(
        String(50), comment="registration, update_notification, explicit"
    )
    was_shown_changes_summary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    policy_version: Mapped[PrivacyPolicyVersion] = relationship(
        "PrivacyPolicyVersion", back_populates="acceptances"
    )

    def __repr__(self) -> str:
        return f"<UserPrivacyPolicyAcceptance user={self.user_id} version={self.policy_version_id}>"
