"""Privacy policy versions and user acceptance tracking.

At most one version is current at a time. Acceptances are recorded once
per user and version; re-accepting returns the existing record.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.events import emit
from src.models.enums import ActorRole
from src.models.privacy_policy import PrivacyPolicyVersion, UserPrivacyPolicyAcceptance
from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)


class PrivacyPolicyService:
    """Stateless policy operations — AsyncSession passed per call."""

    async def get_current_policy(self, db: AsyncSession) -> PrivacyPolicyVersion | None:
        """The current version that is already in effect, if any."""
        result = await db.execute(
            select(PrivacyPolicyVersion)
            .where(
                PrivacyPolicyVersion.is_current.is_(True),
                PrivacyPolicyVersion.effective_date <= datetime.now(UTC),
            )
            .order_by(PrivacyPolicyVersion.effective_date.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_policy_version(self, db: AsyncSession, version_id: int) -> PrivacyPolicyVersion | None:
        return await db.get(PrivacyPolicyVersion, version_id)

    async def get_all_versions(self, db: AsyncSession) -> list[PrivacyPolicyVersion]:
        result = await db.execute(
            select(PrivacyPolicyVersion).order_by(PrivacyPolicyVersion.effective_date.desc())
        )
        return list(result.scalars().all())

    async def create_policy_version(
        self, db: AsyncSession, policy: PrivacyPolicyVersion
    ) -> PrivacyPolicyVersion:
        """Persist a new version; a current one demotes all others."""
        if policy.is_current:
            await db.execute(
                update(PrivacyPolicyVersion)
                .where(PrivacyPolicyVersion.is_current.is_(True))
                .values(is_current=False)
            )

        if policy.created_at is None:
            policy.created_at = datetime.now(UTC)
        db.add(policy)
        await db.flush()

        await emit(SystemEvent(
            event_type=EventType.POLICY_PUBLISHED,
            actor_id=policy.created_by,
            actor_role=ActorRole.ADMIN.value,
            data={"policy_id": policy.id, "version": policy.version, "is_current": policy.is_current},
            source_module="services.privacy_policy",
        ))

        logger.info("Privacy policy version created: version=%s current=%s", policy.version, policy.is_current)
        return policy

    async def check_user_acceptance_required(self, db: AsyncSession, user_id: str) -> bool:
        """True if a current policy exists and the user has not accepted it."""
        current = await self.get_current_policy(db)
        if current is None:
            return False
        return await self._find_acceptance(db, user_id, current.id) is None

    async def get_user_acceptance_history(
        self, db: AsyncSession, user_id: str
    ) -> list[UserPrivacyPolicyAcceptance]:
        result = await db.execute(
            select(UserPrivacyPolicyAcceptance)
            .where(UserPrivacyPolicyAcceptance.user_id == user_id)
            .options(selectinload(UserPrivacyPolicyAcceptance.policy_version))
            .order_by(UserPrivacyPolicyAcceptance.accepted_at.desc())
        )
        return list(result.scalars().all())

    async def record_acceptance(
        self,
        db: AsyncSession,
        user_id: str,
        policy_version_id: int,
        ip_address: str | None,
        user_agent: str | None,
        acceptance_method: str | None,
    ) -> UserPrivacyPolicyAcceptance:
        """Record an acceptance, or return the existing one for this version."""
        existing = await self._find_acceptance(db, user_id, policy_version_id)
        if existing is not None:
            return existing

        acceptance = UserPrivacyPolicyAcceptance(
            user_id=user_id,
            policy_version_id=policy_version_id,
            accepted_at=datetime.now(UTC),
            ip_address=ip_address,
            user_agent=user_agent,
            acceptance_method=acceptance_method or "explicit",
            was_shown_changes_summary=False,
        )
        db.add(acceptance)
        await db.flush()

        await emit(SystemEvent(
            event_type=EventType.POLICY_ACCEPTED,
            user_id=user_id,
            actor_id=user_id,
            actor_role=ActorRole.USER.value,
            data={"policy_version_id": policy_version_id, "method": acceptance.acceptance_method},
            source_module="services.privacy_policy",
        ))

        logger.info("Privacy policy accepted: user=%s version_id=%s", user_id, policy_version_id)
        return acceptance

    async def get_user_current_acceptance(
        self, db: AsyncSession, user_id: str
    ) -> UserPrivacyPolicyAcceptance | None:
        """The user's latest acceptance of the current version, with the version loaded."""
        current = await self.get_current_policy(db)
        if current is None:
            return None

        result = await db.execute(
            select(UserPrivacyPolicyAcceptance)
            .where(
                UserPrivacyPolicyAcceptance.user_id == user_id,
                UserPrivacyPolicyAcceptance.policy_version_id == current.id,
            )
            .options(selectinload(UserPrivacyPolicyAcceptance.policy_version))
            .order_by(UserPrivacyPolicyAcceptance.accepted_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def has_user_accepted_current_policy(self, db: AsyncSession, user_id: str) -> bool:
        return await self.get_user_current_acceptance(db, user_id) is not None

    async def _find_acceptance(
        self, db: AsyncSession, user_id: str, policy_version_id: int
    ) -> UserPrivacyPolicyAcceptance | None:
        result = await db.execute(
            select(UserPrivacyPolicyAcceptance)
            .where(
                UserPrivacyPolicyAcceptance.user_id == user_id,
                UserPrivacyPolicyAcceptance.policy_version_id == policy_version_id,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()


# Module-level singleton
policy_service = PrivacyPolicyService()
