"""Initial schema — data subject requests, privacy policy, audit log.

Revision ID: 001
Revises: None
Create Date: 2026-10-16
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def upgrade() -> None:
    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "audit_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False, comment="SystemEvent.id"),
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("user_id", sa.String(255), index=True, comment="Data subject"),
        sa.Column("actor_id", sa.String(255), comment="User ID, admin ID, or 'System'"),
        sa.Column("actor_role", sa.String(50), comment="User, Admin, System"),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("source_module", sa.String(100)),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "data_subject_requests",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False, index=True),
        sa.Column("request_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, index=True),
        sa.Column("description", sa.String(2000)),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deadline_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("ip_address", sa.String(45)),
        sa.Column("user_agent", sa.String(500)),
        sa.Column("assigned_to_admin_id", sa.String(255)),
        sa.Column("admin_notes", sa.String(2000)),
        sa.Column("export_file_path", sa.String(500)),
        sa.Column("export_expires_at", sa.DateTime(timezone=True)),
        sa.Column("deletion_summary", sa.String(2000)),
        sa.Column("retention_summary", sa.String(2000)),
        sa.Column("identity_verified", sa.Boolean(), nullable=False),
        sa.Column("verification_method", sa.String(100)),
        sa.Column("verified_at", sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "privacy_policy_versions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("version", sa.String(10), nullable=False),
        sa.Column("content_html", sa.Text(), nullable=False),
        sa.Column("content_plain_text", sa.Text(), comment="Used in email notifications"),
        sa.Column("effective_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("created_by", sa.String(255)),
        sa.Column("is_current", sa.Boolean(), nullable=False),
        sa.Column("requires_re_acceptance", sa.Boolean(), nullable=False),
        sa.Column("changes_summary", sa.String(2000)),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Dependent tables ───────────────────────────────────────────────

    op.create_table(
        "data_subject_request_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("request_id", sa.Integer(), nullable=False, index=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("old_status", sa.String(50)),
        sa.Column("new_status", sa.String(50)),
        sa.Column("details", sa.String(2000)),
        sa.Column("performed_by", sa.String(255), comment="User ID, admin ID, or 'System'"),
        sa.Column("performed_by_role", sa.String(50), comment="User, Admin, System"),
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip_address", sa.String(45)),
        sa.ForeignKeyConstraint(["request_id"], ["data_subject_requests.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "user_privacy_policy_acceptances",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False, index=True),
        sa.Column("policy_version_id", sa.Integer(), nullable=False, index=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip_address", sa.String(45)),
        sa.Column("user_agent", sa.String(500)),
        sa.Column("acceptance_method", sa.String(50), comment="registration, update_notification, explicit"),
        sa.Column("was_shown_changes_summary", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["policy_version_id"], ["privacy_policy_versions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table("user_privacy_policy_acceptances")
    op.drop_table("data_subject_request_history")
    op.drop_table("privacy_policy_versions")
    op.drop_table("data_subject_requests")
    op.drop_table("audit_log")
