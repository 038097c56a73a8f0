"""Create users, workspace, invitation, role cache, activity and notification tables

Revision ID: 7a41c2e9d0b3
Revises:
Create Date: 2026-10-19 09:12:31.402118

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from app.core.db.types import UTCDateTime

# revision identifiers, used by Alembic.
revision: str = "7a41c2e9d0b3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Non-native enums are stored as their member names
workspace_status = sa.Enum(
    "ACTIVE", "ARCHIVED", name="workspace_status", native_enum=False
)
member_role = sa.Enum("OWNER", "ADMIN", "MEMBER", name="member_role", native_enum=False)
invitation_status = sa.Enum(
    "PENDING",
    "ACCEPTED",
    "DECLINED",
    "EXPIRED",
    "CANCELLED",
    name="invitation_status",
    native_enum=False,
)
invitation_type = sa.Enum(
    "WORKSPACE", "SPACE", "BOARD", name="invitation_type", native_enum=False
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("email_verified", sa.Boolean(), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "workspaces",
        *_timestamps(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("status", workspace_status, nullable=False),
        sa.Column(
            "members_count",
            sa.Integer(),
            nullable=False,
            comment="Member rows plus the implicit owner",
        ),
        sa.Column("max_members", sa.Integer(), nullable=False),
        sa.Column("archived_at", UTCDateTime(), nullable=True),
        sa.Column("archived_by_id", sa.Uuid(), nullable=True),
        sa.Column("archive_expires_at", UTCDateTime(), nullable=True),
        sa.Column("settings", sa.JSON(), nullable=False),
        sa.Column("rules_content", sa.Text(), nullable=True),
        sa.Column("rules_version", sa.Integer(), nullable=False),
        sa.Column("rules_last_updated_by_id", sa.Uuid(), nullable=True),
        sa.Column("rules_updated_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_workspaces_owner_id"), "workspaces", ["owner_id"])
    op.create_index(op.f("ix_workspaces_status"), "workspaces", ["status"])
    op.create_index(
        op.f("ix_workspaces_archive_expires_at"), "workspaces", ["archive_expires_at"]
    )
    op.create_index(
        "ix_workspaces_status_archive_expires",
        "workspaces",
        ["status", "archive_expires_at"],
    )

    op.create_table(
        "workspace_members",
        *_timestamps(),
        sa.Column("workspace_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("role", member_role, nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("joined_at", UTCDateTime(), nullable=False),
        sa.Column("invited_by_id", sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(
            ["workspace_id"], ["workspaces.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "workspace_id", "user_id", name="uq_workspace_members_workspace_user"
        ),
    )
    op.create_index(
        op.f("ix_workspace_members_workspace_id"), "workspace_members", ["workspace_id"]
    )
    op.create_index(
        op.f("ix_workspace_members_user_id"), "workspace_members", ["user_id"]
    )

    op.create_table(
        "workspace_invitations",
        *_timestamps(),
        sa.Column("type", invitation_type, nullable=False),
        sa.Column("target_id", sa.Uuid(), nullable=False),
        sa.Column("target_name", sa.String(length=200), nullable=False),
        sa.Column("invited_by_id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("invited_user_id", sa.Uuid(), nullable=True),
        sa.Column("role", member_role, nullable=False),
        sa.Column(
            "token_hash",
            sa.String(length=64),
            nullable=False,
            comment="HMAC-SHA256 hash of invitation token",
        ),
        sa.Column("status", invitation_status, nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("expires_at", UTCDateTime(), nullable=False),
        sa.Column("accepted_at", UTCDateTime(), nullable=True),
        sa.Column("declined_at", UTCDateTime(), nullable=True),
        sa.Column("cancelled_at", UTCDateTime(), nullable=True),
        sa.Column("reminders_sent", sa.Integer(), nullable=False),
        sa.Column("last_reminder_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_hash"),
    )
    op.create_index(
        op.f("ix_workspace_invitations_target_id"),
        "workspace_invitations",
        ["target_id"],
    )
    op.create_index(
        op.f("ix_workspace_invitations_invited_by_id"),
        "workspace_invitations",
        ["invited_by_id"],
    )
    op.create_index(
        op.f("ix_workspace_invitations_email"), "workspace_invitations", ["email"]
    )
    op.create_index(
        op.f("ix_workspace_invitations_status"), "workspace_invitations", ["status"]
    )
    op.create_index(
        "ix_workspace_invitations_status_expires",
        "workspace_invitations",
        ["status", "expires_at"],
    )
    op.create_index(
        "uq_workspace_invitations_pending_email_target",
        "workspace_invitations",
        ["email", "type", "target_id"],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING' AND email IS NOT NULL"),
        sqlite_where=sa.text("status = 'PENDING' AND email IS NOT NULL"),
    )

    op.create_table(
        "role_cache_entries",
        *_timestamps(),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("workspace_id", sa.Uuid(), nullable=False),
        sa.Column("role", member_role, nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "workspace_id", name="uq_role_cache_entries_user_workspace"
        ),
    )
    op.create_index(
        op.f("ix_role_cache_entries_user_id"), "role_cache_entries", ["user_id"]
    )
    op.create_index(
        op.f("ix_role_cache_entries_workspace_id"),
        "role_cache_entries",
        ["workspace_id"],
    )

    op.create_table(
        "activity_logs",
        *_timestamps(),
        sa.Column(
            "actor_id",
            sa.Uuid(),
            nullable=True,
            comment="User that performed the action (no FK: actors may be deleted)",
        ),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=True),
        sa.Column("entity_name", sa.String(length=255), nullable=True),
        sa.Column(
            "workspace_id",
            sa.Uuid(),
            nullable=True,
            comment="Workspace the action belongs to (kept after the workspace is deleted)",
        ),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_activity_logs_actor_id"), "activity_logs", ["actor_id"])
    op.create_index(op.f("ix_activity_logs_action"), "activity_logs", ["action"])
    op.create_index(
        op.f("ix_activity_logs_workspace_id"), "activity_logs", ["workspace_id"]
    )

    op.create_table(
        "notifications",
        *_timestamps(),
        sa.Column("recipient_id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_notifications_recipient_id"), "notifications", ["recipient_id"]
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("notifications")
    op.drop_table("activity_logs")
    op.drop_table("role_cache_entries")
    op.drop_index(
        "uq_workspace_invitations_pending_email_target",
        table_name="workspace_invitations",
    )
    op.drop_table("workspace_invitations")
    op.drop_table("workspace_members")
    op.drop_table("workspaces")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
