"""
Workspace models.

This module provides the workspace aggregate (workspaces and their member
rows), the invitation ledger and the per-user role cache.

User references (owner, members, inviters) are plain ids: the user
directory is external to this module and a member whose directory record
vanished must still be listable and removable.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    and_,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.config import settings as app_settings
from app.core.db.models.base import BaseModel
from app.core.db.types import UTCDateTime
from app.core.enums import (
    InvitationStatus,
    InvitationType,
    MemberRole,
    WorkspaceStatus,
)


def default_workspace_settings() -> dict[str, Any]:
    """Fresh settings document for a new workspace."""
    return {
        "permissions": {
            "default_member_role": MemberRole.MEMBER.value,
            "allow_member_invites": True,
            "require_approval_for_members": False,
            "public_join": False,
        },
        "features": {
            "ai_suggestions": True,
            "time_tracking": True,
            "file_attachments": True,
            "custom_fields": True,
            "integrations": True,
        },
        "branding": {
            "primary_color": "#3B82F6",
            "custom_domain": None,
        },
        "notifications": {
            "email_digests": True,
            "slack_integration": False,
        },
    }


class Workspace(BaseModel):
    """
    Model for workspaces (the tenant and access boundary).

    The owner is implicit: ``owner_id`` is never duplicated into the member
    rows, so ``members_count`` is always the number of member rows plus one.

    Attributes:
        name: Workspace name.
        description: Optional workspace description.
        owner_id: Id of the owning user.
        status: Lifecycle status (active, archived).
        members_count: Member rows plus the implicit owner.
        max_members: Seat limit, owner included.
        archived_at: When the workspace was archived, null while active.
        archived_by_id: Who archived it.
        archive_expires_at: Deadline after which the reaper deletes it.
        settings: Sectioned settings document.
        rules_content: Free-form workspace rules.
        rules_version: Incremented on every rules update.
        rules_last_updated_by_id: Last editor of the rules.
    """

    __tablename__ = "workspaces"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    owner_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )

    status: Mapped[WorkspaceStatus] = mapped_column(
        Enum(WorkspaceStatus, native_enum=False, name="workspace_status"),
        nullable=False,
        index=True,
        default=WorkspaceStatus.ACTIVE,
    )

    members_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Member rows plus the implicit owner",
    )

    max_members: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=lambda: app_settings.DEFAULT_MAX_MEMBERS,
    )

    archived_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    archived_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
    )

    archive_expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        index=True,
    )

    settings: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=default_workspace_settings,
    )

    rules_content: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    rules_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    rules_last_updated_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
    )

    rules_updated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    # Read-only view; member rows are written through workspace_member_db only
    members: Mapped[list["WorkspaceMember"]] = relationship(
        "WorkspaceMember",
        viewonly=True,
        order_by="WorkspaceMember.joined_at",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_workspaces_status_archive_expires", "status", "archive_expires_at"),
    )

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"

    @property
    def is_active(self) -> bool:
        """Check if workspace is active."""
        return self.status == WorkspaceStatus.ACTIVE

    @property
    def is_archived(self) -> bool:
        """Check if workspace is archived."""
        return self.status == WorkspaceStatus.ARCHIVED

    @property
    def has_free_seat(self) -> bool:
        return self.members_count < self.max_members

    def archive_countdown_seconds(self, now: datetime | None = None) -> int | None:
        """
        Seconds left before the reaper may delete this workspace.

        Returns:
            None while active, otherwise the remaining whole seconds, floored at 0.
        """
        if self.archive_expires_at is None:
            return None
        now = now or datetime.now(timezone.utc)
        return max(0, int((self.archive_expires_at - now).total_seconds()))


class WorkspaceMember(BaseModel):
    """
    Model for a non-owner member row of a workspace.

    Attributes:
        workspace_id: Foreign key to the workspace.
        user_id: Id of the member.
        role: Member role (admin or member, never owner).
        permissions: Capability flags for the member.
        joined_at: When the user joined the workspace.
        invited_by_id: Who invited or added the member.
    """

    __tablename__ = "workspace_members"

    workspace_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey(
            "workspaces.id",
            ondelete="CASCADE",
            comment="Delete membership when workspace is deleted",
        ),
        nullable=False,
        index=True,
    )

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )

    role: Mapped[MemberRole] = mapped_column(
        Enum(MemberRole, native_enum=False, name="member_role"),
        nullable=False,
        default=MemberRole.MEMBER,
    )

    permissions: Mapped[dict[str, bool]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    joined_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    invited_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "workspace_id",
            "user_id",
            name="uq_workspace_members_workspace_user",
        ),
    )

    @property
    def is_admin(self) -> bool:
        """Check if member has admin privileges."""
        return self.role.at_least(MemberRole.ADMIN)


class WorkspaceInvitation(BaseModel):
    """
    Model for invitations (the invitation ledger).

    Invitations target an entity by type and id. Email invitations are
    addressed to one identity; link invitations carry no email and can be
    redeemed once by whoever holds the token. Only an HMAC of the token is
    stored.

    Attributes:
        type: Kind of target entity.
        target_id: Id of the target entity (the workspace id here).
        target_name: Target name at invitation time.
        invited_by_id: Who sent the invitation.
        email: Invitee email, null for link invitations.
        invited_user_id: Invitee user id, stamped on acceptance if unknown.
        role: Role granted on acceptance.
        token_hash: HMAC-SHA256 of the invitation token.
        status: pending, accepted, declined, expired or cancelled.
        expires_at: Redemption deadline.
        reminders_sent: Number of reminders sent.
        last_reminder_at: When the last reminder went out.
    """

    __tablename__ = "workspace_invitations"

    type: Mapped[InvitationType] = mapped_column(
        Enum(InvitationType, native_enum=False, name="invitation_type"),
        nullable=False,
        default=InvitationType.WORKSPACE,
    )

    target_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )

    target_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    invited_by_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )

    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )

    invited_user_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
    )

    role: Mapped[MemberRole] = mapped_column(
        Enum(MemberRole, native_enum=False, name="member_role"),
        nullable=False,
        default=MemberRole.MEMBER,
    )

    token_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="HMAC-SHA256 hash of invitation token",
    )

    status: Mapped[InvitationStatus] = mapped_column(
        Enum(InvitationStatus, native_enum=False, name="invitation_status"),
        nullable=False,
        index=True,
        default=InvitationStatus.PENDING,
    )

    message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    accepted_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    declined_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    cancelled_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    reminders_sent: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    last_reminder_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_workspace_invitations_status_expires", "status", "expires_at"),
    )

    @property
    def is_pending(self) -> bool:
        """Check if invitation is pending."""
        return self.status == InvitationStatus.PENDING

    @property
    def is_link(self) -> bool:
        """Check if invitation is an open link rather than addressed to an email."""
        return self.email is None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if the redemption deadline has passed."""
        return (now or datetime.now(timezone.utc)) > self.expires_at


# At most one pending email invitation per (email, target type, target id)
Index(
    "uq_workspace_invitations_pending_email_target",
    WorkspaceInvitation.email,
    WorkspaceInvitation.type,
    WorkspaceInvitation.target_id,
    unique=True,
    postgresql_where=and_(
        WorkspaceInvitation.status == InvitationStatus.PENDING,
        WorkspaceInvitation.email.is_not(None),
    ),
    sqlite_where=and_(
        WorkspaceInvitation.status == InvitationStatus.PENDING,
        WorkspaceInvitation.email.is_not(None),
    ),
)


class RoleCacheEntry(BaseModel):
    """
    Per-user derived index of workspace roles.

    One row per (user, workspace) pair the user belongs to, owner included.
    Rebuildable from workspaces and member rows at any time.
    """

    __tablename__ = "role_cache_entries"

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )

    workspace_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )

    role: Mapped[MemberRole] = mapped_column(
        Enum(MemberRole, native_enum=False, name="member_role"),
        nullable=False,
    )

    permissions: Mapped[dict[str, bool]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "workspace_id",
            name="uq_role_cache_entries_user_workspace",
        ),
    )


__all__ = [
    "RoleCacheEntry",
    "Workspace",
    "WorkspaceInvitation",
    "WorkspaceMember",
    "default_workspace_settings",
]
