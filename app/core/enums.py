from enum import Enum


class WorkspaceStatus(str, Enum):
    """Lifecycle status of a workspace."""

    ACTIVE = "active"
    ARCHIVED = "archived"  # Counting down to permanent deletion


class MemberRole(str, Enum):
    """Role of a user within a workspace."""

    OWNER = "owner"  # Implicit, never stored as a member row
    ADMIN = "admin"  # Manage members, settings
    MEMBER = "member"  # Regular access

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]

    def at_least(self, required: "MemberRole") -> bool:
        return self.rank >= required.rank


_ROLE_RANKS = {
    MemberRole.MEMBER: 0,
    MemberRole.ADMIN: 1,
    MemberRole.OWNER: 2,
}


class InvitationStatus(str, Enum):
    """Status of an invitation. Every value but PENDING is terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class BulkInviteStatus(str, Enum):
    """Outcome for one address of a bulk invite."""

    SENT = "sent"
    ALREADY_MEMBER = "already_member"
    ALREADY_PENDING = "already_pending"


class InvitationType(str, Enum):
    """Kind of entity an invitation grants access to."""

    WORKSPACE = "workspace"
    SPACE = "space"
    BOARD = "board"


class ActivityAction(str, Enum):
    """Actions recorded in the activity log."""

    WORKSPACE_CREATE = "workspace_create"
    WORKSPACE_UPDATE = "workspace_update"
    WORKSPACE_ARCHIVE = "workspace_archive"
    WORKSPACE_RESTORE = "workspace_restore"
    WORKSPACE_DELETE = "workspace_delete"
    WORKSPACE_MEMBER_ADD = "workspace_member_add"
    WORKSPACE_MEMBER_REMOVE = "workspace_member_remove"
    WORKSPACE_MEMBER_ROLE_UPDATE = "workspace_member_role_update"
    WORKSPACE_OWNERSHIP_TRANSFER = "workspace_ownership_transfer"
    INVITATION_SEND = "invitation_send"
    INVITATION_ACCEPT = "invitation_accept"
    INVITATION_DECLINE = "invitation_decline"
    INVITATION_CANCEL = "invitation_cancel"
    INVITATION_REMIND = "invitation_remind"
    INVITATION_EXTEND = "invitation_extend"


class NotificationType(str, Enum):
    """Kinds of in-app notifications emitted by workspace operations."""

    WORKSPACE_ARCHIVED = "workspace_archived"
    WORKSPACE_RESTORED = "workspace_restored"
    WORKSPACE_DELETED = "workspace_deleted"
    MEMBER_JOINED = "member_joined"
    MEMBER_REMOVED = "member_removed"
    ROLE_CHANGED = "role_changed"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"
    INVITATION_RECEIVED = "invitation_received"
    INVITATION_DECLINED = "invitation_declined"


__all__ = [
    "ActivityAction",
    "BulkInviteStatus",
    "InvitationStatus",
    "InvitationType",
    "MemberRole",
    "NotificationType",
    "WorkspaceStatus",
]
