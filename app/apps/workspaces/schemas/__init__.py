"""
Schemas for workspaces.
"""

from app.apps.workspaces.schemas.workspace import (
    MemberLimits,
    MemberListResponse,
    MemberRoleUpdate,
    MessageResponse,
    TransferOwnershipRequest,
    WorkspaceCreate,
    WorkspaceDeletedResponse,
    WorkspaceDetailResponse,
    WorkspaceListResponse,
    WorkspaceMemberResponse,
    WorkspaceResponse,
    WorkspaceRules,
    WorkspaceRulesUpdate,
    WorkspaceSettingsUpdate,
    WorkspaceUpdate,
)
from app.apps.workspaces.schemas.invitation import (
    BulkInvitationCreate,
    BulkInvitationResponse,
    BulkInvitationResult,
    InvitationAcceptedResponse,
    InvitationCreate,
    InvitationCreatedResponse,
    InvitationExtend,
    InvitationListResponse,
    InvitationResponse,
)

__all__ = [
    # Workspace
    "WorkspaceCreate",
    "WorkspaceUpdate",
    "WorkspaceSettingsUpdate",
    "WorkspaceRulesUpdate",
    "WorkspaceRules",
    "WorkspaceResponse",
    "WorkspaceDetailResponse",
    "WorkspaceListResponse",
    "WorkspaceDeletedResponse",
    # Members
    "WorkspaceMemberResponse",
    "MemberLimits",
    "MemberListResponse",
    "MemberRoleUpdate",
    "TransferOwnershipRequest",
    # Invitations
    "BulkInvitationCreate",
    "BulkInvitationResponse",
    "BulkInvitationResult",
    "InvitationCreate",
    "InvitationExtend",
    "InvitationResponse",
    "InvitationListResponse",
    "InvitationCreatedResponse",
    "InvitationAcceptedResponse",
    # Common
    "MessageResponse",
]
