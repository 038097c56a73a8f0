"""
Services for workspaces.
"""

from app.apps.workspaces.services import side_effects
from app.apps.workspaces.services.permissions import (
    PermissionService,
    permission_service,
    default_permissions,
    has_role,
)
from app.apps.workspaces.services.membership import (
    MembershipService,
    membership_service,
)
from app.apps.workspaces.services.lifecycle import (
    LifecycleService,
    lifecycle_service,
)
from app.apps.workspaces.services.invitation import (
    BulkInviteResult,
    InvitationService,
    invitation_service,
)
from app.apps.workspaces.services.workspace import (
    MemberListing,
    MemberView,
    WorkspaceService,
    workspace_service,
)

__all__ = [
    "side_effects",
    # Permissions
    "PermissionService",
    "permission_service",
    "default_permissions",
    "has_role",
    # Membership synchronizer
    "MembershipService",
    "membership_service",
    # Lifecycle
    "LifecycleService",
    "lifecycle_service",
    # Invitations
    "BulkInviteResult",
    "InvitationService",
    "invitation_service",
    # Workspace
    "MemberListing",
    "MemberView",
    "WorkspaceService",
    "workspace_service",
]
