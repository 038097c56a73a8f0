"""
CRUD operations for workspaces.
"""

from app.apps.workspaces.db.crud.workspace import (
    RoleCacheDB,
    WorkspaceDB,
    WorkspaceInvitationDB,
    WorkspaceMemberDB,
    role_cache_db,
    workspace_db,
    workspace_invitation_db,
    workspace_member_db,
)

__all__ = [
    # Classes
    "RoleCacheDB",
    "WorkspaceDB",
    "WorkspaceInvitationDB",
    "WorkspaceMemberDB",
    # Global instances
    "role_cache_db",
    "workspace_db",
    "workspace_invitation_db",
    "workspace_member_db",
]
