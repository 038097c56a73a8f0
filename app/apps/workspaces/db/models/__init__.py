"""
Database models for workspaces.
"""

from app.apps.workspaces.db.models.workspace import (
    RoleCacheEntry,
    Workspace,
    WorkspaceInvitation,
    WorkspaceMember,
    default_workspace_settings,
)

__all__ = [
    "RoleCacheEntry",
    "Workspace",
    "WorkspaceInvitation",
    "WorkspaceMember",
    "default_workspace_settings",
]
