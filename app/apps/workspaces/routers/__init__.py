"""
Routers for workspaces.
"""

from app.apps.workspaces.routers.invitation import router as invitation_router
from app.apps.workspaces.routers.workspace import router as workspace_router

__all__ = [
    "invitation_router",
    "workspace_router",
]
