"""
Role resolution and permission checks for workspaces.

The role cache is the authorization source, except that the stored owner of
a workspace always passes, whatever a possibly stale cache entry says.
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.apps.workspaces.db.crud import role_cache_db
from app.apps.workspaces.db.models import Workspace
from app.apps.workspaces.exceptions import PermissionDeniedException
from app.core.config import workspace_logger
from app.core.enums import MemberRole


CAN_CREATE_SPACES = "can_create_spaces"
CAN_MANAGE_MEMBERS = "can_manage_members"
CAN_EDIT_SETTINGS = "can_edit_settings"
CAN_DELETE_WORKSPACE = "can_delete_workspace"
CAN_MANAGE_BILLING = "can_manage_billing"

DEFAULT_PERMISSIONS: dict[MemberRole, dict[str, bool]] = {
    MemberRole.OWNER: {
        CAN_CREATE_SPACES: True,
        CAN_MANAGE_MEMBERS: True,
        CAN_EDIT_SETTINGS: True,
        CAN_DELETE_WORKSPACE: True,
        CAN_MANAGE_BILLING: True,
    },
    MemberRole.ADMIN: {
        CAN_CREATE_SPACES: True,
        CAN_MANAGE_MEMBERS: True,
        CAN_EDIT_SETTINGS: True,
        CAN_DELETE_WORKSPACE: False,
        CAN_MANAGE_BILLING: False,
    },
    MemberRole.MEMBER: {
        CAN_CREATE_SPACES: True,
        CAN_MANAGE_MEMBERS: False,
        CAN_EDIT_SETTINGS: False,
        CAN_DELETE_WORKSPACE: False,
        CAN_MANAGE_BILLING: False,
    },
}


def default_permissions(role: MemberRole) -> dict[str, bool]:
    """Return a fresh copy of the default permission flags for a role."""
    return dict(DEFAULT_PERMISSIONS[role])


def has_role(role: MemberRole | None, required: MemberRole) -> bool:
    """Check a role against the member < admin < owner hierarchy."""
    return role is not None and role.at_least(required)


class PermissionService:
    """Resolves an actor's standing in a workspace."""

    async def get_role(
        self,
        session: AsyncSession,
        workspace: Workspace,
        user_id: UUID,
    ) -> MemberRole | None:
        """
        Get the actor's role in a workspace.

        Returns:
            OWNER for the stored owner, the cached role for members,
            None for outsiders.
        """
        if workspace.owner_id == user_id:
            return MemberRole.OWNER
        entry = await role_cache_db.get_entry(session, user_id, workspace.id)
        return entry.role if entry else None

    async def has_permission(
        self,
        session: AsyncSession,
        workspace: Workspace,
        user_id: UUID,
        permission: str,
    ) -> bool:
        if workspace.owner_id == user_id:
            return True
        entry = await role_cache_db.get_entry(session, user_id, workspace.id)
        return bool(entry and entry.permissions.get(permission, False))

    async def require_member(
        self,
        session: AsyncSession,
        workspace: Workspace,
        user_id: UUID,
    ) -> MemberRole:
        """
        Require that the actor belongs to the workspace.

        Raises:
            PermissionDeniedException: If the actor is not the owner or a member.
        """
        role = await self.get_role(session, workspace, user_id)
        if role is None:
            workspace_logger.warning(
                f"Access denied: user {user_id} is not in workspace {workspace.id}"
            )
            raise PermissionDeniedException("You are not a member of this workspace.")
        return role

    async def require_role(
        self,
        session: AsyncSession,
        workspace: Workspace,
        user_id: UUID,
        required: MemberRole,
        message: str = "Permission denied.",
    ) -> MemberRole:
        """
        Require at least ``required`` in the role hierarchy.

        Raises:
            PermissionDeniedException: If the actor's role is too low.
        """
        role = await self.get_role(session, workspace, user_id)
        if not has_role(role, required):
            workspace_logger.warning(
                f"Access denied: user {user_id} has role {role} in workspace "
                f"{workspace.id}, needs {required.value}"
            )
            raise PermissionDeniedException(message)
        return role  # type: ignore[return-value]

    async def require_owner(
        self,
        session: AsyncSession,
        workspace: Workspace,
        user_id: UUID,
        message: str = "Only the workspace owner can do this.",
    ) -> None:
        if workspace.owner_id != user_id:
            workspace_logger.warning(
                f"Access denied: user {user_id} is not the owner of workspace {workspace.id}"
            )
            raise PermissionDeniedException(message)


permission_service = PermissionService()


__all__ = [
    "CAN_CREATE_SPACES",
    "CAN_DELETE_WORKSPACE",
    "CAN_EDIT_SETTINGS",
    "CAN_MANAGE_BILLING",
    "CAN_MANAGE_MEMBERS",
    "DEFAULT_PERMISSIONS",
    "PermissionService",
    "default_permissions",
    "has_role",
    "permission_service",
]
