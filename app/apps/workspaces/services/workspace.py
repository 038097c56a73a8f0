"""
Workspace service.

This module provides the workspace-level operations: creation, reads,
detail/settings/rules updates, member management and ownership transfer.
Lifecycle transitions live in ``lifecycle``, invitations in ``invitation``
and the paired member/role-cache writes in ``membership``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.apps.workspaces.db.crud import workspace_db, workspace_member_db
from app.apps.workspaces.db.models import (
    Workspace,
    WorkspaceMember,
    default_workspace_settings,
)
from app.apps.workspaces.exceptions import (
    CannotRemoveOwnerException,
    MemberNotFoundException,
    PermissionDeniedException,
    WorkspaceArchivedException,
    WorkspaceNotFoundException,
)
from app.apps.workspaces.services import side_effects
from app.apps.workspaces.services.membership import membership_service
from app.apps.workspaces.services.permissions import (
    default_permissions,
    permission_service,
)
from app.core.config import settings, workspace_logger
from app.core.db.crud import user_db
from app.core.db.models import User
from app.core.enums import ActivityAction, MemberRole, NotificationType
from app.core.exceptions.types import BadRequestException, InvalidStateException


SETTINGS_SECTIONS = frozenset(default_workspace_settings())


@dataclass
class MemberView:
    """A member row joined with its directory record, if it still exists."""

    user_id: UUID
    role: MemberRole
    permissions: dict[str, bool]
    joined_at: datetime
    invited_by_id: UUID | None = None
    email: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    missing_user: bool = False

    @property
    def is_owner(self) -> bool:
        return self.role == MemberRole.OWNER


@dataclass
class MemberListing:
    """Result of listing a workspace's members."""

    members: list[MemberView] = field(default_factory=list)
    current: int = 0
    maximum: int = 0


class WorkspaceService:
    """Service for workspace management."""

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _get_workspace(
        self, session: AsyncSession, workspace_id: UUID
    ) -> Workspace:
        workspace = await workspace_db.get_by_id(session, workspace_id)
        if not workspace:
            raise WorkspaceNotFoundException()
        return workspace

    def _require_active(self, workspace: Workspace) -> None:
        if not workspace.is_active:
            raise WorkspaceArchivedException()

    def _member_view(
        self,
        user_id: UUID,
        role: MemberRole,
        permissions: dict[str, bool],
        joined_at: datetime,
        invited_by_id: UUID | None,
        user: User | None,
    ) -> MemberView:
        return MemberView(
            user_id=user_id,
            role=role,
            permissions=dict(permissions or {}),
            joined_at=joined_at,
            invited_by_id=invited_by_id,
            email=user.email if user else None,
            full_name=user.full_name if user else None,
            avatar_url=user.avatar_url if user else None,
            missing_user=user is None,
        )

    # ========================================================================
    # Workspace CRUD
    # ========================================================================

    async def create_workspace(
        self,
        session: AsyncSession,
        owner: User,
        name: str,
        description: str | None = None,
        max_members: int | None = None,
        commit_self: bool = True,
    ) -> Workspace:
        """
        Create an active workspace owned by ``owner``.

        The owner is not written as a member row; only their role cache
        entry is created, so the new workspace has no members and a
        ``members_count`` of 1.

        Args:
            session: Database session.
            owner: Owning user.
            name: Workspace name.
            description: Optional description.
            max_members: Seat limit, defaults to ``DEFAULT_MAX_MEMBERS``.
            commit_self: Whether to commit the transaction.

        Returns:
            Created workspace.

        Raises:
            BadRequestException: If the name is blank or the limit is below 1.
        """
        name = name.strip()
        if not name:
            raise BadRequestException("Workspace name is required.")

        limit = settings.DEFAULT_MAX_MEMBERS if max_members is None else max_members
        if limit < 1:
            raise BadRequestException("A workspace needs at least one seat.")

        workspace = await workspace_db.create(
            session,
            {
                "name": name,
                "description": description,
                "owner_id": owner.id,
                "members_count": 1,
                "max_members": limit,
                "settings": default_workspace_settings(),
            },
            commit_self=False,
        )
        await membership_service.write_owner_entry(
            session, workspace, commit_self=False
        )

        if commit_self:
            await session.commit()
        else:
            await session.flush()

        workspace_logger.info(f"Workspace {workspace.id} created by {owner.id}")

        await side_effects.record_activity(
            owner.id,
            ActivityAction.WORKSPACE_CREATE,
            f"Created workspace '{workspace.name}'",
            workspace.id,
            entity_name=workspace.name,
        )

        return workspace

    async def get_workspace(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        user_id: UUID,
    ) -> Workspace:
        """
        Get a workspace the user belongs to.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            PermissionDeniedException: If the user is not the owner or a member.
        """
        workspace = await self._get_workspace(session, workspace_id)
        await permission_service.require_member(session, workspace, user_id)
        return workspace

    async def get_user_workspaces(
        self,
        session: AsyncSession,
        user_id: UUID,
        include_archived: bool = False,
    ) -> Sequence[Workspace]:
        return await workspace_db.get_user_workspaces(
            session, user_id, include_archived=include_archived
        )

    async def update_workspace(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        user_id: UUID,
        name: str | None = None,
        description: str | None = None,
        commit_self: bool = True,
    ) -> Workspace:
        """
        Update workspace details.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            user_id: User making the update.
            name: New name.
            description: New description.
            commit_self: Whether to commit the transaction.

        Returns:
            Updated workspace.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            PermissionDeniedException: If user is below admin.
            WorkspaceArchivedException: If the workspace is archived.
        """
        workspace = await self._get_workspace(session, workspace_id)
        await permission_service.require_role(
            session,
            workspace,
            user_id,
            MemberRole.ADMIN,
            "Only admins can update the workspace.",
        )
        self._require_active(workspace)

        updates: dict[str, Any] = {}
        if name is not None:
            if not name.strip():
                raise BadRequestException("Workspace name cannot be blank.")
            updates["name"] = name.strip()
        if description is not None:
            updates["description"] = description

        if not updates:
            return workspace

        await workspace_db.update(session, workspace.id, updates, commit_self=False)

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(workspace)

        workspace_logger.info(
            f"Workspace {workspace.id} updated by {user_id}: {sorted(updates)}"
        )
        await side_effects.record_activity(
            user_id,
            ActivityAction.WORKSPACE_UPDATE,
            f"Updated workspace '{workspace.name}'",
            workspace.id,
            entity_name=workspace.name,
            metadata={"fields": sorted(updates)},
        )

        return workspace

    async def update_settings(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        user_id: UUID,
        section: str,
        updates: dict[str, Any],
        commit_self: bool = True,
    ) -> Workspace:
        """
        Merge ``updates`` into one section of the settings document.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            PermissionDeniedException: If user is below admin.
            WorkspaceArchivedException: If the workspace is archived.
            InvalidStateException: If the section does not exist.
        """
        workspace = await self._get_workspace(session, workspace_id)
        await permission_service.require_role(
            session,
            workspace,
            user_id,
            MemberRole.ADMIN,
            "Only admins can change workspace settings.",
        )
        self._require_active(workspace)

        if section not in SETTINGS_SECTIONS:
            raise InvalidStateException(f"Unknown settings section '{section}'.")

        document = {k: dict(v) for k, v in (workspace.settings or {}).items()}
        document[section] = {**document.get(section, {}), **updates}

        await workspace_db.update(
            session, workspace.id, {"settings": document}, commit_self=False
        )

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(workspace)

        workspace_logger.info(
            f"Settings section '{section}' of workspace {workspace.id} updated by {user_id}"
        )
        await side_effects.record_activity(
            user_id,
            ActivityAction.WORKSPACE_UPDATE,
            f"Updated {section} settings of '{workspace.name}'",
            workspace.id,
            entity_name=workspace.name,
            metadata={"section": section, "keys": sorted(updates)},
        )

        return workspace

    async def update_rules(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        user_id: UUID,
        content: str,
        commit_self: bool = True,
    ) -> Workspace:
        """
        Replace the workspace rules and bump their version.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            PermissionDeniedException: If user is below admin.
            WorkspaceArchivedException: If the workspace is archived.
        """
        workspace = await self._get_workspace(session, workspace_id)
        await permission_service.require_role(
            session,
            workspace,
            user_id,
            MemberRole.ADMIN,
            "Only admins can update workspace rules.",
        )
        self._require_active(workspace)

        await workspace_db.update(
            session,
            workspace.id,
            {
                "rules_content": content,
                "rules_version": Workspace.rules_version + 1,
                "rules_last_updated_by_id": user_id,
                "rules_updated_at": datetime.now(timezone.utc),
            },
            commit_self=False,
        )

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(workspace)

        workspace_logger.info(
            f"Rules of workspace {workspace.id} updated to version "
            f"{workspace.rules_version} by {user_id}"
        )
        await side_effects.record_activity(
            user_id,
            ActivityAction.WORKSPACE_UPDATE,
            f"Updated the rules of '{workspace.name}'",
            workspace.id,
            entity_name=workspace.name,
            metadata={"rules_version": workspace.rules_version},
        )

        return workspace

    # ========================================================================
    # Members
    # ========================================================================

    async def list_members(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        user_id: UUID,
        q: str | None = None,
        role: MemberRole | None = None,
    ) -> MemberListing:
        """
        List a workspace's members, owner first, then in join order.

        Members whose directory record no longer exists are kept and
        flagged with ``missing_user``.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            user_id: User asking.
            q: Case-insensitive match on name or email.
            role: Only members with this role.

        Returns:
            MemberListing with the members and the seat usage.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            PermissionDeniedException: If the user is not in the workspace.
        """
        workspace = await self._get_workspace(session, workspace_id)
        await permission_service.require_member(session, workspace, user_id)

        rows = await workspace_member_db.get_workspace_members(session, workspace.id)
        users = await user_db.get_many(
            session, [workspace.owner_id, *(m.user_id for m in rows)]
        )

        views = [
            self._member_view(
                workspace.owner_id,
                MemberRole.OWNER,
                default_permissions(MemberRole.OWNER),
                workspace.created_at,
                None,
                users.get(workspace.owner_id),
            )
        ]
        views.extend(
            self._member_view(
                m.user_id,
                m.role,
                m.permissions,
                m.joined_at,
                m.invited_by_id,
                users.get(m.user_id),
            )
            for m in rows
        )

        if role is not None:
            views = [v for v in views if v.role == role]
        if q:
            needle = q.strip().lower()
            views = [
                v
                for v in views
                if needle in (v.email or "").lower()
                or needle in (v.full_name or "").lower()
            ]

        missing = sum(1 for v in views if v.missing_user)
        if missing:
            workspace_logger.warning(
                f"{missing} members of workspace {workspace.id} have no directory record"
            )

        return MemberListing(
            members=views,
            current=workspace.members_count,
            maximum=workspace.max_members,
        )

    async def update_member_role(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        member_user_id: UUID,
        role: MemberRole,
        owner_id: UUID,
        commit_self: bool = True,
    ) -> WorkspaceMember:
        """
        Change a member's role. Owner only.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            member_user_id: User ID of the member.
            role: New role (admin or member).
            owner_id: User making the change.
            commit_self: Whether to commit the transaction.

        Returns:
            Updated member.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            PermissionDeniedException: If the user is not the owner.
            WorkspaceArchivedException: If the workspace is archived.
            BadRequestException: If role is owner.
            MemberNotFoundException: If member not found.
        """
        workspace = await self._get_workspace(session, workspace_id)
        await permission_service.require_owner(
            session, workspace, owner_id, "Only the owner can change member roles."
        )
        self._require_active(workspace)

        member = await membership_service.change_role(
            session, workspace, member_user_id, role, commit_self=commit_self
        )

        await side_effects.record_activity(
            owner_id,
            ActivityAction.WORKSPACE_MEMBER_ROLE_UPDATE,
            f"Changed a member's role to {role.value}",
            workspace.id,
            entity_type="member",
            entity_id=member_user_id,
            entity_name=workspace.name,
            metadata={"role": role},
        )
        await side_effects.notify(
            member_user_id,
            NotificationType.ROLE_CHANGED,
            "Your role changed",
            f"You are now {role.value} in '{workspace.name}'.",
            {"workspace_id": workspace.id, "role": role},
        )

        return member

    async def remove_member(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        member_user_id: UUID,
        user_id: UUID,
        commit_self: bool = True,
    ) -> WorkspaceMember:
        """
        Remove a member from a workspace.

        Any member may remove themself. Removing someone else needs admin
        or higher, and only the owner may remove an admin.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            member_user_id: User ID of member to remove.
            user_id: User making the change.
            commit_self: Whether to commit the transaction.

        Returns:
            The removed member row.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            CannotRemoveOwnerException: If the target is the owner.
            PermissionDeniedException: If user lacks permission.
            MemberNotFoundException: If member not found.
        """
        workspace = await self._get_workspace(session, workspace_id)
        if member_user_id == workspace.owner_id:
            raise CannotRemoveOwnerException()

        leaving = member_user_id == user_id
        if not leaving:
            actor_role = await permission_service.require_role(
                session,
                workspace,
                user_id,
                MemberRole.ADMIN,
                "Only admins can remove members.",
            )
            target = await workspace_member_db.get_member(
                session, workspace.id, member_user_id
            )
            if not target:
                raise MemberNotFoundException()
            if target.is_admin and actor_role != MemberRole.OWNER:
                raise PermissionDeniedException("Only the owner can remove admins.")

        member = await membership_service.remove_member(
            session, workspace, member_user_id, commit_self=commit_self
        )

        if leaving:
            workspace_logger.info(f"User {user_id} left workspace {workspace.id}")
            description = f"Left workspace '{workspace.name}'"
        else:
            workspace_logger.info(
                f"Member {member_user_id} removed from workspace {workspace.id} by {user_id}"
            )
            description = f"Removed a member from '{workspace.name}'"

        await side_effects.record_activity(
            user_id,
            ActivityAction.WORKSPACE_MEMBER_REMOVE,
            description,
            workspace.id,
            entity_type="member",
            entity_id=member_user_id,
            entity_name=workspace.name,
            metadata={"role": member.role, "left": leaving},
        )
        if not leaving:
            await side_effects.notify(
                member_user_id,
                NotificationType.MEMBER_REMOVED,
                "Removed from workspace",
                f"You were removed from '{workspace.name}'.",
                {"workspace_id": workspace.id},
            )

        return member

    async def leave_workspace(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        user_id: UUID,
        commit_self: bool = True,
    ) -> WorkspaceMember:
        """
        Leave a workspace (self-removal).

        Raises:
            CannotRemoveOwnerException: If the owner tries to leave.
            MemberNotFoundException: If not a member.
        """
        return await self.remove_member(
            session, workspace_id, user_id, user_id, commit_self=commit_self
        )

    async def transfer_ownership(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        current_owner_id: UUID,
        new_owner_id: UUID,
        commit_self: bool = True,
    ) -> Workspace:
        """
        Transfer workspace ownership.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            current_owner_id: Current owner's user ID.
            new_owner_id: New owner's user ID.
            commit_self: Whether to commit the transaction.

        Returns:
            Updated workspace.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            PermissionDeniedException: If not current owner.
            WorkspaceArchivedException: If the workspace is archived.
            UserNotFoundException: If the new owner does not exist.
            LimitExceededException: If the former owner cannot be seated.
        """
        workspace = await self._get_workspace(session, workspace_id)
        await permission_service.require_owner(
            session,
            workspace,
            current_owner_id,
            "Only the owner can transfer ownership.",
        )
        self._require_active(workspace)

        await membership_service.transfer_ownership(
            session, workspace, new_owner_id, commit_self=commit_self
        )

        await side_effects.record_activity(
            current_owner_id,
            ActivityAction.WORKSPACE_OWNERSHIP_TRANSFER,
            f"Transferred ownership of '{workspace.name}'",
            workspace.id,
            entity_name=workspace.name,
            metadata={"from": current_owner_id, "to": new_owner_id},
            severity="warning",
        )
        await side_effects.notify_many(
            [new_owner_id, current_owner_id],
            NotificationType.OWNERSHIP_TRANSFERRED,
            "Ownership transferred",
            f"Ownership of '{workspace.name}' has been transferred.",
            {"workspace_id": workspace.id, "owner_id": new_owner_id},
        )

        return workspace


# Global service instance
workspace_service = WorkspaceService()


__all__ = [
    "MemberListing",
    "MemberView",
    "SETTINGS_SECTIONS",
    "WorkspaceService",
    "workspace_service",
]
