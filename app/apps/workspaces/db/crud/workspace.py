"""
CRUD operations for Workspace models.

"""

from datetime import datetime, timezone
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import SQLColumnExpression, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.db.crud.base import BaseDB
from app.apps.workspaces.db.models.workspace import (
    RoleCacheEntry,
    Workspace,
    WorkspaceInvitation,
    WorkspaceMember,
)
from app.core.enums import (
    InvitationStatus,
    InvitationType,
    MemberRole,
    WorkspaceStatus,
)


class WorkspaceDB(BaseDB[Workspace]):
    """CRUD operations for Workspace model."""

    def __init__(self):
        super().__init__(Workspace)

    async def get_user_workspaces(
        self,
        session: AsyncSession,
        user_id: UUID,
        include_archived: bool = False,
    ) -> Sequence[Workspace]:
        """
        Get all workspaces a user owns or is a member of.

        Args:
            session: Database session.
            user_id: User ID.
            include_archived: Include archived workspaces.

        Returns:
            List of workspaces, oldest first.
        """
        member_of = select(WorkspaceMember.workspace_id).where(
            WorkspaceMember.user_id == user_id
        )
        conditions: list[SQLColumnExpression[Any]] = [
            or_(Workspace.owner_id == user_id, Workspace.id.in_(member_of))
        ]
        if not include_archived:
            conditions.append(Workspace.status == WorkspaceStatus.ACTIVE)

        return await self.get_by_conditions(
            session,
            conditions,
            order_by=[Workspace.created_at],
        )

    async def reserve_seat(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        commit_self: bool = True,
    ) -> bool:
        """
        Atomically take one seat if the workspace is below its limit.

        The limit check and the increment happen in a single UPDATE, so two
        concurrent callers can never jointly exceed ``max_members``.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            commit_self: Whether to commit the transaction.

        Returns:
            True if a seat was reserved.
        """
        updated = await self.update_by_conditions(
            session,
            [
                Workspace.id == workspace_id,
                Workspace.members_count < Workspace.max_members,
            ],
            {"members_count": Workspace.members_count + 1},
            commit_self=commit_self,
        )
        return updated == 1

    async def release_seat(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        commit_self: bool = True,
    ) -> bool:
        """
        Atomically give back one seat. The owner's seat is never released.

        Returns:
            True if the counter was decremented.
        """
        updated = await self.update_by_conditions(
            session,
            [Workspace.id == workspace_id, Workspace.members_count > 1],
            {"members_count": Workspace.members_count - 1},
            commit_self=commit_self,
        )
        return updated == 1

    async def mark_archived(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        archived_by_id: UUID,
        archived_at: datetime,
        expires_at: datetime,
        commit_self: bool = True,
    ) -> bool:
        """
        Flip an active workspace to archived.

        Returns:
            True if this call performed the transition.
        """
        updated = await self.update_by_conditions(
            session,
            [
                Workspace.id == workspace_id,
                Workspace.status == WorkspaceStatus.ACTIVE,
            ],
            {
                "status": WorkspaceStatus.ARCHIVED,
                "archived_at": archived_at,
                "archived_by_id": archived_by_id,
                "archive_expires_at": expires_at,
            },
            commit_self=commit_self,
        )
        return updated == 1

    async def mark_restored(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        now: datetime,
        commit_self: bool = True,
    ) -> bool:
        """
        Flip an archived workspace back to active while its deadline is ahead.

        Returns:
            True if this call performed the transition.
        """
        updated = await self.update_by_conditions(
            session,
            [
                Workspace.id == workspace_id,
                Workspace.status == WorkspaceStatus.ARCHIVED,
                Workspace.archive_expires_at > now,
            ],
            {
                "status": WorkspaceStatus.ACTIVE,
                "archived_at": None,
                "archived_by_id": None,
                "archive_expires_at": None,
            },
            commit_self=commit_self,
        )
        return updated == 1

    async def get_expired_archives(
        self,
        session: AsyncSession,
        now: datetime | None = None,
    ) -> Sequence[Workspace]:
        """
        Get archived workspaces whose grace period has elapsed.

        Args:
            session: Database session.
            now: Reference time, defaults to the current UTC time.

        Returns:
            Workspaces eligible for permanent deletion.
        """
        now = now or datetime.now(timezone.utc)
        return await self.get_by_conditions(
            session,
            [
                Workspace.status == WorkspaceStatus.ARCHIVED,
                Workspace.archive_expires_at <= now,
            ],
            order_by=[Workspace.archive_expires_at],
        )


class WorkspaceMemberDB(BaseDB[WorkspaceMember]):
    """CRUD operations for WorkspaceMember model."""

    def __init__(self):
        super().__init__(WorkspaceMember)

    async def get_member(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        user_id: UUID,
    ) -> WorkspaceMember | None:
        """
        Get workspace member.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            user_id: User ID.

        Returns:
            Member or None if not found.
        """
        return await self.get_one_by_filters(
            session,
            {"workspace_id": workspace_id, "user_id": user_id},
        )

    async def get_workspace_members(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        role: MemberRole | None = None,
    ) -> Sequence[WorkspaceMember]:
        """
        Get all member rows of a workspace in join order.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            role: Optional filter by role.

        Returns:
            List of members.
        """
        filters: dict = {"workspace_id": workspace_id}
        if role:
            filters["role"] = role
        return await self.get_by_filters(
            session,
            filters,
            order_by=[WorkspaceMember.joined_at, WorkspaceMember.created_at],
        )

    async def count_members(self, session: AsyncSession, workspace_id: UUID) -> int:
        return await self.count(
            session, [WorkspaceMember.workspace_id == workspace_id]
        )

    async def remove_member(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        user_id: UUID,
        commit_self: bool = True,
    ) -> bool:
        """
        Delete a member row.

        Returns:
            True if a row was deleted.
        """
        deleted = await self.delete_by_filters(
            session,
            {"workspace_id": workspace_id, "user_id": user_id},
            commit_self=commit_self,
        )
        return deleted > 0


class WorkspaceInvitationDB(BaseDB[WorkspaceInvitation]):
    """CRUD operations for WorkspaceInvitation model."""

    def __init__(self):
        super().__init__(WorkspaceInvitation)

    async def get_by_token_hash(
        self,
        session: AsyncSession,
        token_hash: str,
    ) -> WorkspaceInvitation | None:
        """
        Get invitation by token hash.

        Args:
            session: Database session.
            token_hash: HMAC hash of the invitation token.

        Returns:
            Invitation or None if not found.
        """
        return await self.get_one_by_filters(session, {"token_hash": token_hash})

    async def get_pending_invitation(
        self,
        session: AsyncSession,
        email: str,
        target_id: UUID,
        type: InvitationType = InvitationType.WORKSPACE,
    ) -> WorkspaceInvitation | None:
        """
        Get the pending invitation for an email on a target entity.

        Args:
            session: Database session.
            email: Invitee email.
            target_id: Target entity ID.
            type: Target entity type.

        Returns:
            Pending invitation or None if not found.
        """
        return await self.get_one_by_filters(
            session,
            {
                "email": email.lower(),
                "type": type,
                "target_id": target_id,
                "status": InvitationStatus.PENDING,
            },
        )

    async def get_target_invitations(
        self,
        session: AsyncSession,
        target_id: UUID,
        status: InvitationStatus | None = None,
        type: InvitationType = InvitationType.WORKSPACE,
    ) -> Sequence[WorkspaceInvitation]:
        """
        Get all invitations for a target entity, newest first.

        Args:
            session: Database session.
            target_id: Target entity ID.
            status: Optional filter by status.
            type: Target entity type.

        Returns:
            List of invitations.
        """
        filters: dict = {"target_id": target_id, "type": type}
        if status:
            filters["status"] = status
        return await self.get_by_filters(
            session,
            filters,
            order_by=[WorkspaceInvitation.created_at.desc()],
        )

    async def get_user_pending_invitations(
        self,
        session: AsyncSession,
        email: str,
    ) -> Sequence[WorkspaceInvitation]:
        """
        Get all live pending invitations for an email.

        Args:
            session: Database session.
            email: User email.

        Returns:
            List of pending invitations that have not passed their deadline.
        """
        now = datetime.now(timezone.utc)
        conditions = [
            WorkspaceInvitation.email == email.lower(),
            WorkspaceInvitation.status == InvitationStatus.PENDING,
            WorkspaceInvitation.expires_at > now,
        ]
        return await self.get_by_conditions(
            session,
            conditions,
            order_by=[WorkspaceInvitation.created_at.desc()],
        )

    async def transition(
        self,
        session: AsyncSession,
        invitation_id: UUID,
        status: InvitationStatus,
        updates: dict | None = None,
        commit_self: bool = True,
    ) -> bool:
        """
        Move a pending invitation to ``status``.

        The pending check is part of the UPDATE itself, so of any number of
        concurrent callers exactly one sees True.

        Args:
            session: Database session.
            invitation_id: Invitation ID.
            status: Terminal status to move to.
            updates: Extra columns to set in the same statement.
            commit_self: Whether to commit the transaction.

        Returns:
            True if this call performed the transition.
        """
        values = {"status": status, **(updates or {})}
        updated = await self.update_by_conditions(
            session,
            [
                WorkspaceInvitation.id == invitation_id,
                WorkspaceInvitation.status == InvitationStatus.PENDING,
            ],
            values,
            commit_self=commit_self,
        )
        return updated == 1

    async def expire_old_invitations(
        self,
        session: AsyncSession,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> int:
        """
        Mark expired invitations as expired.

        Args:
            session: Database session.
            now: Reference time, defaults to the current UTC time.
            commit_self: Whether to commit the transaction.

        Returns:
            Number of invitations expired.
        """
        now = now or datetime.now(timezone.utc)
        conditions: list[SQLColumnExpression[Any]] = [
            WorkspaceInvitation.status == InvitationStatus.PENDING,
            WorkspaceInvitation.expires_at <= now,
        ]
        return await self.update_by_conditions(
            session,
            conditions,
            {"status": InvitationStatus.EXPIRED},
            commit_self=commit_self,
        )

    async def delete_for_target(
        self,
        session: AsyncSession,
        target_id: UUID,
        type: InvitationType = InvitationType.WORKSPACE,
        commit_self: bool = True,
    ) -> int:
        return await self.delete_by_filters(
            session,
            {"target_id": target_id, "type": type},
            commit_self=commit_self,
        )


class RoleCacheDB(BaseDB[RoleCacheEntry]):
    """CRUD operations for the per-user role cache."""

    def __init__(self):
        super().__init__(RoleCacheEntry)

    async def get_entry(
        self,
        session: AsyncSession,
        user_id: UUID,
        workspace_id: UUID,
    ) -> RoleCacheEntry | None:
        return await self.get_one_by_filters(
            session,
            {"user_id": user_id, "workspace_id": workspace_id},
        )

    async def get_user_entries(
        self,
        session: AsyncSession,
        user_id: UUID,
    ) -> Sequence[RoleCacheEntry]:
        return await self.get_by_filters(session, {"user_id": user_id})

    async def get_workspace_entries(
        self,
        session: AsyncSession,
        workspace_id: UUID,
    ) -> Sequence[RoleCacheEntry]:
        return await self.get_by_filters(session, {"workspace_id": workspace_id})

    async def upsert(
        self,
        session: AsyncSession,
        user_id: UUID,
        workspace_id: UUID,
        role: MemberRole,
        permissions: dict[str, bool],
        commit_self: bool = True,
    ) -> RoleCacheEntry:
        """
        Write the cache entry for a (user, workspace) pair.

        Args:
            session: Database session.
            user_id: User ID.
            workspace_id: Workspace ID.
            role: Role to cache.
            permissions: Permission flags to cache.
            commit_self: Whether to commit the transaction.

        Returns:
            The created or updated entry.
        """
        entry = await self.get_entry(session, user_id, workspace_id)
        if entry is None:
            return await self.create(
                session,
                {
                    "user_id": user_id,
                    "workspace_id": workspace_id,
                    "role": role,
                    "permissions": dict(permissions),
                },
                commit_self=commit_self,
            )

        updated = await self.update(
            session,
            entry.id,
            {"role": role, "permissions": dict(permissions)},
            commit_self=commit_self,
        )
        return updated or entry

    async def delete_entry(
        self,
        session: AsyncSession,
        user_id: UUID,
        workspace_id: UUID,
        commit_self: bool = True,
    ) -> int:
        return await self.delete_by_filters(
            session,
            {"user_id": user_id, "workspace_id": workspace_id},
            commit_self=commit_self,
        )

    async def delete_for_workspace(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        commit_self: bool = True,
    ) -> int:
        """
        Remove every user's entry for a workspace.

        Returns:
            Number of entries removed.
        """
        return await self.delete_by_filters(
            session,
            {"workspace_id": workspace_id},
            commit_self=commit_self,
        )


# Global CRUD instances
workspace_db = WorkspaceDB()
workspace_member_db = WorkspaceMemberDB()
workspace_invitation_db = WorkspaceInvitationDB()
role_cache_db = RoleCacheDB()


__all__ = [
    "WorkspaceDB",
    "WorkspaceMemberDB",
    "WorkspaceInvitationDB",
    "RoleCacheDB",
    "workspace_db",
    "workspace_member_db",
    "workspace_invitation_db",
    "role_cache_db",
]
