"""
Workspace lifecycle: archive, restore and permanent deletion.

An archived workspace counts down to ``archive_expires_at``. Before the
deadline the owner may restore it; after it, the reaper deletes it through
the same cascading routine an explicit owner delete uses.
"""

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.apps.workspaces.db.crud import (
    role_cache_db,
    workspace_db,
    workspace_invitation_db,
    workspace_member_db,
)
from app.apps.workspaces.db.models import Workspace
from app.apps.workspaces.exceptions import (
    PermissionDeniedException,
    WorkspaceNotFoundException,
)
from app.apps.workspaces.services import side_effects
from app.apps.workspaces.services.permissions import (
    CAN_DELETE_WORKSPACE,
    permission_service,
)
from app.core.config import settings, workspace_logger
from app.core.enums import ActivityAction, InvitationType, NotificationType
from app.core.exceptions.types import InvalidStateException


class LifecycleService:
    """Drives workspaces through active, archived and deleted."""

    @property
    def grace_period(self) -> timedelta:
        return timedelta(days=settings.WORKSPACE_ARCHIVE_GRACE_DAYS)

    async def _get_workspace(
        self, session: AsyncSession, workspace_id: UUID
    ) -> Workspace:
        workspace = await workspace_db.get_by_id(session, workspace_id)
        if not workspace:
            raise WorkspaceNotFoundException()
        return workspace

    async def _recipient_ids(
        self, session: AsyncSession, workspace: Workspace
    ) -> list[UUID]:
        members = await workspace_member_db.get_workspace_members(
            session, workspace.id
        )
        return [workspace.owner_id, *(m.user_id for m in members)]

    async def archive(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        actor_id: UUID,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> Workspace:
        """
        Archive a workspace and start its deletion countdown.

        The owner may always archive; anyone else needs the cached
        ``can_delete_workspace`` permission.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            actor_id: User archiving the workspace.
            now: Reference time, defaults to the current UTC time.
            commit_self: Whether to commit the transaction.

        Returns:
            The archived workspace.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            PermissionDeniedException: If the actor may not archive it.
            InvalidStateException: If the workspace is already archived.
        """
        workspace = await self._get_workspace(session, workspace_id)

        allowed = await permission_service.has_permission(
            session, workspace, actor_id, CAN_DELETE_WORKSPACE
        )
        if not allowed:
            raise PermissionDeniedException(
                "Only the owner or a member allowed to delete the workspace can archive it."
            )

        if not workspace.is_active:
            raise InvalidStateException("Workspace is already archived.")

        now = now or datetime.now(timezone.utc)
        expires_at = now + self.grace_period
        archived = await workspace_db.mark_archived(
            session,
            workspace.id,
            archived_by_id=actor_id,
            archived_at=now,
            expires_at=expires_at,
            commit_self=False,
        )
        if not archived:
            raise InvalidStateException("Workspace is already archived.")

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(workspace)

        workspace_logger.info(
            f"Workspace {workspace.id} archived by {actor_id}; "
            f"deletion scheduled for {expires_at.isoformat()}"
        )

        await side_effects.record_activity(
            actor_id,
            ActivityAction.WORKSPACE_ARCHIVE,
            f"Archived workspace '{workspace.name}'",
            workspace.id,
            entity_name=workspace.name,
            metadata={"archive_expires_at": expires_at},
            severity="warning",
        )
        await side_effects.notify_many(
            await self._recipient_ids(session, workspace),
            NotificationType.WORKSPACE_ARCHIVED,
            "Workspace archived",
            f"'{workspace.name}' was archived and will be deleted on "
            f"{expires_at.date().isoformat()} unless restored.",
            {"workspace_id": workspace.id, "archive_expires_at": expires_at},
        )

        return workspace

    async def restore(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        actor_id: UUID,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> Workspace:
        """
        Restore an archived workspace before its deadline.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            PermissionDeniedException: If the actor is not the owner.
            InvalidStateException: If the workspace is active or its
                grace period has elapsed.
        """
        workspace = await self._get_workspace(session, workspace_id)
        await permission_service.require_owner(
            session, workspace, actor_id, "Only the workspace owner can restore it."
        )

        if workspace.is_active:
            raise InvalidStateException("Workspace is not archived.")

        now = now or datetime.now(timezone.utc)
        if workspace.archive_expires_at is None or now >= workspace.archive_expires_at:
            raise InvalidStateException(
                "The grace period has elapsed; the workspace can no longer be restored."
            )

        restored = await workspace_db.mark_restored(
            session, workspace.id, now, commit_self=False
        )
        if not restored:
            raise InvalidStateException("Workspace can no longer be restored.")

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(workspace)

        workspace_logger.info(f"Workspace {workspace.id} restored by {actor_id}")

        await side_effects.record_activity(
            actor_id,
            ActivityAction.WORKSPACE_RESTORE,
            f"Restored workspace '{workspace.name}'",
            workspace.id,
            entity_name=workspace.name,
        )
        await side_effects.notify_many(
            await self._recipient_ids(session, workspace),
            NotificationType.WORKSPACE_RESTORED,
            "Workspace restored",
            f"'{workspace.name}' was restored.",
            {"workspace_id": workspace.id},
        )

        return workspace

    async def permanent_delete(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        actor_id: UUID,
        commit_self: bool = True,
    ) -> dict[str, Any]:
        """
        Permanently delete an archived workspace on the owner's request.

        The owner may finalise deletion before the grace period ends.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            PermissionDeniedException: If the actor is not the owner.
            InvalidStateException: If the workspace is not archived.
        """
        workspace = await self._get_workspace(session, workspace_id)
        await permission_service.require_owner(
            session, workspace, actor_id, "Only the workspace owner can delete it."
        )
        if not workspace.is_archived:
            raise InvalidStateException(
                "Workspace must be archived before it can be permanently deleted."
            )

        return await self._cascade_delete(
            session,
            workspace,
            authorized_by=actor_id,
            trigger="owner",
            commit_self=commit_self,
        )

    async def _cascade_delete(
        self,
        session: AsyncSession,
        workspace: Workspace,
        authorized_by: UUID,
        trigger: str,
        commit_self: bool = True,
    ) -> dict[str, Any]:
        """
        Delete a workspace with its member rows, invitations and every
        role cache entry that references it.

        Shared by the owner route and the reaper; callers authorize first.

        Returns:
            Summary of what was removed.
        """
        workspace_id = workspace.id
        workspace_name = workspace.name
        owner_id = workspace.owner_id

        members = await workspace_member_db.get_workspace_members(
            session, workspace_id
        )
        member_ids = [m.user_id for m in members]

        cache_entries = await role_cache_db.delete_for_workspace(
            session, workspace_id, commit_self=False
        )
        invitations = await workspace_invitation_db.delete_for_target(
            session, workspace_id, InvitationType.WORKSPACE, commit_self=False
        )
        await workspace_member_db.delete_by_filters(
            session, {"workspace_id": workspace_id}, commit_self=False
        )
        await workspace_db.delete(session, workspace_id, commit_self=False)

        if commit_self:
            await session.commit()
        else:
            await session.flush()

        summary = {
            "workspace_id": workspace_id,
            "members": len(member_ids),
            "role_cache_entries": cache_entries,
            "invitations": invitations,
            "trigger": trigger,
        }
        workspace_logger.info(
            f"Workspace {workspace_id} permanently deleted ({trigger}, "
            f"authorized by {authorized_by}): {len(member_ids)} members, "
            f"{cache_entries} cache entries, {invitations} invitations"
        )

        await side_effects.record_activity(
            authorized_by,
            ActivityAction.WORKSPACE_DELETE,
            f"Permanently deleted workspace '{workspace_name}'",
            workspace_id,
            entity_name=workspace_name,
            metadata={"trigger": trigger, "members": len(member_ids)},
            severity="critical",
        )
        await side_effects.notify_many(
            [owner_id, *member_ids],
            NotificationType.WORKSPACE_DELETED,
            "Workspace deleted",
            f"'{workspace_name}' has been permanently deleted.",
            {"workspace_id": workspace_id, "trigger": trigger},
        )

        return summary

    async def reap_expired_workspaces(
        self,
        session: AsyncSession,
        now: datetime | None = None,
    ) -> dict[str, int]:
        """
        Permanently delete every archived workspace past its deadline.

        Each workspace is deleted in its own transaction, authorized as its
        stored owner. Eligibility is re-read inside that transaction, so a
        workspace restored or deleted since the scan is skipped. A failure is
        logged and the sweep moves on to the next workspace.

        Args:
            session: A session with no transaction in progress.
            now: Reference time, defaults to the current UTC time.

        Returns:
            Counts of deleted, skipped and failed workspaces.
        """
        now = now or datetime.now(timezone.utc)

        async with session.begin():
            expired = await workspace_db.get_expired_archives(session, now)
            candidate_ids = [w.id for w in expired]

        result = {"deleted": 0, "skipped": 0, "failed": 0}
        if not candidate_ids:
            return result

        workspace_logger.info(
            f"Reaper found {len(candidate_ids)} expired archived workspaces"
        )

        for workspace_id in candidate_ids:
            try:
                async with side_effects.committed(session):
                    workspace = await workspace_db.get_by_id(session, workspace_id)
                    if (
                        workspace is None
                        or not workspace.is_archived
                        or workspace.archive_expires_at is None
                        or workspace.archive_expires_at > now
                    ):
                        result["skipped"] += 1
                        continue

                    await self._cascade_delete(
                        session,
                        workspace,
                        authorized_by=workspace.owner_id,
                        trigger="reaper",
                        commit_self=False,
                    )
                result["deleted"] += 1
            except Exception as e:
                result["failed"] += 1
                workspace_logger.error(
                    f"Reaper failed to delete workspace {workspace_id}: "
                    f"{type(e).__name__} - {e}"
                )

        workspace_logger.info(f"Reaper sweep finished: {result}")
        return result


lifecycle_service = LifecycleService()


__all__ = [
    "LifecycleService",
    "lifecycle_service",
]
