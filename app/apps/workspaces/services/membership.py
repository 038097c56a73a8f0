"""
Membership synchronizer.

Every change to a workspace's member rows is paired with the matching write
to the role cache inside the caller's transaction. ``reconcile_role_cache``
rebuilds the cache from the member rows for anything that still drifts.
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.apps.workspaces.db.crud import (
    role_cache_db,
    workspace_db,
    workspace_member_db,
)
from app.apps.workspaces.db.models import RoleCacheEntry, Workspace, WorkspaceMember
from app.apps.workspaces.exceptions import (
    CannotRemoveOwnerException,
    MemberAlreadyExistsException,
    MemberNotFoundException,
)
from app.apps.workspaces.services.permissions import default_permissions
from app.core.config import workspace_logger
from app.core.db.crud import user_db
from app.core.enums import MemberRole
from app.core.exceptions.types import (
    BadRequestException,
    DatabaseException,
    InvalidStateException,
    LimitExceededException,
    UserNotFoundException,
)


class MembershipService:
    """Keeps member rows, the member counter and the role cache in step."""

    async def add_member(
        self,
        session: AsyncSession,
        workspace: Workspace,
        user_id: UUID,
        role: MemberRole = MemberRole.MEMBER,
        invited_by_id: UUID | None = None,
        commit_self: bool = True,
    ) -> tuple[WorkspaceMember, bool]:
        """
        Add a user to a workspace.

        Idempotent: if the user already has a member row it is returned
        unchanged and no counter moves. A seat is taken with a single
        conditional UPDATE before the row is written, so a full workspace
        rejects the call without any partial write.

        Args:
            session: Database session.
            workspace: Target workspace.
            user_id: User to add.
            role: Role for the new member (admin or member).
            invited_by_id: Who invited or added the user.
            commit_self: Whether to commit the transaction.

        Returns:
            Tuple of (member, created).

        Raises:
            MemberAlreadyExistsException: If the user is the workspace owner.
            LimitExceededException: If the workspace has no free seat.
        """
        if role == MemberRole.OWNER:
            raise BadRequestException("Members cannot hold the owner role.")

        if user_id == workspace.owner_id:
            raise MemberAlreadyExistsException(
                "The workspace owner already belongs to this workspace."
            )

        workspace_id = workspace.id
        max_members = workspace.max_members

        existing = await workspace_member_db.get_member(session, workspace_id, user_id)
        if existing:
            workspace_logger.info(
                f"User {user_id} is already a member of workspace {workspace_id}"
            )
            return existing, False

        permissions = default_permissions(role)
        try:
            # Rolling back the savepoint also hands the seat back
            async with session.begin_nested():
                reserved = await workspace_db.reserve_seat(
                    session, workspace_id, commit_self=False
                )
                if not reserved:
                    workspace_logger.warning(
                        f"Member limit reached for workspace {workspace_id} "
                        f"({max_members} seats)"
                    )
                    raise LimitExceededException(
                        f"Workspace member limit reached ({max_members} members)."
                    )

                member = await workspace_member_db.create(
                    session,
                    {
                        "workspace_id": workspace_id,
                        "user_id": user_id,
                        "role": role,
                        "permissions": permissions,
                        "joined_at": datetime.now(timezone.utc),
                        "invited_by_id": invited_by_id,
                    },
                    commit_self=False,
                )
                await role_cache_db.upsert(
                    session, user_id, workspace_id, role, permissions, commit_self=False
                )
        except DatabaseException as e:
            if not e.is_integrity_error:
                raise
            existing = await workspace_member_db.get_member(
                session, workspace_id, user_id
            )
            if existing is None:
                raise
            workspace_logger.info(
                f"User {user_id} joined workspace {workspace_id} concurrently"
            )
            await session.refresh(workspace)
            return existing, False

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(workspace)

        workspace_logger.info(
            f"User {user_id} added to workspace {workspace.id} as {role.value}"
        )
        return member, True

    async def remove_member(
        self,
        session: AsyncSession,
        workspace: Workspace,
        user_id: UUID,
        commit_self: bool = True,
    ) -> WorkspaceMember:
        """
        Remove a user's member row and their cache entry for the workspace.

        The user directory is never consulted, so a member whose user
        record has vanished can still be removed.

        Raises:
            CannotRemoveOwnerException: If ``user_id`` is the workspace owner.
            MemberNotFoundException: If the user has no member row.
        """
        if user_id == workspace.owner_id:
            raise CannotRemoveOwnerException()

        member = await workspace_member_db.get_member(session, workspace.id, user_id)
        if not member:
            raise MemberNotFoundException()

        await workspace_member_db.remove_member(
            session, workspace.id, user_id, commit_self=False
        )
        await workspace_db.release_seat(session, workspace.id, commit_self=False)
        removed_entries = await role_cache_db.delete_entry(
            session, user_id, workspace.id, commit_self=False
        )
        if not removed_entries:
            workspace_logger.warning(
                f"No role cache entry found for user {user_id} in workspace "
                f"{workspace.id} while removing membership"
            )

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(workspace)

        workspace_logger.info(f"User {user_id} removed from workspace {workspace.id}")
        return member

    async def transfer_ownership(
        self,
        session: AsyncSession,
        workspace: Workspace,
        new_owner_id: UUID,
        commit_self: bool = True,
    ) -> UUID:
        """
        Hand a workspace to another user.

        The former owner becomes an admin member; the new owner's member row
        (if any) is dropped, since ownership is implicit. If the new owner
        was not a member, the former owner needs a free seat.

        Args:
            session: Database session.
            workspace: Workspace to transfer.
            new_owner_id: User taking over.
            commit_self: Whether to commit the transaction.

        Returns:
            The former owner's ID.

        Raises:
            UserNotFoundException: If the new owner does not exist.
            InvalidStateException: If the new owner already owns the workspace.
            LimitExceededException: If the former owner cannot be seated.
        """
        new_owner = await user_db.get_by_id(session, new_owner_id)
        if not new_owner:
            raise UserNotFoundException()

        previous_owner_id = workspace.owner_id
        if new_owner_id == previous_owner_id:
            raise InvalidStateException("User already owns this workspace.")

        new_owner_member = await workspace_member_db.get_member(
            session, workspace.id, new_owner_id
        )
        if new_owner_member:
            await workspace_member_db.remove_member(
                session, workspace.id, new_owner_id, commit_self=False
            )
        elif not await workspace_db.reserve_seat(
            session, workspace.id, commit_self=False
        ):
            raise LimitExceededException(
                "Workspace member limit reached; the former owner cannot be kept "
                "as a member."
            )

        await workspace_db.update(
            session, workspace.id, {"owner_id": new_owner_id}, commit_self=False
        )

        admin_permissions = default_permissions(MemberRole.ADMIN)
        await workspace_member_db.create(
            session,
            {
                "workspace_id": workspace.id,
                "user_id": previous_owner_id,
                "role": MemberRole.ADMIN,
                "permissions": admin_permissions,
                "joined_at": workspace.created_at,
                "invited_by_id": None,
            },
            commit_self=False,
        )
        await role_cache_db.upsert(
            session,
            previous_owner_id,
            workspace.id,
            MemberRole.ADMIN,
            admin_permissions,
            commit_self=False,
        )
        await role_cache_db.upsert(
            session,
            new_owner_id,
            workspace.id,
            MemberRole.OWNER,
            default_permissions(MemberRole.OWNER),
            commit_self=False,
        )

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(workspace)

        workspace_logger.info(
            f"Ownership of workspace {workspace.id} transferred from "
            f"{previous_owner_id} to {new_owner_id}"
        )
        return previous_owner_id

    async def change_role(
        self,
        session: AsyncSession,
        workspace: Workspace,
        user_id: UUID,
        role: MemberRole,
        commit_self: bool = True,
    ) -> WorkspaceMember:
        """
        Rewrite a member's role, resetting permissions to the role defaults.

        Raises:
            BadRequestException: If ``role`` is owner.
            CannotRemoveOwnerException: If ``user_id`` is the owner.
            MemberNotFoundException: If the user has no member row.
        """
        if role == MemberRole.OWNER:
            raise BadRequestException(
                "Use ownership transfer to make someone the owner."
            )
        if user_id == workspace.owner_id:
            raise CannotRemoveOwnerException("The owner's role cannot be changed.")

        member = await workspace_member_db.get_member(session, workspace.id, user_id)
        if not member:
            raise MemberNotFoundException()

        permissions = default_permissions(role)
        updated = await workspace_member_db.update(
            session,
            member.id,
            {"role": role, "permissions": permissions},
            commit_self=False,
        )
        await role_cache_db.upsert(
            session, user_id, workspace.id, role, permissions, commit_self=False
        )

        if commit_self:
            await session.commit()
        else:
            await session.flush()

        workspace_logger.info(
            f"Role of user {user_id} in workspace {workspace.id} set to {role.value}"
        )
        return updated or member

    async def write_owner_entry(
        self,
        session: AsyncSession,
        workspace: Workspace,
        commit_self: bool = True,
    ) -> RoleCacheEntry:
        """Cache the owner's role for a freshly created workspace."""
        return await role_cache_db.upsert(
            session,
            workspace.owner_id,
            workspace.id,
            MemberRole.OWNER,
            default_permissions(MemberRole.OWNER),
            commit_self=commit_self,
        )

    # ========================================================================
    # Reconciliation
    # ========================================================================

    async def _reconcile_workspace(
        self,
        session: AsyncSession,
        workspace: Workspace,
    ) -> dict[str, int]:
        expected: dict[UUID, tuple[MemberRole, dict[str, bool]]] = {
            workspace.owner_id: (
                MemberRole.OWNER,
                default_permissions(MemberRole.OWNER),
            )
        }
        members = await workspace_member_db.get_workspace_members(
            session, workspace.id
        )
        for member in members:
            expected[member.user_id] = (member.role, dict(member.permissions or {}))

        counts = {"created": 0, "updated": 0, "deleted": 0}
        entries = await role_cache_db.get_workspace_entries(session, workspace.id)
        seen: set[UUID] = set()

        for entry in entries:
            if entry.user_id not in expected:
                await role_cache_db.delete(session, entry.id, commit_self=False)
                counts["deleted"] += 1
                continue

            seen.add(entry.user_id)
            role, permissions = expected[entry.user_id]
            if entry.role != role or (entry.permissions or {}) != permissions:
                await role_cache_db.update(
                    session,
                    entry.id,
                    {"role": role, "permissions": permissions},
                    commit_self=False,
                )
                counts["updated"] += 1

        for user_id, (role, permissions) in expected.items():
            if user_id in seen:
                continue
            await role_cache_db.create(
                session,
                {
                    "user_id": user_id,
                    "workspace_id": workspace.id,
                    "role": role,
                    "permissions": permissions,
                },
                commit_self=False,
            )
            counts["created"] += 1

        member_rows = len(members)
        if workspace.members_count != member_rows + 1:
            workspace_logger.warning(
                f"Member counter drift in workspace {workspace.id}: stored "
                f"{workspace.members_count}, actual {member_rows + 1}; correcting"
            )
            await workspace_db.update(
                session,
                workspace.id,
                {"members_count": member_rows + 1},
                commit_self=False,
            )

        return counts

    async def reconcile_role_cache(
        self,
        session: AsyncSession,
        workspace_id: UUID | None = None,
        commit_self: bool = True,
    ) -> dict[str, int]:
        """
        Rebuild role cache entries from owners and member rows.

        Missing entries are created, drifted roles or permissions are
        rewritten and entries with no backing membership are deleted. When
        run for every workspace, entries pointing at workspaces that no
        longer exist are deleted too. Running it twice in a row changes
        nothing the second time.

        Args:
            session: Database session.
            workspace_id: Limit the pass to one workspace.
            commit_self: Whether to commit the transaction.

        Returns:
            Counts of created, updated and deleted entries.
        """
        totals = {"created": 0, "updated": 0, "deleted": 0}

        if workspace_id is not None:
            workspace = await workspace_db.get_by_id(session, workspace_id)
            workspaces = [workspace] if workspace else []
            if workspace is None:
                totals["deleted"] += await role_cache_db.delete_for_workspace(
                    session, workspace_id, commit_self=False
                )
        else:
            workspaces = list(await workspace_db.get_by_filters(session, {}))
            totals["deleted"] += await role_cache_db.delete_by_conditions(
                session,
                [RoleCacheEntry.workspace_id.not_in(select(Workspace.id))],
                commit_self=False,
            )

        for workspace in workspaces:
            counts = await self._reconcile_workspace(session, workspace)
            for key, value in counts.items():
                totals[key] += value

        if commit_self:
            await session.commit()
        else:
            await session.flush()

        workspace_logger.info(
            f"Role cache reconciled for "
            f"{workspace_id or f'{len(workspaces)} workspaces'}: {totals}"
        )
        return totals


membership_service = MembershipService()


__all__ = [
    "MembershipService",
    "membership_service",
]
