"""
Test suite for MembershipService.

- Adding members (idempotence, seat limit)
- Removing members and the owner guard
- Ownership transfer
- Role cache reconciliation

Run all tests:
    pytest tests/apps/workspaces/test_membership_service.py -v
"""

from unittest.mock import patch
from uuid import uuid4

import pytest

from app.apps.workspaces.db.crud import (
    role_cache_db,
    workspace_db,
    workspace_member_db,
)
from app.apps.workspaces.exceptions import (
    CannotRemoveOwnerException,
    MemberAlreadyExistsException,
    MemberNotFoundException,
)
from app.apps.workspaces.services import (
    default_permissions,
    membership_service,
    workspace_service,
)
from app.core.enums import MemberRole
from app.core.exceptions.types import (
    BadRequestException,
    InvalidStateException,
    LimitExceededException,
    UserNotFoundException,
)


class TestAddMember:

    @pytest.mark.asyncio
    async def test_add_member_writes_row_cache_and_counter(
        self, db_session, workspace, member_user
    ):
        member, created = await membership_service.add_member(
            db_session, workspace, member_user.id, invited_by_id=workspace.owner_id
        )

        assert created is True
        assert member.role == MemberRole.MEMBER
        assert member.permissions == default_permissions(MemberRole.MEMBER)
        assert workspace.members_count == 2

        entry = await role_cache_db.get_entry(db_session, member_user.id, workspace.id)
        assert entry is not None
        assert entry.role == MemberRole.MEMBER

    @pytest.mark.asyncio
    async def test_add_member_is_idempotent(self, db_session, workspace, member_user):
        first, _ = await membership_service.add_member(
            db_session, workspace, member_user.id
        )

        again, created = await membership_service.add_member(
            db_session, workspace, member_user.id, role=MemberRole.ADMIN
        )

        assert created is False
        assert again.id == first.id
        assert again.role == MemberRole.MEMBER
        assert workspace.members_count == 2
        assert await workspace_member_db.count_members(db_session, workspace.id) == 1

    @pytest.mark.asyncio
    async def test_concurrent_add_returns_existing_member(
        self, db_session, workspace, member_user
    ):
        """The second of two racing adds misses the first row on its read."""
        first, _ = await membership_service.add_member(
            db_session, workspace, member_user.id
        )
        real_get_member = workspace_member_db.get_member
        reads = []

        async def stale_first_read(session, workspace_id, user_id):
            reads.append(user_id)
            if len(reads) == 1:
                return None
            return await real_get_member(session, workspace_id, user_id)

        with patch.object(workspace_member_db, "get_member", new=stale_first_read):
            again, created = await membership_service.add_member(
                db_session, workspace, member_user.id
            )

        assert created is False
        assert again.id == first.id
        assert len(reads) == 2
        await db_session.refresh(workspace)
        assert workspace.members_count == 2
        assert await workspace_member_db.count_members(db_session, workspace.id) == 1
        entry = await role_cache_db.get_entry(db_session, member_user.id, workspace.id)
        assert entry.role == MemberRole.MEMBER

    @pytest.mark.asyncio
    async def test_owner_cannot_be_added_as_member(self, db_session, workspace, owner):
        with pytest.raises(MemberAlreadyExistsException):
            await membership_service.add_member(db_session, workspace, owner.id)

    @pytest.mark.asyncio
    async def test_owner_role_is_rejected(self, db_session, workspace, member_user):
        with pytest.raises(BadRequestException):
            await membership_service.add_member(
                db_session, workspace, member_user.id, role=MemberRole.OWNER
            )

    @pytest.mark.asyncio
    async def test_full_workspace_rejects_without_partial_write(
        self, db_session, owner, member_user, outsider
    ):
        small = await workspace_service.create_workspace(
            db_session, owner, "Pair", max_members=2
        )
        await membership_service.add_member(db_session, small, member_user.id)

        with pytest.raises(LimitExceededException):
            await membership_service.add_member(db_session, small, outsider.id)

        await db_session.refresh(small)
        assert small.members_count == 2
        assert await workspace_member_db.get_member(db_session, small.id, outsider.id) is None
        assert await role_cache_db.get_entry(db_session, outsider.id, small.id) is None


class TestRemoveMember:

    @pytest.mark.asyncio
    async def test_remove_member_clears_row_cache_and_seat(
        self, db_session, staffed_workspace, member_user
    ):
        removed = await membership_service.remove_member(
            db_session, staffed_workspace, member_user.id
        )

        assert removed.user_id == member_user.id
        assert staffed_workspace.members_count == 2
        assert (
            await workspace_member_db.get_member(
                db_session, staffed_workspace.id, member_user.id
            )
            is None
        )
        assert (
            await role_cache_db.get_entry(db_session, member_user.id, staffed_workspace.id)
            is None
        )

    @pytest.mark.asyncio
    async def test_owner_cannot_be_removed(self, db_session, staffed_workspace, owner):
        with pytest.raises(CannotRemoveOwnerException):
            await membership_service.remove_member(
                db_session, staffed_workspace, owner.id
            )

        entry = await role_cache_db.get_entry(db_session, owner.id, staffed_workspace.id)
        assert entry is not None
        assert entry.role == MemberRole.OWNER
        await db_session.refresh(staffed_workspace)
        assert staffed_workspace.owner_id == owner.id
        assert staffed_workspace.members_count == 3

    @pytest.mark.asyncio
    async def test_remove_unknown_member(self, db_session, workspace, outsider):
        with pytest.raises(MemberNotFoundException):
            await membership_service.remove_member(db_session, workspace, outsider.id)

    @pytest.mark.asyncio
    async def test_member_without_user_record_can_be_removed(
        self, db_session, workspace
    ):
        ghost_id = uuid4()
        await membership_service.add_member(db_session, workspace, ghost_id)

        await membership_service.remove_member(db_session, workspace, ghost_id)

        assert await workspace_member_db.get_member(db_session, workspace.id, ghost_id) is None
        assert workspace.members_count == 1

    @pytest.mark.asyncio
    async def test_seat_counter_never_drops_below_owner(self, db_session, workspace):
        released = await workspace_db.release_seat(
            db_session, workspace.id, commit_self=False
        )

        await db_session.refresh(workspace)
        assert released is False
        assert workspace.members_count == 1


class TestChangeRole:

    @pytest.mark.asyncio
    async def test_change_role_resets_permissions(
        self, db_session, staffed_workspace, member_user
    ):
        member = await membership_service.change_role(
            db_session, staffed_workspace, member_user.id, MemberRole.ADMIN
        )

        assert member.role == MemberRole.ADMIN
        assert member.permissions == default_permissions(MemberRole.ADMIN)
        entry = await role_cache_db.get_entry(
            db_session, member_user.id, staffed_workspace.id
        )
        assert entry.role == MemberRole.ADMIN

    @pytest.mark.asyncio
    async def test_owner_role_cannot_be_changed(self, db_session, workspace, owner):
        with pytest.raises(CannotRemoveOwnerException):
            await membership_service.change_role(
                db_session, workspace, owner.id, MemberRole.MEMBER
            )

    @pytest.mark.asyncio
    async def test_cannot_promote_to_owner(
        self, db_session, staffed_workspace, member_user
    ):
        with pytest.raises(BadRequestException):
            await membership_service.change_role(
                db_session, staffed_workspace, member_user.id, MemberRole.OWNER
            )


class TestTransferOwnership:

    @pytest.mark.asyncio
    async def test_transfer_to_member(
        self, db_session, staffed_workspace, owner, member_user
    ):
        previous = await membership_service.transfer_ownership(
            db_session, staffed_workspace, member_user.id
        )

        assert previous == owner.id
        assert staffed_workspace.owner_id == member_user.id
        assert staffed_workspace.members_count == 3

        assert (
            await workspace_member_db.get_member(
                db_session, staffed_workspace.id, member_user.id
            )
            is None
        )
        former = await workspace_member_db.get_member(
            db_session, staffed_workspace.id, owner.id
        )
        assert former.role == MemberRole.ADMIN

        new_entry = await role_cache_db.get_entry(
            db_session, member_user.id, staffed_workspace.id
        )
        old_entry = await role_cache_db.get_entry(db_session, owner.id, staffed_workspace.id)
        assert new_entry.role == MemberRole.OWNER
        assert old_entry.role == MemberRole.ADMIN

    @pytest.mark.asyncio
    async def test_transfer_to_non_member_takes_a_seat(
        self, db_session, workspace, owner, outsider
    ):
        await membership_service.transfer_ownership(db_session, workspace, outsider.id)

        assert workspace.owner_id == outsider.id
        assert workspace.members_count == 2
        assert await workspace_member_db.get_member(db_session, workspace.id, owner.id)

    @pytest.mark.asyncio
    async def test_transfer_to_non_member_of_full_workspace(
        self, db_session, owner, member_user, outsider
    ):
        small = await workspace_service.create_workspace(
            db_session, owner, "Pair", max_members=2
        )
        await membership_service.add_member(db_session, small, member_user.id)

        with pytest.raises(LimitExceededException):
            await membership_service.transfer_ownership(db_session, small, outsider.id)

    @pytest.mark.asyncio
    async def test_transfer_to_self(self, db_session, workspace, owner):
        with pytest.raises(InvalidStateException):
            await membership_service.transfer_ownership(db_session, workspace, owner.id)

    @pytest.mark.asyncio
    async def test_transfer_to_unknown_user(self, db_session, workspace):
        with pytest.raises(UserNotFoundException):
            await membership_service.transfer_ownership(db_session, workspace, uuid4())


class TestReconcileRoleCache:

    @pytest.mark.asyncio
    async def test_consistent_state_changes_nothing(self, db_session, staffed_workspace):
        counts = await membership_service.reconcile_role_cache(
            db_session, staffed_workspace.id
        )

        assert counts == {"created": 0, "updated": 0, "deleted": 0}

    @pytest.mark.asyncio
    async def test_repairs_missing_drifted_and_orphan_entries(
        self, db_session, staffed_workspace, admin_user, member_user, outsider
    ):
        workspace_id = staffed_workspace.id
        await role_cache_db.delete_entry(
            db_session, member_user.id, workspace_id, commit_self=False
        )
        await role_cache_db.upsert(
            db_session,
            admin_user.id,
            workspace_id,
            MemberRole.MEMBER,
            default_permissions(MemberRole.MEMBER),
            commit_self=False,
        )
        await role_cache_db.upsert(
            db_session,
            outsider.id,
            workspace_id,
            MemberRole.ADMIN,
            default_permissions(MemberRole.ADMIN),
            commit_self=False,
        )

        counts = await membership_service.reconcile_role_cache(db_session, workspace_id)

        assert counts == {"created": 1, "updated": 1, "deleted": 1}
        assert (await role_cache_db.get_entry(db_session, admin_user.id, workspace_id)).role == MemberRole.ADMIN
        assert await role_cache_db.get_entry(db_session, member_user.id, workspace_id)
        assert await role_cache_db.get_entry(db_session, outsider.id, workspace_id) is None

        second = await membership_service.reconcile_role_cache(db_session, workspace_id)
        assert second == {"created": 0, "updated": 0, "deleted": 0}

    @pytest.mark.asyncio
    async def test_fixes_member_counter_drift(self, db_session, staffed_workspace):
        await workspace_db.update(
            db_session, staffed_workspace.id, {"members_count": 9}, commit_self=False
        )

        await membership_service.reconcile_role_cache(db_session, staffed_workspace.id)

        await db_session.refresh(staffed_workspace)
        assert staffed_workspace.members_count == 3

    @pytest.mark.asyncio
    async def test_full_pass_drops_entries_of_missing_workspaces(
        self, db_session, workspace, outsider
    ):
        await role_cache_db.upsert(
            db_session,
            outsider.id,
            uuid4(),
            MemberRole.MEMBER,
            default_permissions(MemberRole.MEMBER),
            commit_self=False,
        )

        counts = await membership_service.reconcile_role_cache(db_session)

        assert counts["deleted"] == 1
        assert not await role_cache_db.get_user_entries(db_session, outsider.id)
        assert await role_cache_db.get_entry(db_session, workspace.owner_id, workspace.id)

    @pytest.mark.asyncio
    async def test_single_pass_for_deleted_workspace(self, db_session, outsider):
        gone = uuid4()
        await role_cache_db.upsert(
            db_session,
            outsider.id,
            gone,
            MemberRole.MEMBER,
            default_permissions(MemberRole.MEMBER),
            commit_self=False,
        )

        counts = await membership_service.reconcile_role_cache(db_session, gone)

        assert counts == {"created": 0, "updated": 0, "deleted": 1}
