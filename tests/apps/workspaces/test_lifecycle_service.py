"""
Test suite for LifecycleService.

- Archive with grace-period countdown
- Restore before the deadline
- Owner-triggered permanent deletion
- Reaper sweep of expired archives

Run all tests:
    pytest tests/apps/workspaces/test_lifecycle_service.py -v
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from app.apps.workspaces.db.crud import (
    role_cache_db,
    workspace_db,
    workspace_invitation_db,
    workspace_member_db,
)
from app.apps.workspaces.exceptions import (
    PermissionDeniedException,
    WorkspaceNotFoundException,
)
from app.apps.workspaces.services import (
    invitation_service,
    lifecycle_service,
    membership_service,
    workspace_service,
)
from app.apps.workspaces.services.permissions import (
    CAN_DELETE_WORKSPACE,
    default_permissions,
)
from app.core.config import settings
from app.core.enums import MemberRole, WorkspaceStatus
from app.core.exceptions.types import InvalidStateException


def _past(days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


class TestArchive:

    @pytest.mark.asyncio
    async def test_owner_archives_workspace_with_countdown(self, db_session, workspace, owner):
        now = datetime.now(timezone.utc)

        archived = await lifecycle_service.archive(
            db_session, workspace.id, owner.id, now=now
        )

        assert archived.status == WorkspaceStatus.ARCHIVED
        assert archived.archived_at == now
        assert archived.archived_by_id == owner.id
        assert archived.archive_expires_at == now + timedelta(
            days=settings.WORKSPACE_ARCHIVE_GRACE_DAYS
        )
        assert archived.archive_countdown_seconds(now) == (
            settings.WORKSPACE_ARCHIVE_GRACE_DAYS * 24 * 3600
        )

    @pytest.mark.asyncio
    async def test_countdown_floors_at_zero(self, db_session, workspace, owner):
        archived = await lifecycle_service.archive(
            db_session, workspace.id, owner.id, now=_past(60)
        )

        assert archived.archive_countdown_seconds() == 0

    @pytest.mark.asyncio
    async def test_archive_twice_fails(self, db_session, workspace, owner):
        await lifecycle_service.archive(db_session, workspace.id, owner.id)

        with pytest.raises(InvalidStateException):
            await lifecycle_service.archive(db_session, workspace.id, owner.id)

    @pytest.mark.asyncio
    async def test_admin_without_delete_permission_cannot_archive(
        self, db_session, staffed_workspace, admin_user
    ):
        with pytest.raises(PermissionDeniedException):
            await lifecycle_service.archive(
                db_session, staffed_workspace.id, admin_user.id
            )

        await db_session.refresh(staffed_workspace)
        assert staffed_workspace.is_active

    @pytest.mark.asyncio
    async def test_member_with_cached_delete_permission_can_archive(
        self, db_session, staffed_workspace, member_user
    ):
        permissions = default_permissions(MemberRole.MEMBER)
        permissions[CAN_DELETE_WORKSPACE] = True
        await role_cache_db.upsert(
            db_session,
            member_user.id,
            staffed_workspace.id,
            MemberRole.MEMBER,
            permissions,
            commit_self=False,
        )

        archived = await lifecycle_service.archive(
            db_session, staffed_workspace.id, member_user.id
        )

        assert archived.is_archived

    @pytest.mark.asyncio
    async def test_owner_archives_despite_missing_cache_entry(
        self, db_session, workspace, owner
    ):
        await role_cache_db.delete_entry(
            db_session, owner.id, workspace.id, commit_self=False
        )

        archived = await lifecycle_service.archive(db_session, workspace.id, owner.id)

        assert archived.is_archived

    @pytest.mark.asyncio
    async def test_archive_unknown_workspace(self, db_session, owner):
        from uuid import uuid4

        with pytest.raises(WorkspaceNotFoundException):
            await lifecycle_service.archive(db_session, uuid4(), owner.id)

    @pytest.mark.asyncio
    async def test_archive_notifies_owner_and_members(
        self, db_session, staffed_workspace, owner, admin_user, member_user, publisher
    ):
        await lifecycle_service.archive(db_session, staffed_workspace.id, owner.id)

        notified = {
            n["recipient_id"]
            for n in publisher.on("workspace_notifications")
            if n["type"] == "workspace_archived"
        }
        assert notified == {str(owner.id), str(admin_user.id), str(member_user.id)}
        assert "workspace_archive" in publisher.actions()


class TestRestore:

    @pytest.mark.asyncio
    async def test_restore_before_deadline(self, db_session, workspace, owner):
        await lifecycle_service.archive(db_session, workspace.id, owner.id)

        restored = await lifecycle_service.restore(db_session, workspace.id, owner.id)

        assert restored.status == WorkspaceStatus.ACTIVE
        assert restored.archived_at is None
        assert restored.archive_expires_at is None
        assert restored.archive_countdown_seconds() is None

    @pytest.mark.asyncio
    async def test_restore_after_deadline_fails(self, db_session, workspace, owner):
        await lifecycle_service.archive(
            db_session, workspace.id, owner.id, now=_past(settings.WORKSPACE_ARCHIVE_GRACE_DAYS + 1)
        )

        with pytest.raises(InvalidStateException):
            await lifecycle_service.restore(db_session, workspace.id, owner.id)

    @pytest.mark.asyncio
    async def test_restore_active_workspace_fails(self, db_session, workspace, owner):
        with pytest.raises(InvalidStateException):
            await lifecycle_service.restore(db_session, workspace.id, owner.id)

    @pytest.mark.asyncio
    async def test_only_owner_can_restore(
        self, db_session, staffed_workspace, owner, admin_user
    ):
        await lifecycle_service.archive(db_session, staffed_workspace.id, owner.id)

        with pytest.raises(PermissionDeniedException):
            await lifecycle_service.restore(
                db_session, staffed_workspace.id, admin_user.id
            )


class TestPermanentDelete:

    @pytest.mark.asyncio
    async def test_delete_requires_archived(self, db_session, workspace, owner):
        with pytest.raises(InvalidStateException):
            await lifecycle_service.permanent_delete(db_session, workspace.id, owner.id)

    @pytest.mark.asyncio
    async def test_only_owner_can_delete(
        self, db_session, staffed_workspace, owner, admin_user
    ):
        await lifecycle_service.archive(db_session, staffed_workspace.id, owner.id)

        with pytest.raises(PermissionDeniedException):
            await lifecycle_service.permanent_delete(
                db_session, staffed_workspace.id, admin_user.id
            )

    @pytest.mark.asyncio
    async def test_owner_deletes_before_deadline_and_cascades(
        self, db_session, staffed_workspace, owner, admin_user, member_user, publisher
    ):
        workspace_id = staffed_workspace.id
        await invitation_service.create_invitation(
            db_session, workspace_id, owner, email="later@example.com"
        )
        await lifecycle_service.archive(db_session, workspace_id, owner.id)

        summary = await lifecycle_service.permanent_delete(
            db_session, workspace_id, owner.id
        )

        assert summary["members"] == 2
        assert summary["role_cache_entries"] == 3
        assert summary["invitations"] == 1
        assert summary["trigger"] == "owner"
        assert await workspace_db.get_by_id(db_session, workspace_id) is None
        assert not await workspace_member_db.get_workspace_members(
            db_session, workspace_id
        )
        assert not await role_cache_db.get_workspace_entries(db_session, workspace_id)
        assert not await workspace_invitation_db.get_target_invitations(
            db_session, workspace_id
        )
        for user in (owner, admin_user, member_user):
            assert not await role_cache_db.get_user_entries(db_session, user.id)
        assert "workspace_delete" in publisher.actions()


class TestReaper:
    """Scenario: archive, let the grace period lapse, run one sweep."""

    @pytest.mark.asyncio
    async def test_reaper_deletes_expired_archive_and_cache_entries(
        self, db_session, workspace, owner, member_user
    ):
        await membership_service.add_member(db_session, workspace, member_user.id)
        workspace_id = workspace.id
        await lifecycle_service.archive(
            db_session,
            workspace_id,
            owner.id,
            now=_past(settings.WORKSPACE_ARCHIVE_GRACE_DAYS + 1),
        )

        result = await lifecycle_service.reap_expired_workspaces(db_session)

        assert result == {"deleted": 1, "skipped": 0, "failed": 0}
        assert await workspace_db.get_by_id(db_session, workspace_id) is None
        assert not await role_cache_db.get_user_entries(db_session, owner.id)
        assert not await role_cache_db.get_user_entries(db_session, member_user.id)

    @pytest.mark.asyncio
    async def test_reaper_leaves_live_archives_and_active_workspaces(
        self, db_session, owner
    ):
        active = await workspace_service.create_workspace(db_session, owner, "Active")
        counting_down = await workspace_service.create_workspace(
            db_session, owner, "Counting down"
        )
        await lifecycle_service.archive(db_session, counting_down.id, owner.id)

        result = await lifecycle_service.reap_expired_workspaces(db_session)

        assert result["deleted"] == 0
        assert await workspace_db.get_by_id(db_session, active.id) is not None
        assert await workspace_db.get_by_id(db_session, counting_down.id) is not None

    @pytest.mark.asyncio
    async def test_reaper_honours_the_exact_deadline(
        self, db_session, workspace, owner
    ):
        archived_at = _past(settings.WORKSPACE_ARCHIVE_GRACE_DAYS * 2).replace(
            microsecond=0
        )
        deadline = archived_at + timedelta(days=settings.WORKSPACE_ARCHIVE_GRACE_DAYS)
        workspace_id = workspace.id
        await lifecycle_service.archive(db_session, workspace_id, owner.id, now=archived_at)

        early = await lifecycle_service.reap_expired_workspaces(
            db_session, now=deadline - timedelta(seconds=1)
        )
        assert early["deleted"] == 0
        assert await workspace_db.get_by_id(db_session, workspace_id) is not None

        on_time = await lifecycle_service.reap_expired_workspaces(
            db_session, now=deadline
        )
        assert on_time["deleted"] == 1
        assert await workspace_db.get_by_id(db_session, workspace_id) is None

    @pytest.mark.asyncio
    async def test_restored_workspace_survives_later_sweeps(
        self, db_session, workspace, owner
    ):
        archived_at = _past(1)
        workspace_id = workspace.id
        await lifecycle_service.archive(db_session, workspace_id, owner.id, now=archived_at)
        await lifecycle_service.restore(
            db_session, workspace_id, owner.id, now=archived_at + timedelta(hours=1)
        )

        result = await lifecycle_service.reap_expired_workspaces(
            db_session,
            now=archived_at
            + timedelta(days=settings.WORKSPACE_ARCHIVE_GRACE_DAYS + 1),
        )

        assert result == {"deleted": 0, "skipped": 0, "failed": 0}
        restored = await workspace_db.get_by_id(db_session, workspace_id)
        assert restored.status == WorkspaceStatus.ACTIVE
        assert restored.archive_expires_at is None

    @pytest.mark.asyncio
    async def test_failed_deletion_publishes_nothing(
        self, db_session, workspace, owner, member_user, publisher
    ):
        await membership_service.add_member(db_session, workspace, member_user.id)
        workspace_id = workspace.id
        await lifecycle_service.archive(
            db_session,
            workspace_id,
            owner.id,
            now=_past(settings.WORKSPACE_ARCHIVE_GRACE_DAYS + 1),
        )
        publisher.events.clear()
        original = lifecycle_service._cascade_delete

        async def delete_then_fail(session, workspace, **kwargs):
            await original(session, workspace, **kwargs)
            raise RuntimeError("commit lost")

        with patch.object(
            lifecycle_service, "_cascade_delete", side_effect=delete_then_fail
        ):
            result = await lifecycle_service.reap_expired_workspaces(db_session)

        assert result == {"deleted": 0, "skipped": 0, "failed": 1}
        assert await workspace_db.get_by_id(db_session, workspace_id) is not None
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_reaper_continues_after_a_failure(self, db_session, owner):
        first = await workspace_service.create_workspace(db_session, owner, "First")
        second = await workspace_service.create_workspace(db_session, owner, "Second")
        for ws in (first, second):
            await lifecycle_service.archive(
                db_session,
                ws.id,
                owner.id,
                now=_past(settings.WORKSPACE_ARCHIVE_GRACE_DAYS + 1),
            )
        failing_id, healthy_id = first.id, second.id
        original = lifecycle_service._cascade_delete

        async def flaky(session, workspace, **kwargs):
            if workspace.id == failing_id:
                raise RuntimeError("storage hiccup")
            return await original(session, workspace, **kwargs)

        with patch.object(lifecycle_service, "_cascade_delete", side_effect=flaky):
            result = await lifecycle_service.reap_expired_workspaces(db_session)

        assert result == {"deleted": 1, "skipped": 0, "failed": 1}
        assert await workspace_db.get_by_id(db_session, failing_id) is not None
        assert await workspace_db.get_by_id(db_session, healthy_id) is None

    @pytest.mark.asyncio
    async def test_reaper_skips_workspace_restored_since_scan(
        self, db_session, workspace, owner
    ):
        await lifecycle_service.archive(
            db_session,
            workspace.id,
            owner.id,
            now=_past(settings.WORKSPACE_ARCHIVE_GRACE_DAYS + 1),
        )
        real_scan = workspace_db.get_expired_archives

        async def scan_then_restore(session, now=None):
            expired = await real_scan(session, now)
            await workspace_db.update(
                session,
                workspace.id,
                {
                    "status": WorkspaceStatus.ACTIVE,
                    "archived_at": None,
                    "archive_expires_at": None,
                },
                commit_self=False,
            )
            return expired

        with patch.object(
            workspace_db, "get_expired_archives", side_effect=scan_then_restore
        ):
            result = await lifecycle_service.reap_expired_workspaces(db_session)

        assert result == {"deleted": 0, "skipped": 1, "failed": 0}
        assert await workspace_db.get_by_id(db_session, workspace.id) is not None
