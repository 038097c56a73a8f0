"""
Test suite for the workspace CRUD layer's guarded writes.

Run all tests:
    pytest tests/apps/workspaces/test_crud.py -v
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from app.apps.workspaces.db.crud import workspace_db, workspace_invitation_db
from app.core.enums import InvitationStatus, InvitationType, MemberRole
from app.core.exceptions.types import DatabaseException
from app.core.utils import generate_invitation_token, hmac_hash_token


def _invitation_data(workspace, inviter_id, email: str | None, **overrides) -> dict:
    data = {
        "type": InvitationType.WORKSPACE,
        "target_id": workspace.id,
        "target_name": workspace.name,
        "invited_by_id": inviter_id,
        "email": email,
        "role": MemberRole.MEMBER,
        "token_hash": hmac_hash_token(generate_invitation_token()),
        "status": InvitationStatus.PENDING,
        "expires_at": datetime.now(timezone.utc) + timedelta(days=7),
    }
    data.update(overrides)
    return data


class TestSeatCounter:

    @pytest.mark.asyncio
    async def test_reserve_stops_at_limit(self, db_session, owner):
        from app.apps.workspaces.services import workspace_service

        workspace = await workspace_service.create_workspace(
            db_session, owner, "Trio", max_members=3
        )

        results = [
            await workspace_db.reserve_seat(db_session, workspace.id, commit_self=False)
            for _ in range(4)
        ]

        await db_session.refresh(workspace)
        assert results == [True, True, False, False]
        assert workspace.members_count == 3

    @pytest.mark.asyncio
    async def test_release_then_reserve(self, db_session, workspace):
        await workspace_db.reserve_seat(db_session, workspace.id, commit_self=False)

        assert await workspace_db.release_seat(db_session, workspace.id, commit_self=False)
        assert not await workspace_db.release_seat(
            db_session, workspace.id, commit_self=False
        )


class TestPendingInvitationUniqueness:

    @pytest.mark.asyncio
    async def test_second_pending_row_for_same_email_is_rejected(
        self, db_session, workspace, owner
    ):
        await workspace_invitation_db.create(
            db_session,
            _invitation_data(workspace, owner.id, "dup@example.com"),
            commit_self=False,
        )

        with pytest.raises(DatabaseException):
            async with db_session.begin():
                await workspace_invitation_db.create(
                    db_session,
                    _invitation_data(workspace, owner.id, "dup@example.com"),
                    commit_self=False,
                )

    @pytest.mark.asyncio
    async def test_terminal_rows_and_links_do_not_collide(
        self, db_session, workspace, owner
    ):
        for status in (InvitationStatus.EXPIRED, InvitationStatus.CANCELLED):
            await workspace_invitation_db.create(
                db_session,
                _invitation_data(workspace, owner.id, "again@example.com", status=status),
                commit_self=False,
            )
        await workspace_invitation_db.create(
            db_session,
            _invitation_data(workspace, owner.id, "again@example.com"),
            commit_self=False,
        )
        for _ in range(2):
            await workspace_invitation_db.create(
                db_session, _invitation_data(workspace, owner.id, None), commit_self=False
            )

        rows = await workspace_invitation_db.get_target_invitations(
            db_session, workspace.id
        )
        assert len(rows) == 5


class TestInvitationTransition:

    @pytest.mark.asyncio
    async def test_only_first_transition_wins(self, db_session, workspace, owner):
        invitation = await workspace_invitation_db.create(
            db_session,
            _invitation_data(workspace, owner.id, "race@example.com"),
            commit_self=False,
        )

        first = await workspace_invitation_db.transition(
            db_session, invitation.id, InvitationStatus.ACCEPTED, commit_self=False
        )
        second = await workspace_invitation_db.transition(
            db_session, invitation.id, InvitationStatus.DECLINED, commit_self=False
        )

        await db_session.refresh(invitation)
        assert (first, second) == (True, False)
        assert invitation.status == InvitationStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_pending_lookup_is_case_insensitive(self, db_session, workspace, owner):
        created = await workspace_invitation_db.create(
            db_session,
            _invitation_data(workspace, owner.id, "case@example.com"),
            commit_self=False,
        )

        found = await workspace_invitation_db.get_pending_invitation(
            db_session, "CASE@example.com", workspace.id
        )

        assert found.id == created.id
        assert (
            await workspace_invitation_db.get_pending_invitation(
                db_session, "case@example.com", uuid4()
            )
            is None
        )
