"""
Test suite for Workspace router endpoints.

- GET/POST /api/workspaces
- GET/PATCH/DELETE /api/workspaces/{id}
- Settings, rules, archive and restore
- Members, leaving and ownership transfer
- Creating and listing invitations

Run all tests:
    pytest tests/apps/workspaces/routers/test_workspace.py -v
"""

from unittest.mock import patch
from uuid import uuid4

import pytest
from httpx import AsyncClient

from app.apps.workspaces.services import lifecycle_service, workspace_service
from app.core.config import settings
from app.core.exceptions.types import DatabaseException


class TestWorkspaceEndpoints:

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.get("/api/workspaces")

        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_rejects_bad_token(self, client: AsyncClient):
        response = await client.get(
            "/api/workspaces", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_create_workspace(self, client: AsyncClient, owner, auth_for):
        response = await client.post(
            "/api/workspaces",
            json={"name": "Launch", "description": "Q4 launch", "max_members": 4},
            headers=auth_for(owner),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Launch"
        assert data["status"] == "active"
        assert data["members_count"] == 1
        assert data["max_members"] == 4
        assert data["my_role"] == "owner"
        assert data["archive_countdown_seconds"] is None
        assert data["rules"]["version"] == 0

    @pytest.mark.asyncio
    async def test_create_workspace_validates_limit(
        self, client: AsyncClient, owner, auth_for
    ):
        response = await client.post(
            "/api/workspaces",
            json={"name": "Nobody", "max_members": 0},
            headers=auth_for(owner),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_workspaces(
        self, client: AsyncClient, staffed_workspace, member_user, auth_for
    ):
        response = await client.get("/api/workspaces", headers=auth_for(member_user))

        assert response.status_code == 200
        ids = [w["id"] for w in response.json()["workspaces"]]
        assert ids == [str(staffed_workspace.id)]

    @pytest.mark.asyncio
    async def test_get_workspace_reports_role(
        self, client: AsyncClient, staffed_workspace, admin_user, auth_for
    ):
        response = await client.get(
            f"/api/workspaces/{staffed_workspace.id}", headers=auth_for(admin_user)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["my_role"] == "admin"
        assert "features" in data["settings"]

    @pytest.mark.asyncio
    async def test_get_workspace_as_outsider(
        self, client: AsyncClient, workspace, outsider, auth_for
    ):
        response = await client.get(
            f"/api/workspaces/{workspace.id}", headers=auth_for(outsider)
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_get_missing_workspace(self, client: AsyncClient, owner, auth_for):
        response = await client.get(f"/api/workspaces/{uuid4()}", headers=auth_for(owner))

        assert response.status_code == 404
        assert response.json()["detail"] == "Workspace not found."

    @pytest.mark.asyncio
    async def test_update_workspace(
        self, client: AsyncClient, workspace, owner, auth_for
    ):
        response = await client.patch(
            f"/api/workspaces/{workspace.id}",
            json={"name": "Design Guild"},
            headers=auth_for(owner),
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Design Guild"

    @pytest.mark.asyncio
    async def test_failed_request_publishes_nothing(
        self, client: AsyncClient, db_session, workspace, owner, auth_for, publisher
    ):
        publisher.events.clear()
        original = workspace_service.update_workspace

        async def update_then_fail(*args, **kwargs):
            await original(*args, **kwargs)
            raise DatabaseException("connection dropped")

        with patch.object(
            workspace_service, "update_workspace", side_effect=update_then_fail
        ):
            response = await client.patch(
                f"/api/workspaces/{workspace.id}",
                json={"name": "Design Guild"},
                headers=auth_for(owner),
            )

        assert response.status_code == 500
        assert publisher.events == []
        await db_session.refresh(workspace)
        assert workspace.name == "Design Team"

    @pytest.mark.asyncio
    async def test_update_settings_and_rules(
        self, client: AsyncClient, workspace, owner, auth_for
    ):
        settings_response = await client.patch(
            f"/api/workspaces/{workspace.id}/settings",
            json={"section": "features", "updates": {"time_tracking": False}},
            headers=auth_for(owner),
        )
        rules_response = await client.put(
            f"/api/workspaces/{workspace.id}/rules",
            json={"content": "Ship small."},
            headers=auth_for(owner),
        )

        assert settings_response.status_code == 200
        assert settings_response.json()["settings"]["features"]["time_tracking"] is False
        assert rules_response.status_code == 200
        rules = rules_response.json()["rules"]
        assert rules["content"] == "Ship small."
        assert rules["version"] == 1
        assert rules["last_updated_by"] == str(owner.id)

    @pytest.mark.asyncio
    async def test_unknown_settings_section(
        self, client: AsyncClient, workspace, owner, auth_for
    ):
        response = await client.patch(
            f"/api/workspaces/{workspace.id}/settings",
            json={"section": "billing", "updates": {}},
            headers=auth_for(owner),
        )

        assert response.status_code == 409


class TestLifecycleEndpoints:

    @pytest.mark.asyncio
    async def test_archive_and_restore(
        self, client: AsyncClient, workspace, owner, auth_for
    ):
        archived = await client.post(
            f"/api/workspaces/{workspace.id}/archive", headers=auth_for(owner)
        )

        assert archived.status_code == 200
        data = archived.json()
        assert data["status"] == "archived"
        grace = settings.WORKSPACE_ARCHIVE_GRACE_DAYS * 24 * 3600
        assert grace - 60 <= data["archive_countdown_seconds"] <= grace

        restored = await client.post(
            f"/api/workspaces/{workspace.id}/restore", headers=auth_for(owner)
        )

        assert restored.status_code == 200
        assert restored.json()["status"] == "active"
        assert restored.json()["archive_countdown_seconds"] is None

    @pytest.mark.asyncio
    async def test_archive_by_admin_forbidden(
        self, client: AsyncClient, staffed_workspace, admin_user, auth_for
    ):
        response = await client.post(
            f"/api/workspaces/{staffed_workspace.id}/archive",
            headers=auth_for(admin_user),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_archived_workspace_rejects_edits(
        self, client: AsyncClient, workspace, owner, auth_for
    ):
        await client.post(f"/api/workspaces/{workspace.id}/archive", headers=auth_for(owner))

        response = await client.patch(
            f"/api/workspaces/{workspace.id}",
            json={"description": "too late"},
            headers=auth_for(owner),
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_delete_requires_archive(
        self, client: AsyncClient, workspace, owner, auth_for
    ):
        response = await client.delete(
            f"/api/workspaces/{workspace.id}", headers=auth_for(owner)
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_delete_archived_workspace(
        self, client: AsyncClient, staffed_workspace, owner, auth_for
    ):
        workspace_id = staffed_workspace.id
        await client.post(f"/api/workspaces/{workspace_id}/archive", headers=auth_for(owner))

        response = await client.delete(
            f"/api/workspaces/{workspace_id}", headers=auth_for(owner)
        )

        assert response.status_code == 200
        assert response.json() == {
            "workspace_id": str(workspace_id),
            "members": 2,
            "role_cache_entries": 3,
            "invitations": 0,
            "trigger": "owner",
        }
        missing = await client.get(f"/api/workspaces/{workspace_id}", headers=auth_for(owner))
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_restore_after_deadline(
        self, client: AsyncClient, db_session, workspace, owner, auth_for
    ):
        from datetime import datetime, timedelta, timezone

        await lifecycle_service.archive(
            db_session,
            workspace.id,
            owner.id,
            now=datetime.now(timezone.utc)
            - timedelta(days=settings.WORKSPACE_ARCHIVE_GRACE_DAYS + 1),
        )

        response = await client.post(
            f"/api/workspaces/{workspace.id}/restore", headers=auth_for(owner)
        )

        assert response.status_code == 409
        assert "grace period" in response.json()["detail"]


class TestMemberEndpoints:

    @pytest.mark.asyncio
    async def test_list_members(
        self, client: AsyncClient, staffed_workspace, member_user, auth_for
    ):
        response = await client.get(
            f"/api/workspaces/{staffed_workspace.id}/members",
            headers=auth_for(member_user),
        )

        assert response.status_code == 200
        data = response.json()
        assert [m["role"] for m in data["members"]] == ["owner", "admin", "member"]
        assert data["limits"] == {"current": 3, "maximum": 5}

    @pytest.mark.asyncio
    async def test_list_members_filtered_by_role(
        self, client: AsyncClient, staffed_workspace, owner, auth_for
    ):
        response = await client.get(
            f"/api/workspaces/{staffed_workspace.id}/members",
            params={"role": "admin"},
            headers=auth_for(owner),
        )

        assert [m["email"] for m in response.json()["members"]] == ["admin@example.com"]

    @pytest.mark.asyncio
    async def test_change_role(
        self, client: AsyncClient, staffed_workspace, owner, member_user, auth_for
    ):
        response = await client.patch(
            f"/api/workspaces/{staffed_workspace.id}/members/{member_user.id}/role",
            json={"role": "admin"},
            headers=auth_for(owner),
        )

        assert response.status_code == 200
        assert response.json()["role"] == "admin"
        assert response.json()["permissions"]["can_manage_members"] is True

    @pytest.mark.asyncio
    async def test_remove_member(
        self, client: AsyncClient, staffed_workspace, admin_user, member_user, auth_for
    ):
        response = await client.delete(
            f"/api/workspaces/{staffed_workspace.id}/members/{member_user.id}",
            headers=auth_for(admin_user),
        )

        assert response.status_code == 200
        assert response.json()["success"] is True

        again = await client.get(
            f"/api/workspaces/{staffed_workspace.id}", headers=auth_for(member_user)
        )
        assert again.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_cannot_be_removed(
        self, client: AsyncClient, staffed_workspace, owner, admin_user, auth_for
    ):
        response = await client.delete(
            f"/api/workspaces/{staffed_workspace.id}/members/{owner.id}",
            headers=auth_for(admin_user),
        )

        assert response.status_code == 409
        assert "Transfer ownership" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_leave(
        self, client: AsyncClient, staffed_workspace, member_user, auth_for
    ):
        response = await client.post(
            f"/api/workspaces/{staffed_workspace.id}/leave",
            headers=auth_for(member_user),
        )

        assert response.status_code == 200
        assert response.json()["message"] == "You have left the workspace."

    @pytest.mark.asyncio
    async def test_transfer_ownership(
        self, client: AsyncClient, staffed_workspace, owner, admin_user, auth_for
    ):
        response = await client.post(
            f"/api/workspaces/{staffed_workspace.id}/transfer-ownership",
            json={"new_owner_id": str(admin_user.id)},
            headers=auth_for(owner),
        )

        assert response.status_code == 200
        assert response.json()["owner_id"] == str(admin_user.id)

        listing = await client.get(
            f"/api/workspaces/{staffed_workspace.id}/members",
            headers=auth_for(owner),
        )
        roles = {m["user_id"]: m["role"] for m in listing.json()["members"]}
        assert roles[str(admin_user.id)] == "owner"
        assert roles[str(owner.id)] == "admin"


class TestWorkspaceInvitationEndpoints:

    @pytest.mark.asyncio
    async def test_create_email_invitation(
        self, client: AsyncClient, workspace, owner, auth_for
    ):
        response = await client.post(
            f"/api/workspaces/{workspace.id}/invitations",
            json={"email": "guest@example.com", "role": "member"},
            headers=auth_for(owner),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["invitation"]["email"] == "guest@example.com"
        assert data["invitation"]["status"] == "pending"
        assert data["invitation_url"].endswith(data["token"])
        assert "token_hash" not in data["invitation"]

    @pytest.mark.asyncio
    async def test_create_link_invitation(
        self, client: AsyncClient, workspace, owner, auth_for
    ):
        response = await client.post(
            f"/api/workspaces/{workspace.id}/invitations",
            json={"email": None},
            headers=auth_for(owner),
        )

        assert response.status_code == 201
        assert response.json()["invitation"]["email"] is None

    @pytest.mark.asyncio
    async def test_duplicate_invitation_conflict(
        self, client: AsyncClient, workspace, owner, auth_for
    ):
        body = {"email": "guest@example.com"}
        await client.post(
            f"/api/workspaces/{workspace.id}/invitations", json=body, headers=auth_for(owner)
        )

        response = await client.post(
            f"/api/workspaces/{workspace.id}/invitations", json=body, headers=auth_for(owner)
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_bulk_invite(
        self, client: AsyncClient, staffed_workspace, owner, member_user, auth_for
    ):
        response = await client.post(
            f"/api/workspaces/{staffed_workspace.id}/invitations/bulk",
            json={"emails": ["ada@example.com", member_user.email, "grace@example.com"]},
            headers=auth_for(owner),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["sent"] == 2
        assert [(r["email"], r["status"]) for r in data["results"]] == [
            ("ada@example.com", "sent"),
            (member_user.email, "already_member"),
            ("grace@example.com", "sent"),
        ]
        assert "token" not in data["results"][0]

    @pytest.mark.asyncio
    async def test_bulk_invite_validation_and_permission(
        self, client: AsyncClient, staffed_workspace, member_user, owner, auth_for
    ):
        empty = await client.post(
            f"/api/workspaces/{staffed_workspace.id}/invitations/bulk",
            json={"emails": []},
            headers=auth_for(owner),
        )
        forbidden = await client.post(
            f"/api/workspaces/{staffed_workspace.id}/invitations/bulk",
            json={"emails": ["ada@example.com"]},
            headers=auth_for(member_user),
        )

        assert empty.status_code == 422
        assert forbidden.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_role_invitation_rejected(
        self, client: AsyncClient, workspace, owner, auth_for
    ):
        response = await client.post(
            f"/api/workspaces/{workspace.id}/invitations",
            json={"email": "boss@example.com", "role": "owner"},
            headers=auth_for(owner),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_list_invitations_with_status_filter(
        self, client: AsyncClient, staffed_workspace, owner, admin_user, auth_for
    ):
        created = await client.post(
            f"/api/workspaces/{staffed_workspace.id}/invitations",
            json={"email": "one@example.com"},
            headers=auth_for(owner),
        )
        await client.post(
            f"/api/workspaces/{staffed_workspace.id}/invitations",
            json={"email": "two@example.com"},
            headers=auth_for(owner),
        )
        await client.post(
            f"/api/invitations/{created.json()['invitation']['id']}/cancel",
            headers=auth_for(owner),
        )

        response = await client.get(
            f"/api/workspaces/{staffed_workspace.id}/invitations",
            params={"status": "pending"},
            headers=auth_for(admin_user),
        )

        assert response.status_code == 200
        assert [i["email"] for i in response.json()["invitations"]] == ["two@example.com"]

    @pytest.mark.asyncio
    async def test_member_cannot_list_invitations(
        self, client: AsyncClient, staffed_workspace, member_user, auth_for
    ):
        response = await client.get(
            f"/api/workspaces/{staffed_workspace.id}/invitations",
            headers=auth_for(member_user),
        )

        assert response.status_code == 403
