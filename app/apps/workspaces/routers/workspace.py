"""
Workspace router.

This module provides endpoints for:
- Workspace CRUD operations and lifecycle (archive, restore, delete)
- Settings and rules
- Member management (list, remove, change role, leave, transfer ownership)
- Creating and listing a workspace's invitations
"""

from datetime import datetime, timezone
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.apps.workspaces.db.models import Workspace
from app.apps.workspaces.schemas import (
    BulkInvitationCreate,
    BulkInvitationResponse,
    BulkInvitationResult,
    InvitationCreate,
    InvitationCreatedResponse,
    InvitationListResponse,
    InvitationResponse,
    MemberLimits,
    MemberListResponse,
    MemberRoleUpdate,
    MessageResponse,
    TransferOwnershipRequest,
    WorkspaceCreate,
    WorkspaceDeletedResponse,
    WorkspaceDetailResponse,
    WorkspaceListResponse,
    WorkspaceMemberResponse,
    WorkspaceResponse,
    WorkspaceRules,
    WorkspaceRulesUpdate,
    WorkspaceSettingsUpdate,
    WorkspaceUpdate,
)
from app.apps.workspaces.services import (
    MemberView,
    invitation_service,
    lifecycle_service,
    permission_service,
    side_effects,
    workspace_service,
)
from app.core.config import request_logger
from app.core.dependencies import CurrentActiveUser, SessionDep
from app.core.enums import BulkInviteStatus, InvitationStatus, MemberRole


router = APIRouter(prefix="/workspaces")


# ============================================================================
# Helper Functions
# ============================================================================


def _build_workspace_response(
    workspace: Workspace, now: datetime | None = None
) -> WorkspaceResponse:
    """Build WorkspaceResponse from Workspace model."""
    return WorkspaceResponse(
        id=workspace.id,
        name=workspace.name,
        description=workspace.description,
        owner_id=workspace.owner_id,
        status=workspace.status,
        members_count=workspace.members_count,
        max_members=workspace.max_members,
        archived_at=workspace.archived_at,
        archive_expires_at=workspace.archive_expires_at,
        archive_countdown_seconds=workspace.archive_countdown_seconds(now),
        created_at=workspace.created_at,
    )


def _build_detail_response(
    workspace: Workspace, my_role: MemberRole | None = None
) -> WorkspaceDetailResponse:
    """Build WorkspaceDetailResponse from Workspace model."""
    base = _build_workspace_response(workspace)
    return WorkspaceDetailResponse(
        **base.model_dump(),
        settings=workspace.settings or {},
        rules=WorkspaceRules(
            content=workspace.rules_content,
            version=workspace.rules_version,
            last_updated_by=workspace.rules_last_updated_by_id,
            updated_at=workspace.rules_updated_at,
        ),
        my_role=my_role,
    )


def _build_member_response(view: MemberView) -> WorkspaceMemberResponse:
    return WorkspaceMemberResponse(
        user_id=view.user_id,
        role=view.role,
        permissions=view.permissions,
        joined_at=view.joined_at,
        invited_by_id=view.invited_by_id,
        email=view.email,
        full_name=view.full_name,
        avatar_url=view.avatar_url,
        missing_user=view.missing_user,
    )


# ============================================================================
# Workspace Endpoints
# ============================================================================


@router.get(
    "",
    response_model=WorkspaceListResponse,
    summary="List user workspaces",
    description="""
## List User Workspaces

Retrieve all workspaces the authenticated user owns or is a member of.

### Query Parameters

| Parameter | Type | Required | Description |
|-----------|------|----------|-------------|
| `include_archived` | boolean | ❌ | Include archived workspaces (default `false`) |
""",
)
async def list_workspaces(
    current_user: CurrentActiveUser,
    session: SessionDep,
    include_archived: Annotated[bool, Query()] = False,
) -> WorkspaceListResponse:
    """List all workspaces the current user belongs to."""
    request_logger.info(f"GET /workspaces - user={current_user.id}")
    async with session.begin():
        workspaces = await workspace_service.get_user_workspaces(
            session, current_user.id, include_archived=include_archived
        )
    now = datetime.now(timezone.utc)
    return WorkspaceListResponse(
        workspaces=[_build_workspace_response(w, now) for w in workspaces]
    )


@router.post(
    "",
    response_model=WorkspaceDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create workspace",
    description="""
## Create New Workspace

Create a workspace owned by the authenticated user. The owner is implicit:
the new workspace has no member rows and `members_count` is 1.
""",
)
async def create_workspace(
    data: WorkspaceCreate,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> WorkspaceDetailResponse:
    """Create a new workspace."""
    request_logger.info(f"POST /workspaces - user={current_user.id}")
    async with side_effects.committed(session):
        workspace = await workspace_service.create_workspace(
            session,
            owner=current_user,
            name=data.name,
            description=data.description,
            max_members=data.max_members,
            commit_self=False,
        )

    request_logger.info(
        f"POST /workspaces - user={current_user.id} created workspace={workspace.id}"
    )
    return _build_detail_response(workspace, MemberRole.OWNER)


@router.get(
    "/{workspace_id}",
    response_model=WorkspaceDetailResponse,
    summary="Get workspace details",
    description="""
## Get Workspace Details

Retrieve a workspace with its settings, rules and the caller's role.
While archived, `archive_countdown_seconds` tells how long until the
workspace is permanently deleted.

### Authorization

- User must be the owner or a **member** of the workspace
""",
)
async def get_workspace(
    workspace_id: UUID,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> WorkspaceDetailResponse:
    request_logger.info(f"GET /workspaces/{workspace_id} - user={current_user.id}")
    async with session.begin():
        workspace = await workspace_service.get_workspace(
            session, workspace_id, current_user.id
        )
        my_role = await permission_service.get_role(
            session, workspace, current_user.id
        )
    return _build_detail_response(workspace, my_role)


@router.patch(
    "/{workspace_id}",
    response_model=WorkspaceDetailResponse,
    summary="Update workspace",
)
async def update_workspace(
    workspace_id: UUID,
    data: WorkspaceUpdate,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> WorkspaceDetailResponse:
    """Update name or description. Requires admin."""
    request_logger.info(f"PATCH /workspaces/{workspace_id} - user={current_user.id}")
    async with side_effects.committed(session):
        workspace = await workspace_service.update_workspace(
            session,
            workspace_id,
            current_user.id,
            name=data.name,
            description=data.description,
            commit_self=False,
        )
        my_role = await permission_service.get_role(
            session, workspace, current_user.id
        )
    return _build_detail_response(workspace, my_role)


@router.patch(
    "/{workspace_id}/settings",
    response_model=WorkspaceDetailResponse,
    summary="Update workspace settings",
)
async def update_workspace_settings(
    workspace_id: UUID,
    data: WorkspaceSettingsUpdate,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> WorkspaceDetailResponse:
    """Merge keys into one settings section. Requires admin."""
    request_logger.info(
        f"PATCH /workspaces/{workspace_id}/settings - user={current_user.id} "
        f"section={data.section}"
    )
    async with side_effects.committed(session):
        workspace = await workspace_service.update_settings(
            session,
            workspace_id,
            current_user.id,
            data.section,
            data.updates,
            commit_self=False,
        )
        my_role = await permission_service.get_role(
            session, workspace, current_user.id
        )
    return _build_detail_response(workspace, my_role)


@router.put(
    "/{workspace_id}/rules",
    response_model=WorkspaceDetailResponse,
    summary="Replace workspace rules",
)
async def update_workspace_rules(
    workspace_id: UUID,
    data: WorkspaceRulesUpdate,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> WorkspaceDetailResponse:
    request_logger.info(
        f"PUT /workspaces/{workspace_id}/rules - user={current_user.id}"
    )
    async with side_effects.committed(session):
        workspace = await workspace_service.update_rules(
            session,
            workspace_id,
            current_user.id,
            data.content,
            commit_self=False,
        )
        my_role = await permission_service.get_role(
            session, workspace, current_user.id
        )
    return _build_detail_response(workspace, my_role)


# ============================================================================
# Lifecycle Endpoints
# ============================================================================


@router.post(
    "/{workspace_id}/archive",
    response_model=WorkspaceResponse,
    summary="Archive workspace",
    description="""
## Archive Workspace

Archive a workspace and start the countdown to its permanent deletion.
The owner can restore it until `archive_expires_at`.

### Authorization

- The **owner**, or a member holding `can_delete_workspace`
""",
)
async def archive_workspace(
    workspace_id: UUID,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> WorkspaceResponse:
    request_logger.info(
        f"POST /workspaces/{workspace_id}/archive - user={current_user.id}"
    )
    async with side_effects.committed(session):
        workspace = await lifecycle_service.archive(
            session, workspace_id, current_user.id, commit_self=False
        )
    return _build_workspace_response(workspace)


@router.post(
    "/{workspace_id}/restore",
    response_model=WorkspaceResponse,
    summary="Restore workspace",
    description="""
## Restore Workspace

Bring an archived workspace back before its grace period ends.

### Authorization

- Workspace **owner** only
""",
)
async def restore_workspace(
    workspace_id: UUID,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> WorkspaceResponse:
    request_logger.info(
        f"POST /workspaces/{workspace_id}/restore - user={current_user.id}"
    )
    async with side_effects.committed(session):
        workspace = await lifecycle_service.restore(
            session, workspace_id, current_user.id, commit_self=False
        )
    return _build_workspace_response(workspace)


@router.delete(
    "/{workspace_id}",
    response_model=WorkspaceDeletedResponse,
    summary="Permanently delete workspace",
    description="""
## Permanently Delete Workspace

Delete an archived workspace now, with its members, invitations and
role cache entries. This cannot be undone.

### Authorization

- Workspace **owner** only; the workspace must be archived
""",
)
async def delete_workspace(
    workspace_id: UUID,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> WorkspaceDeletedResponse:
    request_logger.info(f"DELETE /workspaces/{workspace_id} - user={current_user.id}")
    async with side_effects.committed(session):
        summary = await lifecycle_service.permanent_delete(
            session, workspace_id, current_user.id, commit_self=False
        )
    return WorkspaceDeletedResponse(**summary)


# ============================================================================
# Member Endpoints
# ============================================================================


@router.get(
    "/{workspace_id}/members",
    response_model=MemberListResponse,
    summary="List workspace members",
    description="""
## List Workspace Members

The owner comes first, then members in join order. A member whose user
account no longer exists is still listed, with `missing_user: true`.

### Query Parameters

| Parameter | Type | Required | Description |
|-----------|------|----------|-------------|
| `q` | string | ❌ | Case-insensitive match on name or email |
| `role` | string | ❌ | `owner`, `admin` or `member` |
""",
)
async def list_members(
    workspace_id: UUID,
    current_user: CurrentActiveUser,
    session: SessionDep,
    q: Annotated[str | None, Query(max_length=200)] = None,
    role: Annotated[MemberRole | None, Query()] = None,
) -> MemberListResponse:
    request_logger.info(
        f"GET /workspaces/{workspace_id}/members - user={current_user.id}"
    )
    async with session.begin():
        listing = await workspace_service.list_members(
            session, workspace_id, current_user.id, q=q, role=role
        )
    return MemberListResponse(
        members=[_build_member_response(v) for v in listing.members],
        limits=MemberLimits(current=listing.current, maximum=listing.maximum),
    )


@router.delete(
    "/{workspace_id}/members/{member_id}",
    response_model=MessageResponse,
    summary="Remove member",
)
async def remove_member(
    workspace_id: UUID,
    member_id: UUID,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> MessageResponse:
    """Remove a member. Admins remove members; only the owner removes admins."""
    request_logger.info(
        f"DELETE /workspaces/{workspace_id}/members/{member_id} - user={current_user.id}"
    )
    async with side_effects.committed(session):
        await workspace_service.remove_member(
            session, workspace_id, member_id, current_user.id, commit_self=False
        )
    return MessageResponse(message="Member removed from workspace.")


@router.patch(
    "/{workspace_id}/members/{member_id}/role",
    response_model=WorkspaceMemberResponse,
    summary="Change member role",
)
async def update_member_role(
    workspace_id: UUID,
    member_id: UUID,
    data: MemberRoleUpdate,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> WorkspaceMemberResponse:
    """Change a member's role. Owner only."""
    request_logger.info(
        f"PATCH /workspaces/{workspace_id}/members/{member_id}/role - "
        f"user={current_user.id} role={data.role.value}"
    )
    async with side_effects.committed(session):
        member = await workspace_service.update_member_role(
            session,
            workspace_id,
            member_id,
            data.role,
            current_user.id,
            commit_self=False,
        )
    return WorkspaceMemberResponse(
        user_id=member.user_id,
        role=member.role,
        permissions=member.permissions,
        joined_at=member.joined_at,
        invited_by_id=member.invited_by_id,
    )


@router.post(
    "/{workspace_id}/leave",
    response_model=MessageResponse,
    summary="Leave workspace",
)
async def leave_workspace(
    workspace_id: UUID,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> MessageResponse:
    """Leave a workspace. The owner must transfer ownership first."""
    request_logger.info(
        f"POST /workspaces/{workspace_id}/leave - user={current_user.id}"
    )
    async with side_effects.committed(session):
        await workspace_service.leave_workspace(
            session, workspace_id, current_user.id, commit_self=False
        )
    return MessageResponse(message="You have left the workspace.")


@router.post(
    "/{workspace_id}/transfer-ownership",
    response_model=WorkspaceResponse,
    summary="Transfer ownership",
    description="""
## Transfer Ownership

Make another user the owner. The former owner stays on as an **admin**.

### Authorization

- Workspace **owner** only
""",
)
async def transfer_ownership(
    workspace_id: UUID,
    data: TransferOwnershipRequest,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> WorkspaceResponse:
    request_logger.info(
        f"POST /workspaces/{workspace_id}/transfer-ownership - "
        f"user={current_user.id} new_owner={data.new_owner_id}"
    )
    async with side_effects.committed(session):
        workspace = await workspace_service.transfer_ownership(
            session,
            workspace_id,
            current_user.id,
            data.new_owner_id,
            commit_self=False,
        )
    return _build_workspace_response(workspace)


# ============================================================================
# Invitation Endpoints
# ============================================================================


@router.post(
    "/{workspace_id}/invitations",
    response_model=InvitationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite to workspace",
    description="""
## Invite to Workspace

Create an email invitation, or a single-use link invitation when `email`
is omitted. The token is only returned here; it is stored hashed.

### Authorization

- Admin or higher, or `can_manage_members`
- Only the **owner** can invite with role `admin`
""",
)
async def create_invitation(
    workspace_id: UUID,
    data: InvitationCreate,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> InvitationCreatedResponse:
    request_logger.info(
        f"POST /workspaces/{workspace_id}/invitations - user={current_user.id} "
        f"role={data.role.value} link={data.email is None}"
    )
    async with side_effects.committed(session):
        invitation, token = await invitation_service.create_invitation(
            session,
            workspace_id,
            current_user,
            email=data.email,
            role=data.role,
            expires_in_days=data.expires_in_days,
            message=data.message,
            commit_self=False,
        )
    return InvitationCreatedResponse(
        invitation=InvitationResponse.model_validate(invitation),
        token=token,
        invitation_url=invitation_service.build_invitation_link(token),
    )


@router.post(
    "/{workspace_id}/invitations/bulk",
    response_model=BulkInvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite several addresses",
    description="""
## Bulk Invite

Send email invitations to a list of addresses. Each address gets its own
result: `sent`, `already_member` or `already_pending`. Tokens are only
delivered by email.

### Authorization

- Same as a single invitation
""",
)
async def bulk_invite(
    workspace_id: UUID,
    data: BulkInvitationCreate,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> BulkInvitationResponse:
    request_logger.info(
        f"POST /workspaces/{workspace_id}/invitations/bulk - user={current_user.id} "
        f"count={len(data.emails)} role={data.role.value}"
    )
    async with side_effects.committed(session):
        results = await invitation_service.bulk_invite(
            session,
            workspace_id,
            current_user,
            data.emails,
            role=data.role,
            expires_in_days=data.expires_in_days,
            message=data.message,
            commit_self=False,
        )
    return BulkInvitationResponse(
        results=[BulkInvitationResult.model_validate(r) for r in results],
        sent=sum(1 for r in results if r.status == BulkInviteStatus.SENT),
    )


@router.get(
    "/{workspace_id}/invitations",
    response_model=InvitationListResponse,
    summary="List workspace invitations",
)
async def list_workspace_invitations(
    workspace_id: UUID,
    current_user: CurrentActiveUser,
    session: SessionDep,
    status_filter: Annotated[InvitationStatus | None, Query(alias="status")] = None,
) -> InvitationListResponse:
    """List a workspace's invitations, newest first. Requires admin."""
    request_logger.info(
        f"GET /workspaces/{workspace_id}/invitations - user={current_user.id}"
    )
    async with session.begin():
        invitations = await invitation_service.list_workspace_invitations(
            session, workspace_id, current_user.id, status=status_filter
        )
    return InvitationListResponse(
        invitations=[InvitationResponse.model_validate(i) for i in invitations]
    )


__all__ = ["router"]
