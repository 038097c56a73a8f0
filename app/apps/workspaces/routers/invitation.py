"""
Invitation router.

Endpoints addressed by token (preview, accept, decline) serve the invitee;
endpoints addressed by invitation id (cancel, remind, extend) serve the
inviter and workspace admins.
"""

from uuid import UUID

from fastapi import APIRouter

from app.apps.workspaces.schemas import (
    InvitationAcceptedResponse,
    InvitationExtend,
    InvitationListResponse,
    InvitationResponse,
)
from app.apps.workspaces.services import invitation_service, side_effects
from app.core.config import request_logger
from app.core.dependencies import CurrentActiveUser, SessionDep


router = APIRouter(prefix="/invitations")


@router.get(
    "/mine",
    response_model=InvitationListResponse,
    summary="List my invitations",
)
async def list_my_invitations(
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> InvitationListResponse:
    """List live pending invitations addressed to the caller's email."""
    request_logger.info(f"GET /invitations/mine - user={current_user.id}")
    async with session.begin():
        invitations = await invitation_service.list_user_invitations(
            session, current_user
        )
    return InvitationListResponse(
        invitations=[InvitationResponse.model_validate(i) for i in invitations]
    )


@router.get(
    "/{token}",
    response_model=InvitationResponse,
    summary="Preview invitation",
    description="""
## Preview Invitation

Look up an invitation by its token without authenticating. A pending
invitation past its deadline is marked expired and answered with `410`.
""",
)
async def get_invitation(
    token: str,
    session: SessionDep,
) -> InvitationResponse:
    request_logger.info("GET /invitations/{token}")
    # Not wrapped in begin(): the expire-on-read transition must commit
    # before ExpiredInvitationException propagates.
    invitation = await invitation_service.get_invitation(
        session, token, commit_self=True
    )
    return InvitationResponse.model_validate(invitation)


@router.post(
    "/{token}/accept",
    response_model=InvitationAcceptedResponse,
    summary="Accept invitation",
    description="""
## Accept Invitation

Join the invitation's workspace. Each token can be accepted once; email
invitations only by the addressed account.

### Errors

| Status | Reason |
|--------|--------|
| 403 | Invitation addressed to another email |
| 404 | Unknown token, or the workspace was deleted |
| 409 | Invitation no longer pending, or workspace archived |
| 410 | Invitation expired |
| 422 | Workspace member limit reached |
""",
)
async def accept_invitation(
    token: str,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> InvitationAcceptedResponse:
    request_logger.info(f"POST /invitations/{{token}}/accept - user={current_user.id}")
    async with side_effects.committed(session):
        invitation, member = await invitation_service.accept_invitation(
            session, token, current_user, commit_self=False
        )
    return InvitationAcceptedResponse(
        invitation=InvitationResponse.model_validate(invitation),
        workspace_id=member.workspace_id,
        role=member.role,
    )


@router.post(
    "/{token}/decline",
    response_model=InvitationResponse,
    summary="Decline invitation",
)
async def decline_invitation(
    token: str,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> InvitationResponse:
    request_logger.info(
        f"POST /invitations/{{token}}/decline - user={current_user.id}"
    )
    async with side_effects.committed(session):
        invitation = await invitation_service.decline_invitation(
            session, token, current_user, commit_self=False
        )
    return InvitationResponse.model_validate(invitation)


@router.post(
    "/{invitation_id}/cancel",
    response_model=InvitationResponse,
    summary="Cancel invitation",
)
async def cancel_invitation(
    invitation_id: UUID,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> InvitationResponse:
    """Cancel a pending invitation. Inviter or workspace admin."""
    request_logger.info(
        f"POST /invitations/{invitation_id}/cancel - user={current_user.id}"
    )
    async with side_effects.committed(session):
        invitation = await invitation_service.cancel_invitation(
            session, invitation_id, current_user, commit_self=False
        )
    return InvitationResponse.model_validate(invitation)


@router.post(
    "/{invitation_id}/remind",
    response_model=InvitationResponse,
    summary="Send invitation reminder",
)
async def send_reminder(
    invitation_id: UUID,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> InvitationResponse:
    request_logger.info(
        f"POST /invitations/{invitation_id}/remind - user={current_user.id}"
    )
    async with side_effects.committed(session):
        invitation = await invitation_service.send_reminder(
            session, invitation_id, current_user, commit_self=False
        )
    return InvitationResponse.model_validate(invitation)


@router.post(
    "/{invitation_id}/extend",
    response_model=InvitationResponse,
    summary="Extend invitation",
)
async def extend_invitation(
    invitation_id: UUID,
    data: InvitationExtend,
    current_user: CurrentActiveUser,
    session: SessionDep,
) -> InvitationResponse:
    """Push the deadline of a pending invitation forward."""
    request_logger.info(
        f"POST /invitations/{invitation_id}/extend - user={current_user.id} "
        f"days={data.days}"
    )
    async with side_effects.committed(session):
        invitation = await invitation_service.extend_expiration(
            session, invitation_id, data.days, current_user, commit_self=False
        )
    return InvitationResponse.model_validate(invitation)


__all__ = ["router"]
