"""
Pydantic schemas for invitation endpoints.
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints

from app.core.enums import (
    BulkInviteStatus,
    InvitationStatus,
    InvitationType,
    MemberRole,
)


class InvitationCreate(BaseModel):
    """Schema for creating an invitation. Omit ``email`` for a link invitation."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "newmember@example.com",
                "role": "member",
                "expires_in_days": 7,
                "message": "Join us for the Q3 planning!",
            }
        }
    )

    email: Annotated[
        EmailStr | None,
        Field(description="Email address to invite, or null for a link"),
    ] = None
    role: Annotated[
        MemberRole,
        Field(description="Role to assign: admin or member"),
    ] = MemberRole.MEMBER
    expires_in_days: Annotated[
        int | None,
        Field(ge=1, le=90, description="Days until the invitation expires"),
    ] = None
    message: Annotated[
        str | None,
        StringConstraints(max_length=1000),
        Field(description="Personal message shown to the invitee"),
    ] = None


class BulkInvitationCreate(BaseModel):
    """Schema for inviting several email addresses at once."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "emails": ["ada@example.com", "grace@example.com"],
                "role": "member",
                "expires_in_days": 7,
            }
        }
    )

    emails: Annotated[
        list[EmailStr],
        Field(min_length=1, description="Email addresses to invite"),
    ]
    role: Annotated[
        MemberRole,
        Field(description="Role to assign: admin or member"),
    ] = MemberRole.MEMBER
    expires_in_days: Annotated[
        int | None,
        Field(ge=1, le=90, description="Days until the invitations expire"),
    ] = None
    message: Annotated[
        str | None,
        StringConstraints(max_length=1000),
        Field(description="Personal message shown to the invitees"),
    ] = None


class BulkInvitationResult(BaseModel):
    """Outcome for one address of a bulk invite."""

    model_config = ConfigDict(from_attributes=True)

    email: str
    status: BulkInviteStatus
    invitation_id: UUID | None = None
    error: str | None = None


class BulkInvitationResponse(BaseModel):
    """Schema for bulk invite response."""

    results: list[BulkInvitationResult]
    sent: int


class InvitationExtend(BaseModel):
    """Schema for extending an invitation."""

    model_config = ConfigDict(json_schema_extra={"example": {"days": 7}})

    days: Annotated[int, Field(ge=1, description="Days to add to the deadline")]


class InvitationResponse(BaseModel):
    """Schema for invitation response."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "type": "workspace",
                "target_id": "550e8400-e29b-41d4-a716-446655440004",
                "target_name": "Product Team",
                "email": "newmember@example.com",
                "role": "member",
                "status": "pending",
                "message": None,
                "invited_by_id": "550e8400-e29b-41d4-a716-446655440001",
                "expires_at": "2024-01-22T10:30:00Z",
                "reminders_sent": 0,
                "last_reminder_at": None,
                "created_at": "2024-01-15T10:30:00Z",
            }
        },
    )

    id: UUID
    type: InvitationType
    target_id: UUID
    target_name: str
    email: str | None
    role: MemberRole
    status: InvitationStatus
    message: str | None = None
    invited_by_id: UUID
    invited_user_id: UUID | None = None
    expires_at: datetime
    accepted_at: datetime | None = None
    declined_at: datetime | None = None
    reminders_sent: int = 0
    last_reminder_at: datetime | None = None
    created_at: datetime


class InvitationListResponse(BaseModel):
    """Schema for list of invitations."""

    invitations: list[InvitationResponse]


class InvitationCreatedResponse(BaseModel):
    """
    Schema for invitation created response.

    The token is returned once; only its hash is stored.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "invitation": {
                    "id": "550e8400-e29b-41d4-a716-446655440000",
                    "type": "workspace",
                    "target_id": "550e8400-e29b-41d4-a716-446655440004",
                    "target_name": "Product Team",
                    "email": None,
                    "role": "member",
                    "status": "pending",
                    "invited_by_id": "550e8400-e29b-41d4-a716-446655440001",
                    "expires_at": "2024-01-22T10:30:00Z",
                    "created_at": "2024-01-15T10:30:00Z",
                },
                "token": "abc123def456ghi789jkl012mno345pqr678",
                "invitation_url": "https://app.example.com/invitations/abc123def456",
            }
        }
    )

    invitation: InvitationResponse
    token: str
    invitation_url: str


class InvitationAcceptedResponse(BaseModel):
    """Schema for an accepted invitation."""

    invitation: InvitationResponse
    workspace_id: UUID
    role: MemberRole


__all__ = [
    "BulkInvitationCreate",
    "BulkInvitationResponse",
    "BulkInvitationResult",
    "InvitationAcceptedResponse",
    "InvitationCreate",
    "InvitationCreatedResponse",
    "InvitationExtend",
    "InvitationListResponse",
    "InvitationResponse",
]
