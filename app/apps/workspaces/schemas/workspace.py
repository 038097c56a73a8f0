"""
Pydantic schemas for workspace endpoints.
"""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
)

from app.core.enums import MemberRole, WorkspaceStatus


# ============================================================================
# Workspace Schemas
# ============================================================================


class WorkspaceCreate(BaseModel):
    """Schema for creating a new workspace."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Product Team",
                "description": "Roadmap, specs and sprint boards",
            }
        }
    )

    name: Annotated[
        str,
        StringConstraints(min_length=1, max_length=200, strip_whitespace=True),
        Field(description="Workspace name"),
    ]
    description: Annotated[
        str | None,
        StringConstraints(max_length=1000),
        Field(description="Workspace description"),
    ] = None
    max_members: Annotated[
        int | None,
        Field(ge=1, description="Seat limit including the owner"),
    ] = None


class WorkspaceUpdate(BaseModel):
    """Schema for updating a workspace."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Product & Design",
                "description": "Updated workspace description",
            }
        }
    )

    name: Annotated[
        str | None,
        StringConstraints(min_length=1, max_length=200, strip_whitespace=True),
        Field(description="Workspace name"),
    ] = None
    description: Annotated[
        str | None,
        StringConstraints(max_length=1000),
        Field(description="Workspace description"),
    ] = None


class WorkspaceSettingsUpdate(BaseModel):
    """Schema for updating one section of the workspace settings."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "section": "features",
                "updates": {"time_tracking": False},
            }
        }
    )

    section: Annotated[
        str,
        Field(description="permissions, features, branding or notifications"),
    ]
    updates: Annotated[
        dict[str, Any],
        Field(description="Keys to merge into the section"),
    ]


class WorkspaceRulesUpdate(BaseModel):
    """Schema for replacing the workspace rules."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"content": "Be kind. Ship small."}}
    )

    content: Annotated[
        str,
        StringConstraints(max_length=20000),
        Field(description="Rules text"),
    ]


class WorkspaceRules(BaseModel):
    content: str | None = None
    version: int = 0
    last_updated_by: UUID | None = None
    updated_at: datetime | None = None


class WorkspaceResponse(BaseModel):
    """Schema for workspace response."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "name": "Product Team",
                "description": "Roadmap, specs and sprint boards",
                "owner_id": "550e8400-e29b-41d4-a716-446655440001",
                "status": "archived",
                "members_count": 3,
                "max_members": 10,
                "archived_at": "2024-01-15T10:30:00Z",
                "archive_expires_at": "2024-02-14T10:30:00Z",
                "archive_countdown_seconds": 2591999,
                "created_at": "2024-01-01T08:00:00Z",
            }
        },
    )

    id: UUID
    name: str
    description: str | None
    owner_id: UUID
    status: WorkspaceStatus
    members_count: int
    max_members: int
    archived_at: datetime | None = None
    archive_expires_at: datetime | None = None
    archive_countdown_seconds: int | None = None
    created_at: datetime


class WorkspaceDetailResponse(WorkspaceResponse):
    """Schema for detailed workspace response with settings and rules."""

    settings: dict[str, Any] = {}
    rules: WorkspaceRules = WorkspaceRules()
    my_role: MemberRole | None = None


class WorkspaceListResponse(BaseModel):
    """Schema for list of workspaces."""

    workspaces: list[WorkspaceResponse]


class WorkspaceDeletedResponse(BaseModel):
    """Schema for a permanent deletion summary."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "workspace_id": "550e8400-e29b-41d4-a716-446655440000",
                "members": 2,
                "role_cache_entries": 3,
                "invitations": 1,
                "trigger": "owner",
            }
        }
    )

    workspace_id: UUID
    members: int
    role_cache_entries: int
    invitations: int
    trigger: str


# ============================================================================
# Member Schemas
# ============================================================================


class WorkspaceMemberResponse(BaseModel):
    """Schema for workspace member response."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "user_id": "550e8400-e29b-41d4-a716-446655440001",
                "role": "admin",
                "permissions": {"can_manage_members": True},
                "joined_at": "2024-01-15T10:30:00Z",
                "invited_by_id": "550e8400-e29b-41d4-a716-446655440002",
                "email": "john@example.com",
                "full_name": "John Doe",
                "avatar_url": None,
                "missing_user": False,
            }
        },
    )

    user_id: UUID
    role: MemberRole
    permissions: dict[str, bool] = {}
    joined_at: datetime
    invited_by_id: UUID | None = None
    email: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    missing_user: bool = False


class MemberLimits(BaseModel):
    current: int
    maximum: int


class MemberListResponse(BaseModel):
    """Schema for a workspace's member list."""

    members: list[WorkspaceMemberResponse]
    limits: MemberLimits


class MemberRoleUpdate(BaseModel):
    """Schema for updating member role."""

    model_config = ConfigDict(json_schema_extra={"example": {"role": "admin"}})

    role: Annotated[
        MemberRole,
        Field(description="New member role: admin or member"),
    ]


class TransferOwnershipRequest(BaseModel):
    """Schema for transferring workspace ownership."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"new_owner_id": "550e8400-e29b-41d4-a716-446655440003"}
        }
    )

    new_owner_id: UUID


# ============================================================================
# Message Schemas
# ============================================================================


class MessageResponse(BaseModel):
    """Generic message response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"message": "Operation completed successfully", "success": True}
        }
    )

    message: str
    success: bool = True


__all__ = [
    "MemberLimits",
    "MemberListResponse",
    "MemberRoleUpdate",
    "MessageResponse",
    "TransferOwnershipRequest",
    "WorkspaceCreate",
    "WorkspaceDeletedResponse",
    "WorkspaceDetailResponse",
    "WorkspaceListResponse",
    "WorkspaceMemberResponse",
    "WorkspaceResponse",
    "WorkspaceRules",
    "WorkspaceRulesUpdate",
    "WorkspaceSettingsUpdate",
    "WorkspaceUpdate",
]
