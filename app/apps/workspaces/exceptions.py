"""
Exceptions raised by the workspace services.

Each subclasses one of the core families so the registered handlers map
it to the right status code.
"""

from app.core.exceptions.types import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
)


# ============================================================================
# Workspaces
# ============================================================================


class WorkspaceNotFoundException(NotFoundException):
    """Raised when workspace is not found."""

    def __init__(self, message: str = "Workspace not found."):
        super().__init__(message)


class WorkspaceArchivedException(InvalidStateException):
    """Raised when a mutation targets an archived workspace."""

    def __init__(
        self, message: str = "Workspace is archived. Restore it to make changes."
    ):
        super().__init__(message)


class PermissionDeniedException(ForbiddenException):
    """Raised when the actor's role does not allow the operation."""

    def __init__(self, message: str = "Permission denied."):
        super().__init__(message)


# ============================================================================
# Members
# ============================================================================


class MemberNotFoundException(NotFoundException):
    """Raised when workspace member is not found."""

    def __init__(self, message: str = "Member not found."):
        super().__init__(message)


class MemberAlreadyExistsException(ConflictException):
    """Raised when user is already a member."""

    def __init__(self, message: str = "User is already a member of this workspace."):
        super().__init__(message)


class CannotRemoveOwnerException(InvalidStateException):
    """Raised when removing the owner from their own workspace."""

    def __init__(
        self,
        message: str = "The workspace owner cannot be removed. Transfer ownership first.",
    ):
        super().__init__(message)


# ============================================================================
# Invitations
# ============================================================================


class InvitationNotFoundException(NotFoundException):
    """Raised when invitation is not found."""

    def __init__(self, message: str = "Invitation not found."):
        super().__init__(message)


class InvitationAlreadyExistsException(ConflictException):
    """Raised when invitation already exists."""

    def __init__(self, message: str = "Invitation already pending for this email."):
        super().__init__(message)


class InvitationNotPendingException(InvalidStateException):
    """Raised when acting on an invitation that already reached a terminal status."""

    def __init__(self, message: str = "Invitation is no longer pending."):
        super().__init__(message)


class InvalidInvitationRoleException(BadRequestException):
    """Raised when an invitation would grant the owner role."""

    def __init__(self, message: str = "Cannot invite with the owner role."):
        super().__init__(message)


__all__ = [
    "CannotRemoveOwnerException",
    "InvalidInvitationRoleException",
    "InvitationAlreadyExistsException",
    "InvitationNotFoundException",
    "InvitationNotPendingException",
    "MemberAlreadyExistsException",
    "MemberNotFoundException",
    "PermissionDeniedException",
    "WorkspaceArchivedException",
    "WorkspaceNotFoundException",
]
