from fastapi import status
from sqlalchemy.exc import IntegrityError


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        self.details = details
        super().__init__(message)


class DatabaseException(AppException):
    """Exception raised for database-related errors."""

    def __init__(self, message: str = "A database error occurred."):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)

    @property
    def is_integrity_error(self) -> bool:
        """True when the wrapped error is a constraint violation."""
        return isinstance(self.__cause__, IntegrityError)


class AuthenticationException(AppException):
    """Exception raised for authentication-related errors."""

    def __init__(self, message: str = "Authentication failed."):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(self, message: str = "Resource not found."):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class UserNotFoundException(NotFoundException):
    """Exception raised when a user is not found."""

    def __init__(self, message: str = "User not found."):
        super().__init__(message)


class ConflictException(AppException):
    """Exception raised when there's a conflict with existing resources."""

    def __init__(self, message: str = "Resource conflict."):
        super().__init__(message, status.HTTP_409_CONFLICT)


class BadRequestException(AppException):
    """Exception raised for bad request errors."""

    def __init__(self, message: str = "Bad request."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ForbiddenException(AppException):
    """Exception raised when access is forbidden."""

    def __init__(self, message: str = "Access forbidden."):
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class InvalidStateException(AppException):
    """Exception raised when an operation is not valid for the current lifecycle state."""

    def __init__(self, message: str = "Operation not allowed in the current state."):
        super().__init__(message, status.HTTP_409_CONFLICT)


class LimitExceededException(AppException):
    """Exception raised when a hard limit (e.g. seats) would be exceeded."""

    def __init__(self, message: str = "Limit exceeded."):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)


class ExpiredInvitationException(AppException):
    """Exception raised when an invitation is used after its deadline."""

    def __init__(self, message: str = "Invitation has expired."):
        super().__init__(message, status.HTTP_410_GONE)


class IdentityMismatchException(ForbiddenException):
    """Exception raised when an invitation is redeemed by someone it was not addressed to."""

    def __init__(
        self, message: str = "This invitation was sent to a different email address."
    ):
        super().__init__(message)


__all__ = [
    "AppException",
    "DatabaseException",
    "AuthenticationException",
    "NotFoundException",
    "UserNotFoundException",
    "ConflictException",
    "BadRequestException",
    "ForbiddenException",
    "InvalidStateException",
    "LimitExceededException",
    "ExpiredInvitationException",
    "IdentityMismatchException",
]
