from fastapi import Request, status
from fastapi.responses import JSONResponse

from app.core.config import request_logger
from app.core.exceptions.types import (
    AppException,
    AuthenticationException,
    ConflictException,
    DatabaseException,
    ExpiredInvitationException,
    ForbiddenException,
    InvalidStateException,
    LimitExceededException,
    NotFoundException,
)


def _detail_response(exc: AppException, headers: dict | None = None) -> JSONResponse:
    content: dict = {"detail": str(exc)}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: AppException):
    """
    Handles general exceptions by returning a JSON response with the error message.

    Args:
        request: The request object.
        exc (AppException): The exception instance.

    Returns:
        JSONResponse: A response containing the error message and the exception's status code.
    """
    request_logger.error(f"AppException on {request.url.path}: {exc}")
    return _detail_response(exc)


async def database_exception_handler(request: Request, exc: DatabaseException):
    """
    Handles database exceptions without leaking driver messages to the client.

    Returns:
        JSONResponse: A response with status code 500.
    """
    request_logger.error(f"DatabaseException on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": "A database error occurred."},
    )


async def authentication_exception_handler(
    request: Request, exc: AuthenticationException
):
    """
    Handles authentication exceptions by returning a JSON response.

    Returns:
        JSONResponse: A response containing the error message and status code 401.
    """
    request_logger.warning(f"AuthenticationException: {exc}")
    return _detail_response(exc, headers={"WWW-Authenticate": "Bearer"})


async def forbidden_exception_handler(request: Request, exc: ForbiddenException):
    """Handles permission failures, including invitation identity mismatches (403)."""
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return _detail_response(exc)


async def not_found_exception_handler(request: Request, exc: NotFoundException):
    """Handles missing workspaces, members, invitations and users (404)."""
    request_logger.info(f"{type(exc).__name__}: {exc}")
    return _detail_response(exc)


async def conflict_exception_handler(request: Request, exc: ConflictException):
    request_logger.info(f"{type(exc).__name__}: {exc}")
    return _detail_response(exc)


async def invalid_state_exception_handler(
    request: Request, exc: InvalidStateException
):
    """Handles operations that are invalid for the current lifecycle state (409)."""
    request_logger.info(f"{type(exc).__name__}: {exc}")
    return _detail_response(exc)


async def limit_exceeded_exception_handler(
    request: Request, exc: LimitExceededException
):
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return _detail_response(exc)


async def expired_invitation_exception_handler(
    request: Request, exc: ExpiredInvitationException
):
    request_logger.info(f"{type(exc).__name__}: {exc}")
    return _detail_response(exc)


exception_schema = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: {
        "description": "Internal Server Error",
        "content": {
            "application/json": {
                "example": {"detail": "A database error occurred."},
            }
        },
    },
    status.HTTP_401_UNAUTHORIZED: {
        "description": "Authentication Error",
        "content": {
            "application/json": {
                "example": {"detail": "Authentication failed."},
            }
        },
    },
    status.HTTP_403_FORBIDDEN: {
        "description": "Forbidden",
        "content": {
            "application/json": {
                "example": {"detail": "Access forbidden."},
            }
        },
    },
}


__all__ = [
    "general_exception_handler",
    "database_exception_handler",
    "authentication_exception_handler",
    "forbidden_exception_handler",
    "not_found_exception_handler",
    "conflict_exception_handler",
    "invalid_state_exception_handler",
    "limit_exceeded_exception_handler",
    "expired_invitation_exception_handler",
    "exception_schema",
]
