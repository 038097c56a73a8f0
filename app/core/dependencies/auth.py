"""
Authentication dependencies for the workspace API.

Every workspace and invitation operation is performed on behalf of an actor.
The actor is the user named by the ``sub`` claim of a bearer access token;
roles are never read from the token, they are resolved per workspace by the
services.

Example usage:
    from app.core.dependencies import CurrentActiveUser

    @router.post("/workspaces/{workspace_id}/archive")
    async def archive(workspace_id: UUID, user: CurrentActiveUser): ...
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import auth_logger
from app.core.db.crud import user_db
from app.core.db.models import User
from app.core.dependencies.db import SessionDep
from app.core.exceptions.types import AuthenticationException, ForbiddenException
from app.core.utils import decode_jwt_token

bearer_scheme = HTTPBearer(auto_error=True)


def actor_id_from_token(token: str) -> UUID:
    """
    Resolve the acting user's id from a bearer access token.

    Raises:
        AuthenticationException: If the token is invalid, expired, not an
            access token, or its subject is not a user id.
    """
    payload = decode_jwt_token(token)
    if payload is None:
        raise AuthenticationException("Invalid or expired access token")

    if payload.get("type") != "access":
        auth_logger.warning(f"Rejected token of type '{payload.get('type')}'")
        raise AuthenticationException("Invalid access token")

    subject = payload.get("sub")
    try:
        return UUID(str(subject))
    except ValueError:
        auth_logger.warning(f"Rejected token with subject '{subject}'")
        raise AuthenticationException("Invalid access token")


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    session: SessionDep,
) -> User:
    """
    Load the user a request acts as.

    Raises:
        AuthenticationException: If the token is unusable or the user no
            longer exists in the directory.
    """
    user_id = actor_id_from_token(credentials.credentials)

    # Closed before the endpoint opens its own transaction
    async with session.begin():
        user = await user_db.get_by_id(session=session, id=user_id)

    if user is None:
        auth_logger.warning(f"Authentication failed: user not found {user_id}")
        raise AuthenticationException("User not found")

    return user


async def get_current_active_user(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Reject deactivated accounts (403)."""
    if not user.is_active:
        auth_logger.warning(f"Access denied: user deactivated {user.id}")
        raise ForbiddenException("User account is deactivated")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentActiveUser = Annotated[User, Depends(get_current_active_user)]


__all__ = [
    "actor_id_from_token",
    "bearer_scheme",
    "get_current_user",
    "get_current_active_user",
    "CurrentUser",
    "CurrentActiveUser",
]
