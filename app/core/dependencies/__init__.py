"""FastAPI dependencies: the per-request session and the acting user."""

from app.core.dependencies.db import SessionDep, get_async_session
from app.core.dependencies.auth import (
    CurrentActiveUser,
    CurrentUser,
    actor_id_from_token,
    bearer_scheme,
    get_current_active_user,
    get_current_user,
)

__all__ = [
    "SessionDep",
    "get_async_session",
    "CurrentActiveUser",
    "CurrentUser",
    "actor_id_from_token",
    "bearer_scheme",
    "get_current_active_user",
    "get_current_user",
]
