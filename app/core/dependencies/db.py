from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import AsyncSessionLocal


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield one session per request.

    Routers open their own ``session.begin()`` block around each mutation, so
    the session is handed out without an active transaction and closed once
    the response has been produced.
    """
    async with AsyncSessionLocal() as async_session:
        yield async_session


SessionDep = Annotated[AsyncSession, Depends(get_async_session)]


__all__ = ["SessionDep", "get_async_session"]
