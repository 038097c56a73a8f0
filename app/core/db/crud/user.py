from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud.base import BaseDB
from app.core.db.models import User


class UserDB(BaseDB[User]):
    def __init__(self):
        super().__init__(model=User)

    async def get_by_email(self, session: AsyncSession, email: str) -> User | None:
        """Case-insensitive lookup of a user by email."""
        return await self.get_one_by_conditions(
            session, [func.lower(User.email) == email.strip().lower()]
        )

    async def get_many(self, session: AsyncSession, ids: list) -> dict:
        """Resolve a batch of user ids, returning a mapping of id to user."""
        if not ids:
            return {}
        users = await self.get_by_conditions(session, [User.id.in_(ids)])
        return {user.id: user for user in users}
