"""User repository for database operations."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from livecast.modules.auth.models import User


class UserRepository:
    """Repository for User lookups and counters."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def increment_total_streams(self, user: User) -> User:
        """Count one more broadcast for ``user``."""
        user.total_streams = (user.total_streams or 0) + 1
        await self.session.flush()
        return user
