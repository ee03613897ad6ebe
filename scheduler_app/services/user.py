from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler_app.core.exceptions import NotFound
from scheduler_app.models.user import User
from scheduler_app.schemas.user import CalendarCredentialsUpdate

logger = structlog.get_logger(__name__)


class UserService:
    """Identity records and their linked calendar credentials."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def require_by_email(self, email: str) -> User:
        user = await self.get_by_email(email)
        if not user:
            raise NotFound("User not found")
        return user

    async def get_or_create(self, email: str, name: Optional[str] = None) -> User:
        user = await self.get_by_email(email)
        if user:
            return user

        user = User(email=email, name=name)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return await self.require_by_email(email)

        await self.db.refresh(user)
        logger.info("User record created", user_id=str(user.id))
        return user

    async def link_calendar(
        self, email: str, credentials: CalendarCredentialsUpdate
    ) -> User:
        user = await self.get_or_create(email, credentials.name)
        user.calendar_access_token = credentials.access_token
        if credentials.refresh_token is not None:
            user.calendar_refresh_token = credentials.refresh_token
        if credentials.name:
            user.name = credentials.name

        await self.db.commit()
        await self.db.refresh(user)
        logger.info("Calendar credentials linked", user_id=str(user.id))
        return user

    async def unlink_calendar(self, email: str) -> User:
        user = await self.require_by_email(email)
        user.calendar_access_token = None
        user.calendar_refresh_token = None

        await self.db.commit()
        await self.db.refresh(user)
        logger.info("Calendar credentials unlinked", user_id=str(user.id))
        return user
