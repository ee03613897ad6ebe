from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler_app.core.database import DatabaseClient


def get_database_client(request: Request) -> DatabaseClient:
    return request.app.state.database


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency to get database session."""
    async for session in get_database_client(request).session():
        yield session
