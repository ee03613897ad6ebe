from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler_app.api.deps.auth import get_current_identity
from scheduler_app.api.deps.database import get_db
from scheduler_app.api.deps.errors import service_errors
from scheduler_app.schemas.user import CalendarCredentialsUpdate, User
from scheduler_app.services.user import UserService

router = APIRouter()


@router.get("/me", response_model=User)
async def get_me(
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    """Get (creating on first use) the caller's user record."""
    async with service_errors(db, "fetch user"):
        user = await UserService(db).get_or_create(identity)

    return user


@router.put("/me/calendar", response_model=User)
async def link_calendar(
    credentials: CalendarCredentialsUpdate,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    """Store the caller's Google Calendar tokens."""
    async with service_errors(db, "link calendar"):
        user = await UserService(db).link_calendar(identity, credentials)

    return user


@router.delete("/me/calendar", response_model=User)
async def unlink_calendar(
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    """Forget the caller's calendar tokens."""
    async with service_errors(db, "unlink calendar"):
        user = await UserService(db).unlink_calendar(identity)

    return user
