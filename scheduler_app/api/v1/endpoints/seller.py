from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler_app.api.deps.auth import get_current_identity
from scheduler_app.api.deps.clients import get_calendar_provider, get_settings
from scheduler_app.api.deps.database import get_db
from scheduler_app.api.deps.errors import service_errors
from scheduler_app.core.config import Settings
from scheduler_app.schemas.availability import (
    AvailabilityResponse,
    AvailabilitySaved,
    AvailabilityUpdate,
)
from scheduler_app.schemas.seller import Seller, SellerProfileUpdate
from scheduler_app.services.availability import AvailabilityService
from scheduler_app.services.calendar import CalendarCredential, CalendarProvider
from scheduler_app.services.seller import SellerService
from scheduler_app.services.user import UserService

router = APIRouter()


@router.get("/profile", response_model=Seller)
async def get_own_profile(
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    """Get the caller's seller profile."""
    async with service_errors(db, "fetch seller profile"):
        seller = await SellerService(db).require_by_owner(identity)

    return seller


@router.put("/profile", response_model=Seller)
async def upsert_own_profile(
    profile: SellerProfileUpdate,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    """Create or update the caller's seller profile."""
    async with service_errors(db, "save seller profile"):
        seller = await SellerService(db).upsert_profile(identity, profile)

    return seller


@router.get("/availability", response_model=AvailabilityResponse)
async def get_own_availability(
    date: date = Query(..., description="Seller-local calendar day"),
    work_start: Optional[str] = Query(None, pattern=r"^\d{2}:\d{2}$"),
    work_end: Optional[str] = Query(None, pattern=r"^\d{2}:\d{2}$"),
    duration_minutes: Optional[int] = Query(None, gt=0, le=24 * 60),
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
    settings: Settings = Depends(get_settings),
):
    """Get the caller's slots for a day; unsaved days come back all busy."""
    async with service_errors(db, "fetch availability"):
        seller = await SellerService(db).require_by_owner(identity)
        slots, is_default = await AvailabilityService(db, settings).get_or_default(
            seller, date, work_start, work_end, duration_minutes
        )

    return AvailabilityResponse(
        seller_id=seller.id, date=date, slots=slots, is_default=is_default
    )


@router.put("/availability", response_model=AvailabilitySaved)
async def set_own_availability(
    availability: AvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
    settings: Settings = Depends(get_settings),
):
    """Replace the caller's slots for a day."""
    async with service_errors(db, "save availability"):
        seller = await SellerService(db).require_by_owner(identity)
        await AvailabilityService(db, settings).put(
            seller.id, availability.date, availability.slots
        )

    return AvailabilitySaved(
        seller_id=seller.id,
        date=availability.date,
        slot_count=len(availability.slots),
    )


@router.get("/availability/suggestion", response_model=AvailabilityResponse)
async def suggest_own_availability(
    date: date = Query(..., description="Seller-local calendar day"),
    work_start: Optional[str] = Query(None, pattern=r"^\d{2}:\d{2}$"),
    work_end: Optional[str] = Query(None, pattern=r"^\d{2}:\d{2}$"),
    duration_minutes: Optional[int] = Query(None, gt=0, le=24 * 60),
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
    calendar: CalendarProvider = Depends(get_calendar_provider),
    settings: Settings = Depends(get_settings),
):
    """Generate the day's slots opened wherever the caller's calendar is free.

    Nothing is saved; the seller reviews the suggestion and PUTs it.
    """
    async with service_errors(db, "suggest availability"):
        seller = await SellerService(db).require_by_owner(identity)
        user = await UserService(db).get_by_email(identity)
        slots = await AvailabilityService(db, settings).suggest_from_calendar(
            seller,
            date,
            calendar,
            CalendarCredential.from_user(user),
            work_start,
            work_end,
            duration_minutes,
        )

    return AvailabilityResponse(
        seller_id=seller.id,
        date=date,
        slots=slots,
        is_default=user is None or not user.has_calendar,
    )
