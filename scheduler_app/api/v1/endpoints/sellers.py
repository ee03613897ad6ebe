from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler_app.api.deps.clients import get_settings
from scheduler_app.api.deps.database import get_db
from scheduler_app.api.deps.errors import service_errors
from scheduler_app.core.config import Settings
from scheduler_app.schemas.availability import AvailabilityResponse
from scheduler_app.schemas.seller import Seller
from scheduler_app.services.availability import AvailabilityService
from scheduler_app.services.seller import SellerService

router = APIRouter()


@router.get("/", response_model=List[Seller])
async def list_sellers(db: AsyncSession = Depends(get_db)):
    """List all sellers."""
    async with service_errors(db, "fetch sellers"):
        sellers = await SellerService(db).list_sellers()

    return sellers


@router.get("/{seller_id}", response_model=Seller)
async def get_seller(seller_id: str, db: AsyncSession = Depends(get_db)):
    """Get a seller profile."""
    async with service_errors(db, "fetch seller"):
        seller = await SellerService(db).require_seller(seller_id)

    return seller


@router.get("/{seller_id}/availability", response_model=AvailabilityResponse)
async def get_seller_availability(
    seller_id: str,
    date: date = Query(..., description="Seller-local calendar day"),
    work_start: Optional[str] = Query(None, pattern=r"^\d{2}:\d{2}$"),
    work_end: Optional[str] = Query(None, pattern=r"^\d{2}:\d{2}$"),
    duration_minutes: Optional[int] = Query(None, gt=0, le=24 * 60),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Get a seller's slots for a day; unsaved days come back all busy."""
    async with service_errors(db, "fetch availability"):
        seller = await SellerService(db).require_seller(seller_id)
        slots, is_default = await AvailabilityService(db, settings).get_or_default(
            seller, date, work_start, work_end, duration_minutes
        )

    return AvailabilityResponse(
        seller_id=seller.id, date=date, slots=slots, is_default=is_default
    )
