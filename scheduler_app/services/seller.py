from typing import Optional, Union
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler_app.core.exceptions import NotFound
from scheduler_app.models.seller import Seller
from scheduler_app.schemas.seller import SellerProfileUpdate
from scheduler_app.utils.validation import parse_record_id

logger = structlog.get_logger(__name__)


class SellerService:
    """Service layer for seller profiles."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_sellers(self) -> list[Seller]:
        result = await self.db.execute(select(Seller).order_by(Seller.created_at))
        return list(result.scalars().all())

    async def get_seller(self, seller_id: Union[str, UUID]) -> Optional[Seller]:
        seller_uuid = parse_record_id(seller_id, "Seller")
        result = await self.db.execute(select(Seller).where(Seller.id == seller_uuid))
        return result.scalar_one_or_none()

    async def require_seller(self, seller_id: Union[str, UUID]) -> Seller:
        seller = await self.get_seller(seller_id)
        if not seller:
            raise NotFound("Seller not found")
        return seller

    async def get_by_owner(self, owner_identity: str) -> Optional[Seller]:
        result = await self.db.execute(
            select(Seller).where(Seller.owner_identity == owner_identity)
        )
        return result.scalar_one_or_none()

    async def require_by_owner(self, owner_identity: str) -> Seller:
        seller = await self.get_by_owner(owner_identity)
        if not seller:
            raise NotFound("Seller profile not found")
        return seller

    async def upsert_profile(
        self, owner_identity: str, profile: SellerProfileUpdate
    ) -> Seller:
        """Create the caller's seller profile, or update it if it exists."""
        seller = await self.get_by_owner(owner_identity)

        if seller is None:
            seller = Seller(owner_identity=owner_identity, **profile.model_dump())
            self.db.add(seller)
            try:
                await self.db.commit()
            except IntegrityError:
                # Lost a race with a concurrent create for the same owner
                await self.db.rollback()
                seller = await self.require_by_owner(owner_identity)
                return await self._apply_profile(seller, profile)

            await self.db.refresh(seller)
            logger.info(
                "Seller profile created",
                seller_id=str(seller.id),
                owner_identity=owner_identity,
            )
            return seller

        return await self._apply_profile(seller, profile)

    async def _apply_profile(
        self, seller: Seller, profile: SellerProfileUpdate
    ) -> Seller:
        for field, value in profile.model_dump().items():
            setattr(seller, field, value)
        await self.db.commit()
        await self.db.refresh(seller)
        logger.info("Seller profile updated", seller_id=str(seller.id))
        return seller

    @staticmethod
    def seller_timezone(seller: Seller) -> ZoneInfo:
        return ZoneInfo(seller.timezone or "UTC")
