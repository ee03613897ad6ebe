from datetime import date as date_type, datetime, time, timezone
from typing import Optional, Sequence, Union
from uuid import UUID

import structlog
from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler_app.core.config import Settings, settings as default_settings
from scheduler_app.core.exceptions import UpstreamUnavailable
from scheduler_app.models.availability import Availability
from scheduler_app.models.seller import Seller
from scheduler_app.schemas.availability import TimeSlot
from scheduler_app.services.calendar import (
    CalendarCredential,
    CalendarError,
    CalendarProvider,
)
from scheduler_app.services.scheduling import (
    generate_slots,
    reconcile,
    validate_slot_sequence,
)
from scheduler_app.services.seller import SellerService
from scheduler_app.utils.validation import parse_record_id

logger = structlog.get_logger(__name__)


class AvailabilityService:
    """Per-seller, per-day slot storage with read-through generation."""

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings

    async def get(
        self, seller_id: Union[str, UUID], day: date_type
    ) -> Optional[list[TimeSlot]]:
        """Stored slots for the day, or None when the seller never saved any."""
        record = await self._get_record(parse_record_id(seller_id, "Seller"), day)
        if record is None:
            return None
        return [TimeSlot.model_validate(slot) for slot in record.slots]

    async def put(
        self, seller_id: Union[str, UUID], day: date_type, slots: Sequence[TimeSlot]
    ) -> None:
        """Replace the day's slots wholesale. Repeating a put is a no-op."""
        seller_uuid = parse_record_id(seller_id, "Seller")
        ordered = validate_slot_sequence(slots)
        payload = [slot.model_dump(mode="json") for slot in ordered]

        record = await self._get_record(seller_uuid, day)
        if record is None:
            self.db.add(Availability(seller_id=seller_uuid, date=day, slots=payload))
            try:
                await self.db.commit()
            except IntegrityError:
                # A concurrent put created the row first; overwrite it
                await self.db.rollback()
                record = await self._get_record(seller_uuid, day)
                record.slots = payload
                await self.db.commit()
        else:
            record.slots = payload
            await self.db.commit()

        logger.info(
            "Availability saved",
            seller_id=str(seller_uuid),
            date=day.isoformat(),
            slot_count=len(payload),
        )

    async def get_or_default(
        self,
        seller: Seller,
        day: date_type,
        work_start: Optional[str] = None,
        work_end: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ) -> tuple[list[TimeSlot], bool]:
        """Stored slots, falling back to the generator's all-busy day on a miss.

        Returns ``(slots, is_default)``.
        """
        slots = await self.get(seller.id, day)
        if slots is not None:
            return slots, False

        return (
            self.default_slots(seller, day, work_start, work_end, duration_minutes),
            True,
        )

    def default_slots(
        self,
        seller: Seller,
        day: date_type,
        work_start: Optional[str] = None,
        work_end: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ) -> list[TimeSlot]:
        return generate_slots(
            day,
            work_start or self.settings.DEFAULT_WORK_START,
            work_end or self.settings.DEFAULT_WORK_END,
            duration_minutes or self.settings.DEFAULT_SLOT_DURATION_MINUTES,
            tz=SellerService.seller_timezone(seller),
        )

    async def suggest_from_calendar(
        self,
        seller: Seller,
        day: date_type,
        calendar: CalendarProvider,
        credential: Optional[CalendarCredential],
        work_start: Optional[str] = None,
        work_end: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ) -> list[TimeSlot]:
        """Generate the day and open every slot the external calendar shows free."""
        slots = self.default_slots(seller, day, work_start, work_end, duration_minutes)
        if credential is None or not slots:
            return slots

        tz = SellerService.seller_timezone(seller)
        time_min = datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)
        time_max = datetime.combine(day, time.max, tzinfo=tz).astimezone(timezone.utc)

        try:
            busy = await calendar.get_free_busy(credential, time_min, time_max)
        except CalendarError as e:
            logger.error(
                "Failed to fetch free/busy data",
                seller_id=str(seller.id),
                date=day.isoformat(),
                exc_info=e,
            )
            raise UpstreamUnavailable("Calendar provider unavailable") from e

        logger.info(
            "Reconciling slots against calendar",
            seller_id=str(seller.id),
            date=day.isoformat(),
            busy_count=len(busy),
        )
        return reconcile(slots, busy)

    async def _get_record(
        self, seller_id: UUID, day: date_type
    ) -> Optional[Availability]:
        result = await self.db.execute(
            select(Availability).where(
                and_(Availability.seller_id == seller_id, Availability.date == day)
            )
        )
        return result.scalar_one_or_none()
