import asyncio
from datetime import date, datetime, time, timedelta
from typing import Optional, Union
from uuid import UUID

import structlog
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from scheduler_app.core.config import Settings, settings as default_settings
from scheduler_app.core.database import utcnow
from scheduler_app.core.exceptions import (
    InvalidInterval,
    InvalidStatus,
    NotFound,
    SlotConflict,
    SlotUnavailable,
)
from scheduler_app.core.redis import RedisClient
from scheduler_app.models.appointment import Appointment, AppointmentStatus
from scheduler_app.models.seller import Seller
from scheduler_app.schemas.appointment import CalendarEventDetails, CalendarEventResult
from scheduler_app.services.availability import AvailabilityService
from scheduler_app.services.calendar import CalendarCredential, CalendarProvider
from scheduler_app.services.scheduling import interval_is_open
from scheduler_app.services.seller import SellerService
from scheduler_app.services.user import UserService
from scheduler_app.utils.validation import ensure_aware, parse_record_id

logger = structlog.get_logger(__name__)


class AppointmentService:
    """Booking resolver: conflict checks, appointment writes and calendar mirroring."""

    def __init__(
        self,
        db: AsyncSession,
        redis: RedisClient,
        calendar: Optional[CalendarProvider] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.redis = redis
        self.calendar = calendar
        self.settings = settings or default_settings
        self.seller_service = SellerService(db)
        self.user_service = UserService(db)
        self.availability_service = AvailabilityService(db, self.settings)

    async def book(
        self,
        seller_id: Union[str, UUID],
        buyer_identity: str,
        start_time: datetime,
        end_time: datetime,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Appointment:
        """Create an appointment for ``buyer_identity`` with a seller.

        The conflict check and the insert run under a per-seller lock so two
        overlapping requests cannot both pass the check. Calendar mirroring
        runs after the lock is released and never fails the booking.
        """
        start_time = ensure_aware(start_time)
        end_time = ensure_aware(end_time)
        if start_time >= end_time:
            raise InvalidInterval()

        seller = await self.seller_service.require_seller(seller_id)

        lock_key = RedisClient.seller_lock_key(seller.id)
        async with self.redis.lock(
            lock_key,
            ttl_seconds=self.settings.BOOKING_LOCK_TTL_SECONDS,
            blocking_timeout=self.settings.BOOKING_LOCK_BLOCKING_TIMEOUT_SECONDS,
        ):
            conflicts = await self.find_conflicts(seller.id, start_time, end_time)
            if conflicts:
                logger.info(
                    "Booking rejected: overlapping appointment",
                    seller_id=str(seller.id),
                    conflicting_ids=[str(apt.id) for apt in conflicts],
                )
                raise SlotConflict()

            await self._check_availability(seller, start_time, end_time)

            appointment = Appointment(
                seller_id=seller.id,
                buyer_id=buyer_identity,
                title=title or f"Appointment with {seller.display_name}",
                description=description,
                start_time=start_time,
                end_time=end_time,
                status=AppointmentStatus.SCHEDULED.value,
            )
            self.db.add(appointment)
            await self.db.commit()
            await self.db.refresh(appointment)

        logger.info(
            "Appointment created",
            appointment_id=str(appointment.id),
            seller_id=str(seller.id),
            buyer_id=buyer_identity,
            start_time=appointment.start_time.isoformat(),
        )

        await self.sync_calendars(appointment, seller)
        return appointment

    async def find_conflicts(
        self, seller_id: UUID, start_time: datetime, end_time: datetime
    ) -> list[Appointment]:
        """Non-cancelled appointments of the seller overlapping ``[start, end)``."""
        query = select(Appointment).where(
            and_(
                Appointment.seller_id == seller_id,
                Appointment.status != AppointmentStatus.CANCELLED.value,
                Appointment.start_time < end_time,
                Appointment.end_time > start_time,
            )
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_active(
        self, identity: str, now: Optional[datetime] = None
    ) -> list[Appointment]:
        """Appointments the caller takes part in that have not ended yet.

        The caller matches as buyer or as owner of the seller. Cancelled
        appointments are included unless ACTIVE_LISTING_INCLUDES_CANCELLED
        is off.
        """
        now = ensure_aware(now) if now else utcnow()
        owned_sellers = select(Seller.id).where(Seller.owner_identity == identity)

        query = select(Appointment).where(
            and_(
                or_(
                    Appointment.buyer_id == identity,
                    Appointment.seller_id.in_(owned_sellers),
                ),
                Appointment.end_time > now,
            )
        )
        if not self.settings.ACTIVE_LISTING_INCLUDES_CANCELLED:
            query = query.where(
                Appointment.status != AppointmentStatus.CANCELLED.value
            )

        query = query.order_by(Appointment.start_time.asc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_for_identity(
        self, appointment_id: Union[str, UUID], identity: str
    ) -> Appointment:
        """Load an appointment readable by ``identity`` (buyer or seller owner)."""
        appointment_uuid = parse_record_id(appointment_id, "Appointment")
        result = await self.db.execute(
            select(Appointment).where(Appointment.id == appointment_uuid)
        )
        appointment = result.scalar_one_or_none()
        if appointment is None:
            raise NotFound("Appointment not found")

        if appointment.buyer_id == identity:
            return appointment

        seller = await self.seller_service.get_seller(appointment.seller_id)
        if seller is None or seller.owner_identity != identity:
            # Do not reveal appointments of other parties
            raise NotFound("Appointment not found")
        return appointment

    async def cancel(
        self, appointment_id: Union[str, UUID], identity: str
    ) -> Appointment:
        """Cancel an appointment on behalf of its buyer or seller owner."""
        appointment = await self.get_for_identity(appointment_id, identity)

        if not appointment.can_transition_to(AppointmentStatus.CANCELLED):
            raise InvalidStatus(
                f"Cannot cancel an appointment with status {appointment.status}"
            )

        appointment.status = AppointmentStatus.CANCELLED.value
        await self.db.commit()
        await self.db.refresh(appointment)

        logger.info(
            "Appointment cancelled",
            appointment_id=str(appointment.id),
            cancelled_by=identity,
        )

        await self._remove_calendar_event(appointment)
        return appointment

    async def sync_calendars(
        self, appointment: Appointment, seller: Seller
    ) -> Optional[CalendarEventResult]:
        """Mirror a committed appointment into both parties' calendars.

        Best effort: every failure is logged and swallowed, and the appointment
        stands as committed.
        """
        if self.calendar is None:
            return None

        try:
            seller_user = await self.user_service.get_by_email(seller.owner_identity)
            buyer_user = await self.user_service.get_by_email(appointment.buyer_id)
        except SQLAlchemyError as e:
            await self._discard_failed_transaction(appointment)
            logger.error(
                "Failed to load calendar credentials",
                appointment_id=str(appointment.id),
                exc_info=e,
            )
            return None

        seller_credential = CalendarCredential.from_user(seller_user)
        buyer_credential = CalendarCredential.from_user(buyer_user)
        if not (seller_credential and buyer_credential):
            logger.info(
                "Skipping calendar integration - credentials not linked",
                appointment_id=str(appointment.id),
                seller_linked=seller_credential is not None,
                buyer_linked=buyer_credential is not None,
            )
            return None

        try:
            result = await asyncio.wait_for(
                self._create_calendar_events(
                    appointment, seller, seller_credential, buyer_credential
                ),
                timeout=self.settings.CALENDAR_SYNC_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Calendar sync timed out",
                appointment_id=str(appointment.id),
                timeout_seconds=self.settings.CALENDAR_SYNC_TIMEOUT_SECONDS,
            )
            return None
        except Exception as e:
            logger.error(
                "Error creating calendar events",
                appointment_id=str(appointment.id),
                exc_info=e,
            )
            return None

        updated_at = utcnow()
        try:
            await self.db.execute(
                update(Appointment)
                .where(Appointment.id == appointment.id)
                .values(
                    external_event_id=result.event_id,
                    meeting_link=result.meeting_link,
                    updated_at=updated_at,
                )
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._discard_failed_transaction(appointment)
            logger.error(
                "Failed to record calendar event on appointment",
                appointment_id=str(appointment.id),
                exc_info=e,
            )
            return None

        set_committed_value(appointment, "external_event_id", result.event_id)
        set_committed_value(appointment, "meeting_link", result.meeting_link)
        set_committed_value(appointment, "updated_at", updated_at)

        logger.info(
            "Calendar events created",
            appointment_id=str(appointment.id),
            external_event_id=result.event_id,
        )
        return result

    async def _create_calendar_events(
        self,
        appointment: Appointment,
        seller: Seller,
        seller_credential: CalendarCredential,
        buyer_credential: CalendarCredential,
    ) -> CalendarEventResult:
        """Create the seller's and the buyer's event; returns the seller's."""
        attendees = [appointment.buyer_id, seller.owner_identity]
        common = dict(
            event_id=appointment.calendar_correlation_id,
            summary=appointment.title,
            start=appointment.start_time,
            end=appointment.end_time,
            timezone=seller.timezone,
            attendees=attendees,
            conference_request_id=f"meet-{appointment.id}",
        )
        seller_event = CalendarEventDetails(
            description=appointment.description
            or f"Appointment with {appointment.buyer_id}",
            **common,
        )
        buyer_event = CalendarEventDetails(
            description=appointment.description
            or f"Appointment with {seller.display_name}",
            **common,
        )

        seller_result, buyer_result = await asyncio.gather(
            self.calendar.create_event(seller_credential, seller_event),
            self.calendar.create_event(buyer_credential, buyer_event),
            return_exceptions=True,
        )
        if isinstance(buyer_result, BaseException):
            logger.warning(
                "Failed to create buyer calendar event",
                appointment_id=str(appointment.id),
                error=str(buyer_result),
            )
        if isinstance(seller_result, BaseException):
            raise seller_result
        return seller_result

    async def _remove_calendar_event(self, appointment: Appointment) -> None:
        """Best-effort removal of the seller's mirrored event."""
        if self.calendar is None or not appointment.external_event_id:
            return

        try:
            seller = await self.seller_service.get_seller(appointment.seller_id)
            seller_user = (
                await self.user_service.get_by_email(seller.owner_identity)
                if seller
                else None
            )
        except SQLAlchemyError as e:
            await self._discard_failed_transaction(appointment)
            logger.error(
                "Failed to load calendar credentials",
                appointment_id=str(appointment.id),
                exc_info=e,
            )
            return

        credential = CalendarCredential.from_user(seller_user)
        if credential is None:
            return

        try:
            await asyncio.wait_for(
                self.calendar.delete_event(credential, appointment.external_event_id),
                timeout=self.settings.CALENDAR_SYNC_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Calendar event removal timed out", appointment_id=str(appointment.id)
            )
        except Exception as e:
            logger.error(
                "Error removing calendar event",
                appointment_id=str(appointment.id),
                exc_info=e,
            )

    async def _check_availability(
        self, seller: Seller, start_time: datetime, end_time: datetime
    ) -> None:
        """Reject intervals the seller has not opened.

        Each seller-local day the interval touches is gated on its own slots.
        """
        tz = SellerService.seller_timezone(seller)
        day = start_time.astimezone(tz).date()
        last_day = (end_time - timedelta(microseconds=1)).astimezone(tz).date()

        while day <= last_day:
            day_start = datetime.combine(day, time.min, tzinfo=tz)
            day_end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
            await self._check_day_availability(
                seller, day, max(start_time, day_start), min(end_time, day_end)
            )
            day += timedelta(days=1)

    async def _check_day_availability(
        self, seller: Seller, day: date, start_time: datetime, end_time: datetime
    ) -> None:
        slots = await self.availability_service.get(seller.id, day)

        if slots is None:
            if not self.settings.BOOKING_REQUIRES_OPENED_SLOTS:
                return
            slots = self.availability_service.default_slots(seller, day)

        if not interval_is_open(slots, start_time, end_time):
            logger.info(
                "Booking rejected: slot not open",
                seller_id=str(seller.id),
                date=day.isoformat(),
            )
            raise SlotUnavailable()

    async def _discard_failed_transaction(self, appointment: Appointment) -> None:
        # Detach first so the rollback does not expire the committed appointment
        if appointment in self.db:
            self.db.expunge(appointment)
        await self.db.rollback()
