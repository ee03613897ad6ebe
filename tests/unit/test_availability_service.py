"""Test the per-seller, per-day availability store."""

from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import func, select

from scheduler_app.core.exceptions import InvalidInterval, NotFound, UpstreamUnavailable
from scheduler_app.models.availability import Availability
from scheduler_app.schemas.availability import BusyInterval, TimeSlot
from scheduler_app.services.calendar import CalendarCredential
from tests.fixtures.scheduler_fixtures import FUTURE_DAY, at


def opened_slots():
    return [
        TimeSlot(start=at(9), end=at(9, 30), available=True),
        TimeSlot(start=at(9, 30), end=at(10), available=False),
    ]


class TestAvailabilityStore:
    """Test get/put of saved slots."""

    @pytest.mark.asyncio
    async def test_get_miss_returns_none(self, availability_service, seller):
        assert await availability_service.get(seller.id, FUTURE_DAY) is None

    @pytest.mark.asyncio
    async def test_put_then_get(self, availability_service, seller):
        await availability_service.put(seller.id, FUTURE_DAY, opened_slots())

        slots = await availability_service.get(seller.id, FUTURE_DAY)

        assert [(s.start, s.end, s.available) for s in slots] == [
            (at(9), at(9, 30), True),
            (at(9, 30), at(10), False),
        ]

    @pytest.mark.asyncio
    async def test_repeated_put_is_idempotent(self, availability_service, seller, db):
        await availability_service.put(seller.id, FUTURE_DAY, opened_slots())
        first = await availability_service.get(seller.id, FUTURE_DAY)

        await availability_service.put(seller.id, FUTURE_DAY, opened_slots())
        second = await availability_service.get(seller.id, FUTURE_DAY)

        count = await db.scalar(select(func.count()).select_from(Availability))
        assert count == 1
        assert first == second

    @pytest.mark.asyncio
    async def test_put_replaces_day_wholesale(self, availability_service, seller):
        await availability_service.put(seller.id, FUTURE_DAY, opened_slots())
        replacement = [TimeSlot(start=at(13), end=at(14), available=True)]

        await availability_service.put(seller.id, FUTURE_DAY, replacement)

        slots = await availability_service.get(seller.id, FUTURE_DAY)
        assert [(s.start, s.end) for s in slots] == [(at(13), at(14))]

    @pytest.mark.asyncio
    async def test_put_stores_slots_sorted(self, availability_service, seller):
        await availability_service.put(
            seller.id, FUTURE_DAY, list(reversed(opened_slots()))
        )

        slots = await availability_service.get(seller.id, FUTURE_DAY)
        assert slots[0].start == at(9)

    @pytest.mark.asyncio
    async def test_put_rejects_overlapping_slots(self, availability_service, seller):
        with pytest.raises(InvalidInterval):
            await availability_service.put(
                seller.id,
                FUTURE_DAY,
                [
                    TimeSlot(start=at(9), end=at(10)),
                    TimeSlot(start=at(9, 30), end=at(10, 30)),
                ],
            )

    @pytest.mark.asyncio
    async def test_malformed_seller_id_is_not_found(self, availability_service):
        with pytest.raises(NotFound):
            await availability_service.get("not-a-uuid", FUTURE_DAY)

    @pytest.mark.asyncio
    async def test_days_are_independent(self, availability_service, seller):
        await availability_service.put(seller.id, FUTURE_DAY, opened_slots())
        other_seller = uuid4()

        assert await availability_service.get(other_seller, FUTURE_DAY) is None


class TestGetOrDefault:
    """Test read-through generation of unsaved days."""

    @pytest.mark.asyncio
    async def test_miss_returns_all_busy_default_day(
        self, availability_service, seller
    ):
        slots, is_default = await availability_service.get_or_default(
            seller, FUTURE_DAY
        )

        assert is_default is True
        assert len(slots) == 16
        assert slots[0].start == at(9)
        assert slots[-1].end == at(17)
        assert all(not s.available for s in slots)

    @pytest.mark.asyncio
    async def test_miss_with_custom_window(self, availability_service, seller):
        slots, _ = await availability_service.get_or_default(
            seller, FUTURE_DAY, "10:00", "12:00", 60
        )

        assert [(s.start, s.end) for s in slots] == [
            (at(10), at(11)),
            (at(11), at(12)),
        ]

    @pytest.mark.asyncio
    async def test_hit_returns_saved_slots(self, availability_service, seller):
        await availability_service.put(seller.id, FUTURE_DAY, opened_slots())

        slots, is_default = await availability_service.get_or_default(
            seller, FUTURE_DAY
        )

        assert is_default is False
        assert len(slots) == 2

    @pytest.mark.asyncio
    async def test_default_day_uses_seller_timezone(
        self, availability_service, ny_seller
    ):
        slots, _ = await availability_service.get_or_default(ny_seller, FUTURE_DAY)

        first_local = slots[0].start.astimezone(ZoneInfo("America/New_York"))
        assert (first_local.date(), first_local.hour, first_local.minute) == (
            FUTURE_DAY,
            9,
            0,
        )


class TestSuggestFromCalendar:
    """Test opening slots from the seller's external calendar."""

    @pytest.mark.asyncio
    async def test_without_credential_returns_default_day(
        self, availability_service, seller, calendar_provider
    ):
        slots = await availability_service.suggest_from_calendar(
            seller, FUTURE_DAY, calendar_provider, None
        )

        assert len(slots) == 16
        assert all(not s.available for s in slots)

    @pytest.mark.asyncio
    async def test_busy_intervals_close_overlapping_slots(
        self, availability_service, seller, calendar_provider
    ):
        calendar_provider.busy = [BusyInterval(start=at(9, 15), end=at(9, 45))]

        slots = await availability_service.suggest_from_calendar(
            seller,
            FUTURE_DAY,
            calendar_provider,
            CalendarCredential(access_token="seller-token"),
            "09:00",
            "10:30",
            30,
        )

        assert [s.available for s in slots] == [False, False, True]

    @pytest.mark.asyncio
    async def test_suggestion_is_not_saved(
        self, availability_service, seller, calendar_provider
    ):
        await availability_service.suggest_from_calendar(
            seller,
            FUTURE_DAY,
            calendar_provider,
            CalendarCredential(access_token="seller-token"),
        )

        assert await availability_service.get(seller.id, FUTURE_DAY) is None

    @pytest.mark.asyncio
    async def test_calendar_failure_is_upstream_unavailable(
        self, availability_service, seller, calendar_provider
    ):
        calendar_provider.fail_free_busy = True

        with pytest.raises(UpstreamUnavailable):
            await availability_service.suggest_from_calendar(
                seller,
                FUTURE_DAY,
                calendar_provider,
                CalendarCredential(access_token="seller-token"),
            )
