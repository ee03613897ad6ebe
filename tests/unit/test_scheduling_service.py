"""Test slot generation and busy-interval reconciliation."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from scheduler_app.core.exceptions import InvalidInterval
from scheduler_app.schemas.availability import BusyInterval, TimeSlot
from scheduler_app.services.scheduling import (
    generate_slots,
    interval_is_open,
    overlaps,
    reconcile,
    validate_slot_sequence,
)

DAY = date(2025, 1, 15)


def utc(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


class TestGenerateSlots:
    """Test canonical slot generation."""

    def test_one_hour_window_gives_two_half_hour_slots(self):
        slots = generate_slots(DAY, "09:00", "10:00", 30)

        assert [(s.start, s.end) for s in slots] == [
            (utc(9), utc(9, 30)),
            (utc(9, 30), utc(10)),
        ]
        assert all(not s.available for s in slots)

    def test_trailing_partial_slot_is_dropped(self):
        slots = generate_slots(DAY, "09:00", "10:00", 45)

        assert len(slots) == 1
        assert slots[0].start == utc(9)
        assert slots[0].end == utc(9, 45)

    def test_slots_are_contiguous(self):
        slots = generate_slots(DAY, "09:00", "17:00", 30)

        assert len(slots) == 16
        assert slots[0].start == utc(9)
        assert slots[-1].end == utc(17)
        for previous, current in zip(slots, slots[1:]):
            assert previous.end == current.start

    def test_window_shorter_than_duration_gives_no_slots(self):
        assert generate_slots(DAY, "09:00", "09:20", 30) == []

    def test_slots_in_seller_timezone(self):
        tz = ZoneInfo("America/New_York")
        slots = generate_slots(DAY, "09:00", "10:00", 30, tz=tz)

        assert slots[0].start.hour == 9
        assert slots[0].start.utcoffset() == timedelta(hours=-5)
        assert slots[0].start == utc(14)

    def test_slots_keep_real_length_across_dst_start(self):
        # 2024-03-10 02:00 does not exist in New York
        tz = ZoneInfo("America/New_York")
        slots = generate_slots(date(2024, 3, 10), "01:00", "04:00", 60, tz=tz)

        assert len(slots) == 2
        for slot in slots:
            assert slot.end - slot.start == timedelta(hours=1)
        assert slots[0].start.utcoffset() == timedelta(hours=-5)
        assert slots[-1].end.utcoffset() == timedelta(hours=-4)

    def test_non_positive_duration_rejected(self):
        with pytest.raises(InvalidInterval):
            generate_slots(DAY, "09:00", "10:00", 0)

    def test_start_not_before_end_rejected(self):
        with pytest.raises(InvalidInterval):
            generate_slots(DAY, "10:00", "10:00", 30)

    def test_malformed_time_rejected(self):
        with pytest.raises(InvalidInterval):
            generate_slots(DAY, "9am", "10:00", 30)


class TestReconcile:
    """Test marking slots against busy intervals."""

    def test_overlapping_slots_become_unavailable(self):
        slots = generate_slots(DAY, "09:00", "10:30", 30)
        busy = [BusyInterval(start=utc(9, 15), end=utc(9, 45))]

        result = reconcile(slots, busy)

        assert [s.available for s in result] == [False, False, True]

    def test_touching_busy_interval_does_not_block(self):
        slots = generate_slots(DAY, "09:00", "10:00", 30)
        busy = [BusyInterval(start=utc(8), end=utc(9))]

        result = reconcile(slots, busy)

        assert all(s.available for s in result)

    def test_input_slots_are_not_mutated(self):
        slots = generate_slots(DAY, "09:00", "10:00", 30)

        reconcile(slots, [])

        assert all(not s.available for s in slots)

    def test_busy_interval_in_other_timezone(self):
        tz = ZoneInfo("America/New_York")
        slots = generate_slots(DAY, "09:00", "10:00", 30, tz=tz)
        # 09:30-10:00 New York time
        busy = [BusyInterval(start=utc(14, 30), end=utc(15))]

        result = reconcile(slots, busy)

        assert [s.available for s in result] == [True, False]


class TestOverlaps:
    def test_half_open_boundaries(self):
        assert not overlaps(utc(9), utc(10), utc(10), utc(11))
        assert not overlaps(utc(10), utc(11), utc(9), utc(10))

    def test_symmetric(self):
        pairs = [
            (utc(9), utc(10), utc(9, 30), utc(10, 30)),
            (utc(9), utc(10), utc(10), utc(11)),
            (utc(9), utc(12), utc(10), utc(11)),
        ]
        for a_start, a_end, b_start, b_end in pairs:
            assert overlaps(a_start, a_end, b_start, b_end) == overlaps(
                b_start, b_end, a_start, a_end
            )

    def test_partial_and_contained_overlap(self):
        assert overlaps(utc(9), utc(10), utc(9, 59), utc(11))
        assert overlaps(utc(9), utc(12), utc(10), utc(11))
        assert overlaps(utc(10), utc(11), utc(9), utc(12))


class TestIntervalIsOpen:
    def _slots(self, *flags):
        slots = generate_slots(DAY, "09:00", "11:00", 30)
        return [s.model_copy(update={"available": f}) for s, f in zip(slots, flags)]

    def test_interval_inside_available_slot(self):
        slots = self._slots(True, False, False, False)
        assert interval_is_open(slots, utc(9), utc(9, 30))
        assert interval_is_open(slots, utc(9, 10), utc(9, 20))

    def test_interval_spanning_available_slots(self):
        slots = self._slots(True, True, False, False)
        assert interval_is_open(slots, utc(9), utc(10))

    def test_interval_touching_busy_slot(self):
        slots = self._slots(True, False, False, False)
        assert not interval_is_open(slots, utc(9), utc(10))

    def test_interval_outside_slots(self):
        slots = self._slots(True, True, True, True)
        assert not interval_is_open(slots, utc(10, 30), utc(11, 30))
        assert not interval_is_open(slots, utc(12), utc(12, 30))

    def test_gap_between_slots(self):
        slots = [
            TimeSlot(start=utc(9), end=utc(9, 30), available=True),
            TimeSlot(start=utc(10), end=utc(10, 30), available=True),
        ]
        assert not interval_is_open(slots, utc(9), utc(10, 30))


class TestValidateSlotSequence:
    def test_sorts_slots(self):
        later = TimeSlot(start=utc(10), end=utc(10, 30))
        earlier = TimeSlot(start=utc(9), end=utc(9, 30))

        assert validate_slot_sequence([later, earlier]) == [earlier, later]

    def test_overlapping_slots_rejected(self):
        with pytest.raises(InvalidInterval):
            validate_slot_sequence(
                [
                    TimeSlot(start=utc(9), end=utc(10)),
                    TimeSlot(start=utc(9, 30), end=utc(10, 30)),
                ]
            )

    def test_slot_with_start_after_end_rejected(self):
        with pytest.raises(ValueError):
            TimeSlot(start=utc(10), end=utc(9))
