"""Slot generation and busy-interval reconciliation.

All intervals are half-open: ``[start, end)``.
"""

from datetime import date as date_type, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Optional, Sequence, Union

import structlog

from scheduler_app.core.exceptions import InvalidInterval
from scheduler_app.schemas.availability import BusyInterval, TimeSlot
from scheduler_app.utils.validation import parse_hhmm

logger = structlog.get_logger(__name__)


def overlaps(
    start: datetime, end: datetime, other_start: datetime, other_end: datetime
) -> bool:
    """True if ``[start, end)`` and ``[other_start, other_end)`` intersect.

    Touching endpoints do not count.
    """
    return start < other_end and end > other_start


def _fixed_offset(moment: datetime, tz: tzinfo) -> datetime:
    # Datetimes sharing a tzinfo compare by wall clock, even in a repeated hour
    local = moment.astimezone(tz)
    return local.replace(tzinfo=timezone(local.utcoffset()))


def generate_slots(
    day: date_type,
    work_start: Union[str, time] = "09:00",
    work_end: Union[str, time] = "17:00",
    duration_minutes: int = 30,
    tz: Optional[tzinfo] = None,
) -> list[TimeSlot]:
    """Produce the canonical slots for ``day``, all marked unavailable.

    Slots are contiguous and cover ``[work_start, work_end)`` in ``tz``. A
    trailing partial slot that would run past ``work_end`` is dropped.
    """
    if duration_minutes <= 0:
        raise InvalidInterval("Slot duration must be positive")

    tz = tz or timezone.utc
    window_start = datetime.combine(day, parse_hhmm(work_start), tzinfo=tz)
    window_end = datetime.combine(day, parse_hhmm(work_end), tzinfo=tz)
    if window_start >= window_end:
        raise InvalidInterval("Working window start must be before its end")

    # Step in UTC so slots keep a fixed length across DST changes
    slot_duration = timedelta(minutes=duration_minutes)
    current = window_start.astimezone(timezone.utc)
    end_utc = window_end.astimezone(timezone.utc)
    slots = []

    while current + slot_duration <= end_utc:
        slots.append(
            TimeSlot(
                start=_fixed_offset(current, tz),
                end=_fixed_offset(current + slot_duration, tz),
                available=False,
            )
        )
        current += slot_duration

    logger.debug(
        "Generated slots",
        day=day.isoformat(),
        slot_count=len(slots),
        duration_minutes=duration_minutes,
    )
    return slots


def reconcile(
    slots: Sequence[TimeSlot], busy_intervals: Iterable[BusyInterval]
) -> list[TimeSlot]:
    """Mark each slot available unless it overlaps a busy interval."""
    busy = list(busy_intervals)
    return [
        slot.model_copy(
            update={
                "available": not any(
                    overlaps(slot.start, slot.end, b.start, b.end) for b in busy
                )
            }
        )
        for slot in slots
    ]


def interval_is_open(
    slots: Sequence[TimeSlot], start: datetime, end: datetime
) -> bool:
    """True if ``[start, end)`` is fully covered by available slots.

    Every slot touching the interval must be available and together they
    must leave no gap between ``start`` and ``end``.
    """
    touching = sorted(
        (slot for slot in slots if overlaps(slot.start, slot.end, start, end)),
        key=lambda slot: slot.start,
    )
    if not touching or any(not slot.available for slot in touching):
        return False

    covered_until = start
    for slot in touching:
        if slot.start > covered_until:
            return False
        covered_until = max(covered_until, slot.end)
    return covered_until >= end


def validate_slot_sequence(slots: Sequence[TimeSlot]) -> list[TimeSlot]:
    """Return ``slots`` sorted by start, rejecting overlapping entries."""
    ordered = sorted(slots, key=lambda slot: slot.start)
    for previous, current in zip(ordered, ordered[1:]):
        if overlaps(previous.start, previous.end, current.start, current.end):
            raise InvalidInterval(
                f"Slots overlap: {previous.start.isoformat()} and "
                f"{current.start.isoformat()}"
            )
    return ordered
