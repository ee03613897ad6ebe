import re
from datetime import datetime, time, timezone
from typing import Union
from uuid import UUID

from scheduler_app.core.exceptions import InvalidInterval, NotFound

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_record_id(value: Union[str, UUID], kind: str = "Record") -> UUID:
    """Parse a store record id.

    Ids are UUIDs and nothing else; anything unparsable cannot name an
    existing record, so it is reported as ``NotFound``.
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        raise NotFound(f"{kind} not found")


def parse_hhmm(value: Union[str, time]) -> time:
    """Parse an ``HH:MM`` wall-clock time."""
    if isinstance(value, time):
        return value
    match = HHMM_PATTERN.match(value or "")
    if not match:
        raise InvalidInterval(f"Invalid time of day: {value!r} (expected HH:MM)")
    return time(int(match.group(1)), int(match.group(2)))


def ensure_aware(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware values pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
