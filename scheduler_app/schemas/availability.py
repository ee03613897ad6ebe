from datetime import date, datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator

from scheduler_app.utils.validation import ensure_aware


class TimeSlot(BaseModel):
    start: datetime
    end: datetime
    available: bool = False

    @field_validator("start", "end")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @model_validator(mode="after")
    def validate_interval(self):
        if self.start >= self.end:
            raise ValueError("Slot start must be before slot end")
        return self


class BusyInterval(BaseModel):
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return ensure_aware(v)


class AvailabilityUpdate(BaseModel):
    date: date
    slots: List[TimeSlot]


class AvailabilityResponse(BaseModel):
    seller_id: UUID
    date: date
    slots: List[TimeSlot]
    is_default: bool = False


class AvailabilitySaved(BaseModel):
    message: str = "Availability saved successfully"
    seller_id: UUID
    date: date
    slot_count: int
