from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

# Import enums from the model to avoid duplication
from scheduler_app.models.appointment import AppointmentStatus
from scheduler_app.utils.validation import ensure_aware


class AppointmentCreate(BaseModel):
    seller_id: UUID
    start_time: datetime
    end_time: datetime
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return ensure_aware(v)


class Appointment(BaseModel):
    id: UUID
    seller_id: UUID
    buyer_id: str
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    external_event_id: Optional[str] = None
    meeting_link: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AppointmentList(BaseModel):
    appointments: List[Appointment]
    total_count: int


class CalendarEventDetails(BaseModel):
    """Provider-neutral description of an event to mirror externally."""

    event_id: str
    summary: str
    description: Optional[str] = None
    start: datetime
    end: datetime
    timezone: str = "UTC"
    attendees: List[str] = Field(default_factory=list)
    conference_request_id: Optional[str] = None


class CalendarEventResult(BaseModel):
    event_id: str
    meeting_link: Optional[str] = None
