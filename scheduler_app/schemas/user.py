from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CalendarCredentialsUpdate(BaseModel):
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    name: Optional[str] = Field(None, max_length=255)


class User(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    has_calendar: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
