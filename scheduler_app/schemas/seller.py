from datetime import datetime
from typing import Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator


class SellerProfileUpdate(BaseModel):
    business_name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v


class Seller(BaseModel):
    id: UUID
    owner_identity: str
    business_name: Optional[str] = None
    description: Optional[str] = None
    timezone: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
