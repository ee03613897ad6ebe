import uuid

from sqlalchemy import Column, String, Text, Uuid

from scheduler_app.core.database import Base, UTCDateTime, utcnow


class User(Base):
    """A verified identity and its linked external-calendar credentials."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)

    # Google Calendar OAuth tokens
    calendar_access_token = Column(Text, nullable=True)
    calendar_refresh_token = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def has_calendar(self) -> bool:
        return bool(self.calendar_access_token)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
