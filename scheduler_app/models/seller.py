import uuid

from sqlalchemy import Column, String, Text, Uuid

from scheduler_app.core.database import Base, UTCDateTime, utcnow


class Seller(Base):
    """Seller profile; at most one per owning identity."""

    __tablename__ = "sellers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_identity = Column(String(255), unique=True, nullable=False, index=True)
    business_name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    timezone = Column(String(50), nullable=False, default="UTC")

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def display_name(self) -> str:
        return self.business_name or self.owner_identity

    def __repr__(self):
        return f"<Seller(id={self.id}, owner='{self.owner_identity}')>"
