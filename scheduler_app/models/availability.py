import uuid

from sqlalchemy import JSON, Column, Date, ForeignKey, UniqueConstraint, Uuid

from scheduler_app.core.database import Base, UTCDateTime, utcnow


class Availability(Base):
    """One seller's slots for one calendar day.

    ``slots`` holds ``[{"start": iso, "end": iso, "available": bool}, ...]``
    and is always replaced wholesale.
    """

    __tablename__ = "availability"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id = Column(Uuid, ForeignKey("sellers.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    slots = Column(JSON, nullable=False, default=list)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("seller_id", "date", name="uq_availability_seller_date"),
    )
