import enum
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
)

from scheduler_app.core.database import Base, UTCDateTime, utcnow


class AppointmentStatus(enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Appointment(Base):
    """A buyer's reservation of a seller's time."""

    __tablename__ = "appointments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id = Column(Uuid, ForeignKey("sellers.id"), nullable=False)
    buyer_id = Column(String(255), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)

    status = Column(
        String(20), nullable=False, default=AppointmentStatus.SCHEDULED.value, index=True
    )

    # External calendar mirror
    external_event_id = Column(String(1024), nullable=True)
    meeting_link = Column(String(500), nullable=True)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_end_after_start"),
        Index("idx_appointments_seller_time", "seller_id", "start_time", "end_time"),
    )

    def can_transition_to(self, new_status: AppointmentStatus) -> bool:
        """Check if appointment can transition to the new status."""
        allowed_transitions = {
            AppointmentStatus.SCHEDULED: [
                AppointmentStatus.COMPLETED,
                AppointmentStatus.CANCELLED,
            ],
            AppointmentStatus.COMPLETED: [],  # Final state
            AppointmentStatus.CANCELLED: [],  # Final state
        }
        return new_status in allowed_transitions.get(AppointmentStatus(self.status), [])

    @property
    def calendar_correlation_id(self) -> str:
        """Deterministic id used for external events created for this appointment.

        Hex digits are valid in Google's base32hex event-id alphabet.
        """
        return f"appt{self.id.hex}"

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, status='{self.status}', "
            f"start='{self.start_time}', seller_id={self.seller_id}, "
            f"buyer_id='{self.buyer_id}')>"
        )
