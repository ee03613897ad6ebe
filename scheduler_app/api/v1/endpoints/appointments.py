from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler_app.api.deps.auth import get_current_identity
from scheduler_app.api.deps.clients import (
    get_calendar_provider,
    get_redis,
    get_settings,
)
from scheduler_app.api.deps.database import get_db
from scheduler_app.api.deps.errors import service_errors
from scheduler_app.core.config import Settings
from scheduler_app.core.redis import RedisClient
from scheduler_app.schemas.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentList,
)
from scheduler_app.services.appointment import AppointmentService
from scheduler_app.services.calendar import CalendarProvider

router = APIRouter()


def get_appointment_service(
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis),
    calendar: CalendarProvider = Depends(get_calendar_provider),
    settings: Settings = Depends(get_settings),
) -> AppointmentService:
    return AppointmentService(db, redis, calendar, settings)


@router.get("/", response_model=AppointmentList)
async def list_active_appointments(
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
    service: AppointmentService = Depends(get_appointment_service),
):
    """List the caller's appointments (as buyer or seller) that have not ended."""
    async with service_errors(db, "fetch appointments"):
        appointments = await service.list_active(identity)

    return AppointmentList(appointments=appointments, total_count=len(appointments))


@router.post("/", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book a seller's time for the caller."""
    async with service_errors(db, "create appointment"):
        appointment = await service.book(
            appointment_data.seller_id,
            identity,
            appointment_data.start_time,
            appointment_data.end_time,
            title=appointment_data.title,
            description=appointment_data.description,
        )

    return appointment


@router.get("/{appointment_id}", response_model=Appointment)
async def get_appointment(
    appointment_id: str,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Get one appointment the caller takes part in."""
    async with service_errors(db, "fetch appointment"):
        appointment = await service.get_for_identity(appointment_id, identity)

    return appointment


@router.post("/{appointment_id}/cancel", response_model=Appointment)
async def cancel_appointment(
    appointment_id: str,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Cancel an appointment the caller takes part in."""
    async with service_errors(db, "cancel appointment"):
        appointment = await service.cancel(appointment_id, identity)

    return appointment
