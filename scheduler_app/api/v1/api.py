from fastapi import APIRouter

from scheduler_app.api.v1.endpoints import (
    appointments,
    seller,
    sellers,
    users,
)

api_router = APIRouter()

# Appointment booking endpoints
api_router.include_router(
    appointments.router, prefix="/appointments", tags=["appointments"]
)

# Public seller directory and availability
api_router.include_router(sellers.router, prefix="/sellers", tags=["sellers"])

# Caller's own seller profile and availability
api_router.include_router(seller.router, prefix="/seller", tags=["seller"])

# Caller's identity record and calendar link
api_router.include_router(users.router, prefix="/users", tags=["users"])
