# Import all models to ensure they are registered with SQLAlchemy
from . import (
    appointment,
    availability,
    seller,
    user,
)

__all__ = [
    "appointment",
    "availability",
    "seller",
    "user",
]
