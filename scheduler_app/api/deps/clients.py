from fastapi import Request

from scheduler_app.core.config import Settings, settings
from scheduler_app.core.redis import RedisClient
from scheduler_app.services.calendar import CalendarProvider


def get_settings() -> Settings:
    return settings


def get_redis(request: Request) -> RedisClient:
    return request.app.state.redis


def get_calendar_provider(request: Request) -> CalendarProvider:
    return request.app.state.calendar_provider
