from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scheduler_app.api.v1.api import api_router
from scheduler_app.core.config import settings
from scheduler_app.core.database import DatabaseClient
from scheduler_app.core.logging import configure_logging
from scheduler_app.core.redis import RedisClient
from scheduler_app.services.calendar import GoogleCalendarProvider

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Construct the process-wide clients at startup and close them at shutdown."""
    configure_logging()

    database = DatabaseClient(settings.DATABASE_URL, echo=settings.DEBUG)
    await database.init(create_tables=settings.DATABASE_CREATE_TABLES)

    redis_client = RedisClient(settings.REDIS_URL)
    try:
        await redis_client.init_redis()
    except Exception:
        await database.close()
        raise

    app.state.database = database
    app.state.redis = redis_client
    app.state.calendar_provider = GoogleCalendarProvider(settings)

    logger.info(
        "Application started",
        environment=settings.ENVIRONMENT,
        version=settings.VERSION,
    )
    try:
        yield
    finally:
        await redis_client.close()
        await database.close()
        logger.info("Application stopped")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "healthy", "version": settings.VERSION}
