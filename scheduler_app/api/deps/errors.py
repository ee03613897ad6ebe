from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import HTTPException, status
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler_app.core.exceptions import (
    InternalError,
    SchedulerError,
    UpstreamUnavailable,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def service_errors(db: AsyncSession, action: str) -> AsyncIterator[None]:
    """Translate service failures raised inside the block into HTTP errors.

    Store connectivity errors become 503, anything unexpected becomes 500
    after rolling back the session.
    """
    try:
        yield
    except HTTPException:
        raise
    except SchedulerError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except (OperationalError, InterfaceError) as e:
        await db.rollback()
        logger.error("Store unavailable", action=action, exc_info=e)
        error = UpstreamUnavailable("Data store unavailable")
        raise HTTPException(status_code=error.status_code, detail=str(error))
    except Exception as e:
        await db.rollback()
        logger.error("Unexpected error", action=action, exc_info=e)
        error = InternalError(f"Failed to {action}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error)
        )
