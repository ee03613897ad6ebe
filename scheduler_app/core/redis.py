from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as redis
import structlog
from redis.asyncio.lock import Lock
from redis.exceptions import LockError, RedisError

from scheduler_app.core.exceptions import UpstreamUnavailable

logger = structlog.get_logger(__name__)


class RedisClient:
    """Redis client used for per-seller booking locks."""

    LOCK_POLL_INTERVAL_SECONDS = 0.05

    def __init__(
        self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None
    ):
        self.redis_url = redis_url
        self.redis_pool = None
        self.client = client

    async def init_redis(self) -> None:
        """Initialize Redis connection pool."""
        try:
            self.redis_pool = redis.ConnectionPool.from_url(
                self.redis_url,
                decode_responses=True,
                retry_on_timeout=True,
                socket_keepalive=True,
            )
            self.client = redis.Redis(connection_pool=self.redis_pool)
            await self.client.ping()
            logger.info("Redis connection established")

        except Exception as e:
            logger.error("Failed to connect to Redis", exc_info=e)
            raise

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
        if self.redis_pool is not None:
            await self.redis_pool.disconnect()
        logger.info("Redis connection closed")

    async def get_redis(self) -> redis.Redis:
        """Get Redis client instance."""
        if self.client is None:
            await self.init_redis()
        return self.client

    @staticmethod
    def seller_lock_key(seller_id) -> str:
        return f"booking_lock:seller:{seller_id}"

    @asynccontextmanager
    async def lock(
        self, key: str, ttl_seconds: int = 30, blocking_timeout: float = 5.0
    ) -> AsyncIterator[Lock]:
        """Hold a Redis lock for the duration of the block.

        Release only deletes the key while this holder still owns it.
        """
        client = await self.get_redis()
        redis_lock = client.lock(
            key,
            timeout=ttl_seconds,
            sleep=self.LOCK_POLL_INTERVAL_SECONDS,
            blocking_timeout=blocking_timeout,
        )

        try:
            acquired = await redis_lock.acquire()
        except RedisError as e:
            logger.error("Redis lock error", key=key, exc_info=e)
            raise UpstreamUnavailable("Lock service unavailable") from e

        if not acquired:
            logger.warning("Timed out waiting for lock", key=key)
            raise UpstreamUnavailable("Another booking for this seller is in progress")

        try:
            yield redis_lock
        finally:
            try:
                await redis_lock.release()
            except LockError as e:
                # Expired and possibly taken by another holder; left untouched
                logger.warning("Lock expired before release", key=key, error=str(e))
            except RedisError as e:
                # The key expires on its own after ttl_seconds
                logger.error("Failed to release lock", key=key, exc_info=e)
