"""
Shared Redis connection.

One client is opened at startup and handed to the session, saved-solution
and preference stores.
"""

import logging
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


# Global instance (initialized on startup)
redis_client: Optional[redis.Redis] = None


async def init_redis(redis_url: str) -> redis.Redis:
    """Open the global Redis client and check it is reachable."""
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True
        )
        await redis_client.ping()
        logger.info("Connected to Redis")
    return redis_client


def get_redis() -> redis.Redis:
    if redis_client is None:
        raise RuntimeError("Redis not connected. Call init_redis() first.")
    return redis_client


async def close_redis() -> None:
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
