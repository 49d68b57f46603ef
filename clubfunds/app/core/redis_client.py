"""
Redis client for recompute locks.

Summary refreshes for one (club, level) pair are serialized across
workers with Redis locks, so the client fails fast on a dead connection
rather than stalling a refresh: socket timeouts are kept short and
connections are health-checked before reuse.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError
from clubfunds.app.core.config import settings

logger = logging.getLogger(__name__)


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
    socket_timeout=settings.redis_socket_timeout_seconds,
    socket_connect_timeout=settings.redis_socket_timeout_seconds,
    health_check_interval=settings.redis_health_check_interval_seconds,
)


async def get_redis():
    """FastAPI dependency returning the shared lock client."""
    return redis_client


async def ping_redis() -> bool:
    """
    Check that the lock backend answers.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return bool(await redis_client.ping())
    except (RedisError, OSError) as e:
        logger.warning("Redis ping failed: %s", e)
        return False


async def close_redis() -> None:
    """Release pooled connections on shutdown."""
    await redis_client.aclose()
