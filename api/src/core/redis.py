# ruff: noqa: PLW0603
"""Redis connection management.

Redis is optional. When present it backs:
- the access-grant lookup cache
- per-user Pub/Sub channels for real-time notification delivery
"""

import redis.asyncio as redis

from src.config import get_settings
from src.core.logging import get_logger


logger = get_logger(__name__)

_redis_client: redis.Redis | None = None


async def init_redis() -> redis.Redis:
    """Create the Redis client and verify the connection."""
    global _redis_client

    settings = get_settings()

    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        retry_on_timeout=settings.redis_retry_on_timeout,
        health_check_interval=settings.redis_health_check_interval,
        decode_responses=True,
    )

    try:
        await client.ping()
    except redis.ConnectionError as e:
        logger.warning("redis_connection_failed", error=str(e))
        await client.aclose()
        raise

    _redis_client = client
    logger.info("redis_connected", url=settings.redis_url)
    return client


async def shutdown_redis() -> None:
    """Close the Redis client if one was created."""
    global _redis_client

    if _redis_client:
        await _redis_client.aclose()
        logger.info("redis_disconnected")
        _redis_client = None


def get_redis() -> redis.Redis | None:
    """Get the Redis client, or None when running without Redis."""
    return _redis_client


def notification_channel(user_id: str) -> str:
    """Per-user notification channel name."""
    return f"notifications:user:{user_id}"


def access_cache_key(user_id: str, course_id: str) -> str:
    """Cache key for an access-grant lookup."""
    return f"access:{user_id}:{course_id}"
