"""
Redis client initialization and connection management.

The response cache lives in Redis; this service only needs the client to
invalidate cached entries after mutations.
"""

import logging

import redis.asyncio as redis
from backend.app.core.config import settings

logger = logging.getLogger("feastfrenzy.redis")

# Create async Redis client (connections are opened lazily on first command)
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """
    Get Redis client instance.

    This can be used as a FastAPI dependency if needed.
    """
    return redis_client


async def ping_redis(client=None) -> bool:
    """
    Test Redis connection (the shared client unless *client* is given).

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return bool(await (client or redis_client).ping())
    except Exception as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False
