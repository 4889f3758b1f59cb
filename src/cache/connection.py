import asyncio
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from src.core.config import get_settings

_log = logging.getLogger(__name__)

# Key prefix shared by everything this service stores in Redis
NAMESPACE = "fda:"

_redis_client: Optional[aioredis.Redis] = None
_lock = asyncio.Lock()


async def get_redis() -> Optional[aioredis.Redis]:
    """
    Returns the shared Redis client, creating it on first use.
    Returns None when the client cannot be created; callers degrade
    gracefully instead of failing the request.
    """
    global _redis_client
    if _redis_client is not None:
        return _redis_client
    async with _lock:
        if _redis_client is not None:
            return _redis_client
        url = get_settings().redis_url
        _log.info(f"Attempting to create Redis connection to: {url}")
        try:
            _redis_client = aioredis.from_url(
                url,
                decode_responses=False,
                socket_connect_timeout=1,   # 1-second TCP connect cap
                socket_timeout=2,           # 2-second op cap
            )
        except (RedisError, ValueError) as exc:
            _log.error(f"Failed to create Redis client for {url}; shared rate limiting disabled ({exc})")
            _redis_client = None
    return _redis_client


async def close_redis() -> None:
    """Close and discard the cached client."""
    global _redis_client
    client, _redis_client = _redis_client, None
    if client is None:
        return
    _log.info("Closing Redis connection pool...")
    try:
        await client.aclose()
        _log.info("Redis connection pool closed.")
    except RedisError as e:
        _log.warning(f"Error closing Redis connection: {e}")
