"""
Redis Connection Management

Holds the Redis connection for per-session crisis state. A failed
connection opens a short circuit so crisis turns never wait on a dead
Redis; callers fall back to process memory meanwhile.
"""

import logging
import time
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import RedisError

from crisis_core.config import settings

logger = logging.getLogger(__name__)

# Namespace for every key this service writes
APP_PREFIX = "roger:v1:"

# Seconds to wait after a failed connect before trying again
RECONNECT_COOLDOWN = 30.0


class RedisClient:
    """
    Process-wide Redis connection with a reconnect cooldown.

    Usage:
        client = await RedisClient.get_client()
        if client is None:
            ...  # degraded: keep state in memory
    """

    _client: Optional[Redis] = None
    _connected: bool = False
    _failed_at: Optional[float] = None

    @classmethod
    async def get_client(cls) -> Optional[Redis]:
        """
        Get the shared client, connecting if needed.

        Returns:
            Redis client, or None while Redis is unreachable
        """
        if cls._client is not None and cls._connected:
            return cls._client

        if cls._failed_at is not None and time.monotonic() - cls._failed_at < RECONNECT_COOLDOWN:
            return None

        stale, cls._client = cls._client, None
        if stale is not None:
            await _close_quietly(stale)

        client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=2.0,
            socket_timeout=2.0,
            retry_on_timeout=True,
            retry=Retry(ExponentialBackoff(cap=1.0), retries=2),
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error(f"Redis unreachable, session state kept in memory for {RECONNECT_COOLDOWN:.0f}s: {e}")
            cls._failed_at = time.monotonic()
            cls._connected = False
            await _close_quietly(client)
            return None

        cls._client = client
        cls._connected = True
        cls._failed_at = None
        logger.info("Redis connection established")
        return client

    @classmethod
    def mark_failed(cls) -> None:
        """Open the circuit after a command failure on a live connection."""
        cls._connected = False
        cls._failed_at = time.monotonic()

    @classmethod
    async def close(cls) -> None:
        """Close the shared connection."""
        client, cls._client = cls._client, None
        cls._connected = False
        cls._failed_at = None
        if client is not None:
            await _close_quietly(client)

    @classmethod
    def is_connected(cls) -> bool:
        return cls._connected


async def _close_quietly(client: Redis) -> None:
    try:
        await client.aclose()
    except (RedisError, OSError) as e:
        logger.error(f"Error closing Redis connection: {e}")


async def get_redis() -> Optional[Redis]:
    """Shared Redis client, or None while the circuit is open."""
    return await RedisClient.get_client()


async def check_redis_health() -> bool:
    """
    Check Redis connectivity for health checks.

    Returns:
        True if Redis is accessible and responding
    """
    client = await get_redis()
    if client is None:
        return False

    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.error(f"Redis health check failed: {e}")
        RedisClient.mark_failed()
        return False
    return True
