"""Redis store for caching and distributed locks.

Handles:
- Caching with TTL policies
- Distributed locks (no overlapping sync runs)

TTL policies:
- Upstream leaderboard payload: LEADERBOARD_CACHE_TTL (default 2 minutes)
- Transformed leaderboard payload: same TTL, dropped after each successful sync
- Sync lock: 10 minutes (longer than any healthy sync run)
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

from app.settings import get_settings

# TTL constants (in seconds)
TTL_SYNC_LOCK = 600  # 10 minutes

# Key prefixes
PREFIX_UPSTREAM = "goated:leaderboard:raw"
PREFIX_LEADERBOARD = "leaderboard:"
PREFIX_LOCK = "lock:"

KEY_LEADERBOARD_PAYLOAD = f"{PREFIX_LEADERBOARD}payload"

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    _redis = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    # Validate connectivity early (especially for `rediss://` in production).
    await _redis.ping()
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def _get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


# ============================================================
# Generic cache operations
# ============================================================


async def cache_get(key: str) -> str | None:
    """Get value from cache.

    Args:
        key: Cache key.

    Returns:
        Cached value or None if not found.
    """
    return await _get_redis().get(key)


async def cache_set(key: str, value: str, ttl: int) -> None:
    """Set value in cache with TTL.

    Args:
        key: Cache key.
        value: Value to cache.
        ttl: Time-to-live in seconds.
    """
    await _get_redis().setex(key, ttl, value)


async def cache_delete(key: str) -> None:
    """Delete value from cache."""
    await _get_redis().delete(key)


async def cache_get_json(key: str) -> Any | None:
    """Get JSON value from cache.

    Returns:
        Parsed JSON value or None if not found.
    """
    value = await cache_get(key)
    if value:
        return json.loads(value)
    return None


async def cache_set_json(key: str, value: Any, ttl: int) -> None:
    """Set JSON value in cache."""
    await cache_set(key, json.dumps(value, default=str), ttl)


# ============================================================
# Leaderboard caches
# ============================================================


async def get_upstream_cache() -> Any | None:
    """Get the cached raw upstream leaderboard payload."""
    return await cache_get_json(PREFIX_UPSTREAM)


async def set_upstream_cache(payload: Any, ttl: int) -> None:
    """Cache the raw upstream leaderboard payload."""
    if ttl <= 0:
        return
    await cache_set_json(PREFIX_UPSTREAM, payload, ttl)


async def get_leaderboard_cache() -> dict[str, Any] | None:
    """Get the cached transformed leaderboard payload."""
    return await cache_get_json(KEY_LEADERBOARD_PAYLOAD)


async def set_leaderboard_cache(payload: dict[str, Any], ttl: int) -> None:
    """Cache the transformed leaderboard payload."""
    if ttl <= 0:
        return
    await cache_set_json(KEY_LEADERBOARD_PAYLOAD, payload, ttl)


async def invalidate_leaderboard_caches() -> None:
    """Drop both leaderboard caches so the next read sees fresh data."""
    await cache_delete(KEY_LEADERBOARD_PAYLOAD)
    await cache_delete(PREFIX_UPSTREAM)


# ============================================================
# Distributed locks
# ============================================================


async def acquire_lock(key: str, ttl: int = TTL_SYNC_LOCK) -> bool:
    """Acquire a distributed lock.

    Args:
        key: Lock key (e.g., "leaderboard_sync").
        ttl: Lock timeout in seconds.

    Returns:
        True if lock acquired, False if already locked.
    """
    lock_key = f"{PREFIX_LOCK}{key}"
    # SET NX (only if not exists) with TTL
    result = await _get_redis().set(lock_key, "1", nx=True, ex=ttl)
    return result is not None


async def release_lock(key: str) -> None:
    """Release a distributed lock."""
    await cache_delete(f"{PREFIX_LOCK}{key}")
