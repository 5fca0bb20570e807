"""
Redis caching service for trip search listings.

CACHING STRATEGY
================

What we cache:
  - Trip search responses (filtered, sorted, paginated, JSON-serialized)
  - Cache key pattern: "trips:list:<sorted query parameters>"

Why:
  - Trip search is the most frequent read operation
  - Results only change when trips change or seats are booked/released

Invalidation strategy:
  - On booking and cancellation: available_seats changed
  - On trip create/update/delete and company deletion
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

  All trip list keys start with "trips:list:" so we can SCAN and delete them.

Why NOT cache trip detail:
  - The detail view shows the live seat layout riders pick seats from;
    a stale layout only produces avoidable SeatConflict errors.

Every operation degrades to a no-op when Redis is disabled or unreachable.
"""

import json
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from busticket.core.config import get_settings
from busticket.core.logging import get_logger
from busticket.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

TRIP_LIST_PREFIX = "trips:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_trip_list_key(query_key: str) -> str:
    return f"{TRIP_LIST_PREFIX}{query_key}"


async def get_cached_trips(query_key: str) -> Optional[dict]:
    """Retrieve a cached trip search response."""
    client = await get_redis()
    if not client:
        return None

    key = make_trip_list_key(query_key)
    try:
        data = await client.get(key)
    except RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_trips(query_key: str, data: dict) -> None:
    """Cache a trip search response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = make_trip_list_key(query_key)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_trip_cache() -> None:
    """
    Invalidate all cached trip listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{TRIP_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
