"""
Redis caching service for active game listings.

CACHING STRATEGY
================

What we cache:
  - Active game list responses (paginated, JSON-serialized)
  - Cache key pattern: "games:active:{filter}&page={page}&size={size}"

Why:
  - The browse screen is the most frequent read and polls on refresh
  - Each page needs a roster COUNT per game; serving from Redis skips those

Invalidation strategy:
  - After every join, leave, create, end, cancel and sweep: delete all
    active-list keys (player counts and statuses changed)
  - TTL-based expiry as safety net

Why NOT cache individual games:
  - The join path must read the live roster; a stale count would be wrong
    exactly when it matters (last open slot)
"""

import json
from typing import Optional

from pickup.core.config import get_settings
from pickup.core.logging import get_logger
from pickup.core.metrics import record_cache_operation
from pickup.infrastructure.redis_client import get_redis

logger = get_logger(__name__)

ACTIVE_LIST_PREFIX = "games:active:"
INVALIDATION_CHUNK = 500


def _make_game_list_key(filter_key: str, page: int, page_size: int) -> str:
    return f"{ACTIVE_LIST_PREFIX}{filter_key}&page={page}&size={page_size}"


async def get_cached_games(filter_key: str, page: int, page_size: int) -> Optional[dict]:
    """Retrieve cached active game list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_game_list_key(filter_key, page, page_size)
    try:
        data = await client.get(key)
        if data:
            record_cache_operation("get", hit=True)
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        record_cache_operation("get", hit=False)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_games(filter_key: str, page: int, page_size: int, data: dict) -> None:
    """Cache active game list response with TTL."""
    client = await get_redis()
    if not client:
        return

    settings = get_settings()
    key = _make_game_list_key(filter_key, page, page_size)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_game_cache() -> int:
    """
    Drop every cached active-list page. SCAN rather than KEYS so a large
    keyspace never blocks Redis; deletes are UNLINKed in chunks.
    """
    client = await get_redis()
    if not client:
        return 0

    try:
        keys = [key async for key in client.scan_iter(match=f"{ACTIVE_LIST_PREFIX}*", count=100)]
        for start in range(0, len(keys), INVALIDATION_CHUNK):
            await client.unlink(*keys[start:start + INVALIDATION_CHUNK])
        if keys:
            logger.info("cache_invalidated", keys_deleted=len(keys))
        return len(keys)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))
        return 0


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
