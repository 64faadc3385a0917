"""
Redis cache for moderation lookups.

Caches user_moderation_status rows so the posting gate does not hit the
database on every chat message. Every operation degrades to a miss or a
no-op on Redis errors; the cache is never a source of truth.
"""

import json
import logging
from typing import Any, Optional

from redis import Redis as SyncRedis

from chatguard.core.config import get_settings

logger = logging.getLogger(__name__)

_sync_redis: Optional[SyncRedis] = None


class ModerationCacheKeys:
    """Redis key patterns for moderation state."""

    @staticmethod
    def user_status(user_id: str) -> str:
        """Key for a cached user_moderation_status row."""
        return f"moderation:user_status:{user_id}"


def _get_cache_client() -> SyncRedis:
    """Lazy-init sync Redis client for caching."""
    global _sync_redis
    if _sync_redis is None:
        settings = get_settings()
        _sync_redis = SyncRedis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=1,
            socket_timeout=1,
        )
    return _sync_redis


def cache_get(key: str) -> Optional[Any]:
    """Get a JSON-deserialized value from cache. Returns None on miss or error."""
    try:
        raw = _get_cache_client().get(key)
        if raw is None:
            return None
        return json.loads(raw)
    except Exception:
        logger.warning("Cache get failed for key=%s", key, exc_info=True)
        return None


def cache_set(key: str, value: Any, ttl: int) -> None:
    """Set a JSON-serialized value in cache with TTL in seconds."""
    if ttl <= 0:
        return
    try:
        _get_cache_client().set(key, json.dumps(value, default=str), ex=ttl)
    except Exception:
        logger.warning("Cache set failed for key=%s", key, exc_info=True)


def cache_delete(key: str) -> None:
    """Delete a single cache key."""
    try:
        _get_cache_client().delete(key)
    except Exception:
        logger.warning("Cache delete failed for key=%s", key, exc_info=True)


def cache_ping() -> bool:
    """Check Redis connectivity. Raises on failure."""
    return bool(_get_cache_client().ping())


def reset_cache_client() -> None:
    """Reset sync Redis client (for testing)."""
    global _sync_redis
    _sync_redis = None
