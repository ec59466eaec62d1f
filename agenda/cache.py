"""
Redis caching utilities for appointment lists
Mutations invalidate explicitly; nothing expires implicitly except by TTL
"""
import json
import logging
from datetime import date
from typing import Any, Iterable, Optional

import redis

from .config import APPOINTMENT_CACHE_TTL, REDIS_URL

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """
    Get or create Redis client
    Returns None when REDIS_URL is not configured (caching disabled)
    """
    global redis_client

    if redis_client is None and REDIS_URL:
        logger.info("🔄 Initializing Redis connection for appointment cache...")
        redis_client = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        redis_client.ping()
        logger.info("Redis connected successfully via URL")

    return redis_client


class Cache:
    """Redis cache wrapper with automatic serialization"""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.redis_client = client

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except redis.RedisError as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except redis.RedisError as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = APPOINTMENT_CACHE_TTL) -> bool:
        """Set value in cache with TTL"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except redis.RedisError as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern (e.g., 'appointments:abc:*')"""
        client = self._get_client()
        if not client:
            return 0

        try:
            keys = list(client.scan_iter(match=pattern))
            if keys:
                deleted = client.delete(*keys)
                logger.debug(f"✅ Cache DELETE pattern: {pattern} ({deleted} keys)")
                return deleted
            return 0
        except redis.RedisError as e:
            logger.error(f"❌ Cache delete pattern error for {pattern}: {e}")
            return 0


# Global cache instance
cache = Cache()


def build_appointment_list_key(
    user_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    **filters: Any,
) -> str:
    """Build cache key for appointment list queries; unset filters are left out"""
    start_str = start_date.isoformat() if start_date else "any"
    end_str = end_date.isoformat() if end_date else "any"
    key = f"appointments:{user_id}:{start_str}:{end_str}:{status or 'all'}"
    extra = "&".join(f"{name}={value}" for name, value in sorted(filters.items()) if value is not None)
    return f"{key}:{extra}" if extra else key


def invalidate_appointment_cache(user_id: str, dates: Iterable[date] = (), backend: Optional[Cache] = None) -> int:
    """
    Drop cached appointment lists for a practitioner after a mutation.

    List keys cover arbitrary date ranges, so every list of the practitioner
    is dropped; the touched dates are logged for tracing.
    """
    touched = sorted({d.isoformat() for d in dates if d})
    deleted = (backend or cache).delete_pattern(f"appointments:{user_id}:*")
    logger.debug(f"Appointments changed for user {user_id} on {touched or 'unknown dates'} ({deleted} cache keys dropped)")
    return deleted
