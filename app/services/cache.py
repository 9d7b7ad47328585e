"""
Redis cache for the business email-domain whitelist.

Signups check the whitelist on every request; the list changes rarely, so it
is cached for an hour and invalidated whenever an admin edits it.
"""

import json
import logging
from typing import Optional

import redis

from app.core.config import settings

logger = logging.getLogger(__name__)

# Redis connection (lazy initialized)
_redis: Optional[redis.Redis] = None

# Cache TTL: 1 hour
CACHE_TTL = 3600

BUSINESS_DOMAINS_KEY = "business_domains"


def get_redis() -> redis.Redis:
    """Get or create Redis connection."""
    global _redis
    if _redis is None:
        try:
            _redis = redis.Redis.from_url(settings.redis_url, decode_responses=True)
            # Test connection
            _redis.ping()
            logger.info("Redis connection established")
        except redis.ConnectionError as e:
            _redis = None
            logger.warning(f"Redis connection failed: {e}. Caching disabled.")
            raise
    return _redis


def get_cached_domains() -> Optional[list[str]]:
    """Return the cached whitelist, or None on a miss or when Redis is down."""
    try:
        data = get_redis().get(BUSINESS_DOMAINS_KEY)
        return json.loads(data) if data else None
    except Exception as e:
        logger.debug(f"Cache miss for business domains: {e}")
        return None


def cache_domains(domains: list[str]) -> None:
    try:
        get_redis().setex(BUSINESS_DOMAINS_KEY, CACHE_TTL, json.dumps(domains))
    except Exception as e:
        logger.warning(f"Failed to cache business domains: {e}")


def invalidate_domains() -> None:
    try:
        get_redis().delete(BUSINESS_DOMAINS_KEY)
        logger.info("Invalidated business domain cache")
    except Exception as e:
        logger.warning(f"Failed to invalidate business domain cache: {e}")
