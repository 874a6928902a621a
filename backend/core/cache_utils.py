"""
Caching utilities for expensive aggregate queries
Uses Redis (django-redis) in production, local memory otherwise
"""
from django.conf import settings
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
RETURN_STATS_CACHE_TTL = 120  # 2 minutes
ORDER_STATS_CACHE_TTL = 300  # 5 minutes

RETURN_STATS_PREFIX = "return_stats"
ORDER_STATS_PREFIX = "order_stats"


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=120, key_prefix="return_stats")
        def get_return_stats(include_archived):
            # expensive aggregate here
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            try:
                cached_data = cache.get(cache_key)
            except Exception as e:
                logger.warning(f"Cache read failed for {key_prefix}: {str(e)}")
                cached_data = None
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)

            try:
                cache.set(cache_key, result, cache_ttl)
            except Exception as e:
                logger.warning(f"Cache write failed for {key_prefix}: {str(e)}")

            return result
        return wrapper
    return decorator


def _uses_redis():
    backend = settings.CACHES.get('default', {}).get('BACKEND', '')
    return 'django_redis' in backend


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Uses Redis SCAN when the cache is Redis. Other backends cannot list keys,
    so only the argument-less key of `pattern` as a prefix is deleted.
    """
    try:
        if not _uses_redis():
            cache.delete(make_cache_key(pattern))
            logger.debug(f"Deleted local cache key for prefix: {pattern}")
            return

        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")

        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def invalidate_return_stats_cache():
    """Invalidate cached return counts"""
    invalidate_cache_pattern(RETURN_STATS_PREFIX)


def invalidate_order_stats_cache():
    """Invalidate cached order counts and revenue"""
    invalidate_cache_pattern(ORDER_STATS_PREFIX)
