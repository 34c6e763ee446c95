"""
Caching utilities for expensive farm queries
Uses Redis (through the Django cache) for summary results
"""
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
FEED_SUMMARY_CACHE_TTL = 300  # 5 minutes
OVR_CACHE_TTL = 600  # 10 minutes

FEED_SUMMARY_PREFIX = "feed_summary"
OVR_PREFIX = "animal_ovr"


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Note: This requires Redis with SCAN command support
    """
    try:
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
        return len(keys)
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")
        return 0


def feed_summary_cache_key(farm_id):
    return make_cache_key(FEED_SUMMARY_PREFIX, int(farm_id))


def get_cached_feed_summary(farm_id):
    """Get the cached feed inventory summary of a farm (None on miss)"""
    return cache.get(feed_summary_cache_key(farm_id))


def cache_feed_summary(farm_id, data, ttl=FEED_SUMMARY_CACHE_TTL):
    """Cache a feed inventory summary"""
    cache_key = feed_summary_cache_key(farm_id)
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached feed summary: {cache_key}")


def invalidate_feed_summary_cache(farm_id):
    """Drop the cached feed summary of one farm"""
    cache.delete(feed_summary_cache_key(farm_id))
    logger.debug(f"Invalidated feed summary for farm {farm_id}")


def invalidate_all_feed_summaries():
    """Invalidate every cached feed summary"""
    count = invalidate_cache_pattern(FEED_SUMMARY_PREFIX)
    logger.info("Invalidated feed summary cache")
    return count


def ovr_cache_key(animal_id):
    return make_cache_key(OVR_PREFIX, int(animal_id))


def invalidate_ovr_cache(animal_id):
    cache.delete(ovr_cache_key(animal_id))
