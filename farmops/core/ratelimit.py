"""
Sliding-window rate limiting for function endpoints.

Hits are kept as a list of timestamps per (endpoint, identifier) in the
Django cache, so limits are shared across workers when Redis backs the
cache. Each read-modify-write of a hit list runs under a short cache.add
lock so concurrent requests cannot overwrite each other's hits.
"""
import logging
import math
import time
from functools import wraps

from django.conf import settings
from django.core.cache import cache
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY_PREFIX = "ratelimit"
LOCK_TIMEOUT = 2
LOCK_WAIT_SECONDS = 0.5
LOCK_POLL_SECONDS = 0.005


def _rate_limit_key(name, identifier):
    return f"{RATE_LIMIT_KEY_PREFIX}:{name}:{identifier}"


def _acquire(lock_key):
    deadline = time.monotonic() + LOCK_WAIT_SECONDS
    while not cache.add(lock_key, 1, LOCK_TIMEOUT):
        if time.monotonic() >= deadline:
            return False
        time.sleep(LOCK_POLL_SECONDS)
    return True


def get_rate_limit(name):
    """Return (max_requests, window_seconds) configured for an endpoint"""
    return settings.RATE_LIMITS.get(name, (60, 60))


def check_rate_limit(identifier, name, now=None):
    """
    Record a hit and decide whether it is allowed.

    Returns:
        (allowed, retry_after) where retry_after is the number of seconds
        until the oldest hit leaves the window (0 when allowed).
    """
    max_requests, window = get_rate_limit(name)
    now = time.time() if now is None else now
    key = _rate_limit_key(name, identifier)
    lock_key = f"{key}:lock"

    locked = _acquire(lock_key)
    if not locked:
        logger.warning(f"Rate limit lock for {key} not acquired, counting the hit unlocked")
    try:
        hits = [t for t in (cache.get(key) or []) if t > now - window]
        if len(hits) >= max_requests:
            retry_after = max(1, math.ceil(hits[0] + window - now))
            cache.set(key, hits, window)
            return False, retry_after

        hits.append(now)
        cache.set(key, hits, window)
        return True, 0
    finally:
        if locked:
            cache.delete(lock_key)


def reset_rate_limit(identifier, name):
    cache.delete(_rate_limit_key(name, identifier))


def rate_limited_response(retry_after):
    response = Response(
        {'error': 'Rate limit exceeded. Please try again later.'},
        status=status.HTTP_429_TOO_MANY_REQUESTS,
    )
    response['Retry-After'] = str(retry_after)
    return response


def rate_limit(name):
    """
    Decorator for DRF function views, applied below @api_view so the
    request is already authenticated.

    Usage:
        @api_view(['POST'])
        @permission_classes([IsAuthenticated])
        @rate_limit('populate-weights')
        def populate_weights(request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            identifier = request.user.pk if request.user and request.user.is_authenticated else request.META.get('REMOTE_ADDR')
            allowed, retry_after = check_rate_limit(identifier, name)
            if not allowed:
                logger.warning(f"Rate limit exceeded for {name} by {identifier}")
                return rate_limited_response(retry_after)
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
