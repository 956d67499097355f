"""
Cache utilities for Streak Pick'em
Thin helpers over Flask-Caching; a cache outage never fails the caller
"""

import functools

from flask import current_app, request

from streak_pickem import cache


def make_cache_key(*args, **kwargs):
    """Generate a cache key from request path and arguments"""
    path = request.path
    args_str = "_".join(str(arg) for arg in args)
    kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
    return f"{path}_{args_str}_{kwargs_str}".replace("/", "_")


def get_cached(key):
    try:
        return cache.get(key)
    except Exception as e:
        current_app.logger.warning(f"Cache read failed for {key}: {e}")
        return None


def set_cached(key, value, timeout=300):
    try:
        cache.set(key, value, timeout=timeout)
        current_app.logger.debug(f"Cache set for key: {key}")
    except Exception as e:
        current_app.logger.warning(f"Cache write failed for {key}: {e}")


def cached_route(timeout=300, key_prefix="view"):
    """
    Decorator for caching route responses

    Args:
        timeout: Cache timeout in seconds (default 5 minutes)
        key_prefix: Prefix for cache key
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            cache_key = f"{key_prefix}_{make_cache_key(*args, **kwargs)}"

            result = get_cached(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            result = f(*args, **kwargs)
            set_cached(cache_key, result, timeout=timeout)

            return result

        return wrapped

    return decorator


def get_cache_stats():
    return {
        "type": current_app.config.get("CACHE_TYPE", "Unknown"),
        "timeout": current_app.config.get("CACHE_DEFAULT_TIMEOUT", 300),
    }
