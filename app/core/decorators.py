import functools
import inspect
import logging
from typing import Callable

from fastapi import Request
from fastapi.encoders import jsonable_encoder

from app.core.cache import cache
from app.core.config import settings

logger = logging.getLogger(__name__)

UNCACHED_ARGS = {"db", "current_user", "request"}

def cache_endpoint(key_prefix: str, ttl: int = 300):
    """Cache the JSON body of an async endpoint per caller and query arguments."""
    def decorator(func: Callable) -> Callable:
        if not inspect.iscoroutinefunction(func):
            raise TypeError("cache_endpoint can only wrap async endpoints")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if not settings.CACHE_ENABLED:
                return await func(*args, **kwargs)

            cache_key = build_cache_key(key_prefix, kwargs)
            request = kwargs.get("request") or next((arg for arg in args if isinstance(arg, Request)), None)

            cached_value = await cache.get(cache_key)
            if cached_value is not None:
                _mark(request, "HIT")
                logger.debug(f"Cache HIT for {cache_key}")
                return cached_value

            result = await func(*args, **kwargs)
            if result is not None:
                await cache.set(cache_key, jsonable_encoder(result), ttl=ttl)
                _mark(request, "MISS")
                logger.debug(f"Cache MISS for {cache_key}, stored for {ttl}s")
            return result

        return wrapper

    return decorator

def build_cache_key(prefix: str, kwargs: dict) -> str:
    parts = [prefix]
    current_user = kwargs.get("current_user")
    if current_user is not None:
        parts.append(f"user:{current_user.id}")
    parts.extend(
        f"{name}={value}" for name, value in sorted(kwargs.items())
        if name not in UNCACHED_ARGS and value is not None
    )
    return ":".join(parts)

def _mark(request, status: str):
    if request is not None:
        request.state.cache_status = status
