"""Redis response caching, scoped per client.

    @cached(ttl=60, prefix="dashboard")
    async def dashboard_metrics(db, *, start_date, end_date): ...

Keys look like `c:<client_id>:<prefix>:<function>:<hash of keyword args>`.
Only keyword arguments of simple types feed the hash; positional args are
assumed to be injected objects (sessions, users) and are ignored.

When Redis is unreachable every call falls through to the wrapped function.
Set CACHE_ENABLED=false to bypass Redis entirely (tests, CLI).
"""

import functools
import hashlib
import json
import logging
from datetime import date, datetime
from typing import Any, Callable, Optional

import redis.asyncio as redis

from stockbook.config import settings
from stockbook.tenancy import _tenant_ctx

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create the shared Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Close the Redis client (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def cache_key(**kwargs) -> str:
    """Deterministic hash of keyword arguments."""
    if not kwargs:
        return "default"
    key_data = json.dumps(kwargs, sort_keys=True, default=str)
    return hashlib.sha1(key_data.encode()).hexdigest()


def _key_kwargs(kwargs: dict) -> dict:
    out = {}
    for k, v in kwargs.items():
        if k.startswith("_"):
            continue
        if isinstance(v, (int, str, bool, float, type(None))):
            out[k] = v
        elif isinstance(v, (date, datetime)):
            out[k] = v.isoformat()
    return out


def _scoped(key: str) -> str:
    client_id = _tenant_ctx.get()
    return f"c:{client_id}:{key}" if client_id else key


def _serialize(result: Any) -> Any:
    if hasattr(result, "model_dump"):
        return result.model_dump(mode="json")
    if isinstance(result, list) and result and hasattr(result[0], "model_dump"):
        return [item.model_dump(mode="json") for item in result]
    return result


def cached(ttl: int = 300, prefix: str = "cache"):
    """Cache an async function's JSON-serialisable result in Redis."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if not settings.cache_enabled:
                return await func(*args, **kwargs)

            key = _scoped(f"{prefix}:{func.__name__}:{cache_key(**_key_kwargs(kwargs))}")

            try:
                client = await get_redis()
                hit = await client.get(key)
                if hit is not None:
                    logger.debug("Cache HIT: %s", key)
                    return json.loads(hit)
                logger.debug("Cache MISS: %s", key)
            except redis.RedisError as e:
                logger.warning("Redis error (falling back to uncached): %s", e)
                return await func(*args, **kwargs)

            result = await func(*args, **kwargs)
            try:
                await client.setex(key, ttl, json.dumps(_serialize(result), default=str))
            except redis.RedisError as e:
                logger.warning("Redis error while storing %s: %s", key, e)
            return result

        return wrapper

    return decorator


async def invalidate_cache(pattern: str):
    """Delete the current client's keys matching `pattern` (e.g. "dashboard:*")."""
    if not settings.cache_enabled:
        return
    scoped_pattern = _scoped(pattern)
    try:
        client = await get_redis()
        keys = [key async for key in client.scan_iter(match=scoped_pattern)]
        if keys:
            await client.delete(*keys)
            logger.info("Invalidated %d cache keys matching %s", len(keys), scoped_pattern)
    except redis.RedisError as e:
        logger.warning("Failed to invalidate cache: %s", e)
