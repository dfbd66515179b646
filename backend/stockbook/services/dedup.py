"""Request deduplication and a small read-through TTL cache.

RequestDeduplicator
    Rejects a request whose identifier is already being processed.
    Built once at startup (see main.py lifespan), kept on `app.state`,
    and handed to routes through `get_deduplicator`.

        async with dedup.guard(key):
            ...                         # key released on every exit path

    Backends:
        memory  one process only; entries older than `stale_after` seconds
                are treated as abandoned
        redis   SET NX PX; shared by every API instance

    The deduplicator is advisory.  It keeps a double-click from creating
    two invoices; it is not a lock on stock (the ledger's conditional
    UPDATE is).

TTLCache
    key → (value, inserted_at).  A hit is an entry younger than the TTL;
    anything older is refetched and overwritten.  Bounded by
    `max_entries` (oldest insert evicted first).
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Protocol

import redis.asyncio as redis
from fastapi import Request

from stockbook.config import settings
from stockbook.middleware.exceptions import DuplicateInFlightError

logger = logging.getLogger(__name__)


# ── Backends ────────────────────────────────────────────────

class DedupBackend(Protocol):
    async def acquire(self, key: str) -> bool: ...
    async def release(self, key: str) -> None: ...


class InMemoryDedupBackend:
    def __init__(self, stale_after: float = 120.0, clock: Callable[[], float] = time.monotonic):
        self._held: dict[str, float] = {}
        self._stale_after = stale_after
        self._clock = clock

    async def acquire(self, key: str) -> bool:
        now = self._clock()
        held_at = self._held.get(key)
        if held_at is not None and now - held_at < self._stale_after:
            return False
        if held_at is not None:
            logger.warning("Reclaiming stale in-flight key %s", key)
        self._held[key] = now
        return True

    async def release(self, key: str) -> None:
        self._held.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._held

    def __len__(self) -> int:
        return len(self._held)


class RedisDedupBackend:
    def __init__(
        self,
        client_factory: Callable[[], Awaitable[redis.Redis]],
        stale_after: float = 120.0,
        prefix: str = "dedup",
    ):
        self._client_factory = client_factory
        self._ttl_ms = int(stale_after * 1000)
        self._prefix = prefix

    async def acquire(self, key: str) -> bool:
        try:
            client = await self._client_factory()
            return bool(await client.set(f"{self._prefix}:{key}", "1", nx=True, px=self._ttl_ms))
        except redis.RedisError as e:
            # Advisory only: let the request through rather than fail it
            logger.warning("Redis error in dedup acquire (allowing request): %s", e)
            return True

    async def release(self, key: str) -> None:
        try:
            client = await self._client_factory()
            await client.delete(f"{self._prefix}:{key}")
        except redis.RedisError as e:
            logger.warning("Redis error in dedup release (key expires on its own): %s", e)


# ── Deduplicator ────────────────────────────────────────────

class RequestDeduplicator:
    def __init__(self, backend: DedupBackend):
        self.backend = backend

    @staticmethod
    def create_key(
        client_id: str,
        customer_name: str,
        contact_number: str,
        submitted_at_ms: int,
        idempotency_key: str | None = None,
    ) -> str:
        if idempotency_key:
            return f"{client_id}:idem:{idempotency_key}"
        return f"{client_id}:create:{customer_name}-{contact_number}-{submitted_at_ms}"

    @staticmethod
    def edit_key(
        client_id: str,
        invoice_id: str,
        submitted_at_ms: int,
        idempotency_key: str | None = None,
    ) -> str:
        if idempotency_key:
            return f"{client_id}:idem:{idempotency_key}"
        return f"{client_id}:edit-{invoice_id}-{submitted_at_ms}"

    @asynccontextmanager
    async def guard(self, key: str):
        if not await self.backend.acquire(key):
            logger.info("Duplicate in-flight request rejected: %s", key)
            raise DuplicateInFlightError()
        try:
            yield
        finally:
            await self.backend.release(key)


def build_deduplicator() -> RequestDeduplicator:
    """Construct the deduplicator selected by DEDUP_BACKEND."""
    if settings.dedup_backend == "redis":
        from stockbook.utils.cache import get_redis

        backend: DedupBackend = RedisDedupBackend(get_redis, settings.dedup_stale_seconds)
    else:
        backend = InMemoryDedupBackend(settings.dedup_stale_seconds)
    logger.info("Request deduplicator using %s backend", settings.dedup_backend)
    return RequestDeduplicator(backend)


def get_deduplicator(request: Request) -> RequestDeduplicator:
    """FastAPI dependency: the app-wide deduplicator."""
    return request.app.state.deduplicator


# ── TTL cache ───────────────────────────────────────────────

class TTLCache:
    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._data: OrderedDict[Any, tuple[Any, float]] = OrderedDict()

    def get(self, key: Any) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, inserted_at = entry
        if self._clock() - inserted_at >= self.ttl:
            del self._data[key]
            return None
        return value

    def set(self, key: Any, value: Any) -> None:
        self._data.pop(key, None)
        self._data[key] = (value, self._clock())
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    async def get_or_fetch(self, key: Any, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        value = self.get(key)
        if value is not None:
            return value
        value = await fetcher()
        if value is not None:
            self.set(key, value)
        return value

    def invalidate(self, key: Any = None) -> None:
        if key is None:
            self._data.clear()
        else:
            self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


def build_lookup_cache() -> TTLCache:
    return TTLCache(settings.lookup_cache_ttl_seconds, settings.lookup_cache_max_entries)


def get_lookup_cache(request: Request) -> TTLCache:
    """FastAPI dependency: the app-wide product lookup cache."""
    return request.app.state.lookup_cache
