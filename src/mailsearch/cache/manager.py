"""Query Cache — fingerprint → SearchResult caching with TTL and single-flight fetch.

Provides a unified caching interface over an in-memory or Redis backend,
plus ``get_or_fetch`` which guarantees at most one upstream fetch in
flight per fingerprint.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import redis.asyncio as aioredis

from mailsearch.config.settings import CacheSettings
from mailsearch.models.result import SearchResult

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[SearchResult]]


@dataclass
class CacheEntry:
    """A cached result and its absolute expiry on the cache's clock."""

    result: SearchResult
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class _Flight:
    """One in-flight fetch shared by every caller waiting on the same key."""

    task: asyncio.Task[SearchResult]
    waiters: int = field(default=0)


class QueryCache:
    """Caches translated-query fingerprints to search results.

    Supports Redis and in-memory backends. In-memory entries expire lazily
    on read and are also removed by a periodic background sweep; Redis
    entries expire server-side. Backend errors are logged and treated as
    misses so that a cache outage never fails a search.

    Attributes:
        settings: Cache configuration.
    """

    def __init__(self, settings: CacheSettings, clock: Callable[[], float] = time.monotonic) -> None:
        self.settings = settings
        self._clock = clock
        self._client: aioredis.Redis | None = None
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, _Flight] = {}
        self._sweeper: asyncio.Task[None] | None = None

    async def initialize(self) -> None:
        """Initialize the cache backend and start the expiry sweep."""
        if self.settings.backend == "redis":
            try:
                self._client = aioredis.from_url(
                    self.settings.redis_url,
                    decode_responses=True,
                )
                await self._client.ping()
                logger.info("Connected to Redis cache at %s", self.settings.redis_url)
            except Exception:
                logger.warning("Failed to connect to Redis, falling back to memory cache", exc_info=True)
                self._client = None

        if self._client is None:
            logger.info("Using in-memory cache backend (ttl=%ds)", self.settings.ttl_seconds)
            self._sweeper = asyncio.create_task(self._sweep_loop())

    async def shutdown(self) -> None:
        """Stop the sweep task and close cache connections."""
        if self._sweeper:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def backend(self) -> str:
        return "redis" if self._client is not None else "memory"

    @property
    def in_flight(self) -> int:
        """Number of fingerprints with an upstream fetch currently running."""
        return len(self._in_flight)

    def _key(self, fingerprint: str) -> str:
        return f"{self.settings.key_prefix}{fingerprint}"

    # ── Basic operations ─────────────────────────────────────────────────

    async def get(self, fingerprint: str) -> SearchResult | None:
        """Retrieve a cached result.

        Args:
            fingerprint: Query fingerprint.

        Returns:
            The cached SearchResult, or None on a miss or expired entry.
        """
        if not self.settings.enabled:
            return None
        try:
            if self._client is not None:
                value = await self._client.get(self._key(fingerprint))
                return SearchResult.model_validate_json(value) if value else None

            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[fingerprint]
                return None
            return entry.result
        except Exception:
            logger.debug("Cache get failed for key: %s", fingerprint, exc_info=True)
            return None

    async def put(self, fingerprint: str, result: SearchResult, ttl: int | None = None) -> None:
        """Store a result.

        Args:
            fingerprint: Query fingerprint.
            result: Result to cache.
            ttl: Time-to-live in seconds (defaults to ``settings.ttl_seconds``).
                A non-positive ttl stores nothing.
        """
        if ttl is None:
            ttl = self.settings.ttl_seconds
        if not self.settings.enabled or ttl <= 0:
            return
        try:
            if self._client is not None:
                await self._client.setex(self._key(fingerprint), ttl, result.model_dump_json())
            else:
                self._entries[fingerprint] = CacheEntry(result=result, expires_at=self._clock() + ttl)
        except Exception:
            logger.debug("Cache set failed for key: %s", fingerprint, exc_info=True)

    async def invalidate(self, fingerprint: str) -> None:
        """Remove one cached result.

        Args:
            fingerprint: Query fingerprint to invalidate.
        """
        try:
            if self._client is not None:
                await self._client.delete(self._key(fingerprint))
            else:
                self._entries.pop(fingerprint, None)
        except Exception:
            logger.debug("Cache delete failed for key: %s", fingerprint, exc_info=True)

    async def clear(self) -> None:
        """Remove every cached result owned by this cache (its key prefix only, on Redis)."""
        try:
            if self._client is not None:
                keys = [key async for key in self._client.scan_iter(match=f"{self.settings.key_prefix}*")]
                if keys:
                    await self._client.delete(*keys)
            else:
                self._entries.clear()
        except Exception:
            logger.debug("Cache clear failed", exc_info=True)

    def sweep(self) -> int:
        """Evict expired in-memory entries.

        Returns:
            Number of entries evicted.
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval)
            evicted = self.sweep()
            if evicted:
                logger.debug("Cache sweep evicted %d expired entries", evicted)

    # ── Single-flight ────────────────────────────────────────────────────

    async def get_or_fetch(self, fingerprint: str, fetch: Fetcher, ttl: int | None = None) -> tuple[SearchResult, bool]:
        """Return the cached result, or fetch it with at most one fetch in flight.

        Concurrent callers for the same fingerprint share one fetch task.
        A failed fetch is not cached and its exception reaches every
        waiting caller. When every waiter has been cancelled, the fetch
        itself is cancelled.

        Args:
            fingerprint: Query fingerprint.
            fetch: Zero-argument coroutine function performing the upstream call.
            ttl: Time-to-live for the stored result.

        Returns:
            ``(result, from_cache)``.
        """
        flight = self._in_flight.get(fingerprint)
        if flight is None:
            cached = await self.get(fingerprint)
            if cached is not None:
                logger.debug("Cache hit: %s", fingerprint)
                return cached, True
            # Another caller may have started the fetch while the backend was awaited.
            flight = self._in_flight.get(fingerprint)

        if flight is None:
            logger.debug("Cache miss: %s", fingerprint)
            # The task cannot start before the flight is registered: no await in between.
            flight = _Flight(task=asyncio.create_task(self._fetch_and_store(fingerprint, fetch, ttl)))
            self._in_flight[fingerprint] = flight
        else:
            logger.debug("Joining in-flight fetch: %s", fingerprint)

        task = flight.task
        flight.waiters += 1
        try:
            return await asyncio.shield(task), False
        finally:
            flight.waiters -= 1
            if flight.waiters == 0 and not task.done():
                logger.debug("All waiters cancelled, cancelling fetch: %s", fingerprint)
                task.cancel()
                self._discard_flight(fingerprint, task)

    async def _fetch_and_store(self, fingerprint: str, fetch: Fetcher, ttl: int | None) -> SearchResult:
        try:
            result = await fetch()
            await self.put(fingerprint, result, ttl)
            return result
        finally:
            self._discard_flight(fingerprint, asyncio.current_task())

    def _discard_flight(self, fingerprint: str, task: asyncio.Task | None) -> None:
        flight = self._in_flight.get(fingerprint)
        if flight is not None and flight.task is task:
            del self._in_flight[fingerprint]
