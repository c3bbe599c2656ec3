#!/usr/bin/env python3
"""
Two-Tier Object Cache

Architecture:
    ObjectCache (Public API)
        ├── L1Storage (In-memory LRU, authoritative once populated)
        └── ObjectStore (Persistent L2: Redis hashes or files)

Algorithm:
    GET:          L1 → L2 via id → partition index → miss (warm L1 on L2 hit)
    PUT:          L2 entry + index (awaited) → L1
    GET_OR_FETCH: GET → on miss run fetch() once per id, PUT, return

Fetched objects are immutable, so nothing is ever invalidated or refreshed:
once an id is cached, the remote store is not asked for it again.
"""

import asyncio
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Any

from feedgate.core.config.constants import L1_CACHE_MAX_SIZE, CacheTier, Stage
from feedgate.core.interfaces.object_store import ObjectStore
from feedgate.core.logging.logger import get_logger, log_stage
from feedgate.infrastructure.monitoring.metrics_collector import MetricsCollector
from feedgate.models.fetched_object import FetchedObject

logger = get_logger(__name__)

FetchFunc = Callable[[], Awaitable[FetchedObject]]


class L1Storage:
    """
    In-memory LRU cache storage.

    STAGE-C.1: L1 in-memory cache

    Implementation Details:
    - Uses OrderedDict for O(1) access and LRU ordering
    - Safe under concurrent coroutines via asyncio.Lock
    - Evicts the least recently used object when at capacity
    """

    def __init__(self, max_size: int = L1_CACHE_MAX_SIZE):
        self._max_size = max_size
        self._cache: OrderedDict[str, FetchedObject] = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> FetchedObject | None:
        async with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                return self._cache[key]
            return None

    async def set(self, key: str, value: FetchedObject) -> None:
        """Store an object, evicting the oldest entry when full."""
        async with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            self._cache[key] = value

            while len(self._cache) > self._max_size:
                self._cache.popitem(last=False)

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()

    def get_size(self) -> int:
        return len(self._cache)

    def get_max_size(self) -> int:
        return self._max_size

    def get_keys(self) -> list[str]:
        """Keys in LRU order (oldest first)."""
        return list(self._cache.keys())


class ObjectCache:
    """
    Read-through cache for fetched objects.

    Usage:
        cache = ObjectCache(await create_object_store())

        obj = await cache.get("1234")
        await cache.put(obj)
        obj = await cache.get_or_fetch("1234", lambda: fetch_remote("1234"))
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        l1_max_size: int = L1_CACHE_MAX_SIZE,
        metrics: MetricsCollector | None = None,
    ):
        self._store = store
        self._l1 = L1Storage(max_size=l1_max_size)
        self._metrics = metrics
        self._in_flight: dict[str, asyncio.Task] = {}

        self._l1_hits = 0
        self._l2_hits = 0
        self._misses = 0
        self._remote_fetches = 0

    @property
    def store(self) -> ObjectStore:
        return self._store

    @property
    def l1(self) -> L1Storage:
        return self._l1

    async def get(self, object_id: str) -> FetchedObject | None:
        """
        Look an object up in L1, then L2.

        Returns:
            The cached object, or None on a total miss

        Raises:
            CacheKeyError: If the persistent store fails
            CacheCorruptionError: If the persisted entry is unreadable
        """
        obj = await self._l1.get(object_id)
        if obj is not None:
            self._record_hit(CacheTier.L1)
            log_stage(logger, Stage.CACHE_L1_LOOKUP, "L1 cache hit", level="debug", object_id=object_id)
            return obj
        self._record_miss(CacheTier.L1)

        obj = await self._store.load(object_id)
        if obj is not None:
            self._record_hit(CacheTier.L2)
            await self._l1.set(object_id, obj)
            log_stage(logger, Stage.CACHE_L2_LOOKUP, "L2 cache hit", level="debug", object_id=object_id)
            return obj
        self._record_miss(CacheTier.L2)

        self._misses += 1
        return None

    async def put(self, obj: FetchedObject) -> None:
        """Persist an object, then make it visible in L1."""
        await self._store.save(obj)
        await self._l1.set(obj.id, obj)
        log_stage(
            logger,
            Stage.CACHE_POPULATE,
            "Object cached",
            level="debug",
            object_id=obj.id,
            partition=obj.partition,
        )

    async def get_or_fetch(self, object_id: str, fetch: FetchFunc) -> FetchedObject:
        """
        Return the cached object, fetching and caching it on a miss.

        Concurrent callers missing on the same id share one fetch.
        """
        obj = await self._l1.get(object_id)
        if obj is not None:
            self._record_hit(CacheTier.L1)
            return obj

        task = self._in_flight.get(object_id)
        if task is None:
            task = asyncio.create_task(self._load_or_fetch(object_id, fetch))
            self._in_flight[object_id] = task
            task.add_done_callback(lambda done: self._forget(object_id, done))

        return await asyncio.shield(task)

    async def _load_or_fetch(self, object_id: str, fetch: FetchFunc) -> FetchedObject:
        obj = await self.get(object_id)
        if obj is not None:
            return obj

        log_stage(logger, Stage.CACHE_REMOTE_FETCH, "Cache miss, fetching remotely", object_id=object_id)
        obj = await fetch()
        self._remote_fetches += 1
        if self._metrics:
            self._metrics.record_remote_fetch()

        await self.put(obj)
        return obj

    def _forget(self, object_id: str, task: asyncio.Task) -> None:
        if self._in_flight.get(object_id) is task:
            del self._in_flight[object_id]

    def _record_hit(self, tier: CacheTier) -> None:
        if tier == CacheTier.L1:
            self._l1_hits += 1
        else:
            self._l2_hits += 1
        if self._metrics:
            self._metrics.record_cache_hit(tier.value)

    def _record_miss(self, tier: CacheTier) -> None:
        if self._metrics:
            self._metrics.record_cache_miss(tier.value)

    def stats(self) -> dict[str, Any]:
        lookups = self._l1_hits + self._l2_hits + self._misses
        return {
            "l1_hits": self._l1_hits,
            "l2_hits": self._l2_hits,
            "misses": self._misses,
            "remote_fetches": self._remote_fetches,
            "hit_rate": round((self._l1_hits + self._l2_hits) / lookups, 3) if lookups else 0.0,
            "l1_size": self._l1.get_size(),
            "l1_max_size": self._l1.get_max_size(),
            "in_flight": len(self._in_flight),
        }

    async def health_check(self) -> dict[str, Any]:
        return {"l1": {"size": self._l1.get_size()}, "l2": await self._store.health_check()}
