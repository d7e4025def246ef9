"""
Fetch orchestration and caching for water-body health.

One invocation fans out the four provider calls concurrently under a single
timeout, degrades failed slices to empty ones, and only then hands the data to
the aggregator. Results are cached per water body for a short TTL, and
concurrent requests for the same water body share one in-flight fetch.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .config import (
    HEALTH_CACHE_TTL_SEC,
    HEALTH_FETCH_TIMEOUT_SEC,
    HEALTH_TEST_LIMIT,
    HEALTH_WINDOW_DAYS,
)
from .health_engine import HealthResult, aggregate_health, sort_tests
from .provider import DataProvider
from .records import to_utc

logger = logging.getLogger(__name__)

SOURCES = ("tests", "livestock", "tasks", "alerts")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthCache:
    """
    TTL cache of health results keyed by water-body id.

    Each invalidation bumps a per-id generation (clear() bumps all of them).
    A computation that started before the bump may still be returned to its
    caller but is not stored.
    """

    def __init__(self, ttl_sec: float = HEALTH_CACHE_TTL_SEC, clock: Callable[[], float] = time.monotonic):
        self.ttl_sec = ttl_sec
        self.clock = clock
        self._entries: dict[int, tuple[float, HealthResult]] = {}
        self._generations: dict[int, int] = {}
        self._epoch = 0

    def generation(self, water_body_id: int) -> tuple[int, int]:
        return self._epoch, self._generations.get(water_body_id, 0)

    def get(self, water_body_id: int) -> Optional[HealthResult]:
        entry = self._entries.get(water_body_id)
        if entry is None:
            return None
        stored_at, result = entry
        if self.clock() - stored_at >= self.ttl_sec:
            del self._entries[water_body_id]
            return None
        return result

    def put(self, water_body_id: int, result: HealthResult, generation: tuple[int, int]) -> bool:
        if generation != self.generation(water_body_id):
            logger.debug("Discarding stale health result for water body %s", water_body_id)
            return False
        if not result.is_authoritative:
            return False
        self._entries[water_body_id] = (self.clock(), result)
        return True

    def invalidate(self, water_body_id: int) -> None:
        self._entries.pop(water_body_id, None)
        self._generations[water_body_id] = self._generations.get(water_body_id, 0) + 1

    def clear(self) -> None:
        self._entries.clear()
        self._epoch += 1


class HealthOrchestrator:
    def __init__(
        self,
        provider: DataProvider,
        cache: Optional[HealthCache] = None,
        clock: Callable[[], datetime] = utcnow,
        timeout_sec: float = HEALTH_FETCH_TIMEOUT_SEC,
        window_days: int = HEALTH_WINDOW_DAYS,
        test_limit: int = HEALTH_TEST_LIMIT,
    ):
        self.provider = provider
        self.cache = cache if cache is not None else HealthCache()
        self.clock = clock
        self.timeout_sec = timeout_sec
        self.window_days = window_days
        self.test_limit = test_limit
        self._in_flight: dict[int, tuple[tuple[int, int], asyncio.Task]] = {}

    async def _fetch_all(self, water_body_id: int, since: datetime) -> list:
        return await asyncio.wait_for(
            asyncio.gather(
                self.provider.fetch_recent_tests(water_body_id, since, self.test_limit),
                self.provider.fetch_livestock(water_body_id),
                self.provider.fetch_tasks_since(water_body_id, since),
                self.provider.fetch_active_alerts(water_body_id),
                return_exceptions=True,
            ),
            timeout=self.timeout_sec,
        )

    async def compute_health(self, water_body_id: int, now: Optional[datetime] = None) -> HealthResult:
        """
        Fetch all four slices and score them. Always refetches; use
        get_health() for the cached path.
        """
        now = to_utc(now if now is not None else self.clock())
        since = now - timedelta(days=self.window_days)

        try:
            results = await self._fetch_all(water_body_id, since)
        except asyncio.TimeoutError:
            logger.error(
                "Health fetch for water body %s timed out after %.1fs", water_body_id, self.timeout_sec
            )
            return HealthResult.unavailable(SOURCES)

        slices: dict[str, list] = {}
        failed: list[str] = []
        for name, res in zip(SOURCES, results):
            if isinstance(res, asyncio.CancelledError):
                # Never score a partially cancelled snapshot
                logger.warning("Health fetch '%s' for water body %s was cancelled", name, water_body_id)
                return HealthResult.unavailable(SOURCES)
            if isinstance(res, BaseException):
                logger.warning("Health fetch '%s' failed for water body %s: %s", name, water_body_id, res)
                failed.append(name)
                slices[name] = []
            else:
                slices[name] = list(res or [])

        if len(failed) == len(SOURCES):
            logger.error("All health sources failed for water body %s", water_body_id)
            return HealthResult.unavailable(failed)

        # Providers are asked for the window; enforce it anyway
        tests = [t for t in sort_tests(slices["tests"]) if t.test_date >= since][: self.test_limit]
        tasks = [t for t in slices["tasks"] if t.created_at is None or t.created_at >= since]

        result = aggregate_health(
            tests=tests,
            livestock=slices["livestock"],
            tasks=tasks,
            alerts=slices["alerts"],
            now=now,
            failed_sources=failed,
        )
        logger.debug(
            "Water body %s health=%s (%s) breakdown=%s", water_body_id, result.score, result.label, result.breakdown
        )
        return result

    async def _refresh(self, water_body_id: int, generation: tuple[int, int]) -> HealthResult:
        result = await self.compute_health(water_body_id)
        self.cache.put(water_body_id, result, generation)
        return result

    def _start(self, water_body_id: int) -> asyncio.Task:
        generation = self.cache.generation(water_body_id)
        task = asyncio.create_task(self._refresh(water_body_id, generation))
        self._in_flight[water_body_id] = (generation, task)
        task.add_done_callback(lambda t: self._forget(water_body_id, t))
        return task

    def _forget(self, water_body_id: int, task: asyncio.Task) -> None:
        entry = self._in_flight.get(water_body_id)
        if entry is not None and entry[1] is task:
            del self._in_flight[water_body_id]

    def _running(self, water_body_id: int) -> Optional[asyncio.Task]:
        """The in-flight fetch for this id, unless it predates an invalidation."""
        entry = self._in_flight.get(water_body_id)
        if entry is None:
            return None
        generation, task = entry
        if task.done() or generation != self.cache.generation(water_body_id):
            return None
        return task

    async def get_health(self, water_body_id: int, force_refresh: bool = False) -> HealthResult:
        """
        Cached result if fresh, otherwise the result of a fetch. Concurrent
        callers for the same water body share one in-flight fetch; force_refresh
        always starts a new one.
        """
        task = None
        if not force_refresh:
            cached = self.cache.get(water_body_id)
            if cached is not None:
                return cached
            task = self._running(water_body_id)
        if task is None:
            task = self._start(water_body_id)
        # A cancelled caller must not cancel the fetch other callers are awaiting
        return await asyncio.shield(task)

    def peek(self, water_body_id: int) -> HealthResult:
        """
        Non-blocking read: the cached result, or a loading placeholder while a
        fetch runs. Starts a fetch if none is running.
        """
        cached = self.cache.get(water_body_id)
        if cached is not None:
            return cached
        if self._running(water_body_id) is None:
            self._start(water_body_id)
        return HealthResult.loading()

    def invalidate(self, water_body_id: int) -> None:
        self.cache.invalidate(water_body_id)
