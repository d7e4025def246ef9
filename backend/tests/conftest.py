"""Shared fixtures and record builders for the health engine tests."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from aquascore.provider import DataProvider
from aquascore.records import (
    AlertRecord,
    LivestockRecord,
    MaintenanceTaskRecord,
    ParameterReading,
    WaterTestRecord,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def water_test(days_ago: float = 0, *statuses: Optional[str], now: datetime = NOW) -> WaterTestRecord:
    return WaterTestRecord(
        test_date=now - timedelta(days=days_ago),
        parameters=[ParameterReading(status=s) for s in statuses],
    )


def animal(status: str = "healthy", quantity: int = 1) -> LivestockRecord:
    return LivestockRecord(health_status=status, quantity=quantity)


def task(status: str = "pending", due_in_days: Optional[float] = 3, now: datetime = NOW) -> MaintenanceTaskRecord:
    due = now + timedelta(days=due_in_days) if due_in_days is not None else None
    return MaintenanceTaskRecord(status=status, due_date=due, created_at=now - timedelta(days=5))


def alert(dismissed: bool = False) -> AlertRecord:
    return AlertRecord(is_dismissed=dismissed, severity="warning", parameter_name="Ammonia")


class FakeProvider(DataProvider):
    """In-memory provider; any slice can be set to an exception to raise."""

    def __init__(self, tests=None, livestock=None, tasks=None, alerts=None, delay: float = 0.0):
        self.slices = {
            "tests": tests or [],
            "livestock": livestock or [],
            "tasks": tasks or [],
            "alerts": alerts or [],
        }
        self.delay = delay
        self.calls: list[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _serve(self, name: str, *args):
        self.calls.append((name, *args))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            value = self.slices[name]
            if isinstance(value, BaseException):
                raise value
            return list(value)
        finally:
            self.in_flight -= 1

    async def fetch_recent_tests(self, water_body_id, since, limit):
        return await self._serve("tests", water_body_id, since, limit)

    async def fetch_livestock(self, water_body_id):
        return await self._serve("livestock", water_body_id)

    async def fetch_tasks_since(self, water_body_id, since):
        return await self._serve("tasks", water_body_id, since)

    async def fetch_active_alerts(self, water_body_id):
        return await self._serve("alerts", water_body_id)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
