"""
Data provider contract for the health engine, plus the SQLAlchemy-backed
implementation the service uses.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable

from sqlalchemy import desc
from sqlalchemy.orm import Session, selectinload

from .models import Livestock, MaintenanceTask, WaterTest, WaterTestAlert
from .records import (
    AlertRecord,
    LivestockRecord,
    MaintenanceTaskRecord,
    ParameterReading,
    WaterTestRecord,
    to_naive_utc,
)


class DataProvider(ABC):
    """Source of the four record slices for one water body.

    Any method may raise (network, auth, timeout); the orchestrator treats a
    failure as an empty slice for that domain.
    """

    @abstractmethod
    async def fetch_recent_tests(self, water_body_id: int, since: datetime, limit: int) -> list[WaterTestRecord]:
        ...

    @abstractmethod
    async def fetch_livestock(self, water_body_id: int) -> list[LivestockRecord]:
        ...

    @abstractmethod
    async def fetch_tasks_since(self, water_body_id: int, since: datetime) -> list[MaintenanceTaskRecord]:
        ...

    @abstractmethod
    async def fetch_active_alerts(self, water_body_id: int) -> list[AlertRecord]:
        ...


class SqlDataProvider(DataProvider):
    """
    Reads from the service tables. Every call opens its own session and runs
    in a worker thread so the four fetches can proceed concurrently.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def _run(self, fn, *args):
        return await asyncio.to_thread(self._with_session, fn, *args)

    def _with_session(self, fn, *args):
        db = self.session_factory()
        try:
            return fn(db, *args)
        finally:
            db.close()

    # -----------------------------
    # Queries
    # -----------------------------
    @staticmethod
    def _query_tests(db: Session, water_body_id: int, since: datetime, limit: int) -> list[WaterTestRecord]:
        rows = (
            db.query(WaterTest)
            .options(selectinload(WaterTest.parameters))
            .filter(WaterTest.water_body_id == water_body_id, WaterTest.test_date >= to_naive_utc(since))
            .order_by(desc(WaterTest.test_date))
            .limit(limit)
            .all()
        )
        return [
            WaterTestRecord(
                test_date=r.test_date,
                parameters=[ParameterReading(status=p.status, parameter_name=p.parameter_name) for p in r.parameters],
            )
            for r in rows
        ]

    @staticmethod
    def _query_livestock(db: Session, water_body_id: int) -> list[LivestockRecord]:
        rows = db.query(Livestock).filter(Livestock.water_body_id == water_body_id).all()
        return [
            LivestockRecord(health_status=r.health_status, quantity=r.quantity, species=r.species)
            for r in rows
        ]

    @staticmethod
    def _query_tasks(db: Session, water_body_id: int, since: datetime) -> list[MaintenanceTaskRecord]:
        rows = (
            db.query(MaintenanceTask)
            .filter(MaintenanceTask.water_body_id == water_body_id, MaintenanceTask.created_at >= to_naive_utc(since))
            .all()
        )
        return [
            MaintenanceTaskRecord(status=r.status, due_date=r.due_date, created_at=r.created_at)
            for r in rows
        ]

    @staticmethod
    def _query_alerts(db: Session, water_body_id: int) -> list[AlertRecord]:
        rows = (
            db.query(WaterTestAlert)
            .filter(
                WaterTestAlert.water_body_id == water_body_id,
                WaterTestAlert.is_dismissed == False,  # noqa: E712
            )
            .all()
        )
        return [
            AlertRecord(is_dismissed=bool(r.is_dismissed), severity=r.severity, parameter_name=r.parameter_name)
            for r in rows
        ]

    # -----------------------------
    # Contract
    # -----------------------------
    async def fetch_recent_tests(self, water_body_id: int, since: datetime, limit: int) -> list[WaterTestRecord]:
        return await self._run(self._query_tests, water_body_id, since, limit)

    async def fetch_livestock(self, water_body_id: int) -> list[LivestockRecord]:
        return await self._run(self._query_livestock, water_body_id)

    async def fetch_tasks_since(self, water_body_id: int, since: datetime) -> list[MaintenanceTaskRecord]:
        return await self._run(self._query_tasks, water_body_id, since)

    async def fetch_active_alerts(self, water_body_id: int) -> list[AlertRecord]:
        return await self._run(self._query_alerts, water_body_id)
