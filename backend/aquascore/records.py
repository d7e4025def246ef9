"""Read-only records handed to the health engine by a data provider."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Optional, Union

from .status import LivestockHealth, ParameterStatus, TaskStatus, normalize

DateLike = Union[date, datetime, str, None]


def to_utc(value: DateLike) -> Optional[datetime]:
    """
    Coerce a provider timestamp to an aware UTC datetime.
    - naive datetimes are assumed to be UTC (that is how the DB stores them)
    - bare dates become midnight UTC
    - ISO strings are parsed; anything unparseable becomes None
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return None


def to_naive_utc(value: DateLike) -> Optional[datetime]:
    """Inverse direction: columns are stored as naive UTC."""
    dt = to_utc(value)
    return dt.replace(tzinfo=None) if dt is not None else None


@dataclass(frozen=True)
class ParameterReading:
    status: ParameterStatus = ParameterStatus.UNRECOGNIZED
    parameter_name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "status", normalize(self.status, "parameter"))


@dataclass(frozen=True)
class WaterTestRecord:
    test_date: Optional[datetime]
    parameters: tuple[ParameterReading, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "test_date", to_utc(self.test_date))
        object.__setattr__(self, "parameters", tuple(self.parameters or ()))


@dataclass(frozen=True)
class LivestockRecord:
    health_status: LivestockHealth = LivestockHealth.UNRECOGNIZED
    quantity: int = 1
    species: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "health_status", normalize(self.health_status, "livestock"))


@dataclass(frozen=True)
class MaintenanceTaskRecord:
    status: TaskStatus = TaskStatus.PENDING
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "status", normalize(self.status, "task"))
        object.__setattr__(self, "due_date", to_utc(self.due_date))
        object.__setattr__(self, "created_at", to_utc(self.created_at))


@dataclass(frozen=True)
class AlertRecord:
    is_dismissed: bool = False
    severity: Optional[str] = None
    parameter_name: Optional[str] = None
