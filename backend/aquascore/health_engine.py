from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Literal, Optional, Sequence

from .records import (
    AlertRecord,
    LivestockRecord,
    MaintenanceTaskRecord,
    WaterTestRecord,
    to_utc,
)
from .status import TaskStatus, livestock_weight, parameter_weight

logger = logging.getLogger(__name__)

WEIGHTS = {
    "water_tests": 0.40,
    "livestock_health": 0.25,
    "maintenance": 0.20,
    "care_consistency": 0.15,
}
_WEIGHT_TWENTIETHS = {name: round(w * 20) for name, w in WEIGHTS.items()}

# Fallbacks when a slice is empty
NO_TESTS_SCORE = 30
NO_LIVESTOCK_SCORE = 100
NO_TASKS_SCORE = 80

# Tunable; kept at the values the product has always shipped with
OVERDUE_TASK_PENALTY = 15
MAX_OVERDUE_PENALTY = 60

TREND_THRESHOLD = 5
MIN_TESTS_FOR_TREND = 3

MUTED_COLOR = "hsl(var(--muted))"

# (lower bound inclusive, label, color), highest first
LABEL_BANDS: list[tuple[int, str, str]] = [
    (90, "Excellent", "hsl(142, 76%, 36%)"),
    (75, "Good", "hsl(142, 69%, 58%)"),
    (50, "Fair", "hsl(48, 96%, 53%)"),
    (25, "Needs Attention", "hsl(25, 95%, 53%)"),
    (0, "Critical", "hsl(0, 84%, 60%)"),
]

TrendDirection = Literal["up", "down", "stable"]
ResultState = Literal["ready", "loading", "unavailable"]


@dataclass(frozen=True)
class HealthBreakdown:
    water_tests: int = 0
    livestock_health: int = 0
    maintenance: int = 0
    care_consistency: int = 0


@dataclass(frozen=True)
class HealthTrend:
    direction: TrendDirection = "stable"
    change: int = 0


@dataclass(frozen=True)
class HealthResult:
    score: int
    label: str
    color: str
    breakdown: HealthBreakdown
    trend: HealthTrend
    alerts: int
    overdue_tasks: int
    last_water_test: Optional[datetime]
    state: ResultState = "ready"
    failed_sources: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_loading(self) -> bool:
        return self.state == "loading"

    @property
    def is_authoritative(self) -> bool:
        return self.state == "ready"

    @classmethod
    def loading(cls) -> "HealthResult":
        """Placeholder while a fetch is in flight. Not a score of 0."""
        return cls._placeholder("Loading", "loading")

    @classmethod
    def unavailable(cls, failed_sources: Iterable[str] = ()) -> "HealthResult":
        """No slice could be fetched; callers decide messaging and retries."""
        return cls._placeholder("Unavailable", "unavailable", tuple(failed_sources))

    @classmethod
    def _placeholder(cls, label: str, state: ResultState, failed_sources: tuple[str, ...] = ()) -> "HealthResult":
        return cls(
            score=0,
            label=label,
            color=MUTED_COLOR,
            breakdown=HealthBreakdown(),
            trend=HealthTrend(),
            alerts=0,
            overdue_tasks=0,
            last_water_test=None,
            state=state,
            failed_sources=failed_sources,
        )


def round_half_up(x: float) -> int:
    """Round .5 away from zero for positives (2.5 -> 3), unlike builtin round()."""
    return int(math.floor(x + 0.5))


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _checked_score(name: str, value: float) -> int:
    """Final clamp to [0, 100]. Firing means a scorer is broken, so say so."""
    if not 0 <= value <= 100:
        logger.warning("Health score component %s out of range: %s; clamping", name, value)
    return int(_clamp(value, 0, 100))


# -----------------------------
# Water tests
# -----------------------------
def sort_tests(tests: Iterable[WaterTestRecord]) -> list[WaterTestRecord]:
    """Newest first. Records without a usable test_date are dropped."""
    dated = [t for t in tests if t.test_date is not None]
    return sorted(dated, key=lambda t: t.test_date, reverse=True)


def days_since(then: datetime, now: datetime) -> int:
    return (now - then) // timedelta(days=1)


def recency_score(days: int) -> int:
    if days > 14:
        return 50
    if days > 7:
        return 75
    if days > 3:
        return 90
    return 100


def score_water_tests(tests: Sequence[WaterTestRecord], now: datetime) -> int:
    """
    Recency of the newest test blended with the mean status weight of its
    parameters (40/60). All parameters count equally.
    """
    ordered = sort_tests(tests)
    if not ordered:
        return NO_TESTS_SCORE

    newest = ordered[0]
    recency = recency_score(days_since(newest.test_date, to_utc(now)))

    if not newest.parameters:
        return round_half_up(recency * 0.7)

    param_score = sum(parameter_weight(p.status) for p in newest.parameters) / len(newest.parameters)
    return round_half_up(recency * 0.4 + param_score * 0.6)


# -----------------------------
# Livestock
# -----------------------------
def _quantity(record: LivestockRecord) -> int:
    try:
        qty = int(record.quantity)
    except (TypeError, ValueError):
        logger.warning("Livestock record with non-numeric quantity %r ignored", record.quantity)
        return 0
    if qty < 0:
        logger.warning("Livestock record with negative quantity %s treated as 0", qty)
        return 0
    return qty


def score_livestock(livestock: Sequence[LivestockRecord]) -> int:
    """Quantity-weighted mean health. No animals means nothing to harm: 100."""
    if not livestock:
        return NO_LIVESTOCK_SCORE

    total_score = 0.0
    total_count = 0
    for animal in livestock:
        qty = _quantity(animal)
        total_score += livestock_weight(animal.health_status) * qty
        total_count += qty

    if total_count == 0:
        return NO_LIVESTOCK_SCORE
    return round_half_up(total_score / total_count)


# -----------------------------
# Maintenance
# -----------------------------
def is_overdue(task: MaintenanceTaskRecord, now: datetime) -> bool:
    return (
        task.status == TaskStatus.PENDING
        and task.due_date is not None
        and task.due_date < to_utc(now)
    )


def count_overdue(tasks: Sequence[MaintenanceTaskRecord], now: datetime) -> int:
    return sum(1 for t in tasks if is_overdue(t, now))


def count_completed(tasks: Sequence[MaintenanceTaskRecord]) -> int:
    return sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)


def overdue_penalty(overdue_count: int) -> int:
    return min(overdue_count * OVERDUE_TASK_PENALTY, MAX_OVERDUE_PENALTY)


def score_maintenance(tasks: Sequence[MaintenanceTaskRecord], now: datetime) -> int:
    if not tasks:
        return NO_TASKS_SCORE

    completion_rate = count_completed(tasks) / len(tasks) * 100.0
    penalty = overdue_penalty(count_overdue(tasks, now))
    return round_half_up(_clamp(completion_rate - penalty, 0.0, 100.0))


# -----------------------------
# Care consistency
# -----------------------------
def frequency_score(test_count: int) -> int:
    if test_count >= 8:
        return 100
    if test_count >= 4:
        return 85
    if test_count >= 2:
        return 70
    if test_count >= 1:
        return 55
    return 50


def score_consistency(tests: Sequence[WaterTestRecord], tasks: Sequence[MaintenanceTaskRecord]) -> int:
    testing = frequency_score(len(tests))
    task_score = min(100, count_completed(tasks) * 10 + 50)
    return round_half_up(testing * 0.6 + task_score * 0.4)


# -----------------------------
# Trend
# -----------------------------
def estimate_trend(tests: Sequence[WaterTestRecord], now: datetime) -> HealthTrend:
    """
    Compare the water-test score of the two newest tests against the next two.
    Swings of 5 points or less are treated as noise.
    """
    ordered = sort_tests(tests)
    if len(ordered) < MIN_TESTS_FOR_TREND:
        return HealthTrend()

    recent = score_water_tests(ordered[0:2], now)
    older = score_water_tests(ordered[2:4], now)
    delta = recent - older

    if delta > TREND_THRESHOLD:
        return HealthTrend("up", round_half_up(delta))
    if delta < -TREND_THRESHOLD:
        return HealthTrend("down", round_half_up(abs(delta)))
    return HealthTrend()


# -----------------------------
# Aggregate
# -----------------------------
def weighted_score(breakdown: HealthBreakdown) -> int:
    """Weighted sum of the components, rounded half-up without float drift."""
    # Every weight is a whole number of twentieths
    twentieths = sum(getattr(breakdown, name) * _WEIGHT_TWENTIETHS[name] for name in WEIGHTS)
    return (twentieths + 10) // 20


def label_from_score(score: float) -> tuple[str, str]:
    for lower, label, color in LABEL_BANDS:
        if score >= lower:
            return label, color
    return LABEL_BANDS[-1][1], LABEL_BANDS[-1][2]


def aggregate_health(
    tests: Sequence[WaterTestRecord],
    livestock: Sequence[LivestockRecord],
    tasks: Sequence[MaintenanceTaskRecord],
    alerts: Sequence[AlertRecord],
    now: datetime,
    failed_sources: Iterable[str] = (),
) -> HealthResult:
    """
    Combine the four component scores into one explainable result.
    Missing slices are not errors: each scorer has its own fallback.
    """
    now = to_utc(now)
    ordered = sort_tests(tests)

    breakdown = HealthBreakdown(
        water_tests=_checked_score("water_tests", score_water_tests(ordered, now)),
        livestock_health=_checked_score("livestock_health", score_livestock(livestock)),
        maintenance=_checked_score("maintenance", score_maintenance(tasks, now)),
        care_consistency=_checked_score("care_consistency", score_consistency(ordered, tasks)),
    )

    score = _checked_score("score", weighted_score(breakdown))
    label, color = label_from_score(score)

    return HealthResult(
        score=score,
        label=label,
        color=color,
        breakdown=breakdown,
        trend=estimate_trend(ordered, now),
        alerts=sum(1 for a in alerts if not a.is_dismissed),
        overdue_tasks=count_overdue(tasks, now),
        last_water_test=ordered[0].test_date if ordered else None,
        failed_sources=tuple(failed_sources),
    )
