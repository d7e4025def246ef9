"""
Status normalization.

Providers hand us free-form status strings for test parameters, livestock and
maintenance tasks. Everything downstream of this module only sees the closed
enums below; unknown or missing values fold into an UNRECOGNIZED member whose
weight (70) sits just above "acceptable" livestock/quarantine levels.
"""
from enum import Enum
from typing import Literal, Optional, Union

UNRECOGNIZED_WEIGHT = 70


class ParameterStatus(str, Enum):
    OPTIMAL = "optimal"
    ACCEPTABLE = "acceptable"
    WARNING = "warning"
    DANGER = "danger"
    CRITICAL = "critical"
    UNRECOGNIZED = "unrecognized"


class LivestockHealth(str, Enum):
    HEALTHY = "healthy"
    QUARANTINE = "quarantine"
    STRESSED = "stressed"
    SICK = "sick"
    DECEASED = "deceased"
    UNRECOGNIZED = "unrecognized"


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    OTHER = "other"  # skipped, cancelled, anything else a provider sends


PARAMETER_WEIGHTS: dict[ParameterStatus, int] = {
    ParameterStatus.OPTIMAL: 100,
    ParameterStatus.ACCEPTABLE: 80,
    ParameterStatus.WARNING: 50,
    ParameterStatus.DANGER: 20,
    ParameterStatus.CRITICAL: 0,
    ParameterStatus.UNRECOGNIZED: UNRECOGNIZED_WEIGHT,
}

LIVESTOCK_WEIGHTS: dict[LivestockHealth, int] = {
    LivestockHealth.HEALTHY: 100,
    LivestockHealth.QUARANTINE: 70,
    LivestockHealth.STRESSED: 50,
    LivestockHealth.SICK: 25,
    LivestockHealth.DECEASED: 0,
    LivestockHealth.UNRECOGNIZED: UNRECOGNIZED_WEIGHT,
}

StatusKind = Literal["parameter", "livestock", "task"]
InternalStatus = Union[ParameterStatus, LivestockHealth, TaskStatus]

_ENUMS = {
    "parameter": (ParameterStatus, ParameterStatus.UNRECOGNIZED),
    "livestock": (LivestockHealth, LivestockHealth.UNRECOGNIZED),
    "task": (TaskStatus, TaskStatus.OTHER),
}


def normalize(raw: Optional[object], kind: StatusKind) -> InternalStatus:
    """Map a raw provider status onto the internal enum for `kind`.

    Matching ignores case and surrounding whitespace. Never raises for bad
    values; only an unknown `kind` is a programming error.
    """
    try:
        enum_cls, default = _ENUMS[kind]
    except KeyError:
        raise ValueError(f"Unknown status kind: {kind!r}") from None

    if isinstance(raw, enum_cls):
        return raw
    if not isinstance(raw, str):
        return default

    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        return default


def parameter_weight(raw: Optional[object]) -> int:
    return PARAMETER_WEIGHTS[normalize(raw, "parameter")]


def livestock_weight(raw: Optional[object]) -> int:
    return LIVESTOCK_WEIGHTS[normalize(raw, "livestock")]
