from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import List, Optional, Literal

from .health_engine import HealthResult

Severity = Literal["info", "warning", "critical"]
ParameterStatusIn = Literal["optimal", "acceptable", "warning", "danger", "critical"]

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class WaterBodyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    body_type: str

class ParameterIn(BaseModel):
    parameter_name: str = Field(..., min_length=1)
    value: Optional[float] = None
    unit: Optional[str] = None
    status: Optional[ParameterStatusIn] = None

class WaterTestCreate(BaseModel):
    test_date: Optional[datetime] = None
    notes: Optional[str] = None
    parameters: List[ParameterIn] = Field(default_factory=list)

class WaterTestOut(BaseModel):
    id: int
    water_body_id: int
    test_date: datetime
    parameter_count: int

class AlertOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    water_body_id: int
    parameter_name: str
    message: str
    severity: Severity
    is_dismissed: bool
    created_at: datetime
    dismissed_at: Optional[datetime] = None

class HealthBreakdownOut(CamelModel):
    water_tests: int
    livestock_health: int
    maintenance: int
    care_consistency: int

class HealthTrendOut(CamelModel):
    direction: Literal["up", "down", "stable"]
    change: int = Field(..., ge=0)

class HealthOut(CamelModel):
    water_body_id: int
    score: int = Field(..., ge=0, le=100)
    label: str
    color: str
    breakdown: HealthBreakdownOut
    trend: HealthTrendOut
    alerts: int
    overdue_tasks: int
    last_water_test: Optional[datetime] = None
    state: Literal["ready", "loading", "unavailable"]
    failed_sources: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, water_body_id: int, result: HealthResult) -> "HealthOut":
        b = result.breakdown
        return cls(
            water_body_id=water_body_id,
            score=result.score,
            label=result.label,
            color=result.color,
            breakdown=HealthBreakdownOut(
                water_tests=b.water_tests,
                livestock_health=b.livestock_health,
                maintenance=b.maintenance,
                care_consistency=b.care_consistency,
            ),
            trend=HealthTrendOut(direction=result.trend.direction, change=result.trend.change),
            alerts=result.alerts,
            overdue_tasks=result.overdue_tasks,
            last_water_test=result.last_water_test,
            state=result.state,
            failed_sources=list(result.failed_sources),
        )
