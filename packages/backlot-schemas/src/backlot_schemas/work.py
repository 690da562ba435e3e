"""Read-only snapshot schemas for the work pool and department scheduler."""

from __future__ import annotations

from pydantic import Field

from backlot_schemas.base import BaseSchema
from backlot_schemas.primitives import (
    DepartmentId,
    DepartmentWeight,
    Timestamp,
    WorkerId,
    WorkState,
    WorkUnitId,
)


class PoolMetrics(BaseSchema):
    """Capacity and throughput counters for the work pool."""

    capacity: int = Field(..., ge=1, description="Max units running at once")
    active: int = Field(..., ge=0, description="Units currently running")
    pending: int = Field(..., ge=0, description="Units waiting for capacity")
    completed: int = Field(..., ge=0, description="Units that settled successfully")
    failed: int = Field(..., ge=0, description="Units whose invocation raised")
    avg_duration_s: float = Field(
        ..., ge=0, description="Average duration of completed units in seconds"
    )
    shutting_down: bool = Field(..., description="Whether admission has stopped")


class DepartmentLoad(BaseSchema):
    """Active and queued unit counts for a single department."""

    department: DepartmentId = Field(..., description="Department identifier")
    active: int = Field(..., ge=0, description="Units running for the department")
    queued: int = Field(..., ge=0, description="Units queued for the department")

    @property
    def total(self) -> int:
        """Return active plus queued units."""
        return self.active + self.queued


class QueuedWorkSnapshot(BaseSchema):
    """A pending work unit, without its opaque payload."""

    unit_id: WorkUnitId = Field(..., description="Work unit identifier")
    department: DepartmentId = Field(..., description="Department identifier")
    kind: str = Field(..., min_length=1, description="Work-kind tag")
    priority: int = Field(..., description="Admission priority")
    created_at: Timestamp = Field(..., description="Enqueue timestamp")


class ActiveWorkSnapshot(BaseSchema):
    """A work unit currently occupying pool capacity."""

    worker_id: WorkerId = Field(..., description="Generated worker identifier")
    unit_id: WorkUnitId = Field(..., description="Source work unit identifier")
    department: DepartmentId = Field(..., description="Department identifier")
    started_at: Timestamp = Field(..., description="Start timestamp")
    state: WorkState = Field(..., description="Lifecycle state")


class QueueStatus(BaseSchema):
    """Queued and active units in admission order."""

    queued: list[QueuedWorkSnapshot] = Field(
        default_factory=list, description="Pending units, highest priority first"
    )
    active: list[ActiveWorkSnapshot] = Field(
        default_factory=list, description="Units currently running"
    )


class DepartmentMetrics(BaseSchema):
    """Weight and live load for one department."""

    department: DepartmentId = Field(..., description="Department identifier")
    weight: DepartmentWeight = Field(..., description="Base priority weight")
    active: int = Field(..., ge=0, description="Units running for the department")
    queued: int = Field(..., ge=0, description="Units queued for the department")


class SchedulerStatus(BaseSchema):
    """Aggregated scheduler view for observability."""

    default_weight: DepartmentWeight = Field(
        ..., description="Weight applied to unknown departments"
    )
    departments: list[DepartmentMetrics] = Field(
        default_factory=list, description="Per-department metrics"
    )
    pool: PoolMetrics = Field(..., description="Pool metrics at snapshot time")
