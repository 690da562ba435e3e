"""Event taxonomy and structured payloads for pool and run observability."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from backlot_schemas.base import BaseSchema
from backlot_schemas.primitives import (
    DepartmentId,
    PhaseMode,
    PhaseName,
    ResourceId,
    RunStatus,
)


class RunEvent(StrEnum):
    """Event names for pipeline run lifecycle."""

    STARTED = "run_started"
    COMPLETED = "run_completed"
    FAILED = "run_failed"
    CONFLICT = "run_conflict"


class PhaseEventSuffix(StrEnum):
    """Suffixes for phase lifecycle events."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkEvent(StrEnum):
    """Event names for work units moving through the pool."""

    STARTED = "work_started"
    COMPLETED = "work_completed"
    FAILED = "work_failed"
    DISCARDED = "work_discarded"


class PoolEvent(StrEnum):
    """Event names for pool-level lifecycle changes."""

    SHUTDOWN_STARTED = "pool_shutdown_started"
    SHUTDOWN_COMPLETED = "pool_shutdown_completed"
    SHUTDOWN_TIMED_OUT = "pool_shutdown_timed_out"


class RunStartedData(BaseSchema):
    """Payload for run start events."""

    resource_id: ResourceId = Field(..., description="Target resource identifier")
    phases: list[PhaseName] = Field(..., description="Planned phases for the run")


class RunCompletedData(BaseSchema):
    """Payload for run completion events."""

    resource_id: ResourceId = Field(..., description="Target resource identifier")
    status: RunStatus = Field(..., description="Final run status")
    qualified_resource_id: ResourceId | None = Field(
        None, description="Promoted resource identifier"
    )


class RunFailedData(BaseSchema):
    """Payload for run failure events."""

    resource_id: ResourceId = Field(..., description="Target resource identifier")
    error_code: str = Field(..., min_length=1, description="Error code")
    failed_departments: list[DepartmentId] = Field(
        default_factory=list, description="Departments whose workflows failed"
    )
    next_action: str = Field(..., min_length=1, description="Suggested next action")


class PhaseEventData(BaseSchema):
    """Payload for phase lifecycle events."""

    phase: PhaseName = Field(..., description="Phase name")
    index: int = Field(..., ge=0, description="Phase stage index")
    mode: PhaseMode = Field(..., description="Phase execution mode")
    departments: list[DepartmentId] = Field(
        ..., min_length=1, description="Departments in the phase"
    )


class WorkEventData(BaseSchema):
    """Payload for work unit lifecycle events."""

    unit_id: str = Field(..., min_length=1, description="Work unit identifier")
    department: DepartmentId = Field(..., description="Department identifier")
    kind: str = Field(..., min_length=1, description="Work-kind tag")
    priority: int = Field(..., description="Admission priority")
    duration_s: float | None = Field(
        None, ge=0, description="Execution duration in seconds"
    )
    error_message: str | None = Field(None, description="Failure message")
