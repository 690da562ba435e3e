"""Pipeline run state schemas."""

from __future__ import annotations

from pydantic import Field

from backlot_schemas.base import BaseSchema
from backlot_schemas.primitives import (
    DepartmentId,
    JsonValue,
    PhaseMode,
    PhaseName,
    PhaseStatus,
    ResourceId,
    RunId,
    RunStatus,
    Timestamp,
)


class RunError(BaseSchema):
    """Error details for a failed run or phase."""

    code: str = Field(..., min_length=1, description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: dict[str, JsonValue] | None = Field(
        None, description="Structured error details"
    )


class DepartmentResult(BaseSchema):
    """Outcome of one department workflow within a phase."""

    department: DepartmentId = Field(..., description="Department identifier")
    success: bool = Field(..., description="Whether the workflow succeeded")
    row_count: int = Field(0, ge=0, description="Qualified rows produced")
    error: str | None = Field(None, description="Error text when the workflow failed")


class PhaseRunRecord(BaseSchema):
    """History record for a single phase execution."""

    phase: PhaseName = Field(..., description="Phase name")
    index: int = Field(..., ge=0, description="Phase stage index")
    mode: PhaseMode = Field(..., description="Phase execution mode")
    status: PhaseStatus = Field(..., description="Phase execution status")
    departments: list[DepartmentResult] = Field(
        default_factory=list, description="Per-department results"
    )
    started_at: Timestamp | None = Field(None, description="Phase start timestamp")
    completed_at: Timestamp | None = Field(
        None, description="Phase completion timestamp"
    )


class PipelineRun(BaseSchema):
    """One execution of the full phase sequence for a target resource."""

    resource_id: ResourceId = Field(..., description="Target resource identifier")
    run_id: RunId | None = Field(None, description="Run identifier once locked")
    status: RunStatus = Field(RunStatus.IDLE, description="Run status")
    current_phase_index: int | None = Field(
        None, ge=0, description="Index of the phase currently executing"
    )
    last_error: RunError | None = Field(None, description="Last error if failed")
    qualified_resource_id: ResourceId | None = Field(
        None, description="Promoted resource identifier after success"
    )
    phase_history: list[PhaseRunRecord] = Field(
        default_factory=list, description="Executed phase records"
    )
    created_at: Timestamp | None = Field(None, description="Run creation timestamp")
    started_at: Timestamp | None = Field(None, description="Run start timestamp")
    completed_at: Timestamp | None = Field(
        None, description="Run completion timestamp"
    )


class PipelineRunResult(BaseSchema):
    """Result returned to callers after a successful run."""

    resource_id: ResourceId = Field(..., description="Target resource identifier")
    run_id: RunId = Field(..., description="Run identifier")
    status: RunStatus = Field(..., description="Final run status")
    qualified_resource_id: ResourceId = Field(
        ..., description="Identifier of the promoted, qualified dataset"
    )


class DurableErrorRecord(BaseSchema):
    """Operator-visible record of a failed run."""

    resource_id: ResourceId = Field(..., description="Target resource identifier")
    run_id: RunId | None = Field(None, description="Run identifier")
    error_type: str = Field(..., min_length=1, description="Error category")
    error_message: str = Field(..., min_length=1, description="Error message")
    failed_departments: list[DepartmentId] = Field(
        default_factory=list, description="Departments whose workflows failed"
    )
    created_at: Timestamp = Field(..., description="Record timestamp")


class PhasePlanEntry(BaseSchema):
    """One phase of a resolved execution plan."""

    index: int = Field(..., ge=0, description="Phase stage index")
    phase: PhaseName = Field(..., description="Phase name")
    mode: PhaseMode = Field(..., description="Phase execution mode")
    departments: list[DepartmentId] = Field(
        ..., min_length=1, description="Departments in the phase"
    )
    reads: list[PhaseName] = Field(
        default_factory=list, description="Earlier phases visible as context"
    )
