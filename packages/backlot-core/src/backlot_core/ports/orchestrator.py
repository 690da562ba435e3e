"""Protocol definitions, errors, and log helpers for pipeline orchestration."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from backlot_schemas.base import BaseSchema
from backlot_schemas.events import (
    PhaseEventData,
    PhaseEventSuffix,
    RunCompletedData,
    RunEvent,
    RunFailedData,
    RunStartedData,
)
from backlot_schemas.logs import LogEntry
from backlot_schemas.pipeline import DepartmentResult, RunError
from backlot_schemas.primitives import (
    DepartmentId,
    JsonValue,
    LogLevel,
    PhaseName,
    ResourceId,
    RunId,
    RunStatus,
    Timestamp,
)
from backlot_schemas.responses import ErrorDetails, ErrorResponse

NO_PARTIAL_QUALIFICATION = "No partial qualification was applied."


@runtime_checkable
class LogSinkProtocol(Protocol):
    """Protocol for emitting JSONL log entries."""

    async def emit_log(self, entry: LogEntry) -> None:
        """Emit a log entry."""
        raise NotImplementedError


class OrchestrationErrorCode(StrEnum):
    """Categorized error codes for pipeline failures."""

    LOCK_CONFLICT = "lock_conflict"
    READINESS_FAILURE = "readiness_failure"
    PHASE_AGGREGATE_FAILURE = "phase_aggregate_failure"
    PERSISTENCE_FAILURE = "persistence_failure"
    PIPELINE_FAILED = "pipeline_failed"


class OrchestrationErrorDetails(BaseSchema):
    """Detailed orchestration error context."""

    resource_id: ResourceId | None = Field(
        None, description="Target resource identifier"
    )
    phase: PhaseName | None = Field(None, description="Phase associated with error")
    failed_departments: list[DepartmentResult] | None = Field(
        None, description="Departments that failed with their error text"
    )
    reason: str | None = Field(None, description="Additional error context")


class OrchestrationErrorInfo(BaseSchema):
    """Structured orchestration error data."""

    code: OrchestrationErrorCode = Field(..., description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: OrchestrationErrorDetails | None = Field(None, description="Error details")

    def department_names(self) -> list[DepartmentId]:
        """Return the failing department names, if any.

        Returns:
            list[DepartmentId]: Failing departments in reported order.
        """
        if self.details is None or not self.details.failed_departments:
            return []
        return [result.department for result in self.details.failed_departments]

    def to_run_error(self) -> RunError:
        """Convert orchestration error info to a run error record.

        Returns:
            RunError: Error record stored on the pipeline run.
        """
        details: dict[str, JsonValue] | None = None
        if self.details is not None:
            details = self.details.model_dump(exclude_none=True)
        code_value = getattr(self.code, "value", self.code)
        return RunError(code=str(code_value), message=self.message, details=details)

    def to_error_response(self) -> ErrorResponse:
        """Convert orchestration error info to standard error response.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        departments = self.department_names()
        if departments:
            details = ErrorDetails(
                field="departments",
                provided=", ".join(departments),
                valid_options=None,
            )
        elif self.details is not None and self.details.phase is not None:
            details = ErrorDetails(
                field="phase", provided=self.details.phase, valid_options=None
            )
        code_value = getattr(self.code, "value", self.code)
        return ErrorResponse(
            code=str(code_value), message=self.message, details=details
        )


class OrchestrationError(Exception):
    """Orchestration error with structured details."""

    def __init__(self, info: OrchestrationErrorInfo) -> None:
        """Initialize the orchestration error.

        Args:
            info: Structured orchestration error information.
        """
        super().__init__(info.message)
        self.info = info


class LockConflictError(OrchestrationError):
    """Raised when the target resource is already running or qualified."""

    def __init__(self, resource_id: ResourceId) -> None:
        """Initialize the lock conflict.

        Args:
            resource_id: Resource that could not be locked.
        """
        super().__init__(
            OrchestrationErrorInfo(
                code=OrchestrationErrorCode.LOCK_CONFLICT,
                message=(
                    f"Resource {resource_id} is already being qualified "
                    "or has been qualified"
                ),
                details=OrchestrationErrorDetails(resource_id=resource_id),
            )
        )


class ReadinessError(OrchestrationError):
    """Raised when intake data is insufficient for one or more departments."""

    def __init__(
        self,
        resource_id: ResourceId,
        scores: dict[DepartmentId, float],
        minimum: float,
    ) -> None:
        """Initialize the readiness failure.

        Args:
            resource_id: Target resource identifier.
            scores: Insufficient departments and their scores.
            minimum: Minimum required score.
        """
        failed = [
            DepartmentResult(
                department=department,
                success=False,
                error=f"readiness {score:.2f} below {minimum:.2f}",
            )
            for department, score in scores.items()
        ]
        super().__init__(
            OrchestrationErrorInfo(
                code=OrchestrationErrorCode.READINESS_FAILURE,
                message=(
                    "Insufficient intake data for departments: "
                    f"{', '.join(scores)}. "
                    f"Minimum {minimum:.0%} readiness required."
                ),
                details=OrchestrationErrorDetails(
                    resource_id=resource_id, failed_departments=failed
                ),
            )
        )


class PhaseAggregateError(OrchestrationError):
    """Raised when one or more department workflows in a phase failed."""

    def __init__(
        self,
        resource_id: ResourceId,
        phase: PhaseName,
        failures: list[DepartmentResult],
    ) -> None:
        """Initialize the phase failure.

        Args:
            resource_id: Target resource identifier.
            phase: Phase that failed.
            failures: Failed department results, each carrying error text.
        """
        names = ", ".join(result.department for result in failures)
        errors = "; ".join(
            f"{result.department}: {result.error or 'unknown error'}"
            for result in failures
        )
        super().__init__(
            OrchestrationErrorInfo(
                code=OrchestrationErrorCode.PHASE_AGGREGATE_FAILURE,
                message=f"Phase {phase} failed for: {names}. Errors: {errors}",
                details=OrchestrationErrorDetails(
                    resource_id=resource_id,
                    phase=phase,
                    failed_departments=failures,
                ),
            )
        )


class PersistenceFailureError(OrchestrationError):
    """Raised when qualified rows cannot be written or ingested."""

    def __init__(
        self,
        resource_id: ResourceId,
        phase: PhaseName | None,
        departments: list[DepartmentId],
        reason: str,
    ) -> None:
        """Initialize the persistence failure.

        Args:
            resource_id: Target resource identifier.
            phase: Phase whose output was being written, None for ingestion.
            departments: Departments whose rows were affected.
            reason: Underlying error text.
        """
        target = f"phase {phase}" if phase is not None else "knowledge base"
        failures = [
            DepartmentResult(department=department, success=False, error=reason)
            for department in departments
        ]
        super().__init__(
            OrchestrationErrorInfo(
                code=OrchestrationErrorCode.PERSISTENCE_FAILURE,
                message=(
                    f"Persisting {target} output failed for: "
                    f"{', '.join(departments)}. Errors: {reason}"
                ),
                details=OrchestrationErrorDetails(
                    resource_id=resource_id,
                    phase=phase,
                    failed_departments=failures,
                    reason=reason,
                ),
            )
        )


class PipelineFailedError(OrchestrationError):
    """Raised to callers when a run aborts; wraps the aborting error."""

    def __init__(self, run_id: RunId, cause: OrchestrationError) -> None:
        """Initialize the pipeline failure.

        Args:
            run_id: Run identifier.
            cause: Error that aborted the run.
        """
        super().__init__(
            OrchestrationErrorInfo(
                code=OrchestrationErrorCode.PIPELINE_FAILED,
                message=f"{cause.info.message} {NO_PARTIAL_QUALIFICATION}",
                details=cause.info.details,
            )
        )
        self.run_id = run_id
        self.cause = cause


def build_run_started_log(
    timestamp: Timestamp,
    run_id: RunId,
    resource_id: ResourceId,
    phases: list[PhaseName],
) -> LogEntry:
    """Build a log entry for run start.

    Args:
        timestamp: ISO-8601 timestamp.
        run_id: Pipeline run identifier.
        resource_id: Target resource identifier.
        phases: Planned phases for the run.

    Returns:
        LogEntry: Structured run start log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=RunEvent.STARTED,
        run_id=run_id,
        phase=None,
        message="Run started",
        data=RunStartedData(resource_id=resource_id, phases=phases).model_dump(
            exclude_none=True
        ),
    )


def build_run_completed_log(
    timestamp: Timestamp,
    run_id: RunId,
    resource_id: ResourceId,
    qualified_resource_id: ResourceId,
) -> LogEntry:
    """Build a log entry for run completion.

    Args:
        timestamp: ISO-8601 timestamp.
        run_id: Pipeline run identifier.
        resource_id: Target resource identifier.
        qualified_resource_id: Promoted resource identifier.

    Returns:
        LogEntry: Structured run completion log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=RunEvent.COMPLETED,
        run_id=run_id,
        phase=None,
        message="Run completed",
        data=RunCompletedData(
            resource_id=resource_id,
            status=RunStatus.SUCCEEDED,
            qualified_resource_id=qualified_resource_id,
        ).model_dump(exclude_none=True),
    )


def build_run_failed_log(
    timestamp: Timestamp,
    run_id: RunId,
    resource_id: ResourceId,
    info: OrchestrationErrorInfo,
    next_action: str,
) -> LogEntry:
    """Build a log entry for run failure.

    Args:
        timestamp: ISO-8601 timestamp.
        run_id: Pipeline run identifier.
        resource_id: Target resource identifier.
        info: Error that aborted the run.
        next_action: Suggested next action.

    Returns:
        LogEntry: Structured run failure log entry.
    """
    code_value = getattr(info.code, "value", info.code)
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.ERROR,
        event=RunEvent.FAILED,
        run_id=run_id,
        phase=info.details.phase if info.details is not None else None,
        message=info.message,
        data=RunFailedData(
            resource_id=resource_id,
            error_code=str(code_value),
            failed_departments=info.department_names(),
            next_action=next_action,
        ).model_dump(exclude_none=True),
    )


def build_run_conflict_log(timestamp: Timestamp, resource_id: ResourceId) -> LogEntry:
    """Build a log entry for a rejected run on a locked resource.

    Args:
        timestamp: ISO-8601 timestamp.
        resource_id: Resource that could not be locked.

    Returns:
        LogEntry: Structured conflict log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.WARN,
        event=RunEvent.CONFLICT,
        run_id=None,
        phase=None,
        message="Resource is locked by another run",
        data={"resource_id": resource_id},
    )


def build_phase_event_name(phase: PhaseName, suffix: PhaseEventSuffix) -> str:
    """Build a phase-specific event name.

    Args:
        phase: Phase name.
        suffix: Event suffix (e.g., started, completed).

    Returns:
        str: Event name in snake_case.
    """
    suffix_value = getattr(suffix, "value", suffix)
    return f"{phase}_{suffix_value}"


def build_phase_log(
    timestamp: Timestamp,
    run_id: RunId,
    event_suffix: PhaseEventSuffix,
    message: str,
    payload: PhaseEventData,
    data: dict[str, JsonValue] | None = None,
    level: LogLevel = LogLevel.INFO,
) -> LogEntry:
    """Build a log entry for a phase lifecycle event.

    Args:
        timestamp: ISO-8601 timestamp.
        run_id: Pipeline run identifier.
        event_suffix: Event suffix (started/completed/failed).
        message: Log message.
        payload: Phase identity payload.
        data: Extra structured event data.
        level: Log level.

    Returns:
        LogEntry: Structured phase log entry.
    """
    extra = {
        key: value
        for key, value in (data or {}).items()
        if key not in {"phase", "index", "mode", "departments"}
    }
    return LogEntry(
        timestamp=timestamp,
        level=level,
        event=build_phase_event_name(payload.phase, event_suffix),
        run_id=run_id,
        phase=payload.phase,
        message=message,
        data={**payload.model_dump(exclude_none=True), **extra},
    )
