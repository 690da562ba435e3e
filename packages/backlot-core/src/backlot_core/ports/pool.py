"""Protocol definitions and errors for the department work pool."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from backlot_schemas.base import BaseSchema
from backlot_schemas.events import PoolEvent, WorkEvent, WorkEventData
from backlot_schemas.logs import LogEntry
from backlot_schemas.primitives import DepartmentId, LogLevel, Timestamp
from backlot_schemas.responses import ErrorDetails, ErrorResponse


@runtime_checkable
class DepartmentWorkflowProtocol(Protocol):
    """Protocol for invoking one department's workflow.

    The payload and the returned output are opaque to the pool. Timeouts and
    cancellation belong inside the implementation.
    """

    async def invoke(self, department: DepartmentId, payload: object) -> object:
        """Execute the department workflow and return its output."""
        raise NotImplementedError


class PoolErrorCode(StrEnum):
    """Categorized error codes for pool failures."""

    POOL_SHUTTING_DOWN = "pool_shutting_down"
    WORK_UNIT_FAILED = "work_unit_failed"


class PoolErrorDetails(BaseSchema):
    """Detailed pool error context."""

    department: DepartmentId | None = Field(
        None, description="Department associated with the error"
    )
    unit_id: str | None = Field(None, description="Work unit identifier")
    reason: str | None = Field(None, description="Additional error context")


class PoolErrorInfo(BaseSchema):
    """Structured pool error data."""

    code: PoolErrorCode = Field(..., description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: PoolErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert pool error info to the standard error response.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.department is not None:
            details = ErrorDetails(
                field="department",
                provided=self.details.department,
                valid_options=None,
            )
        code_value = getattr(self.code, "value", self.code)
        return ErrorResponse(
            code=str(code_value), message=self.message, details=details
        )


class PoolError(Exception):
    """Pool error with structured details."""

    def __init__(self, info: PoolErrorInfo) -> None:
        """Initialize the pool error.

        Args:
            info: Structured pool error information.
        """
        super().__init__(info.message)
        self.info = info


class PoolShuttingDownError(PoolError):
    """Raised when work is submitted to a draining pool."""

    def __init__(self, department: DepartmentId | None = None) -> None:
        """Initialize the admission rejection.

        Args:
            department: Department whose work was rejected.
        """
        super().__init__(
            PoolErrorInfo(
                code=PoolErrorCode.POOL_SHUTTING_DOWN,
                message="Work pool is shutting down",
                details=PoolErrorDetails(department=department),
            )
        )


class WorkUnitFailedError(PoolError):
    """A single work invocation failed.

    The pool recovers from this locally; it is only raised to callers that
    explicitly ask for the outcome of one unit.
    """

    def __init__(self, department: DepartmentId, unit_id: str, reason: str) -> None:
        """Initialize the work unit failure.

        Args:
            department: Department that owned the unit.
            unit_id: Work unit identifier.
            reason: Underlying error text.
        """
        super().__init__(
            PoolErrorInfo(
                code=PoolErrorCode.WORK_UNIT_FAILED,
                message=f"Work unit {unit_id} for {department} failed: {reason}",
                details=PoolErrorDetails(
                    department=department, unit_id=unit_id, reason=reason
                ),
            )
        )


def build_work_log(
    timestamp: Timestamp,
    event: WorkEvent,
    data: WorkEventData,
    message: str,
    level: LogLevel = LogLevel.INFO,
) -> LogEntry:
    """Build a log entry for a work unit lifecycle event.

    Args:
        timestamp: ISO-8601 timestamp.
        event: Work event name.
        data: Structured work event payload.
        message: Log message.
        level: Log level.

    Returns:
        LogEntry: Structured work log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=level,
        event=event,
        run_id=None,
        phase=None,
        message=message,
        data=data.model_dump(exclude_none=True),
    )


def build_pool_log(
    timestamp: Timestamp,
    event: PoolEvent,
    message: str,
    *,
    capacity: int,
    active: int,
    pending: int,
    level: LogLevel = LogLevel.INFO,
) -> LogEntry:
    """Build a log entry for a pool-level event.

    Args:
        timestamp: ISO-8601 timestamp.
        event: Pool event name.
        message: Log message.
        capacity: Pool capacity at event time.
        active: Active unit count at event time.
        pending: Pending unit count at event time.
        level: Log level.

    Returns:
        LogEntry: Structured pool log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=level,
        event=event,
        run_id=None,
        phase=None,
        message=message,
        data={"capacity": capacity, "active": active, "pending": pending},
    )
