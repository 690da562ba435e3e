"""Protocol definitions for the pipeline's data and locking collaborators."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from backlot_schemas.base import BaseSchema
from backlot_schemas.logs import LogEntry
from backlot_schemas.pipeline import DurableErrorRecord, RunError
from backlot_schemas.primitives import (
    DepartmentId,
    JsonRow,
    ResourceId,
    RunId,
    RunStatus,
)
from backlot_schemas.responses import ErrorDetails, ErrorResponse


@runtime_checkable
class IntakeSourceProtocol(Protocol):
    """Protocol for reading raw intake rows for a department."""

    async def fetch_intake_rows(
        self, resource_id: ResourceId, department: DepartmentId
    ) -> list[JsonRow]:
        """Return the raw intake rows gathered for one department."""
        raise NotImplementedError


@runtime_checkable
class QualifiedStoreProtocol(Protocol):
    """Protocol for writing phase output to the qualified dataset."""

    async def persist_qualified_rows(
        self, resource_id: ResourceId, rows: Sequence[JsonRow]
    ) -> None:
        """Persist qualified rows; raise on failure."""
        raise NotImplementedError


@runtime_checkable
class KnowledgeBaseProtocol(Protocol):
    """Protocol for the final knowledge-base ingestion side effect."""

    async def ingest(self, resource_id: ResourceId, rows: Sequence[JsonRow]) -> None:
        """Ingest qualified rows; raise on failure."""
        raise NotImplementedError


@runtime_checkable
class ResourceLockProtocol(Protocol):
    """Protocol for the per-resource qualification lock.

    `acquire` must be an atomic compare-and-set: of two concurrent attempts on
    the same resource exactly one may return True.
    """

    async def acquire(self, resource_id: ResourceId) -> bool:
        """Lock the resource; return False if it is running or qualified."""
        raise NotImplementedError

    async def release(
        self,
        resource_id: ResourceId,
        final_status: RunStatus,
        *,
        qualified_resource_id: ResourceId | None = None,
        error: RunError | None = None,
    ) -> None:
        """Release the lock, recording the terminal status on the resource."""
        raise NotImplementedError


@runtime_checkable
class ErrorRecorderProtocol(Protocol):
    """Protocol for operator-visible failure records."""

    async def record_durable_error(self, record: DurableErrorRecord) -> None:
        """Persist a durable error record."""
        raise NotImplementedError


@runtime_checkable
class ReadinessEvaluatorProtocol(Protocol):
    """Protocol for scoring whether intake data is sufficient to qualify."""

    async def evaluate(
        self, resource_id: ResourceId, departments: Sequence[DepartmentId]
    ) -> dict[DepartmentId, float]:
        """Return a readiness score in [0, 1] per department."""
        raise NotImplementedError


@runtime_checkable
class LogStoreProtocol(Protocol):
    """Protocol for persisting JSONL log entries."""

    async def append_log(self, entry: LogEntry) -> None:
        """Append a log entry to storage."""
        raise NotImplementedError

    async def read_logs(self, run_id: RunId | None) -> list[LogEntry]:
        """Return stored entries for a run, or pool entries when run_id is None."""
        raise NotImplementedError


class StorageErrorCode(StrEnum):
    """Categorized error codes for storage failures."""

    IO_ERROR = "io_error"
    SERIALIZATION_ERROR = "serialization_error"


class StorageErrorDetails(BaseSchema):
    """Detailed storage error context."""

    operation: str = Field(..., min_length=1, description="Storage operation")
    path: str | None = Field(None, description="Filesystem path if applicable")
    reason: str | None = Field(None, description="Additional error context")


class StorageErrorInfo(BaseSchema):
    """Structured storage error data."""

    code: StorageErrorCode = Field(..., description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: StorageErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert storage error info to the standard error response.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.path is not None:
            details = ErrorDetails(
                field="path", provided=self.details.path, valid_options=None
            )
        code_value = getattr(self.code, "value", self.code)
        return ErrorResponse(
            code=str(code_value), message=self.message, details=details
        )


class StorageError(Exception):
    """Storage error with structured details."""

    def __init__(self, info: StorageErrorInfo) -> None:
        """Initialize the storage error.

        Args:
            info: Structured storage error information.
        """
        super().__init__(info.message)
        self.info = info
