"""Primitive types and enums shared across backlot schemas."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import Field

ISO_8601_PATTERN = (
    r"^\d{4}-\d{2}-\d{2}T"
    r"\d{2}:\d{2}:\d{2}"
    r"(?:\.\d+)?"
    r"(?:Z|[+-]\d{2}:\d{2})$"
)
EVENT_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"
DEPARTMENT_ID_PATTERN = r"^[a-z][a-z0-9_-]*$"

MIN_DEPARTMENT_WEIGHT = 1
MAX_DEPARTMENT_WEIGHT = 10
DEFAULT_DEPARTMENT_WEIGHT = 5

type RunId = UUID
type WorkUnitId = UUID
type WorkerId = UUID
type Timestamp = Annotated[str, Field(pattern=ISO_8601_PATTERN)]
type EventName = Annotated[str, Field(pattern=EVENT_NAME_PATTERN)]
type PhaseName = Annotated[str, Field(pattern=EVENT_NAME_PATTERN)]
type DepartmentId = Annotated[str, Field(pattern=DEPARTMENT_ID_PATTERN)]
type ResourceId = Annotated[str, Field(min_length=1)]
type DepartmentWeight = Annotated[
    int, Field(ge=MIN_DEPARTMENT_WEIGHT, le=MAX_DEPARTMENT_WEIGHT)
]

type JsonPrimitive = str | int | float | bool | None
type JsonValue = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]
type JsonRow = dict[str, JsonValue]


class RunStatus(StrEnum):
    """Pipeline run lifecycle states."""

    IDLE = "idle"
    LOCKED = "locked"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_RUN_STATUSES = frozenset({RunStatus.SUCCEEDED, RunStatus.FAILED})


class PhaseStatus(StrEnum):
    """Phase execution status values."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class PhaseMode(StrEnum):
    """How the department workflows of a phase are executed."""

    PARALLEL = "parallel"
    SEQUENTIAL_WITH_CONTEXT = "sequential_with_context"


class WorkState(StrEnum):
    """Lifecycle states of a unit occupying pool capacity."""

    RUNNING = "running"
    COMPLETING = "completing"


class LogLevel(StrEnum):
    """Log level values for JSONL logs."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogSinkType(StrEnum):
    """Supported log sink types."""

    CONSOLE = "console"
    FILE = "file"
    NOOP = "noop"
