"""Port interfaces and structured errors for backlot-core."""

from backlot_core.ports.orchestrator import (
    LockConflictError,
    LogSinkProtocol,
    OrchestrationError,
    OrchestrationErrorCode,
    OrchestrationErrorDetails,
    OrchestrationErrorInfo,
    PersistenceFailureError,
    PhaseAggregateError,
    PipelineFailedError,
    ReadinessError,
    build_phase_event_name,
    build_phase_log,
    build_run_completed_log,
    build_run_conflict_log,
    build_run_failed_log,
    build_run_started_log,
)
from backlot_core.ports.pool import (
    DepartmentWorkflowProtocol,
    PoolError,
    PoolErrorCode,
    PoolErrorDetails,
    PoolErrorInfo,
    PoolShuttingDownError,
    WorkUnitFailedError,
    build_pool_log,
    build_work_log,
)
from backlot_core.ports.storage import (
    ErrorRecorderProtocol,
    IntakeSourceProtocol,
    KnowledgeBaseProtocol,
    LogStoreProtocol,
    QualifiedStoreProtocol,
    ReadinessEvaluatorProtocol,
    ResourceLockProtocol,
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
)

__all__ = [
    "DepartmentWorkflowProtocol",
    "ErrorRecorderProtocol",
    "IntakeSourceProtocol",
    "KnowledgeBaseProtocol",
    "LockConflictError",
    "LogSinkProtocol",
    "LogStoreProtocol",
    "OrchestrationError",
    "OrchestrationErrorCode",
    "OrchestrationErrorDetails",
    "OrchestrationErrorInfo",
    "PersistenceFailureError",
    "PhaseAggregateError",
    "PipelineFailedError",
    "PoolError",
    "PoolErrorCode",
    "PoolErrorDetails",
    "PoolErrorInfo",
    "PoolShuttingDownError",
    "QualifiedStoreProtocol",
    "ReadinessError",
    "ReadinessEvaluatorProtocol",
    "ResourceLockProtocol",
    "StorageError",
    "StorageErrorCode",
    "StorageErrorDetails",
    "StorageErrorInfo",
    "WorkUnitFailedError",
    "build_phase_event_name",
    "build_phase_log",
    "build_pool_log",
    "build_run_completed_log",
    "build_run_conflict_log",
    "build_run_failed_log",
    "build_run_started_log",
    "build_work_log",
]
