"""backlot-core: Work pool, scheduler, and qualification pipeline."""

from backlot_core.orchestrator import (
    DepartmentWorkPayload,
    OrchestrationResult,
    PhaseOrchestrator,
)
from backlot_core.pipeline import PipelineRunController
from backlot_core.pool import (
    ActiveWork,
    WorkOutcome,
    WorkPool,
    WorkRequest,
    WorkTicket,
    WorkUnit,
)
from backlot_core.scheduler import DepartmentScheduler
from backlot_core.status import build_phase_plan, build_run_status
from backlot_core.telemetry import WorkTelemetryEmitter

__version__ = "0.1.0"

__all__ = [
    "ActiveWork",
    "DepartmentScheduler",
    "DepartmentWorkPayload",
    "OrchestrationResult",
    "PhaseOrchestrator",
    "PipelineRunController",
    "WorkOutcome",
    "WorkPool",
    "WorkRequest",
    "WorkTicket",
    "WorkTelemetryEmitter",
    "WorkUnit",
    "build_phase_plan",
    "build_run_status",
]
