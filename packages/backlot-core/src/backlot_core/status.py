"""Helpers for building run status snapshots and phase plans."""

from __future__ import annotations

from backlot_schemas.config import PipelineConfig
from backlot_schemas.pipeline import PhasePlanEntry, PipelineRun
from backlot_schemas.primitives import (
    DepartmentId,
    PhaseMode,
    PhaseName,
    ResourceId,
    RunStatus,
)


def build_run_status(resource_id: ResourceId, run: PipelineRun | None) -> PipelineRun:
    """Build a status snapshot for a resource.

    Args:
        resource_id: Target resource identifier.
        run: Latest known run, if any.

    Returns:
        PipelineRun: Detached copy of the run, or an idle record.
    """
    if run is None:
        return PipelineRun(resource_id=resource_id, status=RunStatus.IDLE)
    return run.model_copy(deep=True)


def failed_departments(run: PipelineRun) -> list[DepartmentId]:
    """Return departments that failed in any recorded phase.

    Args:
        run: Pipeline run snapshot.

    Returns:
        list[DepartmentId]: Failing departments in phase order.
    """
    return [
        result.department
        for record in run.phase_history
        for result in record.departments
        if not result.success
    ]


def build_phase_plan(config: PipelineConfig) -> list[PhasePlanEntry]:
    """Resolve the execution plan with explicit context visibility.

    Args:
        config: Pipeline configuration.

    Returns:
        list[PhasePlanEntry]: Phases in execution order.
    """
    plan: list[PhasePlanEntry] = []
    earlier: list[PhaseName] = []
    for phase in config.ordered_phases():
        reads = list(phase.reads) if phase.reads is not None else list(earlier)
        plan.append(
            PhasePlanEntry(
                index=phase.index,
                phase=phase.name,
                mode=PhaseMode(phase.mode),
                departments=list(phase.departments),
                reads=reads,
            )
        )
        earlier.append(phase.name)
    return plan
