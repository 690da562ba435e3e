"""Top-level run controller for resource qualification."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import uuid4

from backlot_core.orchestrator import PhaseListener, PhaseOrchestrator
from backlot_core.ports.orchestrator import (
    LockConflictError,
    LogSinkProtocol,
    OrchestrationError,
    OrchestrationErrorCode,
    OrchestrationErrorDetails,
    OrchestrationErrorInfo,
    PersistenceFailureError,
    PipelineFailedError,
    ReadinessError,
    build_run_completed_log,
    build_run_conflict_log,
    build_run_failed_log,
    build_run_started_log,
)
from backlot_core.ports.storage import (
    ErrorRecorderProtocol,
    KnowledgeBaseProtocol,
    ReadinessEvaluatorProtocol,
    ResourceLockProtocol,
)
from backlot_core.status import build_run_status
from backlot_schemas.logs import LogEntry
from backlot_schemas.pipeline import (
    DurableErrorRecord,
    PhaseRunRecord,
    PipelineRun,
    PipelineRunResult,
)
from backlot_schemas.primitives import ResourceId, RunId, RunStatus, Timestamp

logger = logging.getLogger(__name__)


class PipelineRunController:
    """Own the run state machine: idle, locked, running, then a terminal state.

    A run either promotes the whole resource or nothing. Every abort releases
    the lock as failed, writes a durable error record, and surfaces a
    PipelineFailedError naming the failing departments.
    """

    def __init__(
        self,
        orchestrator: PhaseOrchestrator,
        lock: ResourceLockProtocol,
        knowledge_base: KnowledgeBaseProtocol,
        error_recorder: ErrorRecorderProtocol,
        readiness_evaluator: ReadinessEvaluatorProtocol | None = None,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
        run_id_factory: Callable[[], RunId] = uuid4,
    ) -> None:
        """Initialize the run controller.

        Args:
            orchestrator: Phase orchestrator that executes the plan.
            lock: Per-resource qualification lock.
            knowledge_base: Destination for the final ingest.
            error_recorder: Sink for operator-visible failure records.
            readiness_evaluator: Optional intake readiness gate.
            log_sink: Optional log sink.
            clock: Optional timestamp provider.
            run_id_factory: Run identifier factory.
        """
        self._orchestrator = orchestrator
        self._lock = lock
        self._knowledge_base = knowledge_base
        self._error_recorder = error_recorder
        self._readiness_evaluator = readiness_evaluator
        self._log_sink = log_sink
        self._clock = clock or _now_timestamp
        self._run_id_factory = run_id_factory
        self._runs: dict[ResourceId, PipelineRun] = {}

    async def run(self, resource_id: ResourceId) -> PipelineRunResult:
        """Qualify a resource through every phase.

        Args:
            resource_id: Target resource identifier.

        Returns:
            PipelineRunResult: Final status and the qualified resource id.

        Raises:
            LockConflictError: If the resource is running or already qualified.
            PipelineFailedError: If any step aborted the run.
        """
        if not await self._lock.acquire(resource_id):
            logger.warning("Rejected run for locked resource %s", resource_id)
            await self._emit_log(build_run_conflict_log(self._clock(), resource_id))
            raise LockConflictError(resource_id)

        run = PipelineRun(
            resource_id=resource_id,
            run_id=self._run_id_factory(),
            status=RunStatus.LOCKED,
            created_at=self._clock(),
        )
        self._runs[resource_id] = run
        try:
            return await self._execute(run)
        except OrchestrationError as exc:
            raise await self._abort(run, exc) from exc
        except Exception as exc:
            error = OrchestrationError(
                OrchestrationErrorInfo(
                    code=OrchestrationErrorCode.PIPELINE_FAILED,
                    message=f"Pipeline run for {resource_id} failed: {exc}",
                    details=OrchestrationErrorDetails(
                        resource_id=resource_id, reason=str(exc) or None
                    ),
                )
            )
            raise await self._abort(run, error) from exc
        except asyncio.CancelledError:
            if run.status != RunStatus.SUCCEEDED:
                await self._abort(
                    run,
                    OrchestrationError(
                        OrchestrationErrorInfo(
                            code=OrchestrationErrorCode.PIPELINE_FAILED,
                            message=f"Pipeline run for {resource_id} was cancelled",
                            details=OrchestrationErrorDetails(
                                resource_id=resource_id, reason="cancelled"
                            ),
                        )
                    ),
                )
            raise

    def status(self, resource_id: ResourceId) -> PipelineRun:
        """Return the latest run for a resource.

        Args:
            resource_id: Target resource identifier.

        Returns:
            PipelineRun: Latest run snapshot, or an idle record if never run.
        """
        return build_run_status(resource_id, self._runs.get(resource_id))

    async def _execute(self, run: PipelineRun) -> PipelineRunResult:
        resource_id = run.resource_id
        run_id = _require_run_id(run)
        config = self._orchestrator.config
        await self._check_readiness(resource_id)

        run.status = RunStatus.RUNNING
        run.started_at = self._clock()
        await self._emit_log(
            build_run_started_log(
                run.started_at,
                run_id,
                resource_id,
                [phase.name for phase in config.ordered_phases()],
            )
        )

        result = await self._orchestrator.run(
            resource_id, run_id, on_phase=_phase_recorder(run)
        )
        try:
            await self._knowledge_base.ingest(resource_id, result.rows())
        except Exception as exc:
            raise PersistenceFailureError(
                resource_id, None, config.departments(), str(exc) or type(exc).__name__
            ) from exc

        qualified_resource_id = f"{resource_id}{config.qualified_suffix}"
        completed_at = self._clock()
        await self._emit_log(
            build_run_completed_log(
                completed_at, run_id, resource_id, qualified_resource_id
            )
        )
        # Promotion is the last fallible step; nothing after it can abort.
        await self._lock.release(
            resource_id,
            RunStatus.SUCCEEDED,
            qualified_resource_id=qualified_resource_id,
        )
        run.status = RunStatus.SUCCEEDED
        run.current_phase_index = None
        run.qualified_resource_id = qualified_resource_id
        run.completed_at = completed_at
        logger.info("Qualified %s as %s", resource_id, qualified_resource_id)
        return PipelineRunResult(
            resource_id=resource_id,
            run_id=run_id,
            status=RunStatus.SUCCEEDED,
            qualified_resource_id=qualified_resource_id,
        )

    async def _check_readiness(self, resource_id: ResourceId) -> None:
        if self._readiness_evaluator is None:
            return
        config = self._orchestrator.config
        departments = config.departments()
        scores = await self._readiness_evaluator.evaluate(resource_id, departments)
        insufficient = {
            department: scores.get(department, 0.0)
            for department in departments
            if scores.get(department, 0.0) < config.min_readiness
        }
        if insufficient:
            raise ReadinessError(resource_id, insufficient, config.min_readiness)

    async def _abort(
        self, run: PipelineRun, error: OrchestrationError
    ) -> PipelineFailedError:
        timestamp = self._clock()
        run_id = _require_run_id(run)
        failure = PipelineFailedError(run_id, error)
        run_error = failure.info.to_run_error()
        run.status = RunStatus.FAILED
        run.last_error = run_error
        run.completed_at = timestamp
        logger.error("Run %s for %s failed: %s", run_id, run.resource_id, failure)

        await self._lock.release(run.resource_id, RunStatus.FAILED, error=run_error)
        await self._error_recorder.record_durable_error(
            DurableErrorRecord(
                resource_id=run.resource_id,
                run_id=run_id,
                error_type=run_error.code,
                error_message=failure.info.message,
                failed_departments=failure.info.department_names(),
                created_at=timestamp,
            )
        )
        await self._emit_log(
            build_run_failed_log(
                timestamp,
                run_id,
                run.resource_id,
                failure.info,
                _next_action_for_error(error.info),
            )
        )
        return failure

    async def _emit_log(self, entry: LogEntry) -> None:
        if self._log_sink is None:
            return
        await self._log_sink.emit_log(entry)


def _phase_recorder(run: PipelineRun) -> PhaseListener:
    def _record(record: PhaseRunRecord) -> None:
        run.current_phase_index = record.index
        history = [item for item in run.phase_history if item.index != record.index]
        history.append(record)
        run.phase_history = sorted(history, key=lambda item: item.index)

    return _record


def _require_run_id(run: PipelineRun) -> RunId:
    if run.run_id is None:
        raise ValueError(f"run for {run.resource_id} has no run id")
    return run.run_id


def _next_action_for_error(error_info: OrchestrationErrorInfo) -> str:
    actions = {
        OrchestrationErrorCode.READINESS_FAILURE.value: (
            "Gather more intake data for the listed departments, then retry."
        ),
        OrchestrationErrorCode.PHASE_AGGREGATE_FAILURE.value: (
            "Fix the failing department workflows, then rerun the resource."
        ),
        OrchestrationErrorCode.PERSISTENCE_FAILURE.value: (
            "Check the qualified store and knowledge base, then retry."
        ),
    }
    return actions.get(str(error_info.code), "Review the run logs and retry.")


def _now_timestamp() -> Timestamp:
    value = datetime.now(tz=UTC).isoformat()
    return value.replace("+00:00", "Z")
