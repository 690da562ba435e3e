"""Phase-ordered execution of department workflows for one resource."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType

from pydantic import TypeAdapter, ValidationError

from backlot_core.pool import WorkRequest
from backlot_core.ports.orchestrator import (
    LogSinkProtocol,
    PersistenceFailureError,
    PhaseAggregateError,
    build_phase_log,
)
from backlot_core.ports.pool import PoolError
from backlot_core.ports.storage import IntakeSourceProtocol, QualifiedStoreProtocol
from backlot_core.scheduler import DepartmentScheduler
from backlot_schemas.config import PhaseDefinition, PipelineConfig
from backlot_schemas.events import PhaseEventData, PhaseEventSuffix
from backlot_schemas.logs import LogEntry
from backlot_schemas.pipeline import DepartmentResult, PhaseRunRecord
from backlot_schemas.primitives import (
    DepartmentId,
    JsonRow,
    JsonValue,
    LogLevel,
    PhaseMode,
    PhaseName,
    PhaseStatus,
    ResourceId,
    RunId,
    Timestamp,
)

DEFAULT_WORK_KIND = "qualify"

type PhaseContext = Mapping[PhaseName, Mapping[DepartmentId, tuple[JsonRow, ...]]]
type PhaseListener = Callable[[PhaseRunRecord], None]

_ROWS_ADAPTER: TypeAdapter[list[JsonRow]] = TypeAdapter(list[JsonRow])

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DepartmentWorkPayload:
    """Input handed to a department workflow through the pool.

    ``context`` is a read-only view of earlier phase outputs keyed by phase
    and department, limited to the phases this one may read.
    """

    resource_id: ResourceId
    phase: PhaseName
    department: DepartmentId
    intake_rows: list[JsonRow]
    context: PhaseContext = field(
        default_factory=lambda: MappingProxyType({})
    )


@dataclass(slots=True)
class OrchestrationResult:
    """Records and qualified rows from a fully successful phase sequence."""

    phases: list[PhaseRunRecord] = field(default_factory=list)
    outputs: dict[PhaseName, dict[DepartmentId, list[JsonRow]]] = field(
        default_factory=dict
    )

    def rows(self) -> list[JsonRow]:
        """Return every qualified row in phase and department order.

        Returns:
            list[JsonRow]: Flattened qualified rows.
        """
        return [
            row
            for department_rows in self.outputs.values()
            for rows in department_rows.values()
            for row in rows
        ]


@dataclass(slots=True)
class _DepartmentRun:
    result: DepartmentResult
    rows: list[JsonRow] = field(default_factory=list)


class PhaseOrchestrator:
    """Execute phases in index order with all-or-nothing semantics.

    Every department of a phase runs to completion before the phase is
    judged. Any failure raises before the phase output is persisted, and no
    later phase runs.
    """

    def __init__(
        self,
        scheduler: DepartmentScheduler,
        intake_source: IntakeSourceProtocol,
        qualified_store: QualifiedStoreProtocol,
        config: PipelineConfig | None = None,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
        work_kind: str = DEFAULT_WORK_KIND,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            scheduler: Scheduler used to submit department work.
            intake_source: Source of raw intake rows.
            qualified_store: Destination for qualified phase rows.
            config: Optional pipeline configuration.
            log_sink: Optional log sink.
            clock: Optional timestamp provider.
            work_kind: Work-kind tag attached to submitted units.
        """
        self._scheduler = scheduler
        self._intake_source = intake_source
        self._qualified_store = qualified_store
        self._config = config or PipelineConfig()
        self._log_sink = log_sink
        self._clock = clock or _now_timestamp
        self._work_kind = work_kind

    @property
    def config(self) -> PipelineConfig:
        """Pipeline configuration in use."""
        return self._config

    async def run(
        self,
        resource_id: ResourceId,
        run_id: RunId,
        on_phase: PhaseListener | None = None,
    ) -> OrchestrationResult:
        """Run every phase for a resource.

        Args:
            resource_id: Target resource identifier.
            run_id: Run identifier used for log entries.
            on_phase: Optional listener called whenever a phase record changes.

        Returns:
            OrchestrationResult: Phase records and qualified rows.
        """
        result = OrchestrationResult()
        for phase in self._config.ordered_phases():
            record, rows = await self.run_phase(
                resource_id, run_id, phase, result.outputs, on_phase
            )
            result.phases.append(record)
            result.outputs[phase.name] = rows
        return result

    async def run_phase(
        self,
        resource_id: ResourceId,
        run_id: RunId,
        phase: PhaseDefinition,
        outputs: Mapping[PhaseName, Mapping[DepartmentId, list[JsonRow]]],
        on_phase: PhaseListener | None = None,
    ) -> tuple[PhaseRunRecord, dict[DepartmentId, list[JsonRow]]]:
        """Execute a single phase and persist its rows.

        Args:
            resource_id: Target resource identifier.
            run_id: Run identifier used for log entries.
            phase: Phase definition.
            outputs: Qualified rows of earlier phases.
            on_phase: Optional listener called whenever the record changes.

        Returns:
            tuple[PhaseRunRecord, dict[DepartmentId, list[JsonRow]]]: Completed
                phase record and qualified rows per department.

        Raises:
            PhaseAggregateError: If any department workflow failed.
            PersistenceFailureError: If the phase rows could not be persisted.
        """
        record = PhaseRunRecord(
            phase=phase.name,
            index=phase.index,
            mode=PhaseMode(phase.mode),
            status=PhaseStatus.RUNNING,
            started_at=self._clock(),
        )
        _notify(on_phase, record)
        await self._emit_phase(run_id, phase, PhaseEventSuffix.STARTED)

        context = _build_context(phase, outputs)
        if phase.mode == PhaseMode.SEQUENTIAL_WITH_CONTEXT:
            runs = [
                await self._run_department(
                    resource_id, phase, department, context
                )
                for department in phase.departments
            ]
        else:
            runs = await self._run_parallel(resource_id, phase, context)
        record.departments = [run.result for run in runs]

        failures = [run.result for run in runs if not run.result.success]
        if failures:
            error = PhaseAggregateError(resource_id, phase.name, failures)
            await self._fail_phase(run_id, phase, record, error.info.message, on_phase)
            raise error

        rows = {run.result.department: run.rows for run in runs}
        phase_rows = [row for run in runs for row in run.rows]
        try:
            await self._qualified_store.persist_qualified_rows(resource_id, phase_rows)
        except Exception as exc:
            error = PersistenceFailureError(
                resource_id, phase.name, list(phase.departments), _error_text(exc)
            )
            await self._fail_phase(run_id, phase, record, error.info.message, on_phase)
            raise error from exc

        record.status = PhaseStatus.COMPLETED
        record.completed_at = self._clock()
        _notify(on_phase, record)
        await self._emit_phase(
            run_id,
            phase,
            PhaseEventSuffix.COMPLETED,
            data={"row_count": len(phase_rows)},
        )
        return record, rows

    async def _run_parallel(
        self,
        resource_id: ResourceId,
        phase: PhaseDefinition,
        context: PhaseContext,
    ) -> list[_DepartmentRun]:
        runs: list[_DepartmentRun | None] = [None] * len(phase.departments)

        async def _run(index: int, department: DepartmentId) -> None:
            runs[index] = await self._run_department(
                resource_id, phase, department, context
            )

        async with asyncio.TaskGroup() as group:
            for index, department in enumerate(phase.departments):
                group.create_task(_run(index, department))

        return [run for run in runs if run is not None]

    async def _run_department(
        self,
        resource_id: ResourceId,
        phase: PhaseDefinition,
        department: DepartmentId,
        context: PhaseContext,
    ) -> _DepartmentRun:
        try:
            intake_rows = await self._intake_source.fetch_intake_rows(
                resource_id, department
            )
            ticket = self._scheduler.submit(
                WorkRequest(
                    department=department,
                    kind=self._work_kind,
                    payload=DepartmentWorkPayload(
                        resource_id=resource_id,
                        phase=phase.name,
                        department=department,
                        intake_rows=list(intake_rows),
                        context=context,
                    ),
                )
            )
            outcome = await ticket.wait()
            rows = _ROWS_ADAPTER.validate_python(outcome.unwrap())
        except PoolError as exc:
            return _failed_run(department, _pool_error_text(exc))
        except ValidationError as exc:
            return _failed_run(
                department,
                f"workflow output is not a list of JSON rows "
                f"({exc.error_count()} error(s))",
            )
        except Exception as exc:
            logger.warning(
                "Department %s failed in phase %s: %s", department, phase.name, exc
            )
            return _failed_run(department, _error_text(exc))
        return _DepartmentRun(
            result=DepartmentResult(
                department=department, success=True, row_count=len(rows)
            ),
            rows=rows,
        )

    async def _fail_phase(
        self,
        run_id: RunId,
        phase: PhaseDefinition,
        record: PhaseRunRecord,
        message: str,
        on_phase: PhaseListener | None,
    ) -> None:
        record.status = PhaseStatus.FAILED
        record.completed_at = self._clock()
        _notify(on_phase, record)
        failed = [
            result.department for result in record.departments if not result.success
        ]
        await self._emit_phase(
            run_id,
            phase,
            PhaseEventSuffix.FAILED,
            message=message,
            data={"failed_departments": failed or list(phase.departments)},
            level=LogLevel.ERROR,
        )

    async def _emit_phase(
        self,
        run_id: RunId,
        phase: PhaseDefinition,
        suffix: PhaseEventSuffix,
        message: str | None = None,
        data: dict[str, JsonValue] | None = None,
        level: LogLevel = LogLevel.INFO,
    ) -> None:
        if self._log_sink is None:
            return
        entry = build_phase_log(
            self._clock(),
            run_id,
            suffix,
            message or f"Phase {suffix}",
            PhaseEventData(
                phase=phase.name,
                index=phase.index,
                mode=PhaseMode(phase.mode),
                departments=list(phase.departments),
            ),
            data=data,
            level=level,
        )
        await self._emit_log(entry)

    async def _emit_log(self, entry: LogEntry) -> None:
        if self._log_sink is None:
            return
        await self._log_sink.emit_log(entry)


def _build_context(
    phase: PhaseDefinition,
    outputs: Mapping[PhaseName, Mapping[DepartmentId, list[JsonRow]]],
) -> PhaseContext:
    sources = phase.reads if phase.reads is not None else list(outputs)
    # Rows are copied so workflows never share objects with qualified output.
    return MappingProxyType({
        source: MappingProxyType({
            department: tuple(copy.deepcopy(rows))
            for department, rows in outputs[source].items()
        })
        for source in sources
        if source in outputs
    })


def _failed_run(department: DepartmentId, error: str) -> _DepartmentRun:
    return _DepartmentRun(
        result=DepartmentResult(department=department, success=False, error=error)
    )


def _pool_error_text(error: PoolError) -> str:
    details = error.info.details
    if details is not None and details.reason:
        return details.reason
    return error.info.message


def _notify(listener: PhaseListener | None, record: PhaseRunRecord) -> None:
    if listener is not None:
        listener(record.model_copy(deep=True))


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


def _now_timestamp() -> Timestamp:
    value = datetime.now(tz=UTC).isoformat()
    return value.replace("+00:00", "Z")
