"""Concurrency-bounded priority pool for department work."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Generic, TypeVar
from uuid import uuid4

from backlot_core.ports.orchestrator import LogSinkProtocol
from backlot_core.ports.pool import (
    DepartmentWorkflowProtocol,
    PoolShuttingDownError,
    WorkUnitFailedError,
)
from backlot_core.telemetry import WorkTelemetryEmitter
from backlot_schemas.events import PoolEvent, WorkEvent, WorkEventData
from backlot_schemas.primitives import (
    DepartmentId,
    Timestamp,
    WorkerId,
    WorkState,
    WorkUnitId,
)
from backlot_schemas.work import (
    ActiveWorkSnapshot,
    DepartmentLoad,
    PoolMetrics,
    QueuedWorkSnapshot,
    QueueStatus,
)

PayloadT = TypeVar("PayloadT")

DEFAULT_UNIT_PRIORITY = 0

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WorkRequest(Generic[PayloadT]):
    """A caller's request to run one unit of department work.

    Leave ``priority`` unset to let the scheduler derive it.
    """

    department: DepartmentId
    kind: str
    payload: PayloadT
    priority: int | None = None


@dataclass(frozen=True, slots=True)
class WorkUnit(Generic[PayloadT]):
    """An admitted unit of work; immutable once enqueued."""

    unit_id: WorkUnitId
    department: DepartmentId
    kind: str
    payload: PayloadT
    priority: int
    created_at: Timestamp


@dataclass(slots=True)
class ActiveWork:
    """A work unit currently occupying pool capacity."""

    worker_id: WorkerId
    unit_id: WorkUnitId
    department: DepartmentId
    started_at: Timestamp
    state: WorkState = WorkState.RUNNING


@dataclass(frozen=True, slots=True)
class WorkOutcome:
    """Settled result of one work unit."""

    unit_id: WorkUnitId
    department: DepartmentId
    output: object | None = None
    error: str | None = None
    error_type: str | None = None
    duration_s: float = 0.0
    discarded: bool = False

    @property
    def ok(self) -> bool:
        """Whether the unit ran and returned without raising."""
        return self.error is None and not self.discarded

    def unwrap(self) -> object:
        """Return the output or raise the pool error describing the outcome.

        Returns:
            object: Workflow output.

        Raises:
            PoolShuttingDownError: If the unit was discarded before starting.
            WorkUnitFailedError: If the invocation raised.
        """
        if self.discarded:
            raise PoolShuttingDownError(self.department)
        if self.error is not None:
            raise WorkUnitFailedError(self.department, str(self.unit_id), self.error)
        return self.output


@dataclass(frozen=True, slots=True)
class WorkTicket:
    """Handle for awaiting the outcome of a submitted unit."""

    unit_id: WorkUnitId
    future: asyncio.Future[WorkOutcome] = field(repr=False)

    def done(self) -> bool:
        """Whether the unit has settled or been discarded."""
        return self.future.done()

    async def wait(self) -> WorkOutcome:
        """Wait for the unit to settle.

        Returns:
            WorkOutcome: Settled outcome; never raises for workflow errors.
        """
        return await self.future

    def __await__(self) -> Generator[object, None, WorkOutcome]:
        return self.future.__await__()


@dataclass(slots=True)
class _Entry:
    unit: WorkUnit[object]
    future: asyncio.Future[WorkOutcome]


class WorkPool:
    """Run at most ``capacity`` units at once, highest priority first.

    Mutating methods are synchronous, so every read and scheduling decision
    sees a consistent view of the active and pending sets. Dispatch is eager:
    an enqueue that finds free capacity starts the unit before returning.
    """

    def __init__(
        self,
        invoker: DepartmentWorkflowProtocol,
        max_concurrency: int = 5,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the work pool.

        Args:
            invoker: Collaborator that executes department workflows.
            max_concurrency: Max units running at once.
            log_sink: Optional log sink for work telemetry.
            clock: Optional timestamp provider.
            timer: Monotonic timer used for durations.

        Raises:
            ValueError: If max_concurrency is not positive.
        """
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        self._invoker = invoker
        self._capacity = max_concurrency
        self._clock = clock or _now_timestamp
        self._timer = timer
        self._telemetry = WorkTelemetryEmitter(log_sink=log_sink, clock=self._clock)
        self._queue: list[_Entry] = []
        self._active: dict[WorkUnitId, ActiveWork] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._completed = 0
        self._failed = 0
        self._total_duration_s = 0.0
        self._shutting_down = False

    @property
    def capacity(self) -> int:
        """Max units running at once."""
        return self._capacity

    @property
    def shutting_down(self) -> bool:
        """Whether admission has stopped."""
        return self._shutting_down

    def enqueue(self, request: WorkRequest[PayloadT]) -> WorkUnitId:
        """Admit a unit of work without waiting for it.

        Args:
            request: Work request to admit.

        Returns:
            WorkUnitId: Identifier of the admitted unit.
        """
        return self.submit(request).unit_id

    def submit(self, request: WorkRequest[PayloadT]) -> WorkTicket:
        """Admit a unit of work and return a ticket for its outcome.

        Args:
            request: Work request to admit.

        Returns:
            WorkTicket: Handle resolving to the unit's outcome.

        Raises:
            PoolShuttingDownError: If the pool is draining.
        """
        if self._shutting_down:
            raise PoolShuttingDownError(request.department)
        unit: WorkUnit[object] = WorkUnit(
            unit_id=uuid4(),
            department=request.department,
            kind=request.kind,
            payload=request.payload,
            priority=(
                request.priority
                if request.priority is not None
                else DEFAULT_UNIT_PRIORITY
            ),
            created_at=self._clock(),
        )
        future: asyncio.Future[WorkOutcome] = (
            asyncio.get_running_loop().create_future()
        )
        self._insert(_Entry(unit=unit, future=future))
        self._drain()
        return WorkTicket(unit_id=unit.unit_id, future=future)

    def metrics(self) -> PoolMetrics:
        """Return capacity and throughput counters.

        Returns:
            PoolMetrics: Snapshot of pool counters.
        """
        average = (
            self._total_duration_s / self._completed if self._completed else 0.0
        )
        return PoolMetrics(
            capacity=self._capacity,
            active=len(self._active),
            pending=len(self._queue),
            completed=self._completed,
            failed=self._failed,
            avg_duration_s=average,
            shutting_down=self._shutting_down,
        )

    def department_load(self, department: DepartmentId) -> DepartmentLoad:
        """Return active and queued counts for one department.

        Args:
            department: Department identifier.

        Returns:
            DepartmentLoad: Consistent load snapshot.
        """
        active = sum(
            1 for work in self._active.values() if work.department == department
        )
        queued = sum(
            1 for entry in self._queue if entry.unit.department == department
        )
        return DepartmentLoad(department=department, active=active, queued=queued)

    def departments(self) -> list[DepartmentId]:
        """Return departments with active or queued work, in first-seen order.

        Returns:
            list[DepartmentId]: Departments currently holding load.
        """
        seen: dict[DepartmentId, None] = {}
        for work in self._active.values():
            seen.setdefault(work.department, None)
        for entry in self._queue:
            seen.setdefault(entry.unit.department, None)
        return list(seen)

    def get_queue_status(self) -> QueueStatus:
        """Return queued and active units without their payloads.

        Returns:
            QueueStatus: Queued units in admission order plus active units.
        """
        queued = [
            QueuedWorkSnapshot(
                unit_id=entry.unit.unit_id,
                department=entry.unit.department,
                kind=entry.unit.kind,
                priority=entry.unit.priority,
                created_at=entry.unit.created_at,
            )
            for entry in self._queue
        ]
        active = [
            ActiveWorkSnapshot(
                worker_id=work.worker_id,
                unit_id=work.unit_id,
                department=work.department,
                started_at=work.started_at,
                state=work.state,
            )
            for work in self._active.values()
        ]
        return QueueStatus(queued=queued, active=active)

    def set_capacity(self, capacity: int) -> None:
        """Change capacity, clamped to at least one, and drain.

        Running units are never preempted when capacity shrinks.

        Args:
            capacity: Requested capacity.
        """
        previous = self._capacity
        self._capacity = max(1, capacity)
        logger.info("Pool capacity changed from %d to %d", previous, self._capacity)
        self._drain()

    async def shutdown(self, timeout_s: float | None = None) -> bool:
        """Stop admission, discard pending units, and wait for active ones.

        Active units are never cancelled. Calling this again is safe.

        Args:
            timeout_s: Seconds to wait for active units; None waits forever.

        Returns:
            bool: True if every active unit settled, False if the wait timed out.
        """
        first_call = not self._shutting_down
        self._shutting_down = True
        discarded = self._queue
        self._queue = []
        if first_call:
            await self._emit_pool(PoolEvent.SHUTDOWN_STARTED, pending=len(discarded))
        for entry in discarded:
            await self._discard(entry)

        pending_tasks = set(self._tasks)
        if pending_tasks:
            _, still_running = await asyncio.wait(pending_tasks, timeout=timeout_s)
            if still_running:
                logger.warning(
                    "Pool shutdown abandoned wait with %d unit(s) still active",
                    len(self._active),
                )
                await self._emit_pool(PoolEvent.SHUTDOWN_TIMED_OUT)
                return False
        if first_call:
            await self._emit_pool(PoolEvent.SHUTDOWN_COMPLETED)
        return True

    def _insert(self, entry: _Entry) -> None:
        position = next(
            (
                index
                for index, queued in enumerate(self._queue)
                if queued.unit.priority < entry.unit.priority
            ),
            len(self._queue),
        )
        self._queue.insert(position, entry)

    def _drain(self) -> None:
        while self._queue and len(self._active) < self._capacity:
            self._start(self._queue.pop(0))

    def _start(self, entry: _Entry) -> None:
        work = ActiveWork(
            worker_id=uuid4(),
            unit_id=entry.unit.unit_id,
            department=entry.unit.department,
            started_at=self._clock(),
        )
        self._active[work.unit_id] = work
        task = asyncio.get_running_loop().create_task(self._execute(entry, work))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _execute(self, entry: _Entry, work: ActiveWork) -> None:
        unit = entry.unit
        await self._emit_work(WorkEvent.STARTED, _build_event_data(unit))
        started = self._timer()
        output: object | None = None
        error: Exception | None = None
        try:
            output = await self._invoker.invoke(unit.department, unit.payload)
        except Exception as exc:
            error = exc
        duration_s = max(0.0, self._timer() - started)
        outcome = self._settle(entry, work, output, error, duration_s)

        if outcome.error is None:
            await self._emit_work(
                WorkEvent.COMPLETED,
                _build_event_data(unit, duration_s=duration_s),
            )
            return
        logger.warning(
            "Work unit %s for %s failed: %s",
            unit.unit_id,
            unit.department,
            outcome.error,
        )
        await self._emit_work(
            WorkEvent.FAILED,
            _build_event_data(
                unit, duration_s=duration_s, error_message=outcome.error
            ),
        )

    def _settle(
        self,
        entry: _Entry,
        work: ActiveWork,
        output: object | None,
        error: Exception | None,
        duration_s: float,
    ) -> WorkOutcome:
        work.state = WorkState.COMPLETING
        self._active.pop(work.unit_id, None)
        if error is None:
            self._completed += 1
            self._total_duration_s += duration_s
        else:
            self._failed += 1
        self._drain()
        outcome = WorkOutcome(
            unit_id=entry.unit.unit_id,
            department=entry.unit.department,
            output=output if error is None else None,
            error=_error_text(error) if error is not None else None,
            error_type=type(error).__name__ if error is not None else None,
            duration_s=duration_s,
        )
        if not entry.future.done():
            entry.future.set_result(outcome)
        return outcome

    async def _discard(self, entry: _Entry) -> None:
        if not entry.future.done():
            entry.future.set_result(
                WorkOutcome(
                    unit_id=entry.unit.unit_id,
                    department=entry.unit.department,
                    discarded=True,
                )
            )
        await self._emit_work(
            WorkEvent.DISCARDED, _build_event_data(entry.unit)
        )

    async def _emit_work(self, event: WorkEvent, data: WorkEventData) -> None:
        # Sink failures never change a unit's outcome or hold its capacity.
        try:
            await self._telemetry.emit_work(event, data)
        except Exception:
            logger.warning(
                "Could not emit %s for work unit %s", event, data.unit_id, exc_info=True
            )

    async def _emit_pool(self, event: PoolEvent, pending: int | None = None) -> None:
        await self._telemetry.emit_pool(
            event,
            capacity=self._capacity,
            active=len(self._active),
            pending=len(self._queue) if pending is None else pending,
        )


def _build_event_data(
    unit: WorkUnit[object],
    duration_s: float | None = None,
    error_message: str | None = None,
) -> WorkEventData:
    return WorkEventData(
        unit_id=str(unit.unit_id),
        department=unit.department,
        kind=unit.kind,
        priority=unit.priority,
        duration_s=duration_s,
        error_message=error_message,
    )


def _error_text(error: Exception) -> str:
    return str(error) or type(error).__name__


def _now_timestamp() -> Timestamp:
    value = datetime.now(tz=UTC).isoformat()
    return value.replace("+00:00", "Z")
