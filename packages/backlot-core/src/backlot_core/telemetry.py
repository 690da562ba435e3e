"""Emit structured work and pool telemetry to a log sink."""

from __future__ import annotations

from collections.abc import Callable

from backlot_core.ports.orchestrator import LogSinkProtocol
from backlot_core.ports.pool import build_pool_log, build_work_log
from backlot_schemas.events import PoolEvent, WorkEvent, WorkEventData
from backlot_schemas.logs import LogEntry
from backlot_schemas.primitives import LogLevel, Timestamp


class WorkTelemetryEmitter:
    """Emit work unit and pool lifecycle entries to an optional log sink."""

    def __init__(
        self,
        *,
        log_sink: LogSinkProtocol | None,
        clock: Callable[[], Timestamp],
    ) -> None:
        """Initialize the telemetry emitter.

        Args:
            log_sink: Optional log sink for work updates.
            clock: Timestamp provider for telemetry events.
        """
        self._log_sink = log_sink
        self._clock = clock

    @property
    def enabled(self) -> bool:
        """Whether entries are delivered anywhere."""
        return self._log_sink is not None

    async def emit_work(
        self,
        event: WorkEvent,
        data: WorkEventData,
        message: str | None = None,
    ) -> None:
        """Emit a work unit lifecycle entry."""
        if self._log_sink is None:
            return
        level = LogLevel.ERROR if event == WorkEvent.FAILED else LogLevel.INFO
        if event == WorkEvent.DISCARDED:
            level = LogLevel.WARN
        entry = build_work_log(
            self._clock(),
            event,
            data,
            message or _default_work_message(event),
            level,
        )
        await self._emit(entry)

    async def emit_pool(
        self,
        event: PoolEvent,
        *,
        capacity: int,
        active: int,
        pending: int,
        message: str | None = None,
    ) -> None:
        """Emit a pool-level lifecycle entry."""
        if self._log_sink is None:
            return
        level = (
            LogLevel.WARN if event == PoolEvent.SHUTDOWN_TIMED_OUT else LogLevel.INFO
        )
        entry = build_pool_log(
            self._clock(),
            event,
            message or _default_pool_message(event),
            capacity=capacity,
            active=active,
            pending=pending,
            level=level,
        )
        await self._emit(entry)

    async def _emit(self, entry: LogEntry) -> None:
        if self._log_sink is None:
            return
        await self._log_sink.emit_log(entry)


def _default_work_message(event: WorkEvent) -> str:
    if event == WorkEvent.STARTED:
        return "Work started"
    if event == WorkEvent.COMPLETED:
        return "Work completed"
    if event == WorkEvent.FAILED:
        return "Work failed"
    return "Work discarded before start"


def _default_pool_message(event: PoolEvent) -> str:
    if event == PoolEvent.SHUTDOWN_STARTED:
        return "Pool shutdown started"
    if event == PoolEvent.SHUTDOWN_COMPLETED:
        return "Pool shutdown completed"
    return "Pool shutdown timed out with work still active"
