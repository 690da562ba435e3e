"""Unit tests for the priority work pool."""

from __future__ import annotations

import asyncio
import itertools

import pytest

from backlot_core.ports.orchestrator import LogSinkProtocol
from backlot_core.ports.pool import (
    DepartmentWorkflowProtocol,
    PoolShuttingDownError,
    WorkUnitFailedError,
)
from backlot_core.pool import WorkPool, WorkRequest
from backlot_schemas.events import PoolEvent, WorkEvent
from backlot_schemas.logs import LogEntry
from backlot_schemas.primitives import LogLevel, WorkState


class _GatedWorkflow(DepartmentWorkflowProtocol):
    """Workflow that blocks each payload until its gate is opened."""

    def __init__(self, *, open_all: bool = False) -> None:
        self.started: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.running = 0
        self.max_running = 0
        self._gates: dict[str, asyncio.Event] = {}
        self._open_all = open_all

    def gate(self, label: str) -> asyncio.Event:
        event = self._gates.setdefault(label, asyncio.Event())
        if self._open_all:
            event.set()
        return event

    def release(self, *labels: str) -> None:
        for label in labels:
            self.gate(label).set()

    def release_all(self) -> None:
        self._open_all = True
        for event in self._gates.values():
            event.set()

    async def invoke(self, department: str, payload: object) -> object:
        label = str(payload)
        self.started.append(label)
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            await self.gate(label).wait()
        finally:
            self.running -= 1
        if label in self.failures:
            raise self.failures[label]
        return {"label": label, "department": department}


class _StubLogSink(LogSinkProtocol):
    def __init__(self) -> None:
        self.entries: list[LogEntry] = []

    async def emit_log(self, entry: LogEntry) -> None:
        self.entries.append(entry)


def _request(
    label: str, priority: int | None = None, department: str = "music"
) -> WorkRequest[str]:
    return WorkRequest(
        department=department, kind="qualify", payload=label, priority=priority
    )


@pytest.mark.unit
def test_pool_rejects_non_positive_concurrency() -> None:
    """Pool capacity must be at least one."""
    with pytest.raises(ValueError):
        WorkPool(_GatedWorkflow(), max_concurrency=0)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_starts_highest_priority_first() -> None:
    """Queued units start in descending priority order."""
    workflow = _GatedWorkflow()
    pool = WorkPool(workflow, max_concurrency=1)
    tickets = [pool.submit(_request("blocker", priority=0))]
    tickets.extend(
        pool.submit(_request(label, priority=priority))
        for label, priority in (("low", 3), ("high", 9), ("mid", 5))
    )

    queued = pool.get_queue_status().queued
    assert [item.priority for item in queued] == [9, 5, 3]

    workflow.release_all()
    await asyncio.gather(*(ticket.wait() for ticket in tickets))
    assert workflow.started == ["blocker", "high", "mid", "low"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_keeps_fifo_order_for_equal_priority() -> None:
    """Equal-priority units keep their admission order."""
    workflow = _GatedWorkflow()
    pool = WorkPool(workflow, max_concurrency=1)
    blocker = pool.submit(_request("blocker", priority=10))
    ids = [pool.enqueue(_request(label, priority=5)) for label in ("a", "b", "c")]

    assert [item.unit_id for item in pool.get_queue_status().queued] == ids

    workflow.release_all()
    await blocker
    await pool.submit(_request("tail", priority=0))
    assert workflow.started == ["blocker", "a", "b", "c", "tail"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_dispatches_eagerly_up_to_capacity() -> None:
    """Units start on enqueue while capacity allows; the rest wait."""
    workflow = _GatedWorkflow()
    pool = WorkPool(workflow, max_concurrency=2)
    first = pool.submit(_request("u1", priority=3))
    second = pool.submit(_request("u2", priority=8))
    third = pool.submit(_request("u3", priority=5))

    status = pool.get_queue_status()
    assert {item.unit_id for item in status.active} == {
        first.unit_id,
        second.unit_id,
    }
    assert [item.unit_id for item in status.queued] == [third.unit_id]
    assert all(item.state == WorkState.RUNNING for item in status.active)

    workflow.release("u2")
    await second
    status = pool.get_queue_status()
    assert {item.unit_id for item in status.active} == {
        first.unit_id,
        third.unit_id,
    }
    assert status.queued == []

    workflow.release_all()
    await asyncio.gather(first.wait(), third.wait())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_never_exceeds_capacity() -> None:
    """Concurrent invocations stay within the configured capacity."""
    workflow = _GatedWorkflow()
    pool = WorkPool(workflow, max_concurrency=2)
    tickets = [pool.submit(_request(f"unit-{index}")) for index in range(6)]
    await asyncio.sleep(0)

    assert pool.metrics().active == 2
    assert pool.metrics().pending == 4

    workflow.release_all()
    outcomes = await asyncio.gather(*(ticket.wait() for ticket in tickets))

    assert workflow.max_running == 2
    assert all(outcome.ok for outcome in outcomes)
    metrics = pool.metrics()
    assert metrics.completed == 6
    assert metrics.active == 0
    assert metrics.pending == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_admits_one_unit_per_completion() -> None:
    """A settling unit frees exactly one slot for the queue."""
    workflow = _GatedWorkflow()
    pool = WorkPool(workflow, max_concurrency=1)
    first = pool.submit(_request("x"))
    pool.enqueue(_request("y"))
    pool.enqueue(_request("z"))

    workflow.release("x")
    await first

    metrics = pool.metrics()
    assert metrics.active == 1
    assert metrics.pending == 1
    assert metrics.completed == 1

    workflow.release_all()
    await pool.shutdown()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_capacity_increase_drains_immediately() -> None:
    """Raising capacity starts queued units without waiting for completions."""
    workflow = _GatedWorkflow()
    pool = WorkPool(workflow, max_concurrency=1)
    tickets = [pool.submit(_request(f"unit-{index}")) for index in range(3)]
    assert pool.metrics().active == 1

    pool.set_capacity(3)

    assert pool.capacity == 3
    assert pool.metrics().active == 3
    assert pool.metrics().pending == 0

    workflow.release_all()
    await asyncio.gather(*(ticket.wait() for ticket in tickets))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_capacity_decrease_does_not_preempt() -> None:
    """Shrinking capacity leaves running units alone and clamps to one."""
    workflow = _GatedWorkflow()
    pool = WorkPool(workflow, max_concurrency=3)
    tickets = [pool.submit(_request(f"unit-{index}")) for index in range(4)]

    pool.set_capacity(0)

    assert pool.capacity == 1
    assert pool.metrics().active == 3
    assert pool.metrics().pending == 1

    workflow.release("unit-0", "unit-1", "unit-2")
    await asyncio.gather(*(ticket.wait() for ticket in tickets[:3]))
    assert pool.metrics().active == 1

    workflow.release_all()
    await tickets[3]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_failure_is_isolated_and_counted() -> None:
    """A raising workflow fails only its own unit."""
    workflow = _GatedWorkflow(open_all=True)
    workflow.failures["bad"] = RuntimeError("sfx model offline")
    pool = WorkPool(workflow, max_concurrency=2)

    bad = pool.submit(_request("bad", department="sfx"))
    good = pool.submit(_request("good", department="music"))
    bad_outcome, good_outcome = await asyncio.gather(bad.wait(), good.wait())

    assert not bad_outcome.ok
    assert bad_outcome.error == "sfx model offline"
    assert bad_outcome.error_type == "RuntimeError"
    assert good_outcome.ok
    assert good_outcome.unwrap() == {"label": "good", "department": "music"}
    with pytest.raises(WorkUnitFailedError) as exc_info:
        bad_outcome.unwrap()
    assert exc_info.value.info.details is not None
    assert exc_info.value.info.details.department == "sfx"

    metrics = pool.metrics()
    assert metrics.completed == 1
    assert metrics.failed == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_average_duration_counts_successes() -> None:
    """Average duration is computed over successful units only."""
    ticks = itertools.count(start=0.0, step=2.0)
    workflow = _GatedWorkflow(open_all=True)
    workflow.failures["bad"] = RuntimeError("boom")
    pool = WorkPool(workflow, max_concurrency=1, timer=lambda: next(ticks))

    await pool.submit(_request("good"))
    await pool.submit(_request("bad"))

    metrics = pool.metrics()
    assert metrics.completed == 1
    assert metrics.failed == 1
    assert metrics.avg_duration_s == pytest.approx(2.0)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_reports_department_load() -> None:
    """Department load counts both active and queued units."""
    workflow = _GatedWorkflow()
    pool = WorkPool(workflow, max_concurrency=1)
    pool.enqueue(_request("a", department="music"))
    pool.enqueue(_request("b", department="music"))
    pool.enqueue(_request("c", department="voice"))

    music = pool.department_load("music")
    voice = pool.department_load("voice")
    idle = pool.department_load("sfx")

    assert (music.active, music.queued, music.total) == (1, 1, 2)
    assert (voice.active, voice.queued) == (0, 1)
    assert idle.total == 0
    assert pool.departments() == ["music", "voice"]

    workflow.release_all()
    await pool.shutdown()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_shutdown_discards_pending_and_waits_for_active() -> None:
    """Shutdown drops queued work but lets running work finish."""
    workflow = _GatedWorkflow()
    sink = _StubLogSink()
    pool = WorkPool(
        workflow,
        max_concurrency=1,
        log_sink=sink,
        clock=lambda: "2026-02-03T12:00:00Z",
    )
    running = pool.submit(_request("running"))
    queued = pool.submit(_request("queued"))

    shutdown = asyncio.create_task(pool.shutdown())
    await asyncio.sleep(0)

    assert queued.done()
    discarded = await queued
    assert discarded.discarded
    with pytest.raises(PoolShuttingDownError):
        discarded.unwrap()
    with pytest.raises(PoolShuttingDownError):
        pool.enqueue(_request("late"))
    assert not shutdown.done()

    workflow.release("running")
    assert await shutdown is True
    assert (await running).ok
    assert await pool.shutdown() is True

    assert workflow.started == ["running"]
    events = [entry.event for entry in sink.entries]
    assert events.count(PoolEvent.SHUTDOWN_STARTED.value) == 1
    assert events.count(PoolEvent.SHUTDOWN_COMPLETED.value) == 1
    assert WorkEvent.DISCARDED.value in events
    metrics = pool.metrics()
    assert metrics.shutting_down
    assert metrics.completed == 1
    assert metrics.pending == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_shutdown_timeout_leaves_active_work_running() -> None:
    """A timed-out shutdown reports False without cancelling work."""
    workflow = _GatedWorkflow()
    sink = _StubLogSink()
    pool = WorkPool(workflow, max_concurrency=1, log_sink=sink)
    ticket = pool.submit(_request("slow"))

    assert await pool.shutdown(timeout_s=0.01) is False
    assert pool.metrics().active == 1
    assert not ticket.done()
    timed_out = [
        entry
        for entry in sink.entries
        if entry.event == PoolEvent.SHUTDOWN_TIMED_OUT.value
    ]
    assert len(timed_out) == 1
    assert timed_out[0].level == LogLevel.WARN.value

    workflow.release("slow")
    assert (await ticket).ok


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_emits_work_lifecycle_logs() -> None:
    """Started, completed and failed units produce work log entries."""
    workflow = _GatedWorkflow(open_all=True)
    workflow.failures["bad"] = ValueError("bad rows")
    sink = _StubLogSink()
    pool = WorkPool(workflow, max_concurrency=1, log_sink=sink)

    await pool.submit(_request("good", priority=4))
    await pool.submit(_request("bad", priority=2))

    events = [entry.event for entry in sink.entries]
    assert events == [
        WorkEvent.STARTED.value,
        WorkEvent.COMPLETED.value,
        WorkEvent.STARTED.value,
        WorkEvent.FAILED.value,
    ]
    failed = sink.entries[-1]
    assert failed.level == LogLevel.ERROR.value
    assert failed.run_id is None
    assert failed.data is not None
    assert failed.data["error_message"] == "bad rows"
    assert failed.data["priority"] == 2


class _FailingLogSink(_StubLogSink):
    def __init__(self, fail_on: str) -> None:
        super().__init__()
        self.fail_on = fail_on

    async def emit_log(self, entry: LogEntry) -> None:
        if entry.event == self.fail_on:
            raise OSError("log volume full")
        await super().emit_log(entry)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_sink_failure_does_not_fail_work(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A log sink error on work_started still runs and completes the unit."""
    workflow = _GatedWorkflow(open_all=True)
    sink = _FailingLogSink(WorkEvent.STARTED.value)
    pool = WorkPool(workflow, max_concurrency=1, log_sink=sink)

    with caplog.at_level("WARNING", logger="backlot_core.pool"):
        outcome = await pool.submit(_request("cue"))

    assert outcome.ok
    assert workflow.started == ["cue"]
    metrics = pool.metrics()
    assert metrics.completed == 1
    assert metrics.failed == 0
    assert metrics.active == 0
    assert [entry.event for entry in sink.entries] == [WorkEvent.COMPLETED.value]
    assert "Could not emit work_started" in caplog.text
