"""Unit tests for load-aware department scheduling."""

from __future__ import annotations

import asyncio

import pytest

from backlot_core.ports.pool import DepartmentWorkflowProtocol, PoolShuttingDownError
from backlot_core.pool import WorkPool, WorkRequest
from backlot_core.scheduler import DepartmentScheduler
from backlot_schemas.config import SchedulerConfig


class _HeldWorkflow(DepartmentWorkflowProtocol):
    """Workflow that holds every unit until released."""

    def __init__(self) -> None:
        self.started: list[object] = []
        self.gate = asyncio.Event()

    async def invoke(self, department: str, payload: object) -> object:
        self.started.append(payload)
        await self.gate.wait()
        return payload


def _request(
    department: str, payload: str = "row", priority: int | None = None
) -> WorkRequest[str]:
    return WorkRequest(
        department=department, kind="qualify", payload=payload, priority=priority
    )


def _scheduler(
    workflow: DepartmentWorkflowProtocol,
    *,
    capacity: int = 1,
    config: SchedulerConfig | None = None,
) -> DepartmentScheduler:
    return DepartmentScheduler(WorkPool(workflow, max_concurrency=capacity), config)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_idle_department_outranks_busy_department() -> None:
    """The load bonus shrinks as a department's backlog grows."""
    workflow = _HeldWorkflow()
    scheduler = _scheduler(workflow)
    for index in range(5):
        scheduler.pool.enqueue(_request("dialogue", payload=f"busy-{index}"))

    busy = scheduler.compute_priority(_request("dialogue"))
    idle = scheduler.compute_priority(_request("music"))

    assert idle == 10
    assert busy == 5
    assert idle > busy

    workflow.gate.set()
    await scheduler.pool.shutdown()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_explicit_priority_wins() -> None:
    """A priority on the request is used as-is."""
    scheduler = _scheduler(_HeldWorkflow())

    assert scheduler.compute_priority(_request("music", priority=42)) == 42
    assert scheduler.compute_priority(_request("music", priority=-3)) == -3


@pytest.mark.unit
def test_configured_weights_and_default() -> None:
    """Known departments use their weight, unknown ones the default."""
    config = SchedulerConfig(
        default_weight=3, load_ceiling=0, department_weights={"story": 9}
    )
    scheduler = DepartmentScheduler(WorkPool(_HeldWorkflow()), config)

    assert scheduler.weight("story") == 9
    assert scheduler.weight("sfx") == 3
    assert scheduler.compute_priority(_request("story")) == 9


@pytest.mark.unit
def test_set_department_weight_clamps_to_range() -> None:
    """Weights outside 1..10 are clamped on write."""
    scheduler = DepartmentScheduler(WorkPool(_HeldWorkflow()))

    assert scheduler.set_department_weight("voice", 15) == 10
    assert scheduler.set_department_weight("music", 0) == 1
    assert scheduler.set_department_weight("sfx", 7) == 7
    assert scheduler.weight("voice") == 10
    assert scheduler.weight("music") == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_schedule_enqueues_with_computed_priority() -> None:
    """Scheduled units carry the derived priority into the pool."""
    workflow = _HeldWorkflow()
    scheduler = _scheduler(workflow)
    scheduler.schedule(_request("dialogue", payload="blocker"))
    unit_id = scheduler.schedule(_request("music"))

    queued = scheduler.pool.get_queue_status().queued
    assert [item.unit_id for item in queued] == [unit_id]
    assert queued[0].priority == 10

    workflow.gate.set()
    await scheduler.pool.shutdown()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_schedule_multiple_orders_batch_by_priority() -> None:
    """A batch is submitted highest priority first, ids aligned to input."""
    workflow = _HeldWorkflow()
    scheduler = _scheduler(workflow)
    scheduler.schedule(_request("story", payload="blocker", priority=100))

    ids = scheduler.schedule_multiple([
        _request("sfx", payload="low", priority=1),
        _request("music", payload="high", priority=9),
        _request("voice", payload="mid", priority=5),
    ])

    queued = scheduler.pool.get_queue_status().queued
    assert [item.unit_id for item in queued] == [ids[1], ids[2], ids[0]]
    assert [item.priority for item in queued] == [9, 5, 1]

    workflow.gate.set()
    await scheduler.pool.shutdown()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_schedule_multiple_reads_load_once() -> None:
    """Requests in one batch share the same load snapshot."""
    workflow = _HeldWorkflow()
    scheduler = _scheduler(workflow)
    scheduler.schedule(_request("story", payload="blocker", priority=100))

    scheduler.schedule_multiple([
        _request("music", payload="first"),
        _request("music", payload="second"),
        _request("music", payload="third"),
    ])

    queued = scheduler.pool.get_queue_status().queued
    assert [item.priority for item in queued] == [10, 10, 10]

    workflow.gate.set()
    await scheduler.pool.shutdown()
    assert workflow.started == ["blocker"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_submit_multiple_returns_awaitable_tickets() -> None:
    """Tickets from a batch resolve to their own unit's output."""
    workflow = _HeldWorkflow()
    workflow.gate.set()
    scheduler = _scheduler(workflow, capacity=2)

    tickets = scheduler.submit_multiple([
        _request("music", payload="a", priority=1),
        _request("voice", payload="b", priority=7),
    ])
    outcomes = await asyncio.gather(*(ticket.wait() for ticket in tickets))

    assert [outcome.unwrap() for outcome in outcomes] == ["a", "b"]
    assert [outcome.department for outcome in outcomes] == ["music", "voice"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_status_reports_weights_and_live_load() -> None:
    """Status lists weighted departments first, then departments with load."""
    workflow = _HeldWorkflow()
    config = SchedulerConfig(department_weights={"story": 8})
    scheduler = _scheduler(workflow, config=config)
    scheduler.schedule(_request("music", payload="running"))
    scheduler.schedule(_request("music", payload="waiting"))

    status = scheduler.status()

    assert status.default_weight == 5
    assert [metric.department for metric in status.departments] == [
        "story",
        "music",
    ]
    music = status.departments[1]
    assert (music.weight, music.active, music.queued) == (5, 1, 1)
    assert status.pool.active == 1
    assert status.pool.pending == 1

    workflow.gate.set()
    await scheduler.pool.shutdown()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_schedule_after_shutdown_raises() -> None:
    """Scheduling onto a draining pool fails fast."""
    scheduler = _scheduler(_HeldWorkflow())
    await scheduler.pool.shutdown()

    with pytest.raises(PoolShuttingDownError):
        scheduler.schedule(_request("music"))
