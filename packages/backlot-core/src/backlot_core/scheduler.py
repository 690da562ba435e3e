"""Load-aware priority scheduling of department work onto the pool."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from typing import TypeVar, cast

from backlot_core.pool import WorkPool, WorkRequest, WorkTicket
from backlot_schemas.config import SchedulerConfig
from backlot_schemas.primitives import (
    MAX_DEPARTMENT_WEIGHT,
    MIN_DEPARTMENT_WEIGHT,
    DepartmentId,
    WorkUnitId,
)
from backlot_schemas.work import DepartmentLoad, DepartmentMetrics, SchedulerStatus

PayloadT = TypeVar("PayloadT")

logger = logging.getLogger(__name__)


class DepartmentScheduler:
    """Derive per-unit priorities from department weight and live load.

    A department's priority is its base weight plus a bonus that shrinks as
    its own backlog grows, so a busy department cannot starve idle ones.
    A priority supplied on the request always wins.
    """

    def __init__(self, pool: WorkPool, config: SchedulerConfig | None = None) -> None:
        """Initialize the scheduler.

        Args:
            pool: Pool that receives prioritized work.
            config: Optional weight and load settings.
        """
        settings = config or SchedulerConfig()
        self._pool = pool
        self._default_weight = settings.default_weight
        self._load_ceiling = settings.load_ceiling
        self._weights: dict[DepartmentId, int] = {
            department: _clamp_weight(weight)
            for department, weight in settings.department_weights.items()
        }

    @property
    def pool(self) -> WorkPool:
        """Pool receiving scheduled work."""
        return self._pool

    def weight(self, department: DepartmentId) -> int:
        """Return the base weight for a department.

        Args:
            department: Department identifier.

        Returns:
            int: Configured weight, or the default for unknown departments.
        """
        return self._weights.get(department, self._default_weight)

    def set_department_weight(self, department: DepartmentId, weight: int) -> int:
        """Set a department's base weight, clamped to the allowed range.

        Args:
            department: Department identifier.
            weight: Requested weight.

        Returns:
            int: Weight actually stored.
        """
        clamped = _clamp_weight(weight)
        if clamped != weight:
            logger.info(
                "Clamped weight for %s from %d to %d", department, weight, clamped
            )
        self._weights[department] = clamped
        return clamped

    def compute_priority(
        self,
        request: WorkRequest[PayloadT],
        load: DepartmentLoad | None = None,
    ) -> int:
        """Compute the admission priority for a request.

        Args:
            request: Work request to prioritize.
            load: Load snapshot to use; read from the pool when omitted.

        Returns:
            int: Explicit priority, or weight plus load bonus.
        """
        if request.priority is not None:
            return request.priority
        snapshot = load or self._pool.department_load(request.department)
        bonus = max(0, self._load_ceiling - snapshot.total)
        return self.weight(request.department) + bonus

    def schedule(self, request: WorkRequest[PayloadT]) -> WorkUnitId:
        """Prioritize a request and enqueue it.

        Args:
            request: Work request to schedule.

        Returns:
            WorkUnitId: Identifier of the admitted unit.
        """
        return self.submit(request).unit_id

    def submit(self, request: WorkRequest[PayloadT]) -> WorkTicket:
        """Prioritize a request and submit it for an awaitable outcome.

        Args:
            request: Work request to schedule.

        Returns:
            WorkTicket: Handle resolving to the unit's outcome.
        """
        priority = self.compute_priority(request)
        return self._pool.submit(replace(request, priority=priority))

    def schedule_multiple(
        self, requests: Sequence[WorkRequest[PayloadT]]
    ) -> list[WorkUnitId]:
        """Schedule a batch against a single load snapshot.

        Args:
            requests: Work requests to schedule.

        Returns:
            list[WorkUnitId]: Unit identifiers aligned to input order.
        """
        return [ticket.unit_id for ticket in self.submit_multiple(requests)]

    def submit_multiple(
        self, requests: Sequence[WorkRequest[PayloadT]]
    ) -> list[WorkTicket]:
        """Submit a batch highest priority first.

        Load is read once for the whole batch. Submitting in descending
        priority keeps a later equal-priority request in the batch from
        jumping ahead of an earlier one.

        Args:
            requests: Work requests to schedule.

        Returns:
            list[WorkTicket]: Tickets aligned to input order.
        """
        loads = {
            department: self._pool.department_load(department)
            for department in {request.department for request in requests}
        }
        priorities = [
            self.compute_priority(request, loads[request.department])
            for request in requests
        ]
        order = sorted(range(len(requests)), key=lambda index: -priorities[index])
        tickets: list[WorkTicket | None] = [None] * len(requests)
        for index in order:
            tickets[index] = self._pool.submit(
                replace(requests[index], priority=priorities[index])
            )
        return [cast(WorkTicket, ticket) for ticket in tickets]

    def department_metrics(self) -> list[DepartmentMetrics]:
        """Return weight and live load per known department.

        Returns:
            list[DepartmentMetrics]: Weighted departments first, then any
                department that only has load.
        """
        departments = list(self._weights)
        departments.extend(
            department
            for department in self._pool.departments()
            if department not in self._weights
        )
        metrics: list[DepartmentMetrics] = []
        for department in departments:
            load = self._pool.department_load(department)
            metrics.append(
                DepartmentMetrics(
                    department=department,
                    weight=self.weight(department),
                    active=load.active,
                    queued=load.queued,
                )
            )
        return metrics

    def status(self) -> SchedulerStatus:
        """Return an aggregated scheduler snapshot.

        Returns:
            SchedulerStatus: Default weight, departments, and pool metrics.
        """
        return SchedulerStatus(
            default_weight=self._default_weight,
            departments=self.department_metrics(),
            pool=self._pool.metrics(),
        )


def _clamp_weight(weight: int) -> int:
    return max(MIN_DEPARTMENT_WEIGHT, min(MAX_DEPARTMENT_WEIGHT, weight))
