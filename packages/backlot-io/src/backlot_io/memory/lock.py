"""In-memory per-resource qualification lock."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from backlot_core.ports.storage import ResourceLockProtocol
from backlot_schemas.pipeline import RunError
from backlot_schemas.primitives import TERMINAL_RUN_STATUSES, ResourceId, RunStatus

_BLOCKING_STATUSES = frozenset({RunStatus.LOCKED, RunStatus.SUCCEEDED})


@dataclass(frozen=True, slots=True)
class ResourceLockState:
    """Lock state recorded on a resource."""

    status: RunStatus
    qualified_resource_id: ResourceId | None = None
    error: RunError | None = None


class InMemoryResourceLock(ResourceLockProtocol):
    """Compare-and-set resource lock held in process memory.

    A resource that is locked or already qualified cannot be acquired again.
    A failed resource can be acquired for a fresh run.
    """

    def __init__(self) -> None:
        """Initialize the lock table."""
        self._guard = threading.Lock()
        self._states: dict[ResourceId, ResourceLockState] = {}

    async def acquire(self, resource_id: ResourceId) -> bool:
        """Lock the resource unless it is locked or qualified.

        Returns:
            bool: True if this call took the lock.
        """
        with self._guard:
            current = self._states.get(resource_id)
            if current is not None and current.status in _BLOCKING_STATUSES:
                return False
            self._states[resource_id] = ResourceLockState(status=RunStatus.LOCKED)
            return True

    async def release(
        self,
        resource_id: ResourceId,
        final_status: RunStatus,
        *,
        qualified_resource_id: ResourceId | None = None,
        error: RunError | None = None,
    ) -> None:
        """Record the terminal status for a locked resource.

        Raises:
            ValueError: If the status is not terminal or the resource is not
                locked.
        """
        if final_status not in TERMINAL_RUN_STATUSES:
            raise ValueError(f"cannot release with non-terminal status {final_status}")
        with self._guard:
            current = self._states.get(resource_id)
            if current is None or current.status != RunStatus.LOCKED:
                raise ValueError(f"resource {resource_id} is not locked")
            self._states[resource_id] = ResourceLockState(
                status=final_status,
                qualified_resource_id=qualified_resource_id,
                error=error,
            )

    def state(self, resource_id: ResourceId) -> ResourceLockState | None:
        """Return the recorded lock state for a resource."""
        with self._guard:
            return self._states.get(resource_id)
