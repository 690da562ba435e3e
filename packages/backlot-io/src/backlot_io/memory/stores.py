"""In-memory data collaborators for the qualification pipeline."""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence

from backlot_core.ports.storage import (
    ErrorRecorderProtocol,
    IntakeSourceProtocol,
    KnowledgeBaseProtocol,
    QualifiedStoreProtocol,
    ReadinessEvaluatorProtocol,
)
from backlot_schemas.pipeline import DurableErrorRecord
from backlot_schemas.primitives import DepartmentId, JsonRow, ResourceId


class InMemoryIntakeSource(IntakeSourceProtocol):
    """Intake rows keyed by resource and department."""

    def __init__(
        self,
        rows: Mapping[ResourceId, Mapping[DepartmentId, Sequence[JsonRow]]]
        | None = None,
    ) -> None:
        """Initialize the intake source.

        Args:
            rows: Optional initial rows by resource and department.
        """
        self._rows: dict[ResourceId, dict[DepartmentId, list[JsonRow]]] = {}
        for resource_id, departments in (rows or {}).items():
            for department, department_rows in departments.items():
                self.add_rows(resource_id, department, department_rows)

    def add_rows(
        self,
        resource_id: ResourceId,
        department: DepartmentId,
        rows: Sequence[JsonRow],
    ) -> None:
        """Append intake rows for a department."""
        bucket = self._rows.setdefault(resource_id, {}).setdefault(department, [])
        bucket.extend(copy.deepcopy(list(rows)))

    async def fetch_intake_rows(
        self, resource_id: ResourceId, department: DepartmentId
    ) -> list[JsonRow]:
        """Return a copy of the intake rows for a department."""
        return copy.deepcopy(self._rows.get(resource_id, {}).get(department, []))


class InMemoryQualifiedStore(QualifiedStoreProtocol):
    """Qualified rows collected per resource."""

    def __init__(self) -> None:
        """Initialize the store."""
        self.rows: dict[ResourceId, list[JsonRow]] = {}
        self.writes = 0

    async def persist_qualified_rows(
        self, resource_id: ResourceId, rows: Sequence[JsonRow]
    ) -> None:
        """Append qualified rows for a resource."""
        self.writes += 1
        self.rows.setdefault(resource_id, []).extend(copy.deepcopy(list(rows)))


class InMemoryKnowledgeBase(KnowledgeBaseProtocol):
    """Knowledge-base ingest target that keeps rows per resource."""

    def __init__(self) -> None:
        """Initialize the knowledge base."""
        self.ingested: dict[ResourceId, list[JsonRow]] = {}

    async def ingest(self, resource_id: ResourceId, rows: Sequence[JsonRow]) -> None:
        """Replace the ingested rows for a resource."""
        self.ingested[resource_id] = copy.deepcopy(list(rows))


class InMemoryErrorRecorder(ErrorRecorderProtocol):
    """Durable error recorder that keeps records in memory."""

    def __init__(self) -> None:
        """Initialize the recorder."""
        self.records: list[DurableErrorRecord] = []

    async def record_durable_error(self, record: DurableErrorRecord) -> None:
        """Store the durable error record."""
        self.records.append(record)


class StaticReadinessEvaluator(ReadinessEvaluatorProtocol):
    """Readiness evaluator returning fixed scores."""

    def __init__(
        self,
        scores: Mapping[DepartmentId, float] | None = None,
        default_score: float = 1.0,
    ) -> None:
        """Initialize the evaluator.

        Args:
            scores: Fixed scores per department.
            default_score: Score for departments not listed.
        """
        self._scores = dict(scores or {})
        self._default_score = default_score

    async def evaluate(
        self, resource_id: ResourceId, departments: Sequence[DepartmentId]
    ) -> dict[DepartmentId, float]:
        """Return the configured score for each department."""
        return {
            department: self._scores.get(department, self._default_score)
            for department in departments
        }
