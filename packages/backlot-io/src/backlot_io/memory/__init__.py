"""In-memory collaborators for tests and local runs."""

from backlot_io.memory.lock import InMemoryResourceLock, ResourceLockState
from backlot_io.memory.stores import (
    InMemoryErrorRecorder,
    InMemoryIntakeSource,
    InMemoryKnowledgeBase,
    InMemoryQualifiedStore,
    StaticReadinessEvaluator,
)

__all__ = [
    "InMemoryErrorRecorder",
    "InMemoryIntakeSource",
    "InMemoryKnowledgeBase",
    "InMemoryQualifiedStore",
    "InMemoryResourceLock",
    "ResourceLockState",
    "StaticReadinessEvaluator",
]
