"""backlot-io: Storage, in-memory, and configuration adapters."""

from backlot_io.config import ConfigLoadError, load_config, resolve_config
from backlot_io.memory import (
    InMemoryErrorRecorder,
    InMemoryIntakeSource,
    InMemoryKnowledgeBase,
    InMemoryQualifiedStore,
    InMemoryResourceLock,
    StaticReadinessEvaluator,
)
from backlot_io.storage import (
    CompositeLogSink,
    ConsoleLogSink,
    FileSystemErrorRecorder,
    FileSystemLogStore,
    LevelFilterLogSink,
    NoopLogSink,
    StorageLogSink,
    build_log_sink,
)

__version__ = "0.1.0"

__all__ = [
    "CompositeLogSink",
    "ConfigLoadError",
    "ConsoleLogSink",
    "FileSystemErrorRecorder",
    "FileSystemLogStore",
    "InMemoryErrorRecorder",
    "InMemoryIntakeSource",
    "InMemoryKnowledgeBase",
    "InMemoryQualifiedStore",
    "InMemoryResourceLock",
    "LevelFilterLogSink",
    "NoopLogSink",
    "StaticReadinessEvaluator",
    "StorageLogSink",
    "build_log_sink",
    "load_config",
    "resolve_config",
]
