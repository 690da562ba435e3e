"""Storage adapters for logs and durable error records."""

from backlot_io.storage.filesystem import FileSystemErrorRecorder, FileSystemLogStore
from backlot_io.storage.log_sink import (
    CompositeLogSink,
    ConsoleLogSink,
    LevelFilterLogSink,
    NoopLogSink,
    StorageLogSink,
    build_log_sink,
)

__all__ = [
    "CompositeLogSink",
    "ConsoleLogSink",
    "FileSystemErrorRecorder",
    "FileSystemLogStore",
    "LevelFilterLogSink",
    "NoopLogSink",
    "StorageLogSink",
    "build_log_sink",
]
