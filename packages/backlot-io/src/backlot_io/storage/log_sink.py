"""Log sinks for work, pool, and pipeline run entries."""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import TextIO

from backlot_core.ports.orchestrator import LogSinkProtocol
from backlot_core.ports.storage import LogStoreProtocol
from backlot_schemas.config import LoggingConfig, LogSinkConfig
from backlot_schemas.logs import LogEntry
from backlot_schemas.primitives import LogLevel, LogSinkType

LEVEL_RANK: dict[str, int] = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}


class StorageLogSink(LogSinkProtocol):
    """Append entries to a log store, one JSONL file per run plus the pool."""

    def __init__(self, store: LogStoreProtocol) -> None:
        """Initialize the sink with the store that owns the files."""
        self._store = store

    async def emit_log(self, entry: LogEntry) -> None:
        """Append the entry to its run's log, or the pool log."""
        await self._store.append_log(entry)


class ConsoleLogSink(LogSinkProtocol):
    """Write entries as JSONL, to stderr unless another stream is given.

    Stdout stays free for command output such as ``backlot plan --json``.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        """Initialize the console sink.

        Args:
            stream: Output stream for JSONL entries; stderr when omitted.
        """
        self._stream = stream or sys.stderr

    async def emit_log(self, entry: LogEntry) -> None:
        """Write the entry as one JSON line."""
        self._stream.write(entry.model_dump_json(exclude_none=False) + "\n")
        self._stream.flush()


class LevelFilterLogSink(LogSinkProtocol):
    """Forward only entries at or above a minimum level."""

    def __init__(self, delegate: LogSinkProtocol, min_level: LogLevel) -> None:
        """Initialize the filter.

        Args:
            delegate: Sink receiving entries that pass.
            min_level: Lowest level forwarded.
        """
        self._delegate = delegate
        self._min_rank = LEVEL_RANK[min_level]

    async def emit_log(self, entry: LogEntry) -> None:
        """Forward the entry when its level passes the threshold."""
        if LEVEL_RANK[entry.level] >= self._min_rank:
            await self._delegate.emit_log(entry)


class CompositeLogSink(LogSinkProtocol):
    """Fan entries out to several sinks in configuration order."""

    def __init__(self, sinks: Iterable[LogSinkProtocol]) -> None:
        """Initialize the composite sink."""
        self._sinks = list(sinks)

    async def emit_log(self, entry: LogEntry) -> None:
        """Forward the entry to each sink."""
        for sink in self._sinks:
            await sink.emit_log(entry)


class NoopLogSink(LogSinkProtocol):
    """Drop every entry."""

    async def emit_log(self, entry: LogEntry) -> None:
        """Ignore the entry."""
        return None


def build_log_sink(
    logging_config: LoggingConfig,
    log_store: LogStoreProtocol,
    *,
    stream: TextIO | None = None,
) -> LogSinkProtocol:
    """Build the sink described by the ``[logging]`` section.

    Each configured sink is wrapped in a level filter when its ``min_level``
    is above debug. A single sink is returned as-is; several are composed.

    Args:
        logging_config: Logging configuration.
        log_store: Store backing ``file`` sinks.
        stream: Optional stream for ``console`` sinks.

    Returns:
        LogSinkProtocol: Configured log sink.
    """
    sinks = [
        _build_one(sink_config, log_store, stream)
        for sink_config in logging_config.sinks
    ]
    if len(sinks) == 1:
        return sinks[0]
    return CompositeLogSink(sinks)


def _build_one(
    sink_config: LogSinkConfig,
    log_store: LogStoreProtocol,
    stream: TextIO | None,
) -> LogSinkProtocol:
    sink: LogSinkProtocol
    if sink_config.type == LogSinkType.FILE:
        sink = StorageLogSink(log_store)
    elif sink_config.type == LogSinkType.CONSOLE:
        sink = ConsoleLogSink(stream=stream)
    elif sink_config.type == LogSinkType.NOOP:
        return NoopLogSink()
    else:
        raise ValueError(f"Unsupported log sink type: {sink_config.type}")
    min_level = LogLevel(sink_config.min_level)
    if min_level == LogLevel.DEBUG:
        return sink
    return LevelFilterLogSink(sink, min_level)
