"""Filesystem-backed storage adapters."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, cast

from pydantic import ValidationError

from backlot_core.ports.storage import (
    ErrorRecorderProtocol,
    LogStoreProtocol,
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
)
from backlot_schemas.base import BaseSchema
from backlot_schemas.logs import LogEntry
from backlot_schemas.pipeline import DurableErrorRecord
from backlot_schemas.primitives import ResourceId, RunId

POOL_LOG_NAME = "pool"
ERRORS_FILE_NAME = "errors.jsonl"


class _SchemaModel(Protocol):
    @classmethod
    def model_validate_json(cls, json_data: str) -> BaseSchema: ...


class FileSystemLogStore(LogStoreProtocol):
    """Filesystem-backed JSONL log store.

    Run entries land in ``<run_id>.jsonl``; entries without a run id (pool
    events) land in ``pool.jsonl``.
    """

    def __init__(self, logs_dir: str) -> None:
        """Initialize the log store."""
        self._logs_dir = Path(logs_dir)

    async def append_log(self, entry: LogEntry) -> None:
        """Append a single log entry.

        Raises:
            StorageError: If the log entry cannot be written.
        """
        path = self.log_path(entry.run_id)
        try:
            await asyncio.to_thread(_append_jsonl, path, [entry], exclude_none=False)
        except OSError as exc:
            raise _io_error("append_log", path, exc) from exc

    async def read_logs(self, run_id: RunId | None) -> list[LogEntry]:
        """Return stored entries for a run or for the pool.

        Returns:
            list[LogEntry]: Entries in append order; empty if none exist.

        Raises:
            StorageError: If the log file cannot be read or parsed.
        """
        path = self.log_path(run_id)
        if not await asyncio.to_thread(path.exists):
            return []
        try:
            entries = await asyncio.to_thread(_read_jsonl_models, path, LogEntry)
        except OSError as exc:
            raise _io_error("read_logs", path, exc) from exc
        except ValidationError as exc:
            raise _parse_error("read_logs", path, "Log entry", exc) from exc
        return [cast(LogEntry, entry) for entry in entries]

    def log_path(self, run_id: RunId | None) -> Path:
        """Return the JSONL path for a run, or the pool log path."""
        name = str(run_id) if run_id is not None else POOL_LOG_NAME
        return self._logs_dir / f"{name}.jsonl"


class FileSystemErrorRecorder(ErrorRecorderProtocol):
    """Durable error recorder appending records to a JSONL file."""

    def __init__(self, base_dir: str) -> None:
        """Initialize the error recorder."""
        self._path = Path(base_dir) / ERRORS_FILE_NAME

    @property
    def path(self) -> Path:
        """JSONL file holding durable error records."""
        return self._path

    async def record_durable_error(self, record: DurableErrorRecord) -> None:
        """Append a durable error record.

        Raises:
            StorageError: If the record cannot be written.
        """
        try:
            await asyncio.to_thread(_append_jsonl, self._path, [record])
        except OSError as exc:
            raise _io_error("record_durable_error", self._path, exc) from exc

    async def list_errors(
        self, resource_id: ResourceId | None = None
    ) -> list[DurableErrorRecord]:
        """Return recorded errors, optionally for one resource.

        Returns:
            list[DurableErrorRecord]: Records in append order.

        Raises:
            StorageError: If the file cannot be read or parsed.
        """
        if not await asyncio.to_thread(self._path.exists):
            return []
        try:
            records = await asyncio.to_thread(
                _read_jsonl_models, self._path, DurableErrorRecord
            )
        except OSError as exc:
            raise _io_error("list_errors", self._path, exc) from exc
        except ValidationError as exc:
            raise _parse_error(
                "list_errors", self._path, "Durable error record", exc
            ) from exc
        typed = [cast(DurableErrorRecord, record) for record in records]
        if resource_id is None:
            return typed
        return [record for record in typed if record.resource_id == resource_id]


def _append_jsonl(
    path: Path, payload: Sequence[BaseSchema], *, exclude_none: bool = True
) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as handle:
        handle.writelines(
            item.model_dump_json(exclude_none=exclude_none) + "\n" for item in payload
        )


def _read_jsonl_models(path: Path, model: _SchemaModel) -> list[BaseSchema]:
    results: list[BaseSchema] = []
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            if not line.strip():
                continue
            results.append(model.model_validate_json(line))
    return results


def _io_error(operation: str, path: Path, exc: OSError) -> StorageError:
    return StorageError(
        StorageErrorInfo(
            code=StorageErrorCode.IO_ERROR,
            message=str(exc) or f"{operation} failed",
            details=StorageErrorDetails(operation=operation, path=str(path)),
        )
    )


def _parse_error(
    operation: str, path: Path, entity: str, exc: ValidationError
) -> StorageError:
    message = f"{entity} failed schema validation"
    if any(str(error.get("type", "")).startswith("json_") for error in exc.errors()):
        message = f"{entity} JSON could not be parsed"
    return StorageError(
        StorageErrorInfo(
            code=StorageErrorCode.SERIALIZATION_ERROR,
            message=message,
            details=StorageErrorDetails(
                operation=operation, path=str(path), reason=str(exc)
            ),
        )
    )
