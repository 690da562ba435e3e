"""CLI commands for reading stored logs and durable error records."""

from __future__ import annotations

from pathlib import Path
from uuid import UUID

import anyio
import typer
from backlot_core.ports.storage import StorageError
from backlot_io.storage.filesystem import FileSystemErrorRecorder, FileSystemLogStore

from backlot_cli.cli_types import ConfigPathOption, VerbosityOption
from backlot_cli.commands.config import load_cli_config


def errors(
    resource_id: str | None = typer.Argument(None, help="Only show this resource."),
    base_dir: Path = typer.Option(
        Path(".backlot"), "--base-dir", help="Directory holding errors.jsonl."
    ),
) -> None:
    """List durable error records from failed runs.

    Raises:
        typer.Exit: If the records cannot be read.
    """
    recorder = FileSystemErrorRecorder(str(base_dir))
    try:
        records = anyio.run(recorder.list_errors, resource_id)
    except StorageError as exc:
        typer.secho(exc.info.message, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    if not records:
        typer.echo("No durable errors recorded.")
        return
    for record in records:
        departments = ", ".join(record.failed_departments) or "-"
        typer.secho(
            f"{record.created_at} {record.resource_id} [{record.error_type}]",
            fg=typer.colors.RED,
        )
        typer.echo(f"    departments: {departments}")
        typer.echo(f"    {record.error_message}")


def logs(
    run_id: str | None = typer.Argument(
        None, help="Run identifier; omit to show pool events."
    ),
    config_path: ConfigPathOption = None,
    verbosity: VerbosityOption = None,
) -> None:
    """Print stored JSONL log entries for a run or the pool.

    Raises:
        typer.Exit: If the run id is malformed or logs cannot be read.
    """
    config = load_cli_config(config_path, verbosity)
    try:
        parsed = UUID(run_id) if run_id is not None else None
    except ValueError as exc:
        typer.secho(f"Invalid run id: {run_id}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    store = FileSystemLogStore(config.logging.logs_dir)
    try:
        entries = anyio.run(store.read_logs, parsed)
    except StorageError as exc:
        typer.secho(exc.info.message, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    for entry in entries:
        typer.echo(entry.model_dump_json())
