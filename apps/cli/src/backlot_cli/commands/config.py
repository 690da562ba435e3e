"""CLI commands for inspecting backlot configuration."""

from __future__ import annotations

import typer
from backlot_core.logging import configure_logging
from backlot_core.settings import get_settings
from backlot_core.status import build_phase_plan
from backlot_io.config import ConfigLoadError, resolve_config
from backlot_schemas.config import BacklotConfig

from backlot_cli.cli_types import ConfigPathOption, VerbosityOption


def load_cli_config(
    config_path: ConfigPathOption, verbosity: VerbosityOption
) -> BacklotConfig:
    """Configure logging and load configuration for a command.

    Returns:
        BacklotConfig: Configuration with environment overrides applied.

    Raises:
        typer.Exit: If the configuration cannot be loaded.
    """
    settings = get_settings()
    configure_logging(verbosity or settings.log_level)
    try:
        return resolve_config(settings, config_path)
    except ConfigLoadError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc


def check_config(
    config_path: ConfigPathOption = None,
    verbosity: VerbosityOption = None,
) -> None:
    """Validate configuration and print a short summary.

    Raises:
        typer.Exit: If the configuration cannot be loaded.
    """
    config = load_cli_config(config_path, verbosity)
    departments = config.pipeline.departments()
    typer.secho("Configuration valid.", fg=typer.colors.GREEN)
    typer.echo(f"Pool capacity: {config.pool.max_concurrency}")
    typer.echo(f"Shutdown timeout: {config.pool.shutdown_timeout_s}s")
    typer.echo(
        f"Phases: {len(config.pipeline.phases)}, departments: {len(departments)}"
    )
    typer.echo(f"Minimum readiness: {config.pipeline.min_readiness:.0%}")


def plan(
    config_path: ConfigPathOption = None,
    verbosity: VerbosityOption = None,
    as_json: bool = typer.Option(False, "--json", help="Print the plan as JSONL."),
) -> None:
    """Print the phase execution plan.

    Raises:
        typer.Exit: If the configuration cannot be loaded.
    """
    config = load_cli_config(config_path, verbosity)
    weights = config.scheduler.department_weights
    for entry in build_phase_plan(config.pipeline):
        if as_json:
            typer.echo(entry.model_dump_json())
            continue
        reads = ", ".join(entry.reads) if entry.reads else "-"
        typer.secho(
            f"[{entry.index}] {entry.phase} ({entry.mode})", bold=True
        )
        for department in entry.departments:
            weight = weights.get(department, config.scheduler.default_weight)
            typer.echo(f"    {department} (weight {weight})")
        typer.echo(f"    reads: {reads}")
