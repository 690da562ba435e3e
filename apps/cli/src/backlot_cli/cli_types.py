"""Shared CLI typer argument definitions."""

from pathlib import Path
from typing import Annotated

import typer

ConfigPathOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        exists=True,
        file_okay=True,
        dir_okay=False,
        help="Path to a backlot TOML config (default: BACKLOT_CONFIG_PATH).",
    ),
]

VerbosityOption = Annotated[
    str | None,
    typer.Option(
        "--verbosity", "-v", help="Console verbosity (info, verbose, debug)."
    ),
]
