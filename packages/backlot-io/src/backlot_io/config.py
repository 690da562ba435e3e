"""TOML configuration loading."""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError

from backlot_core.settings import BacklotSettings
from backlot_schemas.config import BacklotConfig
from backlot_schemas.validation import validate_config


class ConfigLoadError(Exception):
    """Raised when a configuration file cannot be read or validated."""

    def __init__(self, message: str, source_path: Path) -> None:
        """Initialize the error.

        Args:
            message: Error message.
            source_path: Configuration file that failed to load.
        """
        super().__init__(message)
        self.source_path = source_path


def load_config(path: Path) -> BacklotConfig:
    """Load and validate a backlot TOML configuration file.

    Args:
        path: Path to the TOML file.

    Returns:
        BacklotConfig: Validated configuration.

    Raises:
        ConfigLoadError: If the file is missing, malformed, or invalid.
    """
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
        return validate_config(data)
    except FileNotFoundError as exc:
        raise ConfigLoadError(f"Config file not found: {path}", path) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"Invalid TOML in {path}: {exc}", path) from exc
    except ValidationError as exc:
        raise ConfigLoadError(
            f"Invalid configuration in {path}: {exc.error_count()} error(s)\n{exc}",
            path,
        ) from exc


def resolve_config(
    settings: BacklotSettings, path: Path | None = None
) -> BacklotConfig:
    """Load configuration from a path or the environment, then apply overrides.

    Args:
        settings: Environment settings.
        path: Explicit config path; falls back to BACKLOT_CONFIG_PATH.

    Returns:
        BacklotConfig: Configuration with environment overrides applied.
    """
    source = path or settings.config_path
    config = load_config(source) if source is not None else BacklotConfig()
    return settings.apply(config)
