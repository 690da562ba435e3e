"""Runtime settings and environment loading utilities."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from backlot_schemas.config import BacklotConfig

_ENV_PATH = Path(".env")


class BacklotSettings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=_ENV_PATH, env_file_encoding="utf-8", case_sensitive=False
    )

    config_path: Path | None = Field(default=None, alias="BACKLOT_CONFIG_PATH")
    max_concurrency: int | None = Field(
        default=None, ge=1, alias="BACKLOT_MAX_CONCURRENCY"
    )
    log_level: str = Field(default="info", alias="BACKLOT_LOG_LEVEL")

    def apply(self, config: BacklotConfig) -> BacklotConfig:
        """Overlay environment overrides onto a loaded configuration.

        Args:
            config: Configuration loaded from file or defaults.

        Returns:
            BacklotConfig: Configuration with overrides applied.
        """
        if self.max_concurrency is None:
            return config
        pool = config.pool.model_copy(update={"max_concurrency": self.max_concurrency})
        return config.model_copy(update={"pool": pool})


@lru_cache(maxsize=1)
def get_settings() -> BacklotSettings:
    """Return cached settings loaded from the environment."""
    return BacklotSettings()
