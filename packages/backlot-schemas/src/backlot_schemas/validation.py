"""Validation entrypoints for configuration payloads."""

from __future__ import annotations

from backlot_schemas.config import BacklotConfig, PipelineConfig
from backlot_schemas.primitives import JsonValue


def validate_config(payload: dict[str, JsonValue]) -> BacklotConfig:
    """Validate a full backlot configuration payload.

    Config files carry plain strings and tables, so validation runs in lax
    mode here.

    Args:
        payload: Raw configuration payload (for example parsed TOML).

    Returns:
        BacklotConfig: Validated configuration.
    """
    return BacklotConfig.model_validate(payload, strict=False)


def validate_pipeline_config(payload: dict[str, JsonValue]) -> PipelineConfig:
    """Validate pipeline configuration payload.

    Args:
        payload: Raw pipeline configuration payload.

    Returns:
        PipelineConfig: Validated pipeline configuration.
    """
    return PipelineConfig.model_validate(payload, strict=False)
