"""Unit tests for configuration schema validation."""

import pytest
from pydantic import ValidationError

from backlot_schemas.config import (
    BacklotConfig,
    LoggingConfig,
    LogSinkConfig,
    PhaseDefinition,
    PipelineConfig,
    PoolConfig,
    SchedulerConfig,
)
from backlot_schemas.primitives import LogSinkType, PhaseMode


def _phase(
    index: int,
    name: str,
    departments: list[str],
    mode: PhaseMode = PhaseMode.PARALLEL,
    reads: list[str] | None = None,
) -> PhaseDefinition:
    return PhaseDefinition(
        index=index, name=name, mode=mode, departments=departments, reads=reads
    )


def test_backlot_config_defaults() -> None:
    """Ensure an empty config yields the documented defaults."""
    config = BacklotConfig()

    assert config.pool.max_concurrency == 5
    assert config.pool.shutdown_timeout_s == 30.0
    assert config.scheduler.default_weight == 5
    assert config.pipeline.min_readiness == 0.7
    assert config.pipeline.qualified_suffix == "_qualified"
    assert [phase.name for phase in config.pipeline.ordered_phases()] == [
        "foundation",
        "story",
        "production",
    ]
    assert config.logging.sinks[0].type == LogSinkType.CONSOLE.value


def test_default_pipeline_instances_are_independent() -> None:
    """Ensure default phases are copied per config instance."""
    first = PipelineConfig()
    second = PipelineConfig()

    first.phases[0].departments = ["character"]

    assert second.phases[0].departments == ["character", "world", "visual"]


def test_pool_config_rejects_zero_concurrency() -> None:
    """Ensure pool capacity must be positive."""
    with pytest.raises(ValidationError):
        PoolConfig(max_concurrency=0)


def test_scheduler_config_rejects_out_of_range_weights() -> None:
    """Ensure department weights stay within 1..10."""
    with pytest.raises(ValidationError):
        SchedulerConfig(department_weights={"music": 11})
    with pytest.raises(ValidationError):
        SchedulerConfig(default_weight=0)


def test_phase_definition_coerces_mode_string() -> None:
    """Ensure a string mode is accepted and stored as its value."""
    phase = PhaseDefinition.model_validate({
        "index": 0,
        "name": "foundation",
        "mode": "parallel",
        "departments": ["world"],
    })

    assert phase.mode == PhaseMode.PARALLEL.value
    assert phase.reads is None


def test_context_phase_requires_single_department() -> None:
    """Ensure sequential-with-context phases hold exactly one department."""
    with pytest.raises(ValidationError):
        _phase(
            1, "story", ["story", "dialogue"], mode=PhaseMode.SEQUENTIAL_WITH_CONTEXT
        )


def test_phase_definition_rejects_duplicate_departments() -> None:
    """Ensure a department appears once per phase."""
    with pytest.raises(ValidationError):
        _phase(0, "foundation", ["world", "world"])


def test_pipeline_config_rejects_duplicate_indexes() -> None:
    """Ensure phase indexes form a strict order."""
    with pytest.raises(ValidationError):
        PipelineConfig(phases=[_phase(0, "a", ["x"]), _phase(0, "b", ["y"])])


def test_pipeline_config_rejects_duplicate_names() -> None:
    """Ensure phase names are unique."""
    with pytest.raises(ValidationError):
        PipelineConfig(phases=[_phase(0, "a", ["x"]), _phase(1, "a", ["y"])])


def test_pipeline_config_rejects_department_in_two_phases() -> None:
    """Ensure a department belongs to a single phase."""
    with pytest.raises(ValidationError):
        PipelineConfig(phases=[_phase(0, "a", ["x"]), _phase(1, "b", ["x"])])


def test_pipeline_config_rejects_forward_reads() -> None:
    """Ensure phases only read earlier phases."""
    with pytest.raises(ValidationError):
        PipelineConfig(
            phases=[_phase(0, "a", ["x"], reads=["b"]), _phase(1, "b", ["y"])]
        )
    with pytest.raises(ValidationError):
        PipelineConfig(phases=[_phase(0, "a", ["x"], reads=["a"])])


def test_pipeline_config_rejects_unknown_reads() -> None:
    """Ensure reads reference configured phases."""
    with pytest.raises(ValidationError):
        PipelineConfig(phases=[_phase(1, "b", ["y"], reads=["missing"])])


def test_pipeline_config_orders_phases_and_departments() -> None:
    """Ensure helpers return phases and departments by stage index."""
    config = PipelineConfig(
        phases=[_phase(3, "late", ["z"]), _phase(1, "early", ["x", "y"])]
    )

    assert [phase.name for phase in config.ordered_phases()] == ["early", "late"]
    assert config.departments() == ["x", "y", "z"]


def test_pipeline_config_rejects_readiness_above_one() -> None:
    """Ensure readiness is a fraction."""
    with pytest.raises(ValidationError):
        PipelineConfig(min_readiness=1.5)


def test_logging_config_rejects_duplicate_sinks() -> None:
    """Ensure log sink types are unique."""
    with pytest.raises(ValidationError):
        LoggingConfig(
            sinks=[
                LogSinkConfig(type=LogSinkType.FILE),
                LogSinkConfig(type=LogSinkType.FILE),
            ]
        )
