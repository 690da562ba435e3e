"""Unit tests for configuration validation entrypoints."""

import pytest
from pydantic import ValidationError

from backlot_schemas.primitives import LogSinkType, PhaseMode
from backlot_schemas.validation import validate_config, validate_pipeline_config
from backlot_schemas.work import DepartmentLoad


def test_validate_config_accepts_toml_shaped_payload() -> None:
    """Ensure parsed TOML tables validate into a full config."""
    config = validate_config({
        "pool": {"max_concurrency": 3, "shutdown_timeout_s": 10},
        "scheduler": {"department_weights": {"story": 8}},
        "pipeline": {
            "min_readiness": 0.5,
            "phases": [
                {
                    "index": 0,
                    "name": "record",
                    "mode": "parallel",
                    "departments": ["voice", "sfx"],
                },
                {
                    "index": 1,
                    "name": "mix",
                    "mode": "sequential_with_context",
                    "departments": ["mixing"],
                    "reads": ["record"],
                },
            ],
        },
        "logging": {"sinks": [{"type": "file"}], "logs_dir": "out/logs"},
    })

    assert config.pool.max_concurrency == 3
    assert config.pool.shutdown_timeout_s == 10.0
    assert config.scheduler.department_weights == {"story": 8}
    assert config.pipeline.phases[1].mode == PhaseMode.SEQUENTIAL_WITH_CONTEXT.value
    assert config.logging.sinks[0].type == LogSinkType.FILE.value
    assert config.logging.logs_dir == "out/logs"


def test_validate_config_rejects_invalid_phase_plan() -> None:
    """Ensure structural pipeline errors surface as validation errors."""
    with pytest.raises(ValidationError):
        validate_config({
            "pipeline": {
                "phases": [
                    {
                        "index": 0,
                        "name": "story",
                        "mode": "sequential_with_context",
                        "departments": ["story", "dialogue"],
                    }
                ]
            }
        })


def test_validate_pipeline_config_rejects_unknown_mode() -> None:
    """Ensure unknown execution modes are rejected."""
    with pytest.raises(ValidationError):
        validate_pipeline_config({
            "phases": [
                {"index": 0, "name": "a", "mode": "eventually", "departments": ["x"]}
            ]
        })


def test_department_load_total() -> None:
    """Ensure load totals count active and queued units."""
    load = DepartmentLoad(department="music", active=2, queued=3)

    assert load.total == 5
