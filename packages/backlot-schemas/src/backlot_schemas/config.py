"""Configuration schemas for the work pool, scheduler, and qualification pipeline."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from backlot_schemas.base import BaseSchema
from backlot_schemas.primitives import (
    DEFAULT_DEPARTMENT_WEIGHT,
    DepartmentId,
    DepartmentWeight,
    LogLevel,
    LogSinkType,
    PhaseMode,
    PhaseName,
)


class LogSinkConfig(BaseSchema):
    """Configuration for a single log sink."""

    type: LogSinkType = Field(..., description="Log sink type (console|file|noop)")
    min_level: LogLevel = Field(
        LogLevel.DEBUG, description="Lowest entry level this sink receives"
    )

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> LogSinkType:
        if isinstance(value, LogSinkType):
            return value
        if isinstance(value, str):
            return LogSinkType(value)
        return value  # type: ignore[return-value]

    @field_validator("min_level", mode="before")
    @classmethod
    def _coerce_min_level(cls, value: object) -> LogLevel:
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, str):
            return LogLevel(value)
        return value  # type: ignore[return-value]


class LoggingConfig(BaseSchema):
    """Logging configuration for pool and pipeline events."""

    sinks: list[LogSinkConfig] = Field(
        default_factory=lambda: [LogSinkConfig(type=LogSinkType.CONSOLE)],
        min_length=1,
        description="Log sinks to enable",
    )
    logs_dir: str = Field(
        ".backlot/logs", min_length=1, description="Directory for JSONL logs"
    )

    @model_validator(mode="after")
    def validate_sink_types(self) -> LoggingConfig:
        """Ensure log sink types are unique.

        Returns:
            LoggingConfig: Validated logging configuration.

        Raises:
            ValueError: If sink types are duplicated.
        """
        sink_types = [sink.type for sink in self.sinks]
        if len(set(sink_types)) != len(sink_types):
            raise ValueError("log sinks must not contain duplicates")
        return self


class PoolConfig(BaseSchema):
    """Capacity settings for the shared work pool."""

    max_concurrency: int = Field(5, ge=1, description="Max units running at once")
    shutdown_timeout_s: float = Field(
        30.0, gt=0, description="Seconds to wait for active units on shutdown"
    )


class SchedulerConfig(BaseSchema):
    """Department weighting used for load-aware priorities."""

    default_weight: DepartmentWeight = Field(
        DEFAULT_DEPARTMENT_WEIGHT, description="Base weight for unknown departments"
    )
    load_ceiling: int = Field(
        5,
        ge=0,
        description="Backlog size at which a department loses its load bonus",
    )
    department_weights: dict[DepartmentId, DepartmentWeight] = Field(
        default_factory=dict, description="Base priority weight per department"
    )


class PhaseDefinition(BaseSchema):
    """One ordered stage of the qualification pipeline."""

    index: int = Field(..., ge=0, description="Stage index, unique per pipeline")
    name: PhaseName = Field(..., description="Phase name (snake_case)")
    mode: PhaseMode = Field(..., description="Execution mode for the phase")
    departments: list[DepartmentId] = Field(
        ..., min_length=1, description="Department workflows run in this phase"
    )
    reads: list[PhaseName] | None = Field(
        None,
        description="Earlier phases whose outputs are readable; None reads all",
    )

    @field_validator("mode", mode="before")
    @classmethod
    def _coerce_mode(cls, value: object) -> PhaseMode:
        if isinstance(value, PhaseMode):
            return value
        if isinstance(value, str):
            return PhaseMode(value)
        return value  # type: ignore[return-value]

    @model_validator(mode="after")
    def validate_departments(self) -> PhaseDefinition:
        """Ensure departments are unique and match the execution mode.

        Returns:
            PhaseDefinition: Validated phase definition.

        Raises:
            ValueError: If departments repeat or a context phase has several.
        """
        if len(set(self.departments)) != len(self.departments):
            raise ValueError(f"phase {self.name} lists a department twice")
        if (
            self.mode == PhaseMode.SEQUENTIAL_WITH_CONTEXT
            and len(self.departments) != 1
        ):
            raise ValueError(
                f"phase {self.name} runs with context and must hold one department"
            )
        return self


DEFAULT_PIPELINE_PHASES = [
    PhaseDefinition(
        index=0,
        name="foundation",
        mode=PhaseMode.PARALLEL,
        departments=["character", "world", "visual"],
        reads=[],
    ),
    PhaseDefinition(
        index=1,
        name="story",
        mode=PhaseMode.SEQUENTIAL_WITH_CONTEXT,
        departments=["story"],
        reads=["foundation"],
    ),
    PhaseDefinition(
        index=2,
        name="production",
        mode=PhaseMode.PARALLEL,
        departments=["dialogue", "music", "sfx", "voice"],
        reads=[],
    ),
]


class PipelineConfig(BaseSchema):
    """Phase plan and promotion settings for the qualification pipeline."""

    phases: list[PhaseDefinition] = Field(
        default_factory=lambda: [
            phase.model_copy() for phase in DEFAULT_PIPELINE_PHASES
        ],
        min_length=1,
        description="Pipeline phases",
    )
    min_readiness: float = Field(
        0.7, ge=0, le=1, description="Minimum readiness score per department"
    )
    qualified_suffix: str = Field(
        "_qualified",
        min_length=1,
        description="Suffix appended to a resource id when it is promoted",
    )

    @model_validator(mode="after")
    def validate_phase_order(self) -> PipelineConfig:
        """Ensure phases form a strict total order with backward-only reads.

        Returns:
            PipelineConfig: Validated pipeline configuration.

        Raises:
            ValueError: If indexes or names repeat, a department is reused,
                or a phase reads from itself or a later phase.
        """
        indexes = [phase.index for phase in self.phases]
        if len(set(indexes)) != len(indexes):
            raise ValueError("phase indexes must be unique")
        names = [phase.name for phase in self.phases]
        if len(set(names)) != len(names):
            raise ValueError("phase names must be unique")
        departments = [
            department for phase in self.phases for department in phase.departments
        ]
        if len(set(departments)) != len(departments):
            raise ValueError("a department may belong to only one phase")
        index_by_name = {phase.name: phase.index for phase in self.phases}
        for phase in self.phases:
            for source in phase.reads or []:
                if source not in index_by_name:
                    raise ValueError(
                        f"phase {phase.name} reads unknown phase {source}"
                    )
                if index_by_name[source] >= phase.index:
                    raise ValueError(
                        f"phase {phase.name} may only read earlier phases, "
                        f"not {source}"
                    )
        return self

    def ordered_phases(self) -> list[PhaseDefinition]:
        """Return phases sorted by ascending stage index.

        Returns:
            list[PhaseDefinition]: Phases in execution order.
        """
        return sorted(self.phases, key=lambda phase: phase.index)

    def departments(self) -> list[DepartmentId]:
        """Return every department in execution order.

        Returns:
            list[DepartmentId]: Departments across all phases.
        """
        return [
            department
            for phase in self.ordered_phases()
            for department in phase.departments
        ]


class BacklotConfig(BaseSchema):
    """Root configuration for a backlot deployment."""

    pool: PoolConfig = Field(default_factory=PoolConfig, description="Pool settings")
    scheduler: SchedulerConfig = Field(
        default_factory=SchedulerConfig, description="Scheduler settings"
    )
    pipeline: PipelineConfig = Field(
        default_factory=PipelineConfig, description="Pipeline settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging settings"
    )
