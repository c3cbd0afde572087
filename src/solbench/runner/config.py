"""Configuration classes for the solbench runner.

This module defines configuration options for controlling solution execution,
including run mode, calibration budgets, isolation, concurrency, and output
settings. All durations are expressed in seconds.
"""

from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, Field, field_validator, model_validator

from solbench.models.summary import RunMode, SolutionSummary

DEFAULT_WARMUP = 0.4
DEFAULT_TIME_LIMIT = 0.1
DEFAULT_FLOOR_RESOLUTION = 0.001
DEFAULT_MAX_ITERATIONS = 1000


class OutputFormat(str, Enum):
    """Output format options for run reports.

    Attributes:
        NARRATIVE: Human-readable tables (default).
        JSON: Single JSON document (machine-readable).
        JSONL: JSON Lines, one line per solution then the report (streaming).
        MARKDOWN: Markdown report.
    """

    NARRATIVE = "narrative"
    JSON = "json"
    JSONL = "jsonl"
    MARKDOWN = "markdown"

    @property
    def structured(self) -> bool:
        return self in (OutputFormat.JSON, OutputFormat.JSONL)


class Verbosity(str, Enum):
    """Level of report detail."""

    QUIET = "quiet"
    NORMAL = "normal"
    VERBOSE = "verbose"


class IsolationMode(str, Enum):
    """How benchmark repetitions are executed.

    Attributes:
        STRICT: Every repetition is its own process invocation.
        IN_PROCESS: The solution repeats itself inside one process and
            reports its samples back (faster, riskier for stateful solutions).
    """

    STRICT = "strict"
    IN_PROCESS = "in_process"


class ProgressCallback(Protocol):
    """Protocol for progress callback functions.

    Implement this protocol to receive a notification each time a solution
    has been summarized.
    """

    def __call__(
        self,
        completed: int,
        total: int | None,
        summary: SolutionSummary,
    ) -> None:
        """Called on progress update.

        Args:
            completed: Number of summarized solutions so far.
            total: Total number of scheduled solutions, if known.
            summary: The summary that just arrived.
        """
        ...


class RunConfig(BaseModel):
    """Configuration for one run over a set of solutions.

    Attributes:
        bench: Benchmark instead of running each solution once.
        verbose: Increase report detail.
        quiet: Only show failures and totals (wins over verbose).
        production: Suppress diagnostic output.
        output_format: Report format.
        warmup: Warmup budget per solution.
        time_limit: Measurement budget used to derive the iteration count.
        iterations: Explicit iteration count, bypassing derivation.
        floor_resolution: Smallest per-run cost used for derivation.
        max_iterations: Upper bound on derived iteration counts.
        isolation: Process-per-repetition or in-process repetition.
        workers: Number of solutions executed concurrently.
        run_timeout: Per-invocation timeout.
        global_timeout: Budget for the whole run.
        verify_output: Fail a benchmark whose answers differ across runs.
        args: Arguments forwarded verbatim to every solution.
    """

    # Run mode
    bench: bool = False
    verbose: bool = False
    quiet: bool = False
    production: bool = False
    output_format: OutputFormat = OutputFormat.NARRATIVE

    # Calibration
    warmup: float = Field(default=DEFAULT_WARMUP, ge=0.0)
    time_limit: float = Field(default=DEFAULT_TIME_LIMIT, gt=0.0)
    iterations: int | None = Field(default=None, ge=1)
    floor_resolution: float = Field(default=DEFAULT_FLOOR_RESOLUTION, gt=0.0)
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)

    # Execution settings
    isolation: IsolationMode = IsolationMode.STRICT
    workers: int = Field(default=1, ge=1, le=256)
    run_timeout: float | None = Field(default=None, gt=0.0)
    global_timeout: float | None = Field(default=None, gt=0.0)
    verify_output: bool = False

    args: list[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}

    @field_validator("output_format", mode="before")
    @classmethod
    def validate_output_format(cls, v: Any) -> Any:
        """Accept format names case-insensitively."""
        return v.lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_timeouts(self) -> "RunConfig":
        if (
            self.run_timeout is not None
            and self.global_timeout is not None
            and self.run_timeout > self.global_timeout
        ):
            raise ValueError("run_timeout must not exceed global_timeout")
        return self

    @property
    def verbosity(self) -> Verbosity:
        if self.quiet:
            return Verbosity.QUIET
        if self.verbose:
            return Verbosity.VERBOSE
        return Verbosity.NORMAL

    @property
    def mode(self) -> RunMode:
        return RunMode.BENCH if self.bench else RunMode.SINGLE

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunConfig":
        return cls(**data)

    @classmethod
    def quick(cls, **kwargs: Any) -> "RunConfig":
        """Create a benchmark configuration with short budgets for smoke runs."""
        defaults: dict[str, Any] = {"bench": True, "warmup": 0.0, "time_limit": 0.02}
        defaults.update(kwargs)
        return cls(**defaults)
