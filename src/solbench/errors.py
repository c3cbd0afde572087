"""Exceptions raised by solbench.

Solution-level errors are contained by the orchestrator and turned into a
failed summary; `RegistryError` and `ConfigError` are fatal to a run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from solbench.models.solution import RunOutcome, SolutionRef


class SolbenchError(Exception):
    """Base for all solbench errors."""


class ConfigError(SolbenchError):
    """Raised when configuration cannot be loaded or fails validation."""


class RegistryError(SolbenchError):
    """Raised when solutions cannot be enumerated at all."""


class SolutionError(SolbenchError):
    """A failure contained to one solution.

    Attributes:
        ref: The solution that failed.
        outcome: The invocation that triggered the failure, if any.
    """

    kind = "SolutionError"

    def __init__(
        self,
        ref: SolutionRef,
        message: str,
        outcome: RunOutcome | None = None,
    ) -> None:
        super().__init__(f"{ref.label}: {message}")
        self.ref = ref
        self.outcome = outcome
        self.detail = message


class RunFailed(SolutionError):
    """The solution exited with a non-zero status."""

    kind = "RunFailed"


class RunCrashed(SolutionError):
    """The solution was terminated by a signal or ended abnormally."""

    kind = "RunCrashed"


class RunUnavailable(SolutionError):
    """The solution executable is missing or cannot be spawned."""

    kind = "RunUnavailable"


class RunTimedOut(SolutionError):
    """The solution exceeded the enforced per-run timeout."""

    kind = "RunTimedOut"


class CalibrationAborted(SolutionError):
    """The probe run failed, so no benchmark was attempted.

    Attributes:
        cause: The run error raised by the probe.
    """

    kind = "CalibrationAborted"

    def __init__(self, cause: SolutionError) -> None:
        super().__init__(cause.ref, f"probe run failed: {cause.detail}", cause.outcome)
        self.cause = cause


class PartialBenchmarkDiscarded(SolutionError):
    """A repetition failed after the probe succeeded; samples were discarded.

    Attributes:
        cause: The run error raised by the failing repetition.
        phase: `warmup` or `measurement`.
        completed: Repetitions of that phase completed before the failure.
    """

    kind = "PartialBenchmarkDiscarded"

    def __init__(self, cause: SolutionError, phase: str, completed: int) -> None:
        super().__init__(
            cause.ref,
            f"{phase} repetition {completed + 1} failed: {cause.detail}",
            cause.outcome,
        )
        self.cause = cause
        self.phase = phase
        self.completed = completed


class OutputMismatch(SolutionError):
    """A measured run printed a different answer than the probe run."""

    kind = "OutputMismatch"


class ProtocolError(SolutionError):
    """An in-process benchmark produced no usable report."""

    kind = "ProtocolError"
