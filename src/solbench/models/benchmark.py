"""Benchmark data models for solbench."""

from __future__ import annotations

from dataclasses import dataclass

from solbench.models.solution import SolutionRef


@dataclass(frozen=True)
class CalibrationPlan:
    """Per-solution measurement parameters.

    Attributes:
        warmup: Warmup budget in seconds.
        probe_duration: Measured duration of the probe run in seconds.
        iterations: Number of measured repetitions.
        time_limit: Measurement-phase budget in seconds.
        derived: False when the iteration count was given explicitly.
    """

    warmup: float
    probe_duration: float
    iterations: int
    time_limit: float
    derived: bool = True

    def __post_init__(self) -> None:
        if self.iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {self.iterations}")

    @property
    def estimated_sampling_time(self) -> float:
        """Expected duration of the measurement phase in seconds."""
        return self.iterations * self.probe_duration


@dataclass(frozen=True)
class BenchmarkResult:
    """Measured timings for one solution.

    Attributes:
        ref: Solution the timings belong to.
        durations: Per-iteration durations in seconds, in measurement order.
        output: Answer printed by a representative run.
        warmup_iterations: Number of discarded warmup repetitions.
    """

    ref: SolutionRef
    durations: tuple[float, ...]
    output: str = ""
    warmup_iterations: int = 0

    def __post_init__(self) -> None:
        if not self.durations:
            raise ValueError(f"{self.ref.label}: a benchmark result needs at least one sample")

    @property
    def iterations(self) -> int:
        return len(self.durations)
