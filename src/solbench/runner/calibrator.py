"""Benchmark calibration for solbench.

Turns a solution of unknown cost into a bounded-time measurement:

1. Probe: run once and record its duration `t0`. A failing probe aborts.
2. Derive: `n = clamp(floor(time_limit / max(t0, floor_resolution)), 1, max_iterations)`.
3. Warmup: repeat for the warmup budget, discarding timings.
4. Measure: run exactly `n` times, recording every duration. Any failure
   discards the whole sample.

The calibrator only needs a callable that runs the solution once and returns
a RunOutcome, so the same loop drives process-per-repetition benchmarks and
in-process repetition inside a solution.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

from solbench.errors import (
    CalibrationAborted,
    OutputMismatch,
    PartialBenchmarkDiscarded,
    SolutionError,
)
from solbench.models.benchmark import BenchmarkResult, CalibrationPlan
from solbench.models.solution import RunOutcome, SolutionRef
from solbench.runner.config import (
    DEFAULT_FLOOR_RESOLUTION,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TIME_LIMIT,
    DEFAULT_WARMUP,
    RunConfig,
)
from solbench.runner.driver import raise_for_outcome

logger = logging.getLogger(__name__)

RunOnce = Callable[[], RunOutcome]


def derive_iterations(
    probe_duration: float,
    time_limit: float,
    floor_resolution: float = DEFAULT_FLOOR_RESOLUTION,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> int:
    """Number of measured repetitions that fits the time limit.

    Args:
        probe_duration: Cost of one run in seconds.
        time_limit: Measurement budget in seconds.
        floor_resolution: Smallest cost assumed for a run.
        max_iterations: Upper bound on the result.

    Returns:
        An iteration count between 1 and `max_iterations`.
    """
    if time_limit <= 0:
        raise ValueError(f"time_limit must be positive, got {time_limit}")
    if floor_resolution <= 0:
        raise ValueError(f"floor_resolution must be positive, got {floor_resolution}")
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")

    cost = max(probe_duration, floor_resolution)
    n = math.floor(time_limit / cost)
    return max(1, min(n, max_iterations))


class BenchmarkCalibrator:
    """Plans and executes the probe, warmup and measurement phases.

    Example:
        >>> calibrator = BenchmarkCalibrator.from_config(RunConfig(bench=True))
        >>> result = calibrator.run(ref, lambda: driver.run(ref))
        >>> len(result.durations)
    """

    def __init__(
        self,
        warmup: float = DEFAULT_WARMUP,
        time_limit: float = DEFAULT_TIME_LIMIT,
        iterations: int | None = None,
        floor_resolution: float = DEFAULT_FLOOR_RESOLUTION,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        verify_output: bool = False,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Initialize the calibrator.

        Args:
            warmup: Warmup budget in seconds (0 disables warmup).
            time_limit: Measurement budget in seconds.
            iterations: Explicit iteration count, bypassing derivation.
            floor_resolution: Smallest cost assumed for a run.
            max_iterations: Upper bound on derived iteration counts.
            verify_output: Fail when a measured run's answer differs from the probe's.
            clock: Monotonic clock used for the warmup budget.
        """
        if iterations is not None and iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {iterations}")
        self.warmup = warmup
        self.time_limit = time_limit
        self.iterations = iterations
        self.floor_resolution = floor_resolution
        self.max_iterations = max_iterations
        self.verify_output = verify_output
        self.clock = clock

    @classmethod
    def from_config(cls, config: RunConfig, **kwargs: object) -> BenchmarkCalibrator:
        return cls(
            warmup=config.warmup,
            time_limit=config.time_limit,
            iterations=config.iterations,
            floor_resolution=config.floor_resolution,
            max_iterations=config.max_iterations,
            verify_output=config.verify_output,
            **kwargs,  # type: ignore[arg-type]
        )

    def plan(self, probe_duration: float) -> CalibrationPlan:
        """Build the measurement plan from the probe's duration."""
        if self.iterations is not None:
            return CalibrationPlan(
                warmup=self.warmup,
                probe_duration=probe_duration,
                iterations=self.iterations,
                time_limit=self.time_limit,
                derived=False,
            )
        return CalibrationPlan(
            warmup=self.warmup,
            probe_duration=probe_duration,
            iterations=derive_iterations(
                probe_duration,
                self.time_limit,
                self.floor_resolution,
                self.max_iterations,
            ),
            time_limit=self.time_limit,
        )

    def probe(self, ref: SolutionRef, run_once: RunOnce) -> RunOutcome:
        """Run the solution once.

        Raises:
            CalibrationAborted: If the probe run did not succeed.
        """
        try:
            return raise_for_outcome(ref, run_once())
        except SolutionError as e:
            raise CalibrationAborted(e) from e

    def warm_up(self, ref: SolutionRef, run_once: RunOnce, plan: CalibrationPlan) -> int:
        """Repeat the solution until the warmup budget is spent.

        Returns:
            Number of warmup repetitions executed.

        Raises:
            PartialBenchmarkDiscarded: If a warmup repetition fails.
        """
        if plan.warmup <= 0:
            return 0

        count = 0
        start = self.clock()
        while self.clock() - start < plan.warmup:
            self._checked(ref, run_once, "warmup", count)
            count += 1
        return count

    def measure(
        self,
        ref: SolutionRef,
        run_once: RunOnce,
        plan: CalibrationPlan,
        expected_answer: str | None = None,
    ) -> tuple[float, ...]:
        """Run exactly `plan.iterations` repetitions and record their durations.

        Raises:
            PartialBenchmarkDiscarded: If any repetition fails.
            OutputMismatch: If answers are verified and one differs.
        """
        samples: list[float] = []
        for index in range(plan.iterations):
            outcome = self._checked(ref, run_once, "measurement", index)
            if expected_answer is not None and outcome.answer != expected_answer:
                raise OutputMismatch(
                    ref,
                    f"measurement repetition {index + 1} printed {outcome.answer!r}, "
                    f"probe printed {expected_answer!r}",
                    outcome,
                )
            samples.append(outcome.duration)
        return tuple(samples)

    def run(self, ref: SolutionRef, run_once: RunOnce) -> BenchmarkResult:
        """Calibrate and benchmark one solution.

        Args:
            ref: Solution being benchmarked.
            run_once: Runs the solution once and returns the outcome.

        Returns:
            BenchmarkResult holding exactly the planned number of samples.
        """
        probe = self.probe(ref, run_once)
        plan = self.plan(probe.duration)
        logger.debug(
            "%s: probe %.6fs, %d iteration(s), warmup %.3fs",
            ref.label,
            plan.probe_duration,
            plan.iterations,
            plan.warmup,
        )

        warmed = self.warm_up(ref, run_once, plan)
        expected = probe.answer if self.verify_output else None
        samples = self.measure(ref, run_once, plan, expected_answer=expected)

        return BenchmarkResult(
            ref=ref,
            durations=samples,
            output=probe.answer,
            warmup_iterations=warmed,
        )

    @staticmethod
    def _checked(ref: SolutionRef, run_once: RunOnce, phase: str, index: int) -> RunOutcome:
        try:
            return raise_for_outcome(ref, run_once())
        except SolutionError as e:
            raise PartialBenchmarkDiscarded(e, phase, index) from e
