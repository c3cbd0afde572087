"""Unit tests for benchmark calibration.

Tests cover:
- Iteration derivation from the probe duration
- Probe, warmup and measurement phases
- Failure handling per phase
"""

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest

from solbench.errors import CalibrationAborted, OutputMismatch, PartialBenchmarkDiscarded
from solbench.models import RunOutcome, RunStatus, SolutionRef
from solbench.runner.calibrator import BenchmarkCalibrator, derive_iterations
from solbench.runner.config import RunConfig

REF = SolutionRef(project="2022", solution="d01", command=["solution"])


def scripted(outcomes: list[RunOutcome]) -> tuple[Callable[[], RunOutcome], list[int]]:
    """A run_once callable replaying outcomes (the last one repeats)."""
    calls = [0]

    def run_once() -> RunOutcome:
        index = min(calls[0], len(outcomes) - 1)
        calls[0] += 1
        return outcomes[index]

    return run_once, calls


def ok(duration: float, answer: str = "42") -> RunOutcome:
    return RunOutcome(
        status=RunStatus.SUCCESS, stdout=answer + "\n", duration=duration, exit_code=0
    )


def failed() -> RunOutcome:
    return RunOutcome(status=RunStatus.FAILED, stderr="boom", exit_code=1)


def ticking_clock(step: float) -> Callable[[], float]:
    """A fake clock advancing by `step` every time it is read."""
    ticks: Iterator[int] = iter(range(1_000_000))
    return lambda: next(ticks) * step


class TestDeriveIterations:
    """Tests for derive_iterations."""

    @pytest.mark.parametrize(
        ("probe", "time_limit", "expected"),
        [
            (0.05, 0.1, 2),
            (0.2, 0.1, 1),
            (0.00001, 0.1, 100),
            (0.0, 0.1, 100),
            (0.00001, 10.0, 1000),
        ],
    )
    def test_derivation(self, probe: float, time_limit: float, expected: int) -> None:
        assert derive_iterations(probe, time_limit) == expected

    def test_custom_bounds(self) -> None:
        assert derive_iterations(0.0, 1.0, floor_resolution=0.01, max_iterations=50) == 50

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"time_limit": 0.0},
            {"time_limit": 0.1, "floor_resolution": 0.0},
            {"time_limit": 0.1, "max_iterations": 0},
        ],
    )
    def test_invalid_arguments(self, kwargs: dict[str, float]) -> None:
        with pytest.raises(ValueError):
            derive_iterations(0.01, **kwargs)  # type: ignore[arg-type]


class TestBenchmarkCalibrator:
    """Tests for BenchmarkCalibrator.run."""

    def test_sample_count_matches_plan(self) -> None:
        run_once, calls = scripted([ok(0.05)])
        calibrator = BenchmarkCalibrator(warmup=0.0, time_limit=0.1)

        result = calibrator.run(REF, run_once)

        assert result.iterations == 2
        assert result.durations == (0.05, 0.05)
        assert result.output == "42"
        assert result.warmup_iterations == 0
        assert calls[0] == 3  # probe + 2 measured

    def test_probe_is_not_a_sample(self) -> None:
        run_once, _ = scripted([ok(0.05), ok(0.01)])
        result = BenchmarkCalibrator(warmup=0.0, time_limit=0.1).run(REF, run_once)
        assert 0.05 not in result.durations

    def test_slow_solution_runs_once(self) -> None:
        run_once, calls = scripted([ok(0.2)])
        result = BenchmarkCalibrator(warmup=0.0, time_limit=0.1).run(REF, run_once)
        assert result.iterations == 1
        assert calls[0] == 2

    def test_explicit_iterations(self) -> None:
        run_once, _ = scripted([ok(0.5)])
        calibrator = BenchmarkCalibrator(warmup=0.0, time_limit=0.1, iterations=7)
        assert calibrator.plan(0.5).derived is False
        assert calibrator.run(REF, run_once).iterations == 7

    def test_warmup_spends_budget(self) -> None:
        run_once, _ = scripted([ok(0.05)])
        calibrator = BenchmarkCalibrator(warmup=0.35, time_limit=0.1, clock=ticking_clock(0.1))
        result = calibrator.run(REF, run_once)
        # Reads of 0.1, 0.2 and 0.3 are inside the budget; 0.4 ends warmup.
        assert result.warmup_iterations == 3

    def test_probe_failure_aborts(self) -> None:
        run_once, calls = scripted([failed()])
        with pytest.raises(CalibrationAborted, match="probe run failed"):
            BenchmarkCalibrator(warmup=0.0).run(REF, run_once)
        assert calls[0] == 1

    def test_measurement_failure_discards_samples(self) -> None:
        run_once, _ = scripted([ok(0.02), ok(0.02), ok(0.02), failed()])
        with pytest.raises(PartialBenchmarkDiscarded) as info:
            BenchmarkCalibrator(warmup=0.0, time_limit=0.1).run(REF, run_once)
        assert info.value.phase == "measurement"
        assert info.value.completed == 2

    def test_warmup_failure_discards(self) -> None:
        run_once, _ = scripted([ok(0.02), failed()])
        calibrator = BenchmarkCalibrator(warmup=1.0, time_limit=0.1, clock=ticking_clock(0.01))
        with pytest.raises(PartialBenchmarkDiscarded) as info:
            calibrator.run(REF, run_once)
        assert info.value.phase == "warmup"

    def test_output_verification(self) -> None:
        run_once, _ = scripted([ok(0.05, "42"), ok(0.05, "42"), ok(0.05, "43")])
        calibrator = BenchmarkCalibrator(warmup=0.0, time_limit=0.1, verify_output=True)
        with pytest.raises(OutputMismatch, match="'43'"):
            calibrator.run(REF, run_once)

    def test_output_not_verified_by_default(self) -> None:
        run_once, _ = scripted([ok(0.05, "42"), ok(0.05, "43")])
        result = BenchmarkCalibrator(warmup=0.0, time_limit=0.1).run(REF, run_once)
        assert result.output == "42"

    def test_from_config(self) -> None:
        config = RunConfig(bench=True, warmup=0.2, time_limit=0.5, iterations=3)
        calibrator = BenchmarkCalibrator.from_config(config)
        assert calibrator.warmup == 0.2
        assert calibrator.time_limit == 0.5
        assert calibrator.iterations == 3

    def test_invalid_iterations(self) -> None:
        with pytest.raises(ValueError):
            BenchmarkCalibrator(iterations=0)
