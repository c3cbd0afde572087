"""Unit tests for the solbench run orchestrator.

Tests cover:
- Single and benchmark runs over a registry
- Sequential and concurrent execution
- Failure containment
- In-process benchmarks
- Global timeout and interruption
"""

from __future__ import annotations

import io
import json
import time
from collections.abc import Callable
from pathlib import Path

import pytest
from rich.console import Console

from solbench.models import RunMode, SolutionRef, SolutionSummary
from solbench.registry import SolutionRegistry
from solbench.runner.config import OutputFormat, RunConfig
from solbench.runner.executor import (
    ExecutionProgress,
    ExecutionState,
    SolutionRunner,
    TaskResult,
)
from solbench.runner.report import Reporter

RefFactory = Callable[..., SolutionRef]
WriteSolution = Callable[[str, str, str], Path]

ENTRY_SOLUTION = """
from solbench import entry


@entry(expect=42)
def solve():
    return sum(range(10)) - 3


if __name__ == "__main__":
    solve.main()
"""


class TestExecutionProgress:
    """Tests for ExecutionProgress."""

    def test_record(self, summary_factory: Callable[..., SolutionSummary]) -> None:
        progress = ExecutionProgress(total=4)
        progress.record(summary_factory("p", "s", 0.1))
        assert progress.completed == 1
        assert progress.passed == 1
        assert progress.progress_percent == 25.0

    def test_unknown_total(self) -> None:
        assert ExecutionProgress().progress_percent is None


class TestSingleRuns:
    """Tests for running every solution once."""

    def test_registry_run(self, sample_solutions: Path) -> None:
        runner = SolutionRunner(RunConfig())
        report = runner.run(SolutionRegistry(sample_solutions))

        assert runner.state == ExecutionState.COMPLETED
        assert report.complete
        assert report.mode == RunMode.SINGLE
        assert report.solution_count == 3
        assert report.passed == 2
        failure = report.failures()[0]
        assert failure.label == "2023/d01"
        assert failure.error_kind == "RunFailed"
        assert "boom" in (failure.error or "")

        d01 = report.project("2022").solutions[0]  # type: ignore[union-attr]
        assert d01.output == "42"
        assert d01.iterations == 1

    def test_execute_returns_task_result(self, make_ref: RefFactory) -> None:
        ref = make_ref("print(7)")
        result = SolutionRunner(RunConfig()).execute(ref)

        assert isinstance(result, TaskResult)
        assert result.ref == ref
        assert result.summary.output == "7"
        assert result.messages == []

    def test_pass_through_arguments(self, make_ref: RefFactory) -> None:
        ref = make_ref("import sys; print(sys.argv[1:])")
        report = SolutionRunner(RunConfig(args=["--part", "2"])).run([ref])
        assert next(report.summaries()).output == "['--part', '2']"

    def test_unavailable_solution_contained(self, make_ref: RefFactory) -> None:
        missing = SolutionRef(project="p", solution="a", command=["/nonexistent/solution"])
        report = SolutionRunner(RunConfig()).run([missing, make_ref("print(1)", solution="b")])
        assert report.passed == 1
        assert report.failures()[0].error_kind == "RunUnavailable"

    def test_run_timeout(self, make_ref: RefFactory) -> None:
        ref = make_ref("import time; time.sleep(30)")
        report = SolutionRunner(RunConfig(run_timeout=0.3)).run([ref])
        assert report.complete
        assert report.failures()[0].error_kind == "RunTimedOut"

    def test_concurrent_matches_sequential(self, sample_solutions: Path) -> None:
        sequential = SolutionRunner(RunConfig()).run(SolutionRegistry(sample_solutions))
        concurrent = SolutionRunner(RunConfig(workers=3)).run(SolutionRegistry(sample_solutions))

        def shape(report):  # type: ignore[no-untyped-def]
            return [(s.label, s.status, s.output) for s in report.summaries()]

        assert shape(concurrent) == shape(sequential)


class TestBenchmarks:
    """Tests for benchmark runs."""

    def test_strict_isolation(self, sample_solutions: Path) -> None:
        config = RunConfig.quick(iterations=3)
        report = SolutionRunner(config).run(SolutionRegistry(sample_solutions, projects=["2022"]))

        assert report.mode == RunMode.BENCH
        assert report.passed == 2
        for summary in report.summaries():
            assert summary.iterations == 3
            assert summary.min <= summary.mean <= summary.max  # type: ignore[operator]
            assert summary.p99 is not None

    def test_probe_failure(self, sample_solutions: Path) -> None:
        config = RunConfig.quick()
        report = SolutionRunner(config).run(SolutionRegistry(sample_solutions, projects=["2023"]))
        assert report.failures()[0].error_kind == "CalibrationAborted"

    def test_partial_benchmark_discarded(self, tmp_path: Path, make_ref: RefFactory) -> None:
        counter = tmp_path / "count"
        ref = make_ref(
            f"""
            import pathlib, sys
            path = pathlib.Path({str(counter)!r})
            n = int(path.read_text()) if path.exists() else 0
            path.write_text(str(n + 1))
            sys.exit(1 if n >= 2 else 0)
            """
        )
        report = SolutionRunner(RunConfig.quick(iterations=5)).run([ref])
        failure = report.failures()[0]
        assert failure.error_kind == "PartialBenchmarkDiscarded"
        assert failure.iterations is None

    def test_in_process(self, write_solution: WriteSolution, solutions_root: Path) -> None:
        write_solution("2024", "d01", ENTRY_SOLUTION)
        config = RunConfig.quick(isolation="in_process", iterations=4)
        report = SolutionRunner(config).run(SolutionRegistry(solutions_root))

        summary = next(report.summaries())
        assert summary.passed, summary.error
        assert summary.iterations == 4
        assert summary.output == "42"

    def test_in_process_honours_iteration_cap(
        self, write_solution: WriteSolution, solutions_root: Path
    ) -> None:
        write_solution("2024", "d01", ENTRY_SOLUTION)
        config = RunConfig.quick(isolation="in_process", max_iterations=5)
        report = SolutionRunner(config).run(SolutionRegistry(solutions_root))

        summary = next(report.summaries())
        assert summary.passed, summary.error
        assert summary.iterations == 5

    def test_bench_args_forward_calibration(self) -> None:
        config = RunConfig.quick(floor_resolution=0.002, max_iterations=7, args=["x"])
        args = SolutionRunner(config)._bench_args()
        assert args[args.index("--floor-resolution") + 1] == "2"
        assert args[args.index("--max-iterations") + 1] == "7"
        assert args[-1] == "x"

    @pytest.mark.parametrize("samples", ["[-0.001, 0.002]", "[NaN]", "[Infinity, 0.001]"])
    def test_in_process_invalid_samples_contained(
        self, make_ref: RefFactory, samples: str
    ) -> None:
        line = '{"type": "report", "data": {"samples": %s, "output": "1"}}' % samples
        bad = make_ref(f"print({line!r})", solution="bad")
        good = make_ref(
            'print(\'{"type": "report", "data": {"samples": [0.001], "output": "2"}}\')',
            solution="good",
        )
        runner = SolutionRunner(RunConfig.quick(isolation="in_process"))

        report = runner.run([bad, good])

        assert runner.state == ExecutionState.COMPLETED
        assert report.complete
        assert [s.solution for s in report.summaries()] == ["bad", "good"]
        failure = report.failures()[0]
        assert failure.solution == "bad"
        assert failure.error_kind == "ProtocolError"
        assert "malformed report" in (failure.error or "")
        assert report.passed == 1

    def test_in_process_without_report(self, make_ref: RefFactory) -> None:
        config = RunConfig.quick(isolation="in_process")
        report = SolutionRunner(config).run([make_ref("print(42)")])
        assert report.failures()[0].error_kind == "ProtocolError"

    def test_in_process_error_message_surfaced(
        self, write_solution: WriteSolution, solutions_root: Path
    ) -> None:
        write_solution("2024", "d01", ENTRY_SOLUTION.replace("expect=42", "expect=41"))
        buffer = io.StringIO()
        reporter = Reporter(console=Console(file=buffer, width=500))
        config = RunConfig.quick(isolation="in_process")

        report = SolutionRunner(config, reporter=reporter).run(SolutionRegistry(solutions_root))

        failure = report.failures()[0]
        assert failure.error_kind == "RunFailed"
        assert "CalibrationAborted" in (failure.error or "")
        assert "does not match expected" in buffer.getvalue()


class TestCancellation:
    """Tests for global timeout and interruption."""

    @pytest.mark.parametrize("workers", [1, 2])
    def test_global_timeout_yields_partial_report(
        self, make_ref: RefFactory, workers: int
    ) -> None:
        refs = [
            make_ref("print(1)", solution="a"),
            make_ref("import time; time.sleep(30)", solution="b"),
            make_ref("import time; time.sleep(30)", solution="c"),
        ]
        runner = SolutionRunner(RunConfig(workers=workers, global_timeout=1.0))

        start = time.monotonic()
        report = runner.run(refs)

        assert time.monotonic() - start < 15
        assert runner.state == ExecutionState.TIMED_OUT
        assert not report.complete
        assert report.incomplete_reason == "global timeout of 1s exceeded"
        assert [s.solution for s in report.summaries()] == ["a"]
        assert runner.driver.tracker.active == 0

    def test_interrupt_yields_partial_report(self, make_ref: RefFactory) -> None:
        refs = [make_ref("print(1)", solution="a"), make_ref("print(2)", solution="b")]

        def interrupt(completed: int, total: int | None, summary: SolutionSummary) -> None:
            raise KeyboardInterrupt

        runner = SolutionRunner(RunConfig())
        report = runner.run(refs, progress_callback=interrupt)

        assert runner.state == ExecutionState.CANCELLED
        assert not report.complete
        assert report.incomplete_reason == "interrupted"
        assert report.solution_count == 1


class TestStreaming:
    """Tests for progress reporting while running."""

    def test_progress_callback(self, sample_solutions: Path) -> None:
        calls: list[tuple[int, str]] = []

        def on_progress(completed: int, total: int | None, summary: SolutionSummary) -> None:
            calls.append((completed, summary.label))

        SolutionRunner(RunConfig()).run(SolutionRegistry(sample_solutions), on_progress)
        assert [c[0] for c in calls] == [1, 2, 3]
        assert calls[0][1] == "2022/d01"

    def test_broken_callback_does_not_abort(self, make_ref: RefFactory) -> None:
        def broken(completed: int, total: int | None, summary: SolutionSummary) -> None:
            raise RuntimeError("callback bug")

        report = SolutionRunner(RunConfig()).run([make_ref("print(1)")], broken)
        assert report.complete
        assert report.passed == 1

    def test_jsonl_stream(self, sample_solutions: Path) -> None:
        buffer = io.StringIO()
        reporter = Reporter(console=Console(file=buffer), output_format=OutputFormat.JSONL)
        SolutionRunner(RunConfig(), reporter=reporter).run(SolutionRegistry(sample_solutions))

        lines = [json.loads(line) for line in buffer.getvalue().splitlines()]
        assert len(lines) == 3
        assert {line["type"] for line in lines} == {"solution"}
