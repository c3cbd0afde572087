"""Run orchestration for solbench.

This module provides the SolutionRunner, which walks the discovered
solutions, runs or benchmarks each one, and feeds the summaries to a single
aggregating owner. Solutions can run sequentially or on a worker pool; a
global timeout or an interrupt kills every live child and still yields the
partial report, marked incomplete.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from solbench.errors import ProtocolError, SolutionError
from solbench.models.benchmark import BenchmarkResult
from solbench.models.solution import SolutionRef
from solbench.models.summary import GlobalReport, SolutionSummary
from solbench.runner.aggregator import (
    ResultsAggregator,
    summarize_benchmark,
    summarize_failure,
    summarize_outcome,
)
from solbench.runner.calibrator import BenchmarkCalibrator
from solbench.runner.config import IsolationMode, ProgressCallback, RunConfig, Verbosity
from solbench.runner.driver import ExecutionDriver, ProcessTracker, raise_for_outcome
from solbench.runner.protocol import Message, decode_lines
from solbench.runner.report import Reporter

logger = logging.getLogger(__name__)


class ExecutionState(str, Enum):
    """State of a run.

    Attributes:
        PENDING: Not yet started.
        RUNNING: Currently executing.
        COMPLETED: Every solution was summarized.
        CANCELLED: Interrupted; the report is partial.
        TIMED_OUT: The global timeout expired; the report is partial.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@dataclass
class TaskResult:
    """Result of executing one solution on a worker.

    Attributes:
        ref: The solution.
        summary: Its summary (passed or failed).
        messages: Diagnostics the solution reported about itself.
    """

    ref: SolutionRef
    summary: SolutionSummary
    messages: list[Message] = field(default_factory=list)


class ExecutionProgress(BaseModel):
    """Progress tracking for a run.

    Attributes:
        total: Number of scheduled solutions, when known.
        completed: Number of summarized solutions.
        passed: Number of passed solutions.
        failed: Number of failed solutions.
        start_time: When execution started.
        elapsed_seconds: Time elapsed since start.
    """

    total: int | None = None
    completed: int = 0
    passed: int = 0
    failed: int = 0
    start_time: datetime | None = None
    elapsed_seconds: float = 0.0

    @property
    def progress_percent(self) -> float | None:
        if not self.total:
            return None
        return (self.completed / self.total) * 100

    def record(self, summary: SolutionSummary) -> None:
        self.completed += 1
        if summary.passed:
            self.passed += 1
        else:
            self.failed += 1
        if self.start_time:
            self.elapsed_seconds = (datetime.now() - self.start_time).total_seconds()


def _millis(seconds: float) -> str:
    return f"{seconds * 1000:g}"


class SolutionRunner:
    """Main orchestrator for running and benchmarking solutions.

    Example:
        >>> config = RunConfig(bench=True, workers=4)
        >>> runner = SolutionRunner(config)
        >>> report = runner.run(SolutionRegistry(Path("solutions")))
        >>> print(report.failed)
    """

    def __init__(
        self,
        config: RunConfig | None = None,
        reporter: Reporter | None = None,
        driver: ExecutionDriver | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Run configuration.
            reporter: Streams progress while running (silent if None).
            driver: Execution driver (a fresh one if None).
        """
        self.config = config or RunConfig()
        self.reporter = reporter
        self.driver = driver or ExecutionDriver(ProcessTracker())
        self.calibrator = BenchmarkCalibrator.from_config(self.config)

        self.state = ExecutionState.PENDING
        self.progress = ExecutionProgress()
        self._progress_callbacks: list[ProgressCallback] = []
        self._cancel_reason: str | None = None
        self._deadline: float | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancel_reason is not None

    def add_progress_callback(self, callback: ProgressCallback) -> None:
        self._progress_callbacks.append(callback)

    def cancel(self, reason: str = "interrupted") -> None:
        """Abort the run: kill every live child and stop scheduling."""
        if self._cancel_reason is None:
            self._cancel_reason = reason
            logger.info("Cancelling run: %s", reason)
        killed = self.driver.tracker.kill_all()
        if killed:
            logger.debug("Killed %d child process(es)", killed)

    def _timeout_reason(self) -> str:
        return f"global timeout of {self.config.global_timeout:g}s exceeded"

    def _check_deadline(self) -> None:
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel(self._timeout_reason())

    def _run_timeout(self) -> float | None:
        timeout = self.config.run_timeout
        if self._deadline is not None:
            remaining = max(self._deadline - time.monotonic(), 0.001)
            timeout = remaining if timeout is None else min(timeout, remaining)
        return timeout

    def _bench_args(self) -> list[str]:
        args = [
            "--bench",
            "--json",
            "--warmup",
            _millis(self.config.warmup),
            "--time-limit",
            _millis(self.config.time_limit),
            "--floor-resolution",
            _millis(self.config.floor_resolution),
            "--max-iterations",
            str(self.config.max_iterations),
        ]
        if self.config.iterations is not None:
            args += ["--count", str(self.config.iterations)]
        if self.config.verify_output:
            args.append("--verify")
        return [*args, *self.config.args]

    def _bench_in_process(self, ref: SolutionRef) -> tuple[BenchmarkResult, list[Message]]:
        """Let the solution repeat itself and collect the samples it reports."""
        outcome = self.driver.run(ref, args=self._bench_args(), timeout=self._run_timeout())
        messages, report = decode_lines(outcome.stdout)
        errors = [m.output for m in messages if m.is_important]

        if not outcome.success:
            try:
                raise_for_outcome(ref, outcome)
            except SolutionError as e:
                if not errors:
                    raise
                raise type(e)(ref, f"{e.detail}: {errors[-1]}", outcome) from e
        if report is None:
            detail = "solution did not report any benchmark samples"
            if errors:
                detail = f"{detail}: {errors[-1]}"
            raise ProtocolError(ref, detail, outcome)
        if self.config.iterations is not None and len(report.samples) != self.config.iterations:
            raise ProtocolError(
                ref,
                f"expected {self.config.iterations} samples, got {len(report.samples)}",
                outcome,
            )

        result = BenchmarkResult(
            ref=ref,
            durations=tuple(report.samples),
            output=report.output,
            warmup_iterations=report.warmup_iterations,
        )
        return result, messages

    def execute(self, ref: SolutionRef) -> TaskResult:
        """Run or benchmark one solution. Solution failures are contained.

        Args:
            ref: Solution to execute.

        Returns:
            TaskResult with a passed or failed summary.
        """
        messages: list[Message] = []
        args = self.config.args

        try:
            if not self.config.bench:
                outcome = self.driver.run(ref, args=args, timeout=self._run_timeout())
                summary = summarize_outcome(ref, outcome)
            elif self.config.isolation == IsolationMode.IN_PROCESS:
                result, messages = self._bench_in_process(ref)
                try:
                    summary = summarize_benchmark(result)
                except ValueError as e:
                    raise ProtocolError(ref, f"unusable benchmark samples: {e}") from e
            else:
                result = self.calibrator.run(
                    ref,
                    lambda: self.driver.run(ref, args=args, timeout=self._run_timeout()),
                )
                summary = summarize_benchmark(result)
        except SolutionError as e:
            logger.warning("%s failed (%s): %s", ref.label, e.kind, e.detail)
            summary = summarize_failure(ref, e, self.config.mode)

        return TaskResult(ref=ref, summary=summary, messages=messages)

    def _collect(self, aggregator: ResultsAggregator, task: TaskResult) -> None:
        """Hand one finished task to the aggregating owner."""
        self._check_deadline()
        if self.cancelled:
            # Results racing the cancellation were cut short by it.
            logger.debug("Discarding %s completed during cancellation", task.ref.label)
            return

        if self.reporter is not None:
            for message in task.messages:
                if message.is_important:
                    self.reporter.message(f"{task.ref.label}: {message.output}", important=True)
                elif self.config.verbosity == Verbosity.VERBOSE:
                    self.reporter.message(f"{task.ref.label}: {message.output}")

        summary = aggregator.add(task.summary)
        self.progress.record(summary)
        if self.reporter is not None:
            self.reporter.solution_completed(summary)

        for callback in self._progress_callbacks:
            try:
                callback(
                    completed=self.progress.completed,
                    total=self.progress.total,
                    summary=summary,
                )
            except Exception as e:
                logger.warning(f"Progress callback error: {e}")

    def _run_sequential(self, refs: Iterable[SolutionRef], aggregator: ResultsAggregator) -> None:
        for ref in refs:
            self._check_deadline()
            if self.cancelled:
                break
            if self.reporter is not None and self.config.verbosity == Verbosity.VERBOSE:
                self.reporter.message(f"Running: {ref.label}")
            self._collect(aggregator, self.execute(ref))

    def _run_concurrent(self, refs: Iterable[SolutionRef], aggregator: ResultsAggregator) -> None:
        pool = ThreadPoolExecutor(
            max_workers=self.config.workers, thread_name_prefix="solbench-worker"
        )
        try:
            futures: list[Future[TaskResult]] = [pool.submit(self.execute, ref) for ref in refs]
            self.progress.total = len(futures)
            for future in as_completed(futures):
                if self.cancelled:
                    break
                self._collect(aggregator, future.result())
        except KeyboardInterrupt:
            # Kill children before waiting for their workers.
            self.cancel("interrupted")
            raise
        finally:
            pool.shutdown(wait=True, cancel_futures=True)

    def run(
        self,
        refs: Iterable[SolutionRef],
        progress_callback: ProgressCallback | None = None,
    ) -> GlobalReport:
        """Run every solution and return the aggregated report.

        The calling thread is the aggregating owner. On interrupt or global
        timeout the report covers everything aggregated so far and is marked
        incomplete; registry failures propagate.

        Args:
            refs: Solutions to run, typically a SolutionRegistry.
            progress_callback: Optional callback for progress updates.

        Returns:
            GlobalReport with every summary collected.
        """
        if progress_callback:
            self.add_progress_callback(progress_callback)

        aggregator = ResultsAggregator(self.config.mode)
        self.progress.start_time = datetime.now()
        self.state = ExecutionState.RUNNING

        watchdog: threading.Timer | None = None
        if self.config.global_timeout is not None:
            self._deadline = time.monotonic() + self.config.global_timeout
            watchdog = threading.Timer(
                self.config.global_timeout,
                self.cancel,
                kwargs={"reason": self._timeout_reason()},
            )
            watchdog.daemon = True
            watchdog.start()

        logger.info(
            "Starting %s run with %d worker(s)", self.config.mode.value, self.config.workers
        )

        try:
            if self.config.workers == 1:
                self._run_sequential(refs, aggregator)
            else:
                self._run_concurrent(refs, aggregator)
        except KeyboardInterrupt:
            self.cancel("interrupted")
        finally:
            if watchdog is not None:
                watchdog.cancel()

        if self._cancel_reason is not None:
            aggregator.mark_incomplete(self._cancel_reason)
            self.state = (
                ExecutionState.TIMED_OUT
                if self._deadline is not None and self._cancel_reason == self._timeout_reason()
                else ExecutionState.CANCELLED
            )
        else:
            self.state = ExecutionState.COMPLETED

        logger.info(
            "Run %s: %d passed, %d failed",
            self.state.value,
            self.progress.passed,
            self.progress.failed,
        )
        return aggregator.report
