"""Results aggregation for solbench.

This module reduces raw results into SolutionSummary entries and accumulates
them into a GlobalReport. Accumulation follows a single-writer discipline:
one owner thread receives every completed summary, so the shared report is
never touched concurrently and needs no locking.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from functools import reduce

from solbench.errors import SolutionError
from solbench.models.benchmark import BenchmarkResult
from solbench.models.solution import RunOutcome, SolutionRef
from solbench.models.summary import (
    GlobalReport,
    RunMode,
    SolutionStatus,
    SolutionSummary,
)
from solbench.runner.driver import raise_for_outcome
from solbench.runner.statistics import summarize_durations

logger = logging.getLogger(__name__)


def summarize_benchmark(result: BenchmarkResult) -> SolutionSummary:
    """Summarize a completed benchmark."""
    stats = summarize_durations(result.durations)
    return SolutionSummary(
        project=result.ref.project,
        solution=result.ref.solution,
        status=SolutionStatus.PASSED,
        mode=RunMode.BENCH,
        iterations=stats.iterations,
        min=stats.min,
        max=stats.max,
        mean=stats.mean,
        median=stats.median,
        stdev=stats.stdev,
        p95=stats.p95,
        p99=stats.p99,
        total=stats.total,
        output=result.output,
    )


def summarize_failure(
    ref: SolutionRef,
    error: SolutionError,
    mode: RunMode = RunMode.SINGLE,
) -> SolutionSummary:
    """Summarize a contained failure; no statistics are recorded."""
    return SolutionSummary(
        project=ref.project,
        solution=ref.solution,
        status=SolutionStatus.FAILED,
        mode=mode,
        error_kind=error.kind,
        error=error.detail,
    )


def summarize_outcome(ref: SolutionRef, outcome: RunOutcome) -> SolutionSummary:
    """Summarize a single run; its duration stands in for every statistic."""
    try:
        raise_for_outcome(ref, outcome)
    except SolutionError as e:
        return summarize_failure(ref, e, RunMode.SINGLE)

    return SolutionSummary(
        project=ref.project,
        solution=ref.solution,
        status=SolutionStatus.PASSED,
        mode=RunMode.SINGLE,
        iterations=1,
        min=outcome.duration,
        max=outcome.duration,
        mean=outcome.duration,
        median=outcome.duration,
        total=outcome.duration,
        output=outcome.answer,
    )


class ResultsAggregator:
    """Accumulates solution summaries into a GlobalReport.

    The first thread to add a summary becomes the owner; adding from any
    other thread is an error.

    Example:
        >>> aggregator = ResultsAggregator(RunMode.BENCH)
        >>> aggregator.add_result(ref, benchmark_result)
        >>> aggregator.add_failure(other_ref, error)
        >>> report = aggregator.report
    """

    def __init__(self, mode: RunMode = RunMode.SINGLE) -> None:
        self.mode = mode
        self._report = GlobalReport(mode=mode)
        self._owner: int | None = None

    @property
    def report(self) -> GlobalReport:
        return self._report

    @property
    def count(self) -> int:
        return self._report.solution_count

    def _check_owner(self) -> None:
        ident = threading.get_ident()
        if self._owner is None:
            self._owner = ident
        elif self._owner != ident:
            raise RuntimeError("summaries must be added from the aggregating thread only")

    def add(self, summary: SolutionSummary) -> SolutionSummary:
        """Accumulate one summary."""
        self._check_owner()
        if summary.mode != self.mode and summary.passed:
            raise ValueError(
                f"{summary.label}: {summary.mode.value} summary in a {self.mode.value} run"
            )
        self._report.add(summary)
        if not summary.passed:
            logger.warning("%s failed: %s", summary.label, summary.error)
        return summary

    def add_result(
        self,
        ref: SolutionRef,
        result: RunOutcome | BenchmarkResult,
    ) -> SolutionSummary:
        """Summarize and accumulate a run outcome or benchmark result."""
        if isinstance(result, BenchmarkResult):
            return self.add(summarize_benchmark(result))
        return self.add(summarize_outcome(ref, result))

    def add_failure(self, ref: SolutionRef, error: SolutionError) -> SolutionSummary:
        return self.add(summarize_failure(ref, error, self.mode))

    def mark_incomplete(self, reason: str) -> None:
        self._report.mark_incomplete(reason)

    @staticmethod
    def combine(reports: Iterable[GlobalReport]) -> GlobalReport:
        """Merge independently produced reports into one.

        Raises:
            ValueError: If no reports are given, or they overlap or disagree on mode.
        """
        reports = list(reports)
        if not reports:
            raise ValueError("no reports to combine")
        return reduce(GlobalReport.merge, reports, GlobalReport(mode=reports[0].mode))
