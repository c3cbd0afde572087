"""solbench runner package.

This module provides the execution layer: running solutions once, calibrating
and measuring benchmarks, computing statistics, aggregating results, and
reporting them.

Core Components:
    - SolutionRunner: Orchestrates a run over every discovered solution
    - ExecutionDriver: Runs one solution once in a child process
    - BenchmarkCalibrator: Probe, warmup and measurement loop
    - ResultsAggregator: Single-writer accumulation into a GlobalReport
    - Reporter: Narrative and structured output

Example:
    >>> from solbench.registry import SolutionRegistry
    >>> from solbench.runner import Reporter, RunConfig, SolutionRunner
    >>>
    >>> config = RunConfig(bench=True, workers=4)
    >>> runner = SolutionRunner(config, reporter=Reporter())
    >>> report = runner.run(SolutionRegistry(Path("solutions")))
    >>> runner.reporter.render(report)
"""

from solbench.runner.aggregator import (
    ResultsAggregator,
    summarize_benchmark,
    summarize_failure,
    summarize_outcome,
)
from solbench.runner.calibrator import BenchmarkCalibrator, derive_iterations
from solbench.runner.config import (
    IsolationMode,
    OutputFormat,
    ProgressCallback,
    RunConfig,
    Verbosity,
)
from solbench.runner.driver import ExecutionDriver, ProcessTracker, raise_for_outcome
from solbench.runner.executor import (
    ExecutionProgress,
    ExecutionState,
    SolutionRunner,
    TaskResult,
)
from solbench.runner.report import (
    Reporter,
    ReportSection,
    load_report,
    parse_report,
    save_report,
)
from solbench.runner.statistics import DurationStats, summarize_durations

__all__ = [
    # Configuration
    "IsolationMode",
    "OutputFormat",
    "ProgressCallback",
    "RunConfig",
    "Verbosity",
    # Execution
    "ExecutionDriver",
    "ExecutionProgress",
    "ExecutionState",
    "ProcessTracker",
    "SolutionRunner",
    "TaskResult",
    "raise_for_outcome",
    # Benchmarking
    "BenchmarkCalibrator",
    "DurationStats",
    "derive_iterations",
    "summarize_durations",
    # Aggregation
    "ResultsAggregator",
    "summarize_benchmark",
    "summarize_failure",
    "summarize_outcome",
    # Reporting
    "Reporter",
    "ReportSection",
    "load_report",
    "parse_report",
    "save_report",
]
