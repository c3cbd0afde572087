"""solbench: a solution runner and adaptive micro-benchmark harness.

Runs a collection of independent solution programs, either once each or as
calibrated benchmarks, and reports per-solution, per-project and global
statistics.

Example:
    >>> from solbench import RunConfig, SolutionRegistry, SolutionRunner
    >>> registry = SolutionRegistry(Path("solutions"))
    >>> report = SolutionRunner(RunConfig(bench=True)).run(registry)
    >>> print(report.passed, report.failed)
"""

# isort: skip_file

# Models
from solbench.models import (
    BenchmarkResult,
    CalibrationPlan,
    GlobalReport,
    ProjectReport,
    RunMode,
    RunOutcome,
    RunStatus,
    SolutionRef,
    SolutionStatus,
    SolutionSummary,
)

# Errors
from solbench.errors import (
    ConfigError,
    RegistryError,
    SolbenchError,
    SolutionError,
)

# Registry
from solbench.registry import SolutionRegistry

# Runner
from solbench.runner import (
    BenchmarkCalibrator,
    ExecutionDriver,
    Reporter,
    ResultsAggregator,
    RunConfig,
    SolutionRunner,
    load_report,
    save_report,
)

# Solution-side registration
from solbench.entry import SolutionEntry, entry

# Version
from solbench.version import __version__

__all__ = [
    "__version__",
    # Models
    "BenchmarkResult",
    "CalibrationPlan",
    "GlobalReport",
    "ProjectReport",
    "RunMode",
    "RunOutcome",
    "RunStatus",
    "SolutionRef",
    "SolutionStatus",
    "SolutionSummary",
    # Errors
    "ConfigError",
    "RegistryError",
    "SolbenchError",
    "SolutionError",
    # Registry
    "SolutionRegistry",
    # Runner
    "BenchmarkCalibrator",
    "ExecutionDriver",
    "Reporter",
    "ResultsAggregator",
    "RunConfig",
    "SolutionRunner",
    "load_report",
    "save_report",
    # Entry
    "SolutionEntry",
    "entry",
]
