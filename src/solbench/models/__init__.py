"""solbench data models.

This module exports the core data structures used throughout solbench:
- Solution models: SolutionRef, RunStatus, RunOutcome
- Benchmark models: CalibrationPlan, BenchmarkResult
- Summary models: SolutionSummary, ProjectReport, GlobalReport
"""

from solbench.models.benchmark import BenchmarkResult, CalibrationPlan
from solbench.models.solution import RunOutcome, RunStatus, SolutionRef
from solbench.models.summary import (
    SCHEMA_VERSION,
    GlobalReport,
    ProjectReport,
    RunMode,
    SolutionStatus,
    SolutionSummary,
)

__all__ = [
    # Solution models
    "RunOutcome",
    "RunStatus",
    "SolutionRef",
    # Benchmark models
    "BenchmarkResult",
    "CalibrationPlan",
    # Summary models
    "SCHEMA_VERSION",
    "GlobalReport",
    "ProjectReport",
    "RunMode",
    "SolutionStatus",
    "SolutionSummary",
]
