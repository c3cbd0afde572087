"""Summary and report models for solbench.

This module defines the reduced, serializable view of a run:
- SolutionSummary: Statistics and status for one solution
- ProjectReport: Ordered summaries of one project plus roll-ups
- GlobalReport: All projects of one run plus global roll-ups

Reports are built by accumulation (`add`) or by combining partial reports
(`merge`). Both are order independent: summaries are kept sorted by their
identifiers and every roll-up is derived from that sorted content.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

SCHEMA_VERSION = 1


class SolutionStatus(str, Enum):
    """Pass/fail status of a solution."""

    PASSED = "passed"
    FAILED = "failed"


class RunMode(str, Enum):
    """How a solution was executed."""

    SINGLE = "single"
    BENCH = "bench"


_STAT_FIELDS = ("iterations", "min", "max", "mean", "median", "stdev", "p95", "p99", "total")


class SolutionSummary(BaseModel):
    """Reduced statistical description of one solution's run.

    All durations are in seconds. Statistics are only populated for passed
    solutions; `stdev`, `p95` and `p99` are also absent for single runs.

    Attributes:
        project: Project identifier.
        solution: Solution identifier.
        status: Pass/fail status.
        mode: Single run or benchmark.
        iterations: Number of measured runs.
        min: Fastest measured run.
        max: Slowest measured run.
        mean: Arithmetic mean.
        median: Median (mean of the two central values for even counts).
        stdev: Population standard deviation.
        p95: 95th percentile (nearest rank).
        p99: 99th percentile (nearest rank).
        total: Sum of all measured durations.
        output: Answer printed by a representative run.
        error_kind: Failure category, for failed solutions.
        error: Failure description, for failed solutions.
    """

    model_config = ConfigDict(frozen=True)

    project: str
    solution: str
    status: SolutionStatus
    mode: RunMode = RunMode.SINGLE
    iterations: int | None = Field(default=None, ge=1)
    min: float | None = Field(default=None, ge=0.0)
    max: float | None = Field(default=None, ge=0.0)
    mean: float | None = Field(default=None, ge=0.0)
    median: float | None = Field(default=None, ge=0.0)
    stdev: float | None = Field(default=None, ge=0.0)
    p95: float | None = Field(default=None, ge=0.0)
    p99: float | None = Field(default=None, ge=0.0)
    total: float | None = Field(default=None, ge=0.0)
    output: str | None = None
    error_kind: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def check_statistics(self) -> SolutionSummary:
        """Passed summaries carry statistics; failed ones carry none."""
        if self.status == SolutionStatus.FAILED:
            populated = [name for name in _STAT_FIELDS if getattr(self, name) is not None]
            if populated:
                raise ValueError(
                    f"failed summary for {self.project}/{self.solution} "
                    f"must not carry statistics: {', '.join(populated)}"
                )
            return self

        for name in ("iterations", "min", "mean", "median"):
            if getattr(self, name) is None:
                raise ValueError(f"passed summary is missing '{name}'")
        if self.min is not None and self.mean is not None and self.min > self.mean:
            raise ValueError(f"min ({self.min}) must not exceed mean ({self.mean})")
        return self

    @property
    def key(self) -> tuple[str, str]:
        return (self.project, self.solution)

    @property
    def label(self) -> str:
        return f"{self.project}/{self.solution}"

    @property
    def passed(self) -> bool:
        return self.status == SolutionStatus.PASSED


def _slowest(summaries: Iterable[SolutionSummary]) -> SolutionSummary | None:
    measured = [s for s in summaries if s.passed and s.mean is not None]
    if not measured:
        return None
    # Ties resolve to the smallest identifier so the result is order independent.
    return min(measured, key=lambda s: (-(s.mean or 0.0), s.key))


def _total_mean(summaries: Iterable[SolutionSummary]) -> float:
    return math.fsum(s.mean for s in summaries if s.passed and s.mean is not None)


class ProjectReport(BaseModel):
    """Summaries for one project plus rolled-up statistics.

    Attributes:
        project: Project identifier.
        solutions: Summaries sorted by solution identifier.
    """

    project: str
    solutions: list[SolutionSummary] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_solutions(self) -> ProjectReport:
        """Keep solutions sorted, unique and inside this project."""
        seen: set[str] = set()
        for summary in self.solutions:
            if summary.project != self.project:
                raise ValueError(
                    f"summary {summary.label} does not belong to project {self.project}"
                )
            if summary.solution in seen:
                raise ValueError(f"duplicate summary for {summary.label}")
            seen.add(summary.solution)
        self.solutions.sort(key=lambda s: s.solution)
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def solution_count(self) -> int:
        return len(self.solutions)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def passed(self) -> int:
        return sum(1 for s in self.solutions if s.passed)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return sum(1 for s in self.solutions if not s.passed)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_mean(self) -> float:
        """Sum of the mean durations of passed solutions."""
        return _total_mean(self.solutions)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def slowest(self) -> str | None:
        """Identifier of the passed solution with the largest mean."""
        slowest = _slowest(self.solutions)
        return slowest.solution if slowest else None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def slowest_mean(self) -> float | None:
        slowest = _slowest(self.solutions)
        return slowest.mean if slowest else None

    def add(self, summary: SolutionSummary) -> None:
        """Accumulate one summary.

        Raises:
            ValueError: If the summary belongs elsewhere or is a duplicate.
        """
        if summary.project != self.project:
            raise ValueError(f"summary {summary.label} does not belong to project {self.project}")
        if any(s.solution == summary.solution for s in self.solutions):
            raise ValueError(f"duplicate summary for {summary.label}")
        self.solutions.append(summary)
        self.solutions.sort(key=lambda s: s.solution)

    def merge(self, other: ProjectReport) -> ProjectReport:
        """Combine two partial reports of the same project into a new one."""
        if other.project != self.project:
            raise ValueError(f"cannot merge project {other.project} into {self.project}")
        return ProjectReport(project=self.project, solutions=[*self.solutions, *other.solutions])

    def failures(self) -> list[SolutionSummary]:
        return [s for s in self.solutions if not s.passed]


class GlobalReport(BaseModel):
    """Every project of a run plus global roll-ups.

    Attributes:
        schema_version: Version of the structured format.
        mode: Run mode shared by all summaries.
        complete: False when the run was interrupted or timed out.
        incomplete_reason: Why the run is incomplete.
        projects: Project reports sorted by project identifier.
    """

    schema_version: int = SCHEMA_VERSION
    mode: RunMode = RunMode.SINGLE
    complete: bool = True
    incomplete_reason: str | None = None
    projects: list[ProjectReport] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_projects(self) -> GlobalReport:
        names = [p.project for p in self.projects]
        if len(names) != len(set(names)):
            raise ValueError("duplicate project reports")
        self.projects.sort(key=lambda p: p.project)
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def solution_count(self) -> int:
        return sum(p.solution_count for p in self.projects)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def passed(self) -> int:
        return sum(p.passed for p in self.projects)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return sum(p.failed for p in self.projects)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_mean(self) -> float:
        """Sum of the mean durations of all passed solutions."""
        return _total_mean(self.summaries())

    @computed_field  # type: ignore[prop-decorator]
    @property
    def slowest(self) -> str | None:
        """Label (`project/solution`) of the slowest passed solution."""
        slowest = _slowest(self.summaries())
        return slowest.label if slowest else None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def slowest_mean(self) -> float | None:
        slowest = _slowest(self.summaries())
        return slowest.mean if slowest else None

    def summaries(self) -> Iterator[SolutionSummary]:
        """Iterate over all summaries in project/solution order."""
        for project in self.projects:
            yield from project.solutions

    def failures(self) -> list[SolutionSummary]:
        return [s for s in self.summaries() if not s.passed]

    def project(self, name: str) -> ProjectReport | None:
        for project in self.projects:
            if project.project == name:
                return project
        return None

    def add(self, summary: SolutionSummary) -> None:
        """Accumulate one summary into its project report."""
        project = self.project(summary.project)
        if project is None:
            project = ProjectReport(project=summary.project)
            self.projects.append(project)
            self.projects.sort(key=lambda p: p.project)
        project.add(summary)

    def mark_incomplete(self, reason: str) -> None:
        self.complete = False
        self.incomplete_reason = reason

    def merge(self, other: GlobalReport) -> GlobalReport:
        """Combine two partial reports into a new one."""
        if other.mode != self.mode:
            raise ValueError(
                f"cannot merge a {other.mode.value} report into a {self.mode.value} report"
            )

        by_name: dict[str, ProjectReport] = {
            p.project: ProjectReport(project=p.project, solutions=list(p.solutions))
            for p in self.projects
        }
        for project in other.projects:
            if project.project in by_name:
                by_name[project.project] = by_name[project.project].merge(project)
            else:
                by_name[project.project] = ProjectReport(
                    project=project.project, solutions=list(project.solutions)
                )

        reasons = sorted({r for r in (self.incomplete_reason, other.incomplete_reason) if r})
        return GlobalReport(
            schema_version=self.schema_version,
            mode=self.mode,
            complete=self.complete and other.complete,
            incomplete_reason="; ".join(reasons) or None,
            projects=list(by_name.values()),
        )
