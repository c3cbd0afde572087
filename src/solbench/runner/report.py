"""Report rendering for solbench.

This module provides the Reporter, which renders a GlobalReport as narrative
tables (rich), JSON, JSON Lines or Markdown at a selectable verbosity, plus
helpers for saving and loading structured reports. Rendering is best-effort:
a rendering problem is logged, never raised.
"""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from solbench.models.summary import GlobalReport, RunMode, SolutionSummary
from solbench.runner.config import OutputFormat, Verbosity

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def format_duration(seconds: float | None) -> str:
    """Format a duration with a unit suited to its magnitude."""
    if seconds is None:
        return "-"
    if seconds >= 1.0:
        return f"{seconds:.3f}s"
    if seconds >= 1e-3:
        return f"{seconds * 1e3:.3f}ms"
    if seconds >= 1e-6:
        return f"{seconds * 1e6:.3f}µs"
    return f"{seconds * 1e9:.0f}ns"


def best_effort(method: F) -> F:
    """Log and swallow rendering errors so they never abort a run."""

    @functools.wraps(method)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return method(*args, **kwargs)
        except Exception:
            logger.exception("Failed to render %s", method.__name__)
            return None

    return wrapper  # type: ignore[return-value]


@dataclass
class ReportSection:
    """A section within a Markdown report.

    Attributes:
        title: Section title.
        content: Section content (dict or string).
        subsections: Nested subsections.
    """

    title: str
    content: dict[str, Any] | str = field(default_factory=dict)
    subsections: list[ReportSection] = field(default_factory=list)

    def to_markdown(self, level: int = 2) -> str:
        """Convert to markdown format.

        Args:
            level: Heading level (2 = ##, 3 = ###, etc.).
        """
        lines = [f"{'#' * level} {self.title}\n"]

        if isinstance(self.content, str):
            lines.append(self.content)
        else:
            for key, value in self.content.items():
                formatted_key = key.replace("_", " ").title()
                lines.append(f"- **{formatted_key}**: {value}")

        lines.append("")

        for subsection in self.subsections:
            lines.append(subsection.to_markdown(level + 1))

        return "\n".join(lines)


def _markdown_table(report_mode: RunMode, summaries: list[SolutionSummary]) -> str:
    if report_mode == RunMode.BENCH:
        lines = [
            "| Solution | Status | Iterations | Mean | Median | Min | Max | Stdev |",
            "|----------|--------|------------|------|--------|-----|-----|-------|",
        ]
        for s in summaries:
            lines.append(
                f"| {s.solution} | {s.status.value} | {s.iterations or '-'} "
                f"| {format_duration(s.mean)} | {format_duration(s.median)} "
                f"| {format_duration(s.min)} | {format_duration(s.max)} "
                f"| {format_duration(s.stdev)} |"
            )
    else:
        lines = [
            "| Solution | Status | Time | Answer |",
            "|----------|--------|------|--------|",
        ]
        for s in summaries:
            answer = (s.output or s.error or "").replace("\n", " ").replace("|", "\\|")
            lines.append(
                f"| {s.solution} | {s.status.value} | {format_duration(s.mean)} | {answer} |"
            )
    return "\n".join(lines)


def to_markdown(report: GlobalReport) -> str:
    """Render a report as Markdown."""
    overview: dict[str, Any] = {
        "mode": report.mode.value,
        "solutions": report.solution_count,
        "passed": report.passed,
        "failed": report.failed,
        "total_mean": format_duration(report.total_mean),
        "slowest": f"{report.slowest} ({format_duration(report.slowest_mean)})"
        if report.slowest
        else "-",
    }
    if not report.complete:
        overview["incomplete"] = report.incomplete_reason or "yes"

    sections = [ReportSection(title="Overview", content=overview)]
    for project in report.projects:
        sections.append(
            ReportSection(
                title=f"Project: {project.project}",
                content=_markdown_table(report.mode, project.solutions),
            )
        )

    failures = report.failures()
    if failures:
        sections.append(
            ReportSection(
                title="Failures",
                content="\n".join(f"- `{s.label}` {s.error_kind}: {s.error}" for s in failures),
            )
        )

    lines = ["# solbench Report", ""]
    lines.extend(section.to_markdown() for section in sections)
    return "\n".join(lines)


def to_json(report: GlobalReport, indent: int | None = 2) -> str:
    """Render a report losslessly as JSON."""
    return report.model_dump_json(indent=indent)


def _json_line(kind: str, data: Any) -> str:
    return json.dumps({"type": kind, "data": data})


class Reporter:
    """Renders run progress and the final report to standard output.

    Example:
        >>> reporter = Reporter(verbosity=Verbosity.VERBOSE)
        >>> reporter.solution_completed(summary)
        >>> reporter.render(report)
    """

    def __init__(
        self,
        console: Console | None = None,
        verbosity: Verbosity = Verbosity.NORMAL,
        output_format: OutputFormat = OutputFormat.NARRATIVE,
        production: bool = False,
    ) -> None:
        """Initialize the reporter.

        Args:
            console: Console to write to (a stdout console if None).
            verbosity: Level of detail.
            output_format: Narrative, JSON, JSON Lines or Markdown.
            production: Suppress diagnostic messages.
        """
        self.console = console or Console(highlight=False)
        self.verbosity = verbosity
        self.output_format = output_format
        self.production = production

    def _write(self, text: str) -> None:
        self.console.file.write(text + "\n")
        self.console.file.flush()

    @property
    def _narrative(self) -> bool:
        return self.output_format == OutputFormat.NARRATIVE

    @best_effort
    def message(self, text: str, important: bool = False) -> None:
        """Show a diagnostic message.

        Important messages are always shown; others only in narrative mode,
        outside production mode and above quiet verbosity.
        """
        if important:
            if self._narrative:
                self.console.print(f"[red]error:[/red] {escape(text)}")
            elif self.output_format == OutputFormat.JSONL:
                self._write(_json_line("message", {"kind": "error", "output": text}))
            else:
                logger.error(text)
            return

        if self.production or not self._narrative or self.verbosity == Verbosity.QUIET:
            return
        self.console.print(f"[dim]{escape(text)}[/dim]")

    @best_effort
    def solution_completed(self, summary: SolutionSummary) -> None:
        """Stream one summary as soon as it is available."""
        if self.output_format == OutputFormat.JSONL:
            self._write(_json_line("solution", summary.model_dump(mode="json")))
            return
        if not self._narrative:
            return

        if not summary.passed:
            self.console.print(
                f"  [red]✗[/red] {escape(summary.label)}: "
                f"{summary.error_kind}: {escape(summary.error or '')}"
            )
            return
        if self.verbosity == Verbosity.QUIET or self.production:
            return

        timing = format_duration(summary.mean)
        if summary.mode == RunMode.BENCH:
            timing = f"{timing} mean over {summary.iterations} run(s)"
        self.console.print(f"  [green]✓[/green] {escape(summary.label)}: {timing}")

    @best_effort
    def render(self, report: GlobalReport) -> None:
        """Render the final report in the configured format."""
        if self.output_format == OutputFormat.JSON:
            self._write(to_json(report))
        elif self.output_format == OutputFormat.JSONL:
            self._write(_json_line("report", report.model_dump(mode="json")))
        elif self.output_format == OutputFormat.MARKDOWN:
            self._write(to_markdown(report))
        else:
            self._render_narrative(report)

    def _render_narrative(self, report: GlobalReport) -> None:
        if self.verbosity != Verbosity.QUIET:
            for project in report.projects:
                table = self._project_table(report.mode, project.project, project.solutions)
                self.console.print(table)

        failures = report.failures()
        if failures:
            table = Table(title="Failures", box=box.SIMPLE, title_style="bold red")
            table.add_column("Solution", style="cyan")
            table.add_column("Error", style="red")
            table.add_column("Detail")
            for s in failures:
                table.add_row(escape(s.label), s.error_kind or "", escape(s.error or ""))
            self.console.print(table)

        self.console.print(self._totals_line(report))
        if not report.complete:
            reason = escape(report.incomplete_reason or "cancelled")
            self.console.print(f"[yellow]Run incomplete: {reason}[/yellow]")

    def _project_table(
        self,
        mode: RunMode,
        project: str,
        summaries: list[SolutionSummary],
    ) -> Table:
        verbose = self.verbosity == Verbosity.VERBOSE
        table = Table(title=f"Project {escape(project)}", box=box.SIMPLE)
        table.add_column("Solution", style="cyan")
        table.add_column("Status")

        if mode == RunMode.BENCH:
            columns = ["Runs", "Mean", "Median", "Min"]
            if verbose:
                columns += ["Max", "Stdev", "p95", "p99"]
        else:
            columns = ["Time"]
        for column in columns:
            table.add_column(column, justify="right")
        if verbose:
            table.add_column("Answer")

        for s in summaries:
            status = "[green]✓[/green]" if s.passed else "[red]✗[/red]"
            if mode == RunMode.BENCH:
                cells = [
                    str(s.iterations) if s.iterations else "-",
                    format_duration(s.mean),
                    format_duration(s.median),
                    format_duration(s.min),
                ]
                if verbose:
                    cells += [
                        format_duration(s.max),
                        format_duration(s.stdev),
                        format_duration(s.p95),
                        format_duration(s.p99),
                    ]
            else:
                cells = [format_duration(s.mean)]
            if verbose:
                cells.append(escape(s.output or s.error or ""))
            table.add_row(escape(s.solution), status, *cells)

        return table

    @staticmethod
    def _totals_line(report: GlobalReport) -> str:
        line = (
            f"[bold]all:[/bold] {report.solution_count} solution(s), "
            f"[green]{report.passed} passed[/green], "
            f"[red]{report.failed} failed[/red], "
            f"total {format_duration(report.total_mean)}"
        )
        if report.slowest:
            line += f", slowest {escape(report.slowest)} ({format_duration(report.slowest_mean)})"
        return line


def save_report(
    report: GlobalReport,
    path: str | Path,
    format: OutputFormat | None = None,
) -> Path:
    """Save a report to file.

    Args:
        report: Report to save.
        path: Output path.
        format: Output format (inferred from extension if None).

    Returns:
        Path to saved file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if format is None:
        format_map = {
            ".json": OutputFormat.JSON,
            ".jsonl": OutputFormat.JSONL,
            ".md": OutputFormat.MARKDOWN,
            ".markdown": OutputFormat.MARKDOWN,
        }
        format = format_map.get(path.suffix.lower(), OutputFormat.JSON)

    if format == OutputFormat.JSONL:
        with open(path, "w", encoding="utf-8") as f:
            for summary in report.summaries():
                f.write(_json_line("solution", summary.model_dump(mode="json")) + "\n")
            f.write(_json_line("report", report.model_dump(mode="json")) + "\n")
    elif format == OutputFormat.MARKDOWN:
        path.write_text(to_markdown(report), encoding="utf-8")
    else:
        path.write_text(to_json(report), encoding="utf-8")

    return path


def parse_report(text: str) -> GlobalReport:
    """Parse a structured report from JSON or JSON Lines text.

    Raises:
        ValueError: If no report can be found in the text.
    """
    stripped = text.strip()
    if not stripped:
        raise ValueError("empty report")

    try:
        return GlobalReport.model_validate_json(stripped)
    except ValueError:
        pass

    for line in reversed(stripped.splitlines()):
        try:
            value = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict) and value.get("type") == "report":
            return GlobalReport.model_validate(value.get("data"))

    raise ValueError("no report found")


def load_report(path: str | Path) -> GlobalReport:
    """Load a report saved as JSON or JSON Lines."""
    return parse_report(Path(path).read_text(encoding="utf-8"))
