"""Main CLI entry point for solbench.

This module provides the command-line interface for running and
benchmarking solutions, listing what would run, and merging saved reports.
"""

from __future__ import annotations

import json
import logging
import sys
from enum import IntEnum
from pathlib import Path
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from solbench.cli.config_loader import HarnessConfig, create_config, get_default_config_path
from solbench.errors import SolbenchError
from solbench.models.summary import GlobalReport
from solbench.runner.aggregator import ResultsAggregator
from solbench.runner.config import IsolationMode, OutputFormat, Verbosity
from solbench.runner.executor import SolutionRunner
from solbench.runner.report import Reporter, load_report, save_report
from solbench.version import __version__

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

PASSTHROUGH_KEY = "solbench.passthrough"


class ExitCode(IntEnum):
    """Process exit statuses."""

    SUCCESS = 0
    FAILURES = 1
    CONFIG_ERROR = 2
    INCOMPLETE = 3


def exit_code_for(report: GlobalReport) -> ExitCode:
    """Exit status reflecting a report, independent of how it was rendered."""
    if not report.complete:
        return ExitCode.INCOMPLETE
    if report.failed:
        return ExitCode.FAILURES
    return ExitCode.SUCCESS


def setup_logging(level: str = "INFO", fmt: str = "rich") -> None:
    """Configure root logging on standard error."""
    handler: logging.Handler
    if fmt == "plain":
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    else:
        handler = RichHandler(console=err_console, show_path=False, markup=False)
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)


class PassThroughCommand(click.Command):
    """Command whose arguments after `--` are kept aside for the solutions."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        if "--" in args:
            index = args.index("--")
            ctx.meta[PASSTHROUGH_KEY] = args[index + 1 :]
            args = args[:index]
        return super().parse_args(ctx, args)


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    sys.exit(ExitCode.CONFIG_ERROR)


def _output_format(as_json: bool, as_jsonl: bool, as_markdown: bool) -> OutputFormat | None:
    chosen = [
        fmt
        for flag, fmt in (
            (as_json, OutputFormat.JSON),
            (as_jsonl, OutputFormat.JSONL),
            (as_markdown, OutputFormat.MARKDOWN),
        )
        if flag
    ]
    if len(chosen) > 1:
        raise click.UsageError("--json, --jsonl and --markdown are mutually exclusive")
    return chosen[0] if chosen else None


def _build_config(
    config_path: Path | None,
    run_overrides: dict[str, Any],
    registry_overrides: dict[str, Any],
) -> HarnessConfig:
    """Merge CLI options over env vars, the config file, and defaults."""
    overrides: dict[str, Any] = {}
    run = {k: v for k, v in run_overrides.items() if v is not None}
    registry = {k: v for k, v in registry_overrides.items() if v}
    if run:
        overrides["run"] = run
    if registry:
        overrides["registry"] = registry

    try:
        return create_config(config_path or get_default_config_path(), overrides)
    except SolbenchError as e:
        _fail(str(e))


@click.group()
@click.version_option(version=__version__, prog_name="solbench")
@click.option("--verbose/--no-verbose", "-v", default=None, help="Enable verbose output")
@click.option("--quiet/--no-quiet", "-q", default=None, help="Suppress non-essential output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool | None, quiet: bool | None) -> None:
    """solbench - run and benchmark solution programs.

    \b
    Modes:
      - single: run each solution once and report its duration
      - bench: calibrate, warm up, and measure each solution repeatedly
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    setup_logging("DEBUG" if verbose else "WARNING" if quiet else "INFO")


def _registry_options(func: Any) -> Any:
    func = click.option(
        "--config",
        "-c",
        "config_path",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="Path to configuration file",
    )(func)
    func = click.option(
        "--root",
        "-r",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Solution root directory (one subdirectory per project)",
    )(func)
    func = click.option(
        "--project",
        "-p",
        "projects",
        multiple=True,
        help="Only include this project (repeatable)",
    )(func)
    return click.argument("names", nargs=-1)(func)


@cli.command(cls=PassThroughCommand)
@_registry_options
@click.option(
    "--bench/--no-bench", "-b", default=None, help="Benchmark instead of running once"
)
@click.option("--json", "as_json", is_flag=True, help="Emit the report as JSON")
@click.option("--jsonl", "as_jsonl", is_flag=True, help="Stream summaries as JSON lines")
@click.option("--markdown", "as_markdown", is_flag=True, help="Emit the report as Markdown")
@click.option("--warmup", type=float, default=None, help="Warmup budget in milliseconds")
@click.option(
    "--time-limit", type=float, default=None, help="Measurement budget in milliseconds"
)
@click.option(
    "--count", "-n", "iterations", type=int, default=None, help="Fixed iteration count"
)
@click.option(
    "--isolation",
    type=click.Choice([m.value for m in IsolationMode]),
    default=None,
    help="Process per repetition, or let the solution repeat itself",
)
@click.option("--workers", "-j", type=int, default=None, help="Solutions run concurrently")
@click.option("--run-timeout", type=float, default=None, help="Per-run timeout in seconds")
@click.option(
    "--global-timeout", type=float, default=None, help="Whole-run timeout in seconds"
)
@click.option(
    "--verify-output/--no-verify-output",
    default=None,
    help="Fail a benchmark whose answer changes between repetitions",
)
@click.option(
    "--production/--no-production", default=None, help="Suppress diagnostic output"
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also save the report (.json, .jsonl or .md)",
)
@click.pass_context
def run(
    ctx: click.Context,
    names: tuple[str, ...],
    projects: tuple[str, ...],
    root: Path | None,
    config_path: Path | None,
    bench: bool | None,
    as_json: bool,
    as_jsonl: bool,
    as_markdown: bool,
    warmup: float | None,
    time_limit: float | None,
    iterations: int | None,
    isolation: str | None,
    workers: int | None,
    run_timeout: float | None,
    global_timeout: float | None,
    verify_output: bool | None,
    production: bool | None,
    output: Path | None,
) -> None:
    """Run or benchmark solutions.

    Arguments after `--` are forwarded verbatim to every solution.

    \b
    Examples:
        solbench run --root solutions
        solbench run -r solutions -p 2022 d01 d02 --bench
        solbench run -r solutions --bench --warmup 200 --time-limit 500 --json
        solbench run -r solutions -j 4 -- --input small.txt
    """
    verbose = ctx.obj.get("verbose")
    quiet = ctx.obj.get("quiet")
    output_format = _output_format(as_json, as_jsonl, as_markdown)
    passthrough = ctx.meta.get(PASSTHROUGH_KEY)

    config = _build_config(
        config_path,
        {
            "bench": bench,
            "verbose": verbose,
            "quiet": quiet,
            "production": production,
            "output_format": output_format.value if output_format else None,
            "warmup": warmup / 1000 if warmup is not None else None,
            "time_limit": time_limit / 1000 if time_limit is not None else None,
            "iterations": iterations,
            "isolation": isolation,
            "workers": workers,
            "run_timeout": run_timeout,
            "global_timeout": global_timeout,
            "verify_output": verify_output,
            "args": passthrough,
        },
        {
            "root": str(root) if root is not None else None,
            "projects": list(projects),
            "names": list(names),
        },
    )
    run_config = config.run

    level = config.logging.level
    if run_config.verbose:
        level = "DEBUG"
    elif run_config.production:
        level = "WARNING"
    setup_logging(level, config.logging.format)

    reporter = Reporter(
        console=console,
        verbosity=run_config.verbosity,
        output_format=run_config.output_format,
        production=run_config.production,
    )
    if (
        run_config.output_format == OutputFormat.NARRATIVE
        and run_config.verbosity != Verbosity.QUIET
        and not run_config.production
    ):
        console.print(f"[bold blue]solbench v{__version__}[/bold blue] ({run_config.mode.value})")

    runner = SolutionRunner(run_config, reporter=reporter)
    try:
        report = runner.run(config.registry.to_registry())
    except SolbenchError as e:
        _fail(str(e))

    reporter.render(report)
    if output is not None:
        path = save_report(report, output)
        if reporter.output_format == OutputFormat.NARRATIVE and not run_config.production:
            console.print(f"\n[dim]Report saved to: {path}[/dim]")

    sys.exit(exit_code_for(report))


@cli.command(name="list")
@_registry_options
@click.option("--json", "as_json", is_flag=True, help="Emit the solutions as JSON")
def list_solutions(
    names: tuple[str, ...],
    projects: tuple[str, ...],
    root: Path | None,
    config_path: Path | None,
    as_json: bool,
) -> None:
    """List the solutions a run would execute.

    \b
    Examples:
        solbench list --root solutions
        solbench list -r solutions -p 2023 --json
    """
    config = _build_config(
        config_path,
        {},
        {
            "root": str(root) if root is not None else None,
            "projects": list(projects),
            "names": list(names),
        },
    )

    try:
        refs = config.registry.to_registry().refs()
    except SolbenchError as e:
        _fail(str(e))

    if as_json:
        click.echo(json.dumps([ref.model_dump(mode="json") for ref in refs], indent=2))
        return

    table = Table(title="Solutions", show_header=True, header_style="bold")
    table.add_column("Project", style="cyan")
    table.add_column("Solution")
    table.add_column("Command", style="dim")
    for ref in refs:
        table.add_row(ref.project, ref.solution, " ".join(ref.command))

    console.print(table)
    console.print(f"\n{len(refs)} solution(s)")


@cli.command()
@click.argument(
    "reports",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--json", "as_json", is_flag=True, help="Emit the merged report as JSON")
@click.option(
    "--markdown", "as_markdown", is_flag=True, help="Emit the merged report as Markdown"
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Save the merged report (.json, .jsonl or .md)",
)
@click.pass_context
def merge(
    ctx: click.Context,
    reports: tuple[Path, ...],
    as_json: bool,
    as_markdown: bool,
    output: Path | None,
) -> None:
    """Merge saved structured reports into one.

    \b
    Examples:
        solbench merge part1.json part2.jsonl
        solbench merge results/*.json -o combined.md
    """
    output_format = _output_format(as_json, False, as_markdown) or OutputFormat.NARRATIVE

    loaded: list[GlobalReport] = []
    for path in reports:
        try:
            loaded.append(load_report(path))
        except (OSError, ValueError) as e:
            _fail(f"cannot load report {path}: {e}")

    try:
        merged = ResultsAggregator.combine(loaded)
    except ValueError as e:
        _fail(str(e))

    verbosity = Verbosity.VERBOSE if ctx.obj.get("verbose") else Verbosity.NORMAL
    if ctx.obj.get("quiet"):
        verbosity = Verbosity.QUIET
    Reporter(console=console, verbosity=verbosity, output_format=output_format).render(merged)

    if output is not None:
        save_report(merged, output)

    sys.exit(exit_code_for(merged))


@cli.command()
def info() -> None:
    """Display information about solbench."""
    console.print(
        Panel.fit(
            f"[bold blue]solbench v{__version__}[/bold blue]\n\n"
            "[dim]Solution runner and adaptive micro-benchmark harness[/dim]",
            title="About",
        )
    )

    console.print("\n[bold]Run Modes:[/bold]")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Mode")
    table.add_column("Description")
    table.add_row("single", "Run each solution once and report its duration")
    table.add_row("bench", "Probe, warm up, then measure within a time limit")
    table.add_row("bench --isolation in_process", "Let solutions repeat themselves in-process")
    console.print(table)

    console.print("\n[bold]Exit Codes:[/bold]")
    for code in ExitCode:
        console.print(f"  {code.value}  {code.name.lower().replace('_', ' ')}")

    console.print("\n[bold]Quick Start:[/bold]")
    console.print("  $ solbench list --root solutions")
    console.print("  $ solbench run --root solutions --bench")
    console.print("  $ solbench run -r solutions --json -o report.json")
    console.print("  $ solbench merge report.json other.json")


if __name__ == "__main__":
    cli()
