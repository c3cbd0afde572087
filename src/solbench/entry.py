"""Solution-side entrypoint registration.

Wraps a Python solution so that it honours the harness invocation contract:
run plainly it prints its answer; with `--bench` it benchmarks itself
in-process using the same calibration loop as the harness, and with `--json`
it streams its diagnostics and samples as protocol lines.

Example:
    >>> from solbench import entry
    >>>
    >>> @entry(expect="42")
    ... def solve():
    ...     return 6 * 7
    >>>
    >>> if __name__ == "__main__":
    ...     solve.main()
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import click

from solbench.errors import SolutionError
from solbench.models.solution import RunOutcome, RunStatus, SolutionRef
from solbench.runner.calibrator import BenchmarkCalibrator
from solbench.runner.config import (
    DEFAULT_FLOOR_RESOLUTION,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TIME_LIMIT,
    DEFAULT_WARMUP,
)
from solbench.runner.protocol import MessageKind, SampleReport, encode_message, encode_report
from solbench.runner.report import format_duration
from solbench.runner.statistics import summarize_durations

logger = logging.getLogger(__name__)


class AnswerMismatch(ValueError):
    """The solution returned something other than its expected answer."""


class SolutionEntry:
    """A registered solution function.

    Attributes:
        func: The solution. Its return value, as a string, is the answer.
        expect: Known answer; a run printing anything else fails.
        name: Solution identifier used in diagnostics.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        expect: str | None = None,
        name: str | None = None,
    ) -> None:
        self.func = func
        self.expect = None if expect is None else str(expect).strip()
        self.name = name or Path(sys.argv[0]).stem or func.__name__
        self.__doc__ = func.__doc__
        self.__name__ = func.__name__

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.func(*args, **kwargs)

    def solve(self, args: Sequence[str] = ()) -> str:
        """Compute the answer and check it against `expect`.

        Raises:
            AnswerMismatch: If the answer differs from the expected one.
        """
        result = self.func(*args)
        answer = "" if result is None else str(result).strip()
        if self.expect is not None and answer != self.expect:
            raise AnswerMismatch(f"answer {answer!r} does not match expected {self.expect!r}")
        return answer

    def run_once(self, args: Sequence[str] = ()) -> RunOutcome:
        """Run the solution once in this process, timing only the call."""
        start = time.perf_counter()
        try:
            answer = self.solve(args)
        except Exception as e:
            return RunOutcome(
                status=RunStatus.FAILED,
                stderr=f"{type(e).__name__}: {e}",
                duration=time.perf_counter() - start,
                exit_code=1,
            )
        return RunOutcome(
            status=RunStatus.SUCCESS,
            stdout=answer,
            duration=time.perf_counter() - start,
            exit_code=0,
        )

    @property
    def ref(self) -> SolutionRef:
        script = Path(sys.argv[0]).resolve()
        return SolutionRef(
            project=script.parent.name or "solution",
            solution=self.name,
            command=(sys.executable, str(script)),
        )

    def command(self) -> click.Command:
        """Build the click command implementing the invocation contract."""

        @click.command(
            name=self.name,
            help=self.__doc__,
            context_settings={"ignore_unknown_options": True},
        )
        @click.option("--bench", is_flag=True, help="Benchmark the solution in-process")
        @click.option("--verbose", "-v", is_flag=True, help="Show informational messages")
        @click.option("--json", "as_json", is_flag=True, help="Emit protocol JSON lines")
        @click.option(
            "--warmup",
            type=click.FloatRange(min=0.0),
            default=DEFAULT_WARMUP * 1000,
            show_default=True,
            help="Warmup budget in milliseconds",
        )
        @click.option(
            "--time-limit",
            type=click.FloatRange(min=0.0, min_open=True),
            default=DEFAULT_TIME_LIMIT * 1000,
            show_default=True,
            help="Measurement budget in milliseconds",
        )
        @click.option(
            "--floor-resolution",
            type=click.FloatRange(min=0.0, min_open=True),
            default=DEFAULT_FLOOR_RESOLUTION * 1000,
            show_default=True,
            help="Smallest per-run cost assumed, in milliseconds",
        )
        @click.option(
            "--max-iterations",
            type=click.IntRange(min=1),
            default=DEFAULT_MAX_ITERATIONS,
            show_default=True,
            help="Upper bound on the derived iteration count",
        )
        @click.option(
            "--count", type=click.IntRange(min=1), default=None, help="Fixed iteration count"
        )
        @click.option(
            "--verify", is_flag=True, help="Fail if a measured answer differs from the probe's"
        )
        @click.argument("args", nargs=-1, type=click.UNPROCESSED)
        def main(
            bench: bool,
            verbose: bool,
            as_json: bool,
            warmup: float,
            time_limit: float,
            floor_resolution: float,
            max_iterations: int,
            count: int | None,
            verify: bool,
            args: tuple[str, ...],
        ) -> None:
            if not bench:
                try:
                    answer = self.solve(args)
                except AnswerMismatch as e:
                    click.echo(f"{self.name}: {e}", err=True)
                    sys.exit(1)
                click.echo(answer)
                return

            calibrator = BenchmarkCalibrator(
                warmup=warmup / 1000,
                time_limit=time_limit / 1000,
                iterations=count,
                floor_resolution=floor_resolution / 1000,
                max_iterations=max_iterations,
                verify_output=verify,
            )
            self._bench(calibrator, args, verbose=verbose, as_json=as_json)

        return main

    def _emit(self, kind: MessageKind, output: str, *, as_json: bool, verbose: bool) -> None:
        if as_json:
            click.echo(encode_message(kind, output))
        elif kind == MessageKind.ERROR or verbose:
            click.echo(output, err=True)

    def _bench(
        self,
        calibrator: BenchmarkCalibrator,
        args: Sequence[str],
        *,
        verbose: bool,
        as_json: bool,
    ) -> None:
        self._emit(
            MessageKind.INFO,
            f"warming up ({calibrator.warmup * 1000:g}ms), "
            f"measuring ({calibrator.time_limit * 1000:g}ms)...",
            as_json=as_json,
            verbose=verbose,
        )
        try:
            result = calibrator.run(self.ref, lambda: self.run_once(args))
        except SolutionError as e:
            self._emit(
                MessageKind.ERROR, f"{e.kind}: {e.detail}", as_json=as_json, verbose=verbose
            )
            sys.exit(1)

        if as_json:
            report = SampleReport(
                samples=list(result.durations),
                output=result.output,
                warmup_iterations=result.warmup_iterations,
            )
            click.echo(encode_report(report))
            return

        stats = summarize_durations(result.durations)
        click.echo(result.output)
        click.echo(
            f"{self.name}: {stats.iterations} iteration(s), "
            f"mean {format_duration(stats.mean)}, median {format_duration(stats.median)}, "
            f"min {format_duration(stats.min)}, max {format_duration(stats.max)}",
            err=True,
        )

    def main(self, argv: Sequence[str] | None = None) -> None:
        """Parse the command line and run or benchmark the solution."""
        self.command().main(
            args=list(argv) if argv is not None else None,
            prog_name=self.name,
        )


def entry(
    func: Callable[..., Any] | None = None,
    *,
    expect: str | int | None = None,
    name: str | None = None,
) -> Any:
    """Register a function as a solution entrypoint.

    Usable bare (`@entry`) or with options (`@entry(expect=42)`).
    """

    def decorator(f: Callable[..., Any]) -> SolutionEntry:
        return SolutionEntry(f, expect=None if expect is None else str(expect), name=name)

    if func is not None:
        return decorator(func)
    return decorator
