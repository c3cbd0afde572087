"""Execution driver for solbench.

Runs one solution once in its own child process, captures everything it
writes, and times the invocation from the moment the child has been spawned
until it exits. Process isolation means no state is shared between
invocations.
"""

from __future__ import annotations

import logging
import subprocess  # nosec B404 - solutions are executed by design
import threading
import time
from collections.abc import Sequence

import psutil

from solbench.errors import RunCrashed, RunFailed, RunTimedOut, RunUnavailable, SolutionError
from solbench.models.solution import RunOutcome, RunStatus, SolutionRef

logger = logging.getLogger(__name__)


def kill_process_tree(pid: int) -> None:
    """Kill a process and all of its descendants, ignoring ones already gone."""
    try:
        parent = psutil.Process(pid)
    except psutil.Error:
        return

    for child in parent.children(recursive=True):
        try:
            child.kill()
        except psutil.Error:
            pass
    try:
        parent.kill()
    except psutil.Error:
        pass


class ProcessTracker:
    """Registry of live child processes.

    The orchestrator calls `kill_all` on interrupt or global timeout so that
    no child outlives the run. Once cancelled, new spawns are refused.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._processes: dict[int, subprocess.Popen[bytes]] = {}
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> int:
        with self._lock:
            return len(self._processes)

    def register(self, process: subprocess.Popen[bytes]) -> bool:
        """Track a process; returns False (and kills it) after cancellation."""
        with self._lock:
            if not self._cancelled:
                self._processes[process.pid] = process
                return True
        kill_process_tree(process.pid)
        return False

    def unregister(self, process: subprocess.Popen[bytes]) -> None:
        with self._lock:
            self._processes.pop(process.pid, None)

    def kill_all(self) -> int:
        """Cancel and kill every tracked process. Returns how many were killed."""
        with self._lock:
            self._cancelled = True
            processes = list(self._processes.values())
        for process in processes:
            logger.debug("Killing child process %d", process.pid)
            kill_process_tree(process.pid)
        return len(processes)


def raise_for_outcome(ref: SolutionRef, outcome: RunOutcome) -> RunOutcome:
    """Return a successful outcome unchanged, raise the matching error otherwise.

    Raises:
        RunFailed: Non-zero exit.
        RunCrashed: Signal or abnormal termination.
        RunUnavailable: The executable could not be spawned.
        RunTimedOut: The enforced timeout was exceeded.
    """
    errors: dict[RunStatus, type[SolutionError]] = {
        RunStatus.FAILED: RunFailed,
        RunStatus.CRASHED: RunCrashed,
        RunStatus.UNAVAILABLE: RunUnavailable,
        RunStatus.TIMED_OUT: RunTimedOut,
    }
    error = errors.get(outcome.status)
    if error is None:
        return outcome

    message = outcome.describe()
    stderr = outcome.stderr.strip()
    if stderr and outcome.status != RunStatus.UNAVAILABLE:
        message = f"{message}: {stderr.splitlines()[-1]}"
    raise error(ref, message, outcome)


def _decode(data: bytes | None) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


class ExecutionDriver:
    """Runs solutions once, one child process per invocation.

    Example:
        >>> driver = ExecutionDriver()
        >>> outcome = driver.run(ref, args=["--part", "1"], timeout=5.0)
        >>> outcome.status, outcome.duration
    """

    def __init__(
        self,
        tracker: ProcessTracker | None = None,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            tracker: Process registry used for cancellation.
            env: Environment for the children (inherits the parent's if None).
            cwd: Working directory for the children.
        """
        self.tracker = tracker or ProcessTracker()
        self.env = env
        self.cwd = cwd

    def run(
        self,
        ref: SolutionRef,
        args: Sequence[str] = (),
        timeout: float | None = None,
    ) -> RunOutcome:
        """Invoke a solution once.

        Args:
            ref: Solution to run.
            args: Arguments appended verbatim to the solution's command.
            timeout: Seconds after which the child is killed.

        Returns:
            RunOutcome describing the invocation. Failures are reported through
            the outcome's status, never raised.
        """
        argv = [*ref.command, *args]
        logger.debug("Spawning %s: %s", ref.label, " ".join(argv))

        try:
            process = subprocess.Popen(  # nosec B603 - argv comes from the registry
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self.env,
                cwd=self.cwd,
            )
        except OSError as e:
            logger.debug("Cannot spawn %s: %s", ref.label, e)
            return RunOutcome(status=RunStatus.UNAVAILABLE, stderr=str(e))

        start = time.perf_counter()
        if not self.tracker.register(process):
            process.communicate()
            return RunOutcome(
                status=RunStatus.CRASHED,
                stderr="run cancelled",
                duration=time.perf_counter() - start,
            )

        try:
            stdout, stderr = process.communicate(timeout=timeout)
            duration = time.perf_counter() - start
        except subprocess.TimeoutExpired:
            duration = time.perf_counter() - start
            kill_process_tree(process.pid)
            stdout, stderr = process.communicate()
            logger.debug("%s timed out after %.3fs", ref.label, duration)
            return RunOutcome(
                status=RunStatus.TIMED_OUT,
                stdout=_decode(stdout),
                stderr=_decode(stderr),
                duration=duration,
            )
        except BaseException:
            kill_process_tree(process.pid)
            process.wait()
            raise
        finally:
            self.tracker.unregister(process)

        code = process.returncode
        if code == 0:
            status = RunStatus.SUCCESS
        elif code < 0:
            status = RunStatus.CRASHED
        else:
            status = RunStatus.FAILED

        logger.debug("%s exited with %d after %.6fs", ref.label, code, duration)
        return RunOutcome(
            status=status,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            duration=duration,
            exit_code=code if code >= 0 else None,
            signal=-code if code < 0 else None,
        )

    def run_checked(
        self,
        ref: SolutionRef,
        args: Sequence[str] = (),
        timeout: float | None = None,
    ) -> RunOutcome:
        """Invoke a solution once and raise if it did not succeed."""
        return raise_for_outcome(ref, self.run(ref, args=args, timeout=timeout))
