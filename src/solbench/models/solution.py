"""Solution and run data models for solbench.

This module defines the structures produced by discovery and by a single
invocation of a solution:
- SolutionRef: Identity of one solution and how to invoke it
- RunStatus: Terminal status of one invocation
- RunOutcome: Captured output, status and timing of one invocation
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SolutionRef(BaseModel):
    """Identifies one solution.

    Attributes:
        project: Project identifier (e.g. a year).
        solution: Solution identifier within the project (e.g. a day label).
        command: Argument vector used to invoke the solution.
    """

    model_config = ConfigDict(frozen=True)

    project: str = Field(min_length=1, description="Project identifier")
    solution: str = Field(min_length=1, description="Solution identifier")
    command: tuple[str, ...] = Field(description="Argument vector invoking the solution")

    @field_validator("command", mode="before")
    @classmethod
    def validate_command(cls, v: object) -> tuple[str, ...]:
        """Accept any sequence of arguments and require a program."""
        if isinstance(v, str):
            v = (v,)
        command = tuple(str(part) for part in v)  # type: ignore[union-attr]
        if not command or not command[0]:
            raise ValueError("command must name a program to invoke")
        return command

    @property
    def key(self) -> tuple[str, str]:
        """Sort and identity key."""
        return (self.project, self.solution)

    @property
    def label(self) -> str:
        """Human-readable `project/solution` label."""
        return f"{self.project}/{self.solution}"

    def __str__(self) -> str:
        return self.label


class RunStatus(str, Enum):
    """Terminal status of a single invocation.

    Attributes:
        SUCCESS: Exited with status 0.
        FAILED: Exited with a non-zero status.
        CRASHED: Terminated by a signal or otherwise abnormally.
        UNAVAILABLE: Could not be spawned (missing or not executable).
        TIMED_OUT: Killed after exceeding the enforced timeout.
    """

    SUCCESS = "success"
    FAILED = "failed"
    CRASHED = "crashed"
    UNAVAILABLE = "unavailable"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class RunOutcome:
    """Result of one invocation of a solution.

    Attributes:
        status: Terminal status.
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration: Elapsed wall-clock seconds between spawn and exit.
        exit_code: Process exit code, if the process exited normally.
        signal: Terminating signal number, if killed by a signal.
    """

    status: RunStatus
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0
    exit_code: int | None = None
    signal: int | None = None

    @property
    def success(self) -> bool:
        return self.status == RunStatus.SUCCESS

    @property
    def answer(self) -> str:
        """The solution's printed answer, without surrounding whitespace."""
        return self.stdout.strip()

    def describe(self) -> str:
        """Short description of how the invocation ended."""
        if self.status == RunStatus.SUCCESS:
            return "exited successfully"
        if self.status == RunStatus.FAILED:
            return f"exited with status {self.exit_code}"
        if self.status == RunStatus.CRASHED:
            if self.signal is not None:
                return f"terminated by signal {self.signal}"
            return "terminated abnormally"
        if self.status == RunStatus.TIMED_OUT:
            return f"timed out after {self.duration:.3f}s"
        detail = self.stderr.strip()
        return f"could not be started: {detail}" if detail else "could not be started"
