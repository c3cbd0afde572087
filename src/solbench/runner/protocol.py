"""JSON-lines protocol between an in-process benchmark and the harness.

A solution benchmarking itself writes one JSON object per line:

    {"type": "message", "data": {"kind": "info", "output": "warming up (400ms)..."}}
    {"type": "report", "data": {"samples": [0.0012, 0.0011], "output": "42"}}

Lines that are not protocol objects are kept as informational messages.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field, ValidationError


class LineType(str, Enum):
    MESSAGE = "message"
    REPORT = "report"


class MessageKind(str, Enum):
    INFO = "info"
    ERROR = "error"


class Message(BaseModel):
    """A diagnostic line emitted by a solution."""

    kind: MessageKind = MessageKind.INFO
    output: str = ""

    @property
    def is_important(self) -> bool:
        """Errors are shown regardless of verbosity."""
        return self.kind == MessageKind.ERROR


class SampleReport(BaseModel):
    """Samples measured inside the solution's own process.

    Attributes:
        samples: Per-iteration durations in seconds, finite and non-negative.
        output: Answer printed by the solution.
        warmup_iterations: Number of discarded warmup repetitions.
    """

    samples: list[Annotated[float, Field(ge=0.0, allow_inf_nan=False)]] = Field(min_length=1)
    output: str = ""
    warmup_iterations: int = Field(default=0, ge=0)


def encode_message(kind: MessageKind, output: str) -> str:
    return json.dumps(
        {"type": LineType.MESSAGE.value, "data": {"kind": kind.value, "output": output}}
    )


def encode_report(report: SampleReport) -> str:
    return json.dumps({"type": LineType.REPORT.value, "data": report.model_dump(mode="json")})


def decode_lines(text: str) -> tuple[list[Message], SampleReport | None]:
    """Parse a solution's standard output.

    Returns:
        The messages in order and the last valid report, if any.
    """
    messages: list[Message] = []
    report: SampleReport | None = None

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        try:
            value = json.loads(line)
        except json.JSONDecodeError:
            messages.append(Message(output=line))
            continue
        if not isinstance(value, dict):
            messages.append(Message(output=line))
            continue

        kind = value.get("type")
        data = value.get("data")
        try:
            if kind == LineType.REPORT.value:
                report = SampleReport.model_validate(data)
            elif kind == LineType.MESSAGE.value:
                messages.append(Message.model_validate(data))
            else:
                messages.append(Message(output=line))
        except ValidationError as e:
            messages.append(Message(kind=MessageKind.ERROR, output=f"malformed {kind} line: {e}"))

    return messages, report
