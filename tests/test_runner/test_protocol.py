"""Unit tests for the in-process benchmark protocol."""

from __future__ import annotations

import json

from solbench.runner.protocol import (
    MessageKind,
    SampleReport,
    decode_lines,
    encode_message,
    encode_report,
)


class TestEncoding:
    """Tests for protocol line encoding."""

    def test_message_line(self) -> None:
        line = json.loads(encode_message(MessageKind.ERROR, "bad input"))
        assert line == {"type": "message", "data": {"kind": "error", "output": "bad input"}}

    def test_report_line(self) -> None:
        line = json.loads(encode_report(SampleReport(samples=[0.5, 0.25], output="42")))
        assert line["type"] == "report"
        assert line["data"]["samples"] == [0.5, 0.25]
        assert line["data"]["output"] == "42"


class TestDecoding:
    """Tests for decode_lines."""

    def test_messages_and_report(self) -> None:
        text = "\n".join(
            [
                encode_message(MessageKind.INFO, "warming up"),
                encode_message(MessageKind.ERROR, "careful"),
                encode_report(SampleReport(samples=[0.001, 0.002], output="7", warmup_iterations=3)),
            ]
        )
        messages, report = decode_lines(text)

        assert [m.output for m in messages] == ["warming up", "careful"]
        assert [m.is_important for m in messages] == [False, True]
        assert report is not None
        assert report.samples == [0.001, 0.002]
        assert report.warmup_iterations == 3

    def test_plain_lines_become_info(self) -> None:
        messages, report = decode_lines("hello\n\n[1, 2]\n")
        assert [m.output for m in messages] == ["hello", "[1, 2]"]
        assert all(m.kind == MessageKind.INFO for m in messages)
        assert report is None

    def test_unknown_type_kept_as_info(self) -> None:
        messages, _ = decode_lines('{"type": "progress", "data": 3}')
        assert messages[0].kind == MessageKind.INFO

    def test_malformed_report_is_error(self) -> None:
        messages, report = decode_lines('{"type": "report", "data": {"samples": []}}')
        assert report is None
        assert messages[0].is_important
        assert "malformed report" in messages[0].output

    def test_last_report_wins(self) -> None:
        text = "\n".join(
            [
                encode_report(SampleReport(samples=[1.0])),
                encode_report(SampleReport(samples=[2.0])),
            ]
        )
        _, report = decode_lines(text)
        assert report is not None
        assert report.samples == [2.0]

    def test_negative_or_non_finite_samples_rejected(self) -> None:
        for samples in ("[-0.5, 1.0]", "[NaN]", "[1.0, -Infinity]"):
            messages, report = decode_lines(
                '{"type": "report", "data": {"samples": %s}}' % samples
            )
            assert report is None
            assert messages[0].is_important
