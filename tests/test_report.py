"""Summary and failure report text."""

from __future__ import annotations

import json

from llm_runner.report import failure_lines, running_total_line, summary_lines
from llm_runner.runner import PromptResult, RunStatus
from llm_runner.runtimes import ClaudeRuntime, OpenCodeRuntime
from llm_runner.telemetry import SessionTelemetry


def test_running_total() -> None:
    t = SessionTelemetry(input_tokens=1200, output_tokens=300, cost_usd=0.0213)
    assert running_total_line(t) == "  Running total: $0.0213 | 1,500 tokens"


def test_summary_with_token_tracking() -> None:
    t = SessionTelemetry(input_tokens=1000, output_tokens=500, cache_read_tokens=2000,
                         cost_usd=0.05, duration_ms=61_500, steps=3)
    lines = summary_lines(t, ClaudeRuntime())
    assert "  Total steps:     3" in lines
    assert "  Input tokens:    1,000" in lines
    assert "  Cache read:      2,000" in lines
    assert not any("Cache created" in line for line in lines)
    assert "  Total tokens:    3,500" in lines
    assert "  Total cost:      $0.0500" in lines
    assert "  Total duration:  61.5s" in lines


def test_summary_without_token_tracking() -> None:
    t = SessionTelemetry(duration_ms=2000, steps=1)
    lines = summary_lines(t, OpenCodeRuntime())
    assert lines[-1] == "  (Detailed token usage not available with OpenCode (OLLAMA))"
    assert not any("Input tokens" in line for line in lines)


def test_failure_with_plain_output() -> None:
    result = PromptResult(success=False, output="something broke\n", exit_code=2, duration_ms=5)
    lines = failure_lines(result, "02-tasks.md")
    assert "  ERROR: CLI Failed (exit code 2)" in lines
    assert "Failed during: 02-tasks.md" in lines
    assert "something broke" in lines


def test_failure_with_json_error_document() -> None:
    output = json.dumps({"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}})
    result = PromptResult(success=False, output=output, exit_code=1, duration_ms=5)
    lines = failure_lines(result, "prompt")
    assert "  Type: overloaded_error" in lines
    assert "  Message: Overloaded" in lines


def test_silent_failure_is_called_out() -> None:
    result = PromptResult(success=False, output="", exit_code=1, duration_ms=5)
    lines = failure_lines(result, "prompt")
    assert "  (No error output captured: the CLI exited silently)" in lines


def test_timeout_header() -> None:
    result = PromptResult(success=False, output="partial", exit_code=143,
                          duration_ms=90_000, status=RunStatus.TIMED_OUT)
    lines = failure_lines(result, "prompt")
    assert "  ERROR: CLI Timed out after 1m 30s" in lines
    assert not any("exit code" in line for line in lines)
