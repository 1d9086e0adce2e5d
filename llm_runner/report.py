"""Human-readable step summaries and failure reports."""

from __future__ import annotations

import json

from llm_runner.runner import PromptResult
from llm_runner.telemetry import (
    SessionTelemetry, format_cost, format_duration, format_number,
)

RULE = "=" * 44
THIN_RULE = "-" * 44


def running_total_line(telemetry: SessionTelemetry) -> str:
    return (f"  Running total: {format_cost(telemetry.cost_usd)} | "
            f"{format_number(telemetry.io_tokens)} tokens")


def summary_lines(telemetry: SessionTelemetry, runtime) -> list[str]:
    """Token usage summary for the end of an orchestration run."""
    total_secs = f"{telemetry.duration_ms / 1000:.1f}s"
    lines = [f"  Total steps:     {telemetry.steps}"]

    if not runtime.supports_token_tracking:
        lines += [
            f"  Total duration:  {total_secs}",
            "",
            f"  (Detailed token usage not available with {runtime.display_name})",
        ]
        return lines

    lines += [
        f"  Input tokens:    {format_number(telemetry.input_tokens)}",
        f"  Output tokens:   {format_number(telemetry.output_tokens)}",
    ]
    if telemetry.cache_read_tokens > 0:
        lines.append(f"  Cache read:      {format_number(telemetry.cache_read_tokens)}")
    if telemetry.cache_creation_tokens > 0:
        lines.append(f"  Cache created:   {format_number(telemetry.cache_creation_tokens)}")
    lines += [
        "  --------------------------",
        f"  Total tokens:    {format_number(telemetry.total_tokens)}",
        f"  Total cost:      {format_cost(telemetry.cost_usd)}",
        f"  Total duration:  {total_secs}",
    ]
    return lines


def _error_details(output: str) -> list[str]:
    """Pull type/message out of a JSON error document, else echo the output."""
    text = output.strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return [output.rstrip("\n")]
    err = data.get("error") if isinstance(data, dict) else None
    if isinstance(err, dict) and err.get("message"):
        return [f"  Type: {err.get('type', 'unknown')}", f"  Message: {err['message']}"]
    return [output.rstrip("\n")]


def failure_lines(result: PromptResult, phase: str) -> list[str]:
    if result.timed_out:
        header = f"  ERROR: CLI Timed out after {format_duration(result.duration_ms)}"
    else:
        header = f"  ERROR: CLI Failed (exit code {result.exit_code})"
    lines = ["", RULE, header, RULE, "", f"Failed during: {phase}", "",
             "Error details:", THIN_RULE]
    if result.output.strip():
        lines += _error_details(result.output)
    else:
        lines.append("  (No error output captured: the CLI exited silently)")
    lines += [THIN_RULE, ""]
    return lines
