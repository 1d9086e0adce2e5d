"""Token usage and cost accounting across prompt invocations."""

from __future__ import annotations

from dataclasses import dataclass, replace

from llm_runner.events import ResultEvent


def _count(usage: dict, key: str) -> int:
    value = usage.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0

    @classmethod
    def from_usage(cls, usage: dict | None) -> TokenUsage:
        """Build from a backend ``usage`` object; missing counts are 0."""
        if not isinstance(usage, dict):
            return cls()
        return cls(
            input_tokens=_count(usage, "input_tokens"),
            output_tokens=_count(usage, "output_tokens"),
            cache_read_tokens=_count(usage, "cache_read_input_tokens"),
            cache_creation_tokens=_count(usage, "cache_creation_input_tokens"),
        )

    @property
    def total(self) -> int:
        return (self.input_tokens + self.output_tokens
                + self.cache_read_tokens + self.cache_creation_tokens)


@dataclass(frozen=True)
class SessionTelemetry:
    """
    Running totals for one orchestration run.

    The caller owns the instance and threads it through successive
    prompt invocations; every fold returns a new value.
    """
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0
    cost_usd: float = 0.0
    duration_ms: int = 0
    steps: int = 0

    @property
    def total_tokens(self) -> int:
        return (self.input_tokens + self.output_tokens
                + self.cache_read_tokens + self.cache_creation_tokens)

    @property
    def io_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def fold(telemetry: SessionTelemetry, event: ResultEvent | None,
         duration_ms: int = 0) -> SessionTelemetry:
    """
    Add one invocation to the totals.

    `duration_ms` is the caller's own wall-clock measurement; the
    backend's self-reported ``duration_ms`` is ignored. A step counts
    even when the backend reported no usage.
    """
    usage = TokenUsage.from_usage(event.usage if event is not None else None)
    cost = event.total_cost_usd if event is not None and event.total_cost_usd else 0.0
    return replace(
        telemetry,
        input_tokens=telemetry.input_tokens + usage.input_tokens,
        output_tokens=telemetry.output_tokens + usage.output_tokens,
        cache_read_tokens=telemetry.cache_read_tokens + usage.cache_read_tokens,
        cache_creation_tokens=telemetry.cache_creation_tokens + usage.cache_creation_tokens,
        cost_usd=telemetry.cost_usd + max(cost, 0.0),
        duration_ms=telemetry.duration_ms + max(int(duration_ms), 0),
        steps=telemetry.steps + 1,
    )


def fold_result(telemetry: SessionTelemetry, result) -> SessionTelemetry:
    """`fold` driven by a finished `PromptResult`."""
    usage = result.token_usage
    event = ResultEvent(
        usage=None if usage is None else {
            "input_tokens": usage.input_tokens,
            "output_tokens": usage.output_tokens,
            "cache_read_input_tokens": usage.cache_read_tokens,
            "cache_creation_input_tokens": usage.cache_creation_tokens,
        },
        total_cost_usd=result.cost_usd,
    )
    return fold(telemetry, event, result.duration_ms)


# ── Formatting ──

def format_number(n: int) -> str:
    return f"{n:,}"


def format_cost(cost: float) -> str:
    return f"${cost:.4f}"


def format_duration(ms: int) -> str:
    seconds = ms // 1000
    minutes = seconds // 60
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{ms / 1000:.1f}s"
