"""Decode one line of backend output into a typed event.

Two stream-json dialects are understood:

* Claude Code: ``system`` / ``content_block_start|delta|stop`` /
  ``assistant`` / ``user`` / ``result`` (optionally wrapped in a
  ``stream_event`` envelope).
* Cursor ``agent``: ``system`` / ``thinking`` / ``tool_call`` /
  ``assistant`` / ``result`` / ``error``.

`decode_line` never raises. Anything it cannot map, including text that
is not JSON at all, comes back as `Unrecognized`.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from typing import Any, Union


@dataclass(frozen=True)
class SystemEvent:
    subtype: str = ""
    session_id: str = ""
    model: str = ""


@dataclass(frozen=True)
class BlockStart:
    index: int
    kind: str                 # text / tool_use / tool_result / thinking
    tool_name: str = ""
    tool_id: str = ""


@dataclass(frozen=True)
class BlockDelta:
    index: int
    kind: str                 # text_delta / thinking_delta / input_json_delta
    text: str = ""


@dataclass(frozen=True)
class BlockStop:
    index: int


@dataclass(frozen=True)
class ThinkingEvent:
    phase: str                # delta / completed
    text: str = ""


@dataclass(frozen=True)
class ToolCallEvent:
    phase: str                # started / completed
    tool_name: str
    display_name: str
    call_id: str = ""
    args: dict = field(default_factory=dict)
    result: Any = None
    exit_code: int | None = None
    siblings: tuple[ToolCallEvent, ...] = ()


@dataclass(frozen=True)
class MessageEvent:
    role: str                 # assistant / user
    content: list = field(default_factory=list)
    model: str = ""


@dataclass(frozen=True)
class ResultEvent:
    duration_ms: int = 0
    usage: dict | None = None
    total_cost_usd: float | None = None
    is_error: bool = False
    text: str = ""


@dataclass(frozen=True)
class ErrorEvent:
    message: str = ""


@dataclass(frozen=True)
class LifecycleEvent:
    """Claude message bookkeeping (message_start, ping, ...). Never rendered."""
    kind: str
    usage: dict | None = None


@dataclass(frozen=True)
class Unrecognized:
    raw: str
    data: dict | None = None  # None: the line was not a JSON object

    @property
    def is_json(self) -> bool:
        return self.data is not None

    @property
    def event_type(self) -> str:
        if self.data is None:
            return ""
        return str(self.data.get("type", ""))


DecodedEvent = Union[
    SystemEvent, BlockStart, BlockDelta, BlockStop, ThinkingEvent,
    ToolCallEvent, MessageEvent, ResultEvent, ErrorEvent, LifecycleEvent,
    Unrecognized,
]

LIFECYCLE_TYPES = ("message_start", "message_delta", "message_stop", "ping")

TOOL_KEY_SUFFIX = "ToolCall"

_CAMEL_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]?[a-z]+|[A-Z]+|\d+")


# ── Field coercion ──

def _dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _str(value) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _int(value, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return default


def _float_or_none(value) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


# ── Tool names ──

def split_camel(name: str) -> list[str]:
    """``strReplace`` → ``["str", "Replace"]``, ``LSTool`` → ``["LS", "Tool"]``."""
    return _CAMEL_RE.findall(name)


def normalize_tool_key(key: str) -> tuple[str, str]:
    """
    Map a Cursor dynamic key to (canonical name, display name).

        readToolCall       → ("Read", "Read")
        strReplaceToolCall → ("StrReplace", "Str Replace")
        lsToolCall         → ("Ls", "Ls")
    """
    stem = key[:-len(TOOL_KEY_SUFFIX)] if key.endswith(TOOL_KEY_SUFFIX) else key
    if not stem:
        return "Tool", "Tool"
    canonical = stem[0].upper() + stem[1:]
    words = split_camel(canonical) or [canonical]
    display = " ".join(w[0].upper() + w[1:] for w in words)
    return canonical, display


# ── Per-dialect adapters ──

def _tool_call(phase: str, key, value, call_id: str) -> ToolCallEvent:
    payload = _dict(value)
    canonical, display = normalize_tool_key(_str(key))
    exit_code = payload.get("exitCode")
    return ToolCallEvent(
        phase=phase,
        tool_name=canonical,
        display_name=display,
        call_id=call_id,
        args=_dict(payload.get("args")),
        result=payload.get("result"),
        exit_code=exit_code if isinstance(exit_code, int) and not isinstance(exit_code, bool) else None,
    )


def _decode_tool_call(data: dict, raw: str) -> DecodedEvent:
    tool_call = _dict(data.get("tool_call"))
    phase = _str(data.get("subtype"))
    if not tool_call or phase not in ("started", "completed"):
        return Unrecognized(raw, data)
    # Dynamic keys, e.g. {"readToolCall": {"args": {...}}}. Usually one; any
    # further keys ride along as siblings with a derived call id.
    call_id = _str(data.get("call_id"))
    calls = [
        _tool_call(phase, key, value, call_id if i == 0 or not call_id else f"{call_id}#{i}")
        for i, (key, value) in enumerate(tool_call.items())
    ]
    return replace(calls[0], siblings=tuple(calls[1:]))


def _decode_block_start(data: dict) -> BlockStart:
    block = _dict(data.get("content_block"))
    return BlockStart(
        index=_int(data.get("index"), -1),
        kind=_str(block.get("type")),
        tool_name=_str(block.get("name")),
        tool_id=_str(block.get("id") or block.get("tool_use_id")),
    )


def _decode_block_delta(data: dict) -> BlockDelta:
    delta = _dict(data.get("delta"))
    kind = _str(delta.get("type"))
    if kind == "input_json_delta":
        text = _str(delta.get("partial_json"))
    elif kind == "thinking_delta":
        text = _str(delta.get("thinking") or delta.get("text"))
    else:
        text = _str(delta.get("text"))
    return BlockDelta(index=_int(data.get("index"), -1), kind=kind, text=text)


def _decode_message(data: dict, role: str) -> MessageEvent:
    message = _dict(data.get("message"))
    content = message.get("content")
    if isinstance(content, str):
        content = [{"type": "text", "text": content}]
    elif not isinstance(content, list):
        content = []
    return MessageEvent(
        role=role,
        content=[b for b in content if isinstance(b, dict)],
        model=_str(message.get("model")),
    )


def _decode_result(data: dict) -> ResultEvent:
    usage = data.get("usage")
    return ResultEvent(
        duration_ms=_int(data.get("duration_ms")),
        usage=usage if isinstance(usage, dict) else None,
        total_cost_usd=_float_or_none(data.get("total_cost_usd")),
        is_error=data.get("is_error") is True,
        text=_str(data.get("result")),
    )


def _decode_error(data: dict) -> ErrorEvent:
    message = data.get("message")
    if not message:
        err = data.get("error")
        message = _dict(err).get("message") if isinstance(err, dict) else err
    return ErrorEvent(message=_str(message))


def _decode_object(data: dict, raw: str) -> DecodedEvent:
    if data.get("type") == "stream_event" and isinstance(data.get("event"), dict):
        data = data["event"]

    etype = data.get("type")

    if etype == "system":
        return SystemEvent(
            subtype=_str(data.get("subtype")),
            session_id=_str(data.get("session_id")),
            model=_str(data.get("model")),
        )
    if etype == "content_block_start":
        return _decode_block_start(data)
    if etype == "content_block_delta":
        return _decode_block_delta(data)
    if etype == "content_block_stop":
        return BlockStop(index=_int(data.get("index"), -1))
    if etype == "thinking":
        phase = _str(data.get("subtype"))
        if phase not in ("delta", "completed"):
            return Unrecognized(raw, data)
        return ThinkingEvent(phase=phase, text=_str(data.get("text")))
    if etype == "tool_call":
        return _decode_tool_call(data, raw)
    if etype in ("assistant", "user"):
        return _decode_message(data, etype)
    if etype == "result":
        return _decode_result(data)
    if etype == "error":
        return _decode_error(data)
    if etype in LIFECYCLE_TYPES:
        usage = data.get("usage")
        if usage is None:
            usage = _dict(data.get("message")).get("usage")
        return LifecycleEvent(kind=etype, usage=usage if isinstance(usage, dict) else None)
    return Unrecognized(raw, data)


def decode_line(raw_line: str) -> DecodedEvent:
    """Return exactly one event for one line of output (no trailing newline)."""
    try:
        data = json.loads(raw_line)
    except (json.JSONDecodeError, RecursionError):
        return Unrecognized(raw_line)
    if not isinstance(data, dict):
        return Unrecognized(raw_line)
    try:
        return _decode_object(data, raw_line)
    except (TypeError, ValueError, AttributeError, StopIteration):
        return Unrecognized(raw_line, data)
