"""Decoder tests: every line maps to exactly one event, never raises."""

from __future__ import annotations

import json

import pytest

from llm_runner.events import (
    BlockDelta, BlockStart, BlockStop, ErrorEvent, LifecycleEvent,
    MessageEvent, ResultEvent, SystemEvent, ThinkingEvent, ToolCallEvent,
    Unrecognized, decode_line, normalize_tool_key, split_camel,
)


@pytest.mark.parametrize("line", [
    "Welcome to Claude Code v1.2.3",
    "",
    "{",
    '{"type": "content_block_delta", ',
    "[1, 2, 3]",
    "null",
    "42",
    "\x1b[2mdim banner\x1b[0m",
])
def test_non_json_lines_are_unrecognized_verbatim(line: str) -> None:
    event = decode_line(line)
    assert isinstance(event, Unrecognized)
    assert event.raw == line
    assert event.data is None
    assert not event.is_json


@pytest.mark.parametrize("payload", [
    {"type": "rate_limit_event"},
    {"type": 7},
    {"no_type": True},
    {"type": "tool_call", "subtype": "started", "tool_call": {}},
    {"type": "thinking", "subtype": "unknown"},
])
def test_unknown_json_is_unrecognized(payload: dict) -> None:
    line = json.dumps(payload)
    event = decode_line(line)
    assert isinstance(event, Unrecognized)
    assert event.is_json
    assert event.raw == line


def test_system_init() -> None:
    event = decode_line(json.dumps({
        "type": "system", "subtype": "init",
        "session_id": "0123456789abcdef", "model": "claude-opus",
    }))
    assert event == SystemEvent(subtype="init", session_id="0123456789abcdef", model="claude-opus")


def test_stream_event_envelope_is_unwrapped() -> None:
    event = decode_line(json.dumps({
        "type": "stream_event",
        "event": {"type": "content_block_delta", "index": 2,
                  "delta": {"type": "text_delta", "text": "hi"}},
    }))
    assert event == BlockDelta(index=2, kind="text_delta", text="hi")


def test_block_start_tool_use() -> None:
    event = decode_line(json.dumps({
        "type": "content_block_start", "index": 1,
        "content_block": {"type": "tool_use", "name": "Bash", "id": "toolu_1"},
    }))
    assert event == BlockStart(index=1, kind="tool_use", tool_name="Bash", tool_id="toolu_1")


def test_block_start_tool_result_keeps_tool_use_id() -> None:
    event = decode_line(json.dumps({
        "type": "content_block_start", "index": 0,
        "content_block": {"type": "tool_result", "tool_use_id": "toolu_9"},
    }))
    assert isinstance(event, BlockStart)
    assert event.tool_id == "toolu_9"


def test_block_deltas_pick_the_right_payload() -> None:
    thinking = decode_line(json.dumps({
        "type": "content_block_delta", "index": 0,
        "delta": {"type": "thinking_delta", "thinking": "hmm"},
    }))
    partial = decode_line(json.dumps({
        "type": "content_block_delta", "index": 3,
        "delta": {"type": "input_json_delta", "partial_json": '{"a"'},
    }))
    assert thinking == BlockDelta(index=0, kind="thinking_delta", text="hmm")
    assert partial == BlockDelta(index=3, kind="input_json_delta", text='{"a"')


def test_missing_fields_default_instead_of_failing() -> None:
    assert decode_line('{"type": "content_block_delta"}') == BlockDelta(index=-1, kind="", text="")
    assert decode_line('{"type": "content_block_stop"}') == BlockStop(index=-1)
    assert decode_line('{"type": "result"}') == ResultEvent()
    assert decode_line('{"type": "assistant"}') == MessageEvent(role="assistant")


def test_cursor_tool_call_is_normalized() -> None:
    event = decode_line(json.dumps({
        "type": "tool_call", "subtype": "completed", "call_id": "c1",
        "tool_call": {"strReplaceToolCall": {
            "args": {"path": "a.py"},
            "result": {"success": {"diff": "@@ -1 +1 @@"}},
            "exitCode": 2,
        }},
    }))
    assert isinstance(event, ToolCallEvent)
    assert event.phase == "completed"
    assert event.tool_name == "StrReplace"
    assert event.display_name == "Str Replace"
    assert event.call_id == "c1"
    assert event.args == {"path": "a.py"}
    assert event.result == {"success": {"diff": "@@ -1 +1 @@"}}
    assert event.exit_code == 2
    assert event.siblings == ()


def test_cursor_tool_call_keeps_every_key() -> None:
    event = decode_line(json.dumps({
        "type": "tool_call", "subtype": "started", "call_id": "c1",
        "tool_call": {"readToolCall": {"args": {"path": "a"}},
                      "lsToolCall": {"args": {"path": "src"}}},
    }))
    assert isinstance(event, ToolCallEvent)
    assert (event.tool_name, event.call_id) == ("Read", "c1")
    assert [(s.tool_name, s.call_id, s.args) for s in event.siblings] == [
        ("Ls", "c1#1", {"path": "src"}),
    ]


def test_cursor_thinking_events() -> None:
    assert decode_line('{"type": "thinking", "subtype": "delta", "text": "x"}') == ThinkingEvent("delta", "x")
    assert decode_line('{"type": "thinking", "subtype": "completed"}') == ThinkingEvent("completed", "")


def test_result_with_usage_and_cost() -> None:
    event = decode_line(json.dumps({
        "type": "result", "subtype": "success", "duration_ms": 1500,
        "usage": {"input_tokens": 10, "output_tokens": 4},
        "total_cost_usd": 0.01, "result": "done",
    }))
    assert event == ResultEvent(
        duration_ms=1500, usage={"input_tokens": 10, "output_tokens": 4},
        total_cost_usd=0.01, is_error=False, text="done",
    )


def test_error_message_variants() -> None:
    assert decode_line('{"type": "error", "message": "boom"}') == ErrorEvent("boom")
    assert decode_line('{"type": "error", "error": {"message": "nested"}}') == ErrorEvent("nested")


def test_message_string_content_becomes_text_block() -> None:
    event = decode_line(json.dumps({"type": "user", "message": {"content": "hello"}}))
    assert event == MessageEvent(role="user", content=[{"type": "text", "text": "hello"}])


def test_lifecycle_events_carry_usage() -> None:
    event = decode_line(json.dumps({
        "type": "message_start", "message": {"usage": {"input_tokens": 3}},
    }))
    assert event == LifecycleEvent(kind="message_start", usage={"input_tokens": 3})
    assert decode_line('{"type": "ping"}') == LifecycleEvent(kind="ping")


@pytest.mark.parametrize("key, expected", [
    ("readToolCall", ("Read", "Read")),
    ("strReplaceToolCall", ("StrReplace", "Str Replace")),
    ("lsToolCall", ("Ls", "Ls")),
    ("ToolCall", ("Tool", "Tool")),
    ("customThing", ("CustomThing", "Custom Thing")),
])
def test_normalize_tool_key(key: str, expected: tuple[str, str]) -> None:
    assert normalize_tool_key(key) == expected


def test_split_camel_keeps_acronyms() -> None:
    assert split_camel("LSTool") == ["LS", "Tool"]
    assert split_camel("strReplace") == ["str", "Replace"]
