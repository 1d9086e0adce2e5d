"""Stream parser for Claude Code / Cursor stream-json events."""

from __future__ import annotations

import json

from llm_runner.blocks import BlockTracker
from llm_runner.events import (
    BlockDelta, BlockStart, BlockStop, DecodedEvent, ErrorEvent,
    LifecycleEvent, MessageEvent, ResultEvent, SystemEvent, ThinkingEvent,
    ToolCallEvent, Unrecognized, decode_line,
)
from llm_runner.formatting import (
    Fragment, Style, format_tool_result, tool_announcement, unwrap_result,
)
from llm_runner.state import config
from llm_runner.ui import dbg


THINKING_LABEL = "[Thinking] "


class StreamParser:
    """
    Folds one invocation's events into renderable fragments.

    ``feed_line`` is the whole reducer: it decodes a line, updates the
    block tracker and thinking/line state, and returns the fragments to
    show for that line. Nothing is printed here, so a canned sequence
    of lines can be fed straight in without a child process.
    """

    def __init__(self, max_result_lines: int | None = None, verbose: bool | None = None):
        self.tracker = BlockTracker()
        self.max_result_lines = config.max_result_lines if max_result_lines is None else max_result_lines
        self.verbose = config.verbose if verbose is None else verbose

        self.session_id: str = ""
        self.result: ResultEvent | None = None

        # Counters
        self.tool_count: int = 0
        self.thinking_count: int = 0

        # Dedup: --verbose mode resends full messages with tool_use blocks
        # that were already announced from content_block_stop.
        self.seen_tool_ids: set[str] = set()
        self.tool_names: dict[str, str] = {}   # tool_use_id / call_id → name

        self._thinking_open = False
        self._mid_line = False
        self._streamed_text = False
        self._streamed_thinking = False

    # ── Line state ──

    def _inline(self, text: str, style: Style) -> list[Fragment]:
        if not text:
            return []
        self._mid_line = not text.endswith("\n")
        return [Fragment(text, style)]

    def _end_line(self) -> list[Fragment]:
        if not self._mid_line:
            return []
        self._mid_line = False
        return [Fragment("\n", Style.PLAIN)]

    def _close_thinking(self) -> list[Fragment]:
        if not self._thinking_open:
            return []
        self._thinking_open = False
        self.thinking_count += 1
        return self._end_line()

    def _break(self) -> list[Fragment]:
        """Terminate any open thinking run or partial line."""
        return self._close_thinking() + self._end_line()

    def _line(self, text: str, style: Style) -> list[Fragment]:
        return self._break() + [Fragment(text if text.endswith("\n") else text + "\n", style)]

    def _thinking(self, text: str) -> list[Fragment]:
        if not text:
            return []
        frags: list[Fragment] = []
        if not self._thinking_open:
            frags += self._end_line()
            frags.append(Fragment(THINKING_LABEL, Style.THINKING))
            self._thinking_open = True
        return frags + self._inline(text, Style.THINKING)

    def _announce(self, name: str, tool_input, tool_id: str = "",
                  display_name: str = "") -> list[Fragment]:
        if tool_id:
            if tool_id in self.seen_tool_ids:
                return []
            self.seen_tool_ids.add(tool_id)
            self.tool_names[tool_id] = name
        self.tool_count += 1
        return self._break() + [tool_announcement(name or "tool", tool_input, display_name)]

    def _result_preview(self, content, name: str, is_error: bool = False) -> list[Fragment]:
        preview = format_tool_result(content, name, self.max_result_lines, is_error=is_error)
        return self._break() + preview if preview else []

    # ── Event handling ──

    def feed_line(self, raw_line: str) -> list[Fragment]:
        line = raw_line.rstrip("\r\n")
        event = decode_line(line)
        frags: list[Fragment] = []
        if self.verbose and not (isinstance(event, Unrecognized) and not event.is_json):
            frags += self._line(f"[VERBOSE] {line}", Style.META)
        if config.debug:
            preview = line if len(line) <= 200 else line[:200] + "..."
            dbg(f"[{type(event).__name__}] {preview}")
        return frags + self.feed(event, line)

    def feed_lines(self, lines) -> list[Fragment]:
        frags: list[Fragment] = []
        for line in lines:
            frags += self.feed_line(line)
        return frags

    def feed(self, event: DecodedEvent, raw: str = "") -> list[Fragment]:
        """Render one decoded event. A failing renderer degrades to the raw line."""
        handler = self._HANDLERS.get(type(event))
        if handler is None:
            return []
        try:
            return handler(self, event)
        except Exception as e:  # one bad event must not stop the stream
            dbg(f"render failed for {type(event).__name__}: {e!r}")
            return self._line(raw or repr(event), Style.PLAIN)

    def finish(self) -> list[Fragment]:
        """End of stream: close open output, drop blocks that never stopped."""
        dangling = self.tracker.clear()
        if dangling:
            dbg(f"stream ended with open blocks: {dangling}")
        return self._break()

    def _on_system(self, event: SystemEvent) -> list[Fragment]:
        if event.subtype != "init" or not event.session_id or self.session_id:
            return []
        self.session_id = event.session_id
        return self._line(f"  Session: {event.session_id[:8]}...", Style.META)

    def _on_block_start(self, event: BlockStart) -> list[Fragment]:
        self.tracker.open(event.index, event.kind, event.tool_name, event.tool_id)
        return []

    def _on_block_delta(self, event: BlockDelta) -> list[Fragment]:
        self.tracker.append(event.index, event.text)
        if event.kind == "text_delta":
            self._streamed_text = True
            return self._close_thinking() + self._inline(event.text, Style.PLAIN)
        if event.kind == "thinking_delta":
            self._streamed_thinking = True
            return self._thinking(event.text)
        return []

    def _on_block_stop(self, event: BlockStop) -> list[Fragment]:
        block = self.tracker.close(event.index)
        if block is None:
            return []
        if block.kind == "tool_use":
            return self._announce(block.tool_name, block.input(), block.tool_id)
        if block.kind == "thinking":
            return self._close_thinking()
        if block.kind == "tool_result":
            name = self.tool_names.get(block.tool_id, "")
            return self._result_preview(block.text, name)
        return []

    def _on_thinking(self, event: ThinkingEvent) -> list[Fragment]:
        if event.phase == "delta":
            self._streamed_thinking = True
            return self._thinking(event.text)
        return self._close_thinking()

    def _on_tool_call(self, event: ToolCallEvent) -> list[Fragment]:
        frags: list[Fragment] = []
        for call in (event, *event.siblings):
            frags += self._tool_call(call)
        return frags

    def _tool_call(self, event: ToolCallEvent) -> list[Fragment]:
        if event.phase == "started":
            return self._announce(event.tool_name, event.args, event.call_id, event.display_name)

        frags: list[Fragment] = []
        if event.call_id and event.call_id not in self.seen_tool_ids:
            frags += self._announce(event.tool_name, event.args, event.call_id, event.display_name)
        if event.result is not None:
            frags += self._result_preview(event.result, event.tool_name)
        payload, _ = unwrap_result(event.result)
        reported = isinstance(payload, dict) and "exitCode" in payload
        if event.exit_code and not reported:
            frags += self._line(f"    Exit code: {event.exit_code}", Style.WARNING)
        return frags

    def _on_message(self, event: MessageEvent) -> list[Fragment]:
        frags: list[Fragment] = []
        skip_text, skip_thinking = self._streamed_text, self._streamed_thinking
        if event.role == "assistant":
            self._streamed_text = self._streamed_thinking = False

        for block in event.content:
            btype = block.get("type")
            if btype == "text":
                text = block.get("text")
                if text and isinstance(text, str) and not skip_text:
                    frags += self._line(text, Style.PLAIN)
            elif btype == "thinking" and not skip_thinking:
                text = block.get("thinking") or block.get("text")
                if text and isinstance(text, str):
                    frags += self._thinking(text) + self._close_thinking()
            elif btype == "tool_use":
                tool_input = block.get("input")
                frags += self._announce(
                    str(block.get("name") or ""),
                    tool_input if isinstance(tool_input, (dict, str)) else {},
                    str(block.get("id") or ""),
                )
            elif btype == "tool_result":
                tool_id = str(block.get("tool_use_id") or "")
                frags += self._result_preview(
                    block.get("content"),
                    self.tool_names.get(tool_id, ""),
                    is_error=block.get("is_error") is True,
                )
        return frags

    def _on_result(self, event: ResultEvent) -> list[Fragment]:
        self.result = event
        frags = self._break()
        if event.is_error and event.text:
            frags += self._line(f"  Error: {event.text}", Style.ERROR)
        if event.duration_ms:
            frags += self._line(f"  Completed in {event.duration_ms / 1000:.1f}s", Style.META)
        return frags

    def _on_error(self, event: ErrorEvent) -> list[Fragment]:
        if not event.message:
            return []
        return self._line(f"  Error: {event.message}", Style.ERROR)

    def _on_lifecycle(self, event: LifecycleEvent) -> list[Fragment]:
        return []

    def _on_unrecognized(self, event: Unrecognized) -> list[Fragment]:
        frags: list[Fragment] = []
        if event.is_json and self.verbose:
            frags += self._line(f"[VERBOSE] Unknown event type: {event.event_type}", Style.WARNING)
        return frags + self._line(event.raw, Style.PLAIN)

    _HANDLERS = {
        SystemEvent: _on_system,
        BlockStart: _on_block_start,
        BlockDelta: _on_block_delta,
        BlockStop: _on_block_stop,
        ThinkingEvent: _on_thinking,
        ToolCallEvent: _on_tool_call,
        MessageEvent: _on_message,
        ResultEvent: _on_result,
        ErrorEvent: _on_error,
        LifecycleEvent: _on_lifecycle,
        Unrecognized: _on_unrecognized,
    }

    def debug_state(self) -> str:
        return json.dumps({
            "session_id": self.session_id,
            "open_blocks": len(self.tracker),
            "tools": self.tool_count,
            "thinking": self.thinking_count,
        }, indent=2)
