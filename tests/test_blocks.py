"""Block tracker tests."""

from __future__ import annotations

from llm_runner.blocks import BlockTracker


def test_append_concatenates_in_order() -> None:
    tracker = BlockTracker()
    tracker.open(3, "text")
    for fragment in ["a", "b", "c"]:
        tracker.append(3, fragment)
    block = tracker.close(3)
    assert block is not None
    assert block.text == "abc"


def test_append_to_unknown_index_is_a_noop() -> None:
    tracker = BlockTracker()
    tracker.append(7, "lost")
    assert len(tracker) == 0
    assert tracker.close(7) is None


def test_close_is_one_shot() -> None:
    tracker = BlockTracker()
    tracker.open(0, "tool_use", "Read")
    assert tracker.close(0) is not None
    assert tracker.close(0) is None


def test_open_replaces_stale_entry() -> None:
    tracker = BlockTracker()
    tracker.open(0, "text")
    tracker.append(0, "old")
    tracker.open(0, "tool_use", "Bash", "toolu_2")
    block = tracker.close(0)
    assert block.kind == "tool_use"
    assert block.tool_name == "Bash"
    assert block.tool_id == "toolu_2"
    assert block.text == ""


def test_index_is_reusable_after_close() -> None:
    tracker = BlockTracker()
    tracker.open(0, "text")
    tracker.append(0, "first")
    tracker.close(0)
    tracker.open(0, "text")
    tracker.append(0, "second")
    assert tracker.close(0).text == "second"


def test_tool_input_parses_only_complete_json() -> None:
    tracker = BlockTracker()
    tracker.open(1, "tool_use", "Read")
    tracker.append(1, '{"file_path"')
    assert tracker.get(1).input() == {}
    tracker.append(1, ': "/tmp/x"}')
    block = tracker.close(1)
    assert block.input_json == '{"file_path": "/tmp/x"}'
    assert block.input() == {"file_path": "/tmp/x"}


def test_non_object_input_is_empty_dict() -> None:
    tracker = BlockTracker()
    tracker.open(0, "tool_use", "X")
    tracker.append(0, "[1, 2]")
    assert tracker.close(0).input() == {}


def test_clear_reports_dangling_indices() -> None:
    tracker = BlockTracker()
    tracker.open(2, "text")
    tracker.open(0, "thinking")
    assert 2 in tracker
    assert tracker.clear() == [0, 2]
    assert len(tracker) == 0
