"""Shared fixtures for llm-runner tests."""

from __future__ import annotations

import json
import sys

import pytest

from llm_runner import state
from llm_runner.state import config


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Point user config at a temp dir and reset `config` after each test."""
    base = tmp_path / ".llm-runner"
    monkeypatch.setattr(state, "BASE_DIR", str(base))
    monkeypatch.setattr(state, "CONFIG_FILE", str(base / "config.json"))
    yield base
    config.__dict__.clear()


def child_script(stdout_lines=(), exit_code: int = 0, stderr: str = "", sleep: float = 0) -> str:
    """Python source for a fake backend that prints lines then exits."""
    return "\n".join([
        "import sys, time",
        f"for line in {list(stdout_lines)!r}:",
        "    sys.stdout.write(line + '\\n')",
        "    sys.stdout.flush()",
        f"sys.stderr.write({stderr!r})",
        "sys.stderr.flush()",
        f"time.sleep({sleep!r})",
        f"sys.exit({exit_code})",
    ])


@pytest.fixture
def python_exe() -> str:
    return sys.executable


@pytest.fixture
def read_tool_stream() -> list[str]:
    """Claude-dialect stream announcing one Read tool split over two deltas."""
    return [
        json.dumps({"type": "content_block_start", "index": 0,
                    "content_block": {"type": "tool_use", "name": "Read"}}),
        json.dumps({"type": "content_block_delta", "index": 0,
                    "delta": {"type": "input_json_delta", "partial_json": '{"path"'}}),
        json.dumps({"type": "content_block_delta", "index": 0,
                    "delta": {"type": "input_json_delta", "partial_json": ':"/a.ts"}'}}),
        json.dumps({"type": "content_block_stop", "index": 0}),
    ]


@pytest.fixture
def make_child():
    return child_script
