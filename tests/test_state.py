"""User config persistence."""

from __future__ import annotations

import json
import os

from llm_runner import state
from llm_runner.state import (
    clean_env, config, init_user_config, load_user_config, save_user_config,
)


def test_missing_config_is_empty() -> None:
    assert load_user_config() == {}
    assert init_user_config() is False
    assert config.runtime == "claude"
    assert config.max_result_lines == 5


def test_save_then_init_applies_defaults() -> None:
    save_user_config({"runtime": "cursor", "model": "gpt-4o", "max_result_lines": 8,
                      "timeout": 600, "unrelated": True})
    with open(state.CONFIG_FILE, encoding="utf-8") as f:
        saved = json.load(f)
    assert saved == {"runtime": "cursor", "model": "gpt-4o", "max_result_lines": 8, "timeout": 600}

    assert init_user_config() is True
    assert config.runtime == "cursor"
    assert config.model == "gpt-4o"
    assert config.max_result_lines == 8
    assert config.timeout == 600.0


def test_save_merges_with_existing_values() -> None:
    save_user_config({"runtime": "opencode"})
    save_user_config({"model": "qwen2.5:7b"})
    assert load_user_config() == {"runtime": "opencode", "model": "qwen2.5:7b"}
    leftovers = [n for n in os.listdir(state.BASE_DIR) if n.endswith(".tmp")]
    assert leftovers == []


def test_invalid_values_are_ignored() -> None:
    os.makedirs(state.BASE_DIR)
    with open(state.CONFIG_FILE, "w", encoding="utf-8") as f:
        json.dump({"runtime": 3, "max_result_lines": 0, "timeout": True, "model": ""}, f)
    assert init_user_config() is False
    assert config.max_result_lines == 5
    assert config.timeout is None


def test_corrupt_config_is_ignored() -> None:
    os.makedirs(state.BASE_DIR)
    with open(state.CONFIG_FILE, "w", encoding="utf-8") as f:
        f.write("{not json")
    assert load_user_config() == {}


def test_clean_env_strips_nesting_marker(monkeypatch) -> None:
    monkeypatch.setenv("CLAUDECODE", "1")
    monkeypatch.setenv("KEEP_ME", "x")
    env = clean_env()
    assert "CLAUDECODE" not in env
    assert env["KEEP_ME"] == "x"
