"""Global configuration and user defaults."""

from __future__ import annotations

import json
import os
import tempfile

BASE_DIR = os.path.join(os.path.expanduser("~"), ".llm-runner")
CONFIG_FILE = os.path.join(BASE_DIR, "config.json")


class Config:
    debug: bool = False
    verbose: bool = False
    max_result_lines: int = 5
    timeout: float | None = None     # seconds; None = no limit
    runtime: str = "claude"          # "claude", "cursor" or "opencode"
    model: str = ""                  # empty = let the CLI choose


config = Config()

# Keys that may be persisted in config.json
USER_CONFIG_KEYS = ("runtime", "model", "max_result_lines", "timeout")


def load_user_config() -> dict:
    """Load user config from ~/.llm-runner/config.json."""
    if not os.path.isfile(CONFIG_FILE):
        return {}
    try:
        with open(CONFIG_FILE, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def save_user_config(data: dict):
    """Save user config to ~/.llm-runner/config.json (atomic write)."""
    os.makedirs(BASE_DIR, exist_ok=True)
    existing = load_user_config()
    existing.update({k: v for k, v in data.items() if k in USER_CONFIG_KEYS})
    # Write to temp file then atomically rename to prevent data loss on crash
    fd, tmp_path = tempfile.mkstemp(dir=BASE_DIR, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(existing, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, CONFIG_FILE)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def init_user_config() -> bool:
    """Apply saved defaults to `config`. Returns True if anything was loaded."""
    user_cfg = load_user_config()
    applied = False
    if isinstance(user_cfg.get("runtime"), str) and user_cfg["runtime"]:
        config.runtime = user_cfg["runtime"]
        applied = True
    if isinstance(user_cfg.get("model"), str) and user_cfg["model"]:
        config.model = user_cfg["model"]
        applied = True
    max_lines = user_cfg.get("max_result_lines")
    if isinstance(max_lines, int) and not isinstance(max_lines, bool) and max_lines > 0:
        config.max_result_lines = max_lines
        applied = True
    timeout = user_cfg.get("timeout")
    if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout > 0:
        config.timeout = float(timeout)
        applied = True
    return applied


def clean_env() -> dict:
    """Environment without CLAUDECODE to prevent nested-session error."""
    return {k: v for k, v in os.environ.items() if k != "CLAUDECODE"}
