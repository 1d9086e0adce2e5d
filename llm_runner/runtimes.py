"""Backend CLI runtimes: Claude Code, Cursor agent, OpenCode (OLLAMA)."""

from __future__ import annotations

import json
import os
import re
import shutil
import subprocess
import urllib.error
import urllib.request
from dataclasses import dataclass, replace

from llm_runner.runner import PromptOptions, PromptResult, run
from llm_runner.state import clean_env
from llm_runner.ui import dbg


@dataclass(frozen=True)
class Model:
    id: str
    name: str
    description: str = ""


class Runtime:
    name: str = ""
    display_name: str = ""
    command: str = ""
    supports_token_tracking: bool = False

    def build_args(self, prompt: str, options: PromptOptions) -> list[str]:
        raise NotImplementedError

    def extra_env(self) -> dict[str, str]:
        return {}

    def run_prompt(self, prompt: str, options: PromptOptions | None = None, **run_kwargs) -> PromptResult:
        options = options or PromptOptions()
        env = self.extra_env()
        if env:
            options = replace(options, env={**env, **options.env})
        return run(self.command, self.build_args(prompt, options), options, **run_kwargs)

    def list_models(self) -> list[Model]:
        return []

    def is_available(self) -> bool:
        return shutil.which(self.command) is not None


class ClaudeRuntime(Runtime):
    name = "claude"
    display_name = "Claude Code"
    command = "claude"
    supports_token_tracking = True

    MODELS = [
        Model("claude-sonnet-4-20250514", "Claude Sonnet 4", "Balanced performance and cost"),
        Model("claude-opus-4-20250514", "Claude Opus 4", "Most capable model"),
        Model("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", "Previous generation"),
    ]

    def build_args(self, prompt: str, options: PromptOptions) -> list[str]:
        args: list[str] = []
        if options.automated:
            args.extend(["--dangerously-skip-permissions", "-p", "--verbose"])
        if options.model:
            args.extend(["--model", options.model])
        if options.automated:
            args.extend(["--output-format", "stream-json"])
        args.append(prompt)
        return args

    def list_models(self) -> list[Model]:
        # The claude CLI has no models command
        return list(self.MODELS)


class CursorRuntime(Runtime):
    name = "cursor"
    display_name = "Cursor"
    command = "agent"

    FALLBACK_MODELS = [
        Model("claude-sonnet-4-20250514", "Claude Sonnet 4"),
        Model("claude-opus-4-20250514", "Claude Opus 4"),
        Model("gpt-4o", "GPT-4o"),
        Model("o3", "O3"),
    ]

    def build_args(self, prompt: str, options: PromptOptions) -> list[str]:
        args: list[str] = []
        if options.automated:
            args.extend(["-p", "--force", "--output-format", "stream-json"])
        if options.model:
            args.extend(["--model", options.model])
        # Sandbox off so the agent can use the host's authenticated CLIs (gh, ...)
        args.extend(["--sandbox", "disabled"])
        args.append(prompt)
        return args

    def list_models(self) -> list[Model]:
        try:
            result = subprocess.run(
                [self.command, "models"],
                capture_output=True, text=True, timeout=30, env=clean_env(),
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            dbg(f"agent models failed: {e!r}")
            return list(self.FALLBACK_MODELS)
        if result.returncode != 0:
            return list(self.FALLBACK_MODELS)
        return parse_cursor_models(result.stdout)


_MODEL_LINE_PREFIX = re.compile(r"^[\s\d)\-*]*")


def parse_cursor_models(stdout: str) -> list[Model]:
    """Parse ``agent models`` output: ``  8) opus-4.5-thinking - Claude 4.5 Opus``."""
    models = []
    for line in stdout.splitlines():
        if not line or "Available" in line or "---" in line or "Tip:" in line:
            continue
        cleaned = _MODEL_LINE_PREFIX.sub("", line).strip()
        if not cleaned:
            continue
        model_id, _, description = cleaned.partition(" - ")
        model_id, description = model_id.strip(), description.strip()
        if model_id:
            models.append(Model(model_id, description or model_id, description))
    return models


DEFAULT_OLLAMA_HOST = "localhost:11434"


def ollama_host() -> str:
    return os.environ.get("OLLAMA_HOST") or DEFAULT_OLLAMA_HOST


def _ollama_tags(timeout: float = 5) -> dict | None:
    """GET /api/tags from the OLLAMA server, or None if unreachable."""
    url = f"http://{ollama_host()}/api/tags"
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))
    except (urllib.error.URLError, TimeoutError, OSError, ValueError) as e:
        dbg(f"OLLAMA unreachable at {url}: {e!r}")
        return None


class OpenCodeRuntime(Runtime):
    name = "opencode"
    display_name = "OpenCode (OLLAMA)"
    command = "opencode"

    SUGGESTED_MODELS = [
        Model("qwen2.5:7b", "Qwen 2.5 7B", "Fast and efficient for code tasks"),
        Model("deepseek-coder-v2:16b", "DeepSeek Coder V2 16B", "Strong code generation"),
        Model("codellama:7b", "Code Llama 7B", "Meta's code-focused model"),
        Model("mistral:7b", "Mistral 7B", "General purpose model"),
    ]

    def build_args(self, prompt: str, options: PromptOptions) -> list[str]:
        args: list[str] = []
        if options.automated:
            args.append("--non-interactive")
        if options.model:
            args.extend(["--model", options.model])
        args.append(prompt)
        return args

    def extra_env(self) -> dict[str, str]:
        return {"OLLAMA_HOST": ollama_host()}

    def list_models(self) -> list[Model]:
        data = _ollama_tags()
        models = []
        if isinstance(data, dict) and isinstance(data.get("models"), list):
            for m in data["models"]:
                if not isinstance(m, dict) or not m.get("name"):
                    continue
                modified = str(m.get("modified_at") or "")[:10]
                models.append(Model(m["name"], m["name"], f"Modified: {modified}" if modified else ""))
        return models or list(self.SUGGESTED_MODELS)

    def is_available(self) -> bool:
        return super().is_available() and _ollama_tags() is not None


RUNTIMES: dict[str, Runtime] = {
    rt.name: rt for rt in (ClaudeRuntime(), CursorRuntime(), OpenCodeRuntime())
}


def get_runtime(name: str) -> Runtime:
    return RUNTIMES[name]


def all_runtimes() -> list[Runtime]:
    return list(RUNTIMES.values())


def default_runtime() -> Runtime:
    return RUNTIMES["claude"]


def available_runtimes() -> list[Runtime]:
    return [rt for rt in RUNTIMES.values() if rt.is_available()]
