"""ANSI colors, output helpers, fragment rendering."""

from __future__ import annotations

import sys
from typing import Iterable

from rich.console import Console
from rich.text import Text
from rich.theme import Theme

from llm_runner.formatting import Fragment, Style
from llm_runner.state import config


# ── Rich console ────────────────────────────────────────────────────────────

FRAGMENT_THEME = Theme({
    "plain": "none",
    "meta": "dim",
    "tool_call": "cyan",
    "tool_result": "dim",
    "thinking": "magenta",
    "error": "bold red",
    "warning": "yellow",
    "diff_added": "green",
    "diff_removed": "red",
    "diff_hunk": "cyan",
})


def make_console(file=None) -> Console:
    return Console(file=file, theme=FRAGMENT_THEME, highlight=False, soft_wrap=True)


console = make_console()


class TerminalSink:
    """Writes fragments as they arrive; each one is flushed immediately."""

    def __init__(self, target: Console | None = None):
        self.console = target or console

    def write(self, fragments: Iterable[Fragment]):
        for frag in fragments:
            if not frag.text:
                continue
            self.console.print(Text(frag.text, style=frag.style.value), end="")
            self.console.file.flush()


class ListSink:
    """Collects fragments instead of printing them."""

    def __init__(self):
        self.fragments: list[Fragment] = []

    def write(self, fragments: Iterable[Fragment]):
        self.fragments.extend(fragments)

    @property
    def text(self) -> str:
        return "".join(f.text for f in self.fragments)

    def styled(self, style: Style) -> list[Fragment]:
        return [f for f in self.fragments if f.style is style]


# ── ANSI Colors ─────────────────────────────────────────────────────────────

class C:
    CYAN    = "\033[1;36m"
    DIM     = "\033[2m"
    YELLOW  = "\033[1;33m"
    GREEN   = "\033[1;32m"
    RED     = "\033[1;31m"
    BOLD    = "\033[1m"
    MAGENTA = "\033[1;35m"
    RESET   = "\033[0m"


# ── Output helpers ──────────────────────────────────────────────────────────

def dim(msg: str):
    print(f"  {C.DIM}{msg}{C.RESET}", flush=True)


def info(msg: str):
    print(msg, flush=True)


def error(msg: str):
    print(f"  {C.RED}[Error] {msg}{C.RESET}", file=sys.stderr, flush=True)


def success(msg: str):
    print(f"  {C.GREEN}{msg}{C.RESET}", flush=True)


def section(title: str):
    line = "=" * 44
    print(f"\n{line}\n  {title}\n{line}\n", flush=True)


def dbg(msg: str):
    if config.debug:
        print(f"{C.YELLOW}[DEBUG] {msg}{C.RESET}", file=sys.stderr, flush=True)


def dbg_block(label: str, content: str):
    if config.debug:
        preview = content[:500] + ("..." if len(content) > 500 else "")
        print(f"{C.YELLOW}── {label} ──{C.RESET}", file=sys.stderr, flush=True)
        print(f"{C.DIM}{preview}{C.RESET}", file=sys.stderr, flush=True)
