"""Tool call / tool result formatting shared by both backend dialects."""

from __future__ import annotations

import difflib
import json
from dataclasses import dataclass
from enum import Enum


class Style(str, Enum):
    PLAIN = "plain"
    META = "meta"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    THINKING = "thinking"
    ERROR = "error"
    WARNING = "warning"
    DIFF_ADDED = "diff_added"
    DIFF_REMOVED = "diff_removed"
    DIFF_HUNK = "diff_hunk"


@dataclass(frozen=True)
class Fragment:
    text: str
    style: Style = Style.PLAIN


RESULT_PREFIX = "    │ "
TOOL_ARROW = "➤"


def truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _first(data: dict, *keys: str, default: str = "") -> str:
    for key in keys:
        value = data.get(key)
        if value:
            return value if isinstance(value, str) else str(value)
    return default


def _first_string_field(data: dict) -> str | None:
    for value in data.values():
        if isinstance(value, str):
            return value
    return None


# ── Tool use ──

def format_tool_use(tool_name: str, tool_input: str | dict | None, display_name: str = "") -> str:
    """One-line description of a tool invocation."""
    if isinstance(tool_input, str):
        try:
            tool_input = json.loads(tool_input) if tool_input.strip() else {}
        except json.JSONDecodeError:
            return tool_name
    if not isinstance(tool_input, dict):
        return tool_name
    data = tool_input

    name = tool_name.lower()
    if name == "read":
        return f"Reading {_first(data, 'file_path', 'path', default='file')}"
    if name == "write":
        return f"Writing {_first(data, 'file_path', 'path', default='file')}"
    if name in ("edit", "strreplace", "multiedit"):
        return f"Editing {_first(data, 'file_path', 'path', default='file')}"
    if name in ("grep", "search"):
        pattern = _first(data, "pattern", "query")
        where = _first(data, "path", "directory", default=".")
        return f'Searching "{truncate(pattern, 40)}" in {where}'
    if name == "glob":
        return f"Finding files: {_first(data, 'pattern', 'glob_pattern', 'globPattern', default='*')}"
    if name in ("ls", "listdir"):
        return f"Listing {_first(data, 'path', 'directory', default='.')}"
    if name in ("bash", "shell"):
        return f"Running: {truncate(_first(data, 'command'), 50)}"
    if name == "websearch":
        return f"Searching web: {_first(data, 'query', 'search_term')}"
    if name == "todoread":
        return "Reading todo list"
    if name in ("todowrite", "updatetodos", "todo"):
        return "Updating todo list"
    if name == "task":
        return f"Task: {truncate(_first(data, 'description'), 40)}"

    label = display_name or tool_name
    value = _first_string_field(data)
    if value is not None:
        return f"{label}: {truncate(value, 40)}"
    return label


def tool_announcement(tool_name: str, tool_input: str | dict | None,
                      display_name: str = "") -> Fragment:
    text = format_tool_use(tool_name, tool_input, display_name)
    return Fragment(f"  {TOOL_ARROW} {text}\n", Style.TOOL_CALL)


# ── Tool results ──
#
# Each extractor turns the unwrapped payload into (style, line) pairs plus
# optional trailer fragments that are never truncated (exit codes).

def unwrap_result(content):
    """Strip a ``{"success": {...}}`` envelope. Returns (payload, is_error)."""
    if isinstance(content, dict):
        if isinstance(content.get("success"), dict):
            return content["success"], False
        if "error" in content and "success" not in content:
            return content["error"], True
    return content, False


def _text_lines(value) -> list[tuple[Style, str]]:
    text = value if isinstance(value, str) else json.dumps(value, indent=2, ensure_ascii=False)
    return [(Style.TOOL_RESULT, line) for line in text.splitlines()]


def _read_lines(payload: dict) -> list[tuple[Style, str]]:
    content = payload.get("content", "")
    if not content:
        return [(Style.META, "(empty file)")] if payload.get("isEmpty") else []
    return _text_lines(content)


def _tree_lines(node: dict, depth: int, out: list[tuple[Style, str]]):
    indent = "  " * depth
    for child in node.get("childrenDirs") or []:
        if not isinstance(child, dict):
            continue
        path = _first(child, "absPath", "name").rstrip("/")
        out.append((Style.TOOL_RESULT, f"{indent}{path.rsplit('/', 1)[-1]}/"))
        _tree_lines(child, depth + 1, out)
    for child in node.get("childrenFiles") or []:
        name = _first(child, "name") if isinstance(child, dict) else str(child)
        out.append((Style.TOOL_RESULT, f"{indent}{name}"))


def _ls_lines(payload: dict) -> list[tuple[Style, str]]:
    root = payload.get("directoryTreeRoot")
    if not isinstance(root, dict):
        return _generic_lines(payload)
    out: list[tuple[Style, str]] = []
    _tree_lines(root, 0, out)
    return out or [(Style.META, "(empty directory)")]


def _grep_lines(payload: dict) -> list[tuple[Style, str]]:
    matches = payload.get("matches")
    if not isinstance(matches, list):
        return _generic_lines(payload)
    out = []
    for m in matches:
        if isinstance(m, dict):
            out.append((Style.TOOL_RESULT, f"{m.get('file', '?')}:{m.get('line', '?')}: {m.get('content', '')}"))
        else:
            out.append((Style.TOOL_RESULT, str(m)))
    return out or [(Style.META, "(no matches)")]


def _shell_lines(payload: dict) -> list[tuple[Style, str]]:
    out = _text_lines(payload.get("stdout") or "")
    stderr = payload.get("stderr") or ""
    if stderr:
        out.extend((Style.ERROR, line) for line in str(stderr).splitlines())
    return out


def _shell_trailer(payload: dict) -> list[Fragment]:
    code = payload.get("exitCode")
    if isinstance(code, int) and not isinstance(code, bool) and code != 0:
        return [Fragment(f"    Exit code: {code}\n", Style.WARNING)]
    return []


def _diff_style(line: str) -> Style:
    if line.startswith("@@"):
        return Style.DIFF_HUNK
    if line.startswith("+"):
        return Style.DIFF_ADDED
    if line.startswith("-"):
        return Style.DIFF_REMOVED
    return Style.TOOL_RESULT


def _edit_lines(payload: dict) -> list[tuple[Style, str]]:
    diff = payload.get("diff")
    if isinstance(diff, str) and diff:
        lines = diff.splitlines()
    elif "old_string" in payload or "new_string" in payload:
        lines = [
            d for d in difflib.unified_diff(
                str(payload.get("old_string", "")).splitlines(),
                str(payload.get("new_string", "")).splitlines(),
                lineterm="", n=1,
            )
            if not d.startswith(("---", "+++"))
        ]
    else:
        return _generic_lines(payload)
    return [(_diff_style(line), line) for line in lines]


def _edit_header(payload: dict) -> list[Fragment]:
    added, removed = payload.get("linesAdded"), payload.get("linesRemoved")
    if isinstance(added, int) and isinstance(removed, int):
        path = _first(payload, "path", "file_path")
        where = f"{path} " if path else ""
        return [Fragment(f"{RESULT_PREFIX}{where}(+{added}/-{removed} lines)\n", Style.META)]
    return []


def _glob_lines(payload: dict) -> list[tuple[Style, str]]:
    files = payload.get("files")
    if not isinstance(files, list):
        return _generic_lines(payload)
    return [(Style.TOOL_RESULT, str(f)) for f in files] or [(Style.META, "(no files)")]


def _write_lines(payload: dict) -> list[tuple[Style, str]]:
    path = _first(payload, "path", "file_path", default="file")
    details = []
    if isinstance(payload.get("linesWritten"), int):
        details.append(f"{payload['linesWritten']} lines")
    if isinstance(payload.get("bytesWritten"), int):
        details.append(f"{payload['bytesWritten']} bytes")
    suffix = f" ({', '.join(details)})" if details else ""
    return [(Style.TOOL_RESULT, f"Wrote {path}{suffix}")]


def _generic_lines(payload) -> list[tuple[Style, str]]:
    if isinstance(payload, dict):
        for key in ("content", "stdout", "text", "output", "message"):
            if isinstance(payload.get(key), str):
                return _text_lines(payload[key])
    return _text_lines(payload)


RESULT_EXTRACTORS = {
    "read": _read_lines,
    "ls": _ls_lines,
    "listdir": _ls_lines,
    "grep": _grep_lines,
    "search": _grep_lines,
    "shell": _shell_lines,
    "bash": _shell_lines,
    "edit": _edit_lines,
    "strreplace": _edit_lines,
    "multiedit": _edit_lines,
    "glob": _glob_lines,
    "write": _write_lines,
}

RESULT_HEADERS = {"edit": _edit_header, "strreplace": _edit_header, "multiedit": _edit_header}
RESULT_TRAILERS = {"shell": _shell_trailer, "bash": _shell_trailer}


def _more_lines(n: int) -> str:
    return f"... ({n} more line{'' if n == 1 else 's'})"


def format_tool_result(content, tool_name: str = "", max_lines: int = 5,
                       is_error: bool = False) -> list[Fragment]:
    """
    Preview of a tool result: the meaningful payload, not the wrapper.

    At most `max_lines` body lines are shown, followed by a
    "... (N more lines)" marker when truncated.
    """
    if content is None or content == "" or content == {}:
        return []

    payload, wrapped_error = unwrap_result(content)
    name = tool_name.lower()

    if is_error or wrapped_error:
        if isinstance(payload, dict):
            payload = _first(payload, "message", "error", "stderr") or json.dumps(payload, ensure_ascii=False)
        lines = [(Style.ERROR, line) for line in _flatten(payload)]
        header: list[Fragment] = []
        trailer: list[Fragment] = []
    elif isinstance(payload, dict):
        lines = RESULT_EXTRACTORS.get(name, _generic_lines)(payload)
        header = RESULT_HEADERS[name](payload) if name in RESULT_HEADERS else []
        trailer = RESULT_TRAILERS[name](payload) if name in RESULT_TRAILERS else []
    else:
        lines = [(Style.TOOL_RESULT, line) for line in _flatten(payload)]
        header, trailer = [], []

    max_lines = max(1, max_lines)
    shown = lines[:max_lines]
    frags = list(header)
    frags.extend(Fragment(f"{RESULT_PREFIX}{line}\n", style) for style, line in shown)
    if len(lines) > max_lines:
        frags.append(Fragment(f"{RESULT_PREFIX}{_more_lines(len(lines) - max_lines)}\n", Style.META))
    frags.extend(trailer)
    return frags


def _flatten(value) -> list[str]:
    """Claude tool_result content: a string or a list of text blocks."""
    if isinstance(value, str):
        return value.splitlines()
    if isinstance(value, list):
        out: list[str] = []
        for item in value:
            if isinstance(item, dict) and item.get("type") == "text":
                out.extend(str(item.get("text", "")).splitlines())
            elif isinstance(item, dict) and item.get("type") == "image":
                out.append("[image]")
            else:
                out.extend(_flatten(item))
        return out
    return json.dumps(value, indent=2, ensure_ascii=False).splitlines()
