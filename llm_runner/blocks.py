"""Per-index state of in-flight content blocks."""

from __future__ import annotations

import json
from dataclasses import dataclass, field


@dataclass
class TrackedBlock:
    kind: str
    tool_name: str = ""
    tool_id: str = ""
    parts: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(self.parts)

    # Tool-use blocks accumulate JSON fragments; same storage, clearer call sites.
    input_json = text

    def input(self) -> dict:
        """Parsed tool input. Only meaningful once the block is closed."""
        raw = self.input_json
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}


class BlockTracker:
    """
    index → TrackedBlock store, owned by one stream.

    Indices are only unique among concurrently open blocks, so `open`
    replaces a stale entry and `close` frees the index for reuse.
    """

    def __init__(self):
        self._blocks: dict[int, TrackedBlock] = {}

    def open(self, index: int, kind: str, tool_name: str = "", tool_id: str = "") -> TrackedBlock:
        block = TrackedBlock(kind=kind, tool_name=tool_name, tool_id=tool_id)
        self._blocks[index] = block
        return block

    def append(self, index: int, fragment: str):
        """Concatenate onto an open block; unknown indices are ignored."""
        block = self._blocks.get(index)
        if block is None:
            return
        block.parts.append(fragment)

    def get(self, index: int) -> TrackedBlock | None:
        return self._blocks.get(index)

    def close(self, index: int) -> TrackedBlock | None:
        return self._blocks.pop(index, None)

    def clear(self) -> list[int]:
        """Drop every open block, returning the indices that were dangling."""
        dangling = sorted(self._blocks)
        self._blocks.clear()
        return dangling

    def __len__(self) -> int:
        return len(self._blocks)

    def __contains__(self, index: int) -> bool:
        return index in self._blocks
