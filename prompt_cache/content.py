"""Content blocks, cache breakpoints and turns.

Blocks form a closed set of variants (text, tool use, tool result). Every
serialization boundary dispatches over all of them and rejects anything
else, so adding a new kind means touching ``block_to_wire`` and
``block_from_wire`` explicitly.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Literal, Optional, Union

Role = Literal["user", "assistant"]
_ROLES = ("user", "assistant")


class CacheTTL(str, Enum):
    """Provider cache lifetimes."""

    SHORT = "5m"
    LONG = "1h"

    @classmethod
    def for_options(cls, use_1h_cache: bool) -> "CacheTTL":
        return cls.LONG if use_1h_cache else cls.SHORT


@dataclass(frozen=True)
class CacheBreakpoint:
    """Marks the end of a cacheable prefix."""
    ttl: CacheTTL = CacheTTL.SHORT

    def to_wire(self) -> dict:
        return {"type": "ephemeral", "ttl": self.ttl.value}

    @classmethod
    def from_wire(cls, data: dict) -> "CacheBreakpoint":
        return cls(ttl=CacheTTL(data.get("ttl", CacheTTL.SHORT.value)))


@dataclass(frozen=True)
class TextBlock:
    text: str
    cache: Optional[CacheBreakpoint] = None


@dataclass(frozen=True)
class ToolUseBlock:
    id: str
    name: str
    input: dict = field(default_factory=dict)
    cache: Optional[CacheBreakpoint] = None


@dataclass(frozen=True)
class ToolResultBlock:
    tool_use_id: str
    content: str = ""
    is_error: bool = False
    cache: Optional[CacheBreakpoint] = None


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


def block_to_wire(block: ContentBlock) -> dict:
    """Serialize a block to the provider's Messages API shape."""
    if isinstance(block, TextBlock):
        data: dict[str, Any] = {"type": "text", "text": block.text}
    elif isinstance(block, ToolUseBlock):
        data = {
            "type": "tool_use", "id": block.id,
            "name": block.name, "input": copy.deepcopy(block.input),
        }
    elif isinstance(block, ToolResultBlock):
        data = {"type": "tool_result", "tool_use_id": block.tool_use_id, "content": block.content}
        if block.is_error:
            data["is_error"] = True
    else:
        raise TypeError(f"Unsupported content block: {type(block).__name__}")

    if block.cache is not None:
        data["cache_control"] = block.cache.to_wire()
    return data


def block_from_wire(data: dict) -> ContentBlock:
    """Parse a wire block. Unknown block types raise ValueError."""
    if not isinstance(data, dict):
        raise ValueError(f"Content block must be an object, got {type(data).__name__}")
    kind = data.get("type")
    cache = CacheBreakpoint.from_wire(data["cache_control"]) if "cache_control" in data else None

    if kind == "text":
        return TextBlock(text=data["text"], cache=cache)
    if kind == "tool_use":
        return ToolUseBlock(
            id=data["id"], name=data["name"], input=data.get("input") or {}, cache=cache,
        )
    if kind == "tool_result":
        content = data.get("content", "")
        if not isinstance(content, str):
            content = json.dumps(content)
        return ToolResultBlock(
            tool_use_id=data["tool_use_id"],
            content=content,
            is_error=bool(data.get("is_error", False)),
            cache=cache,
        )
    raise ValueError(f"Unknown content block type: {kind!r}")


def is_cache_marker(block: ContentBlock) -> bool:
    """True for the synthetic empty text block that only carries a breakpoint."""
    return isinstance(block, TextBlock) and block.text == "" and block.cache is not None


def without_cache(block: ContentBlock) -> ContentBlock:
    if block.cache is None:
        return block
    return replace(block, cache=None)


def detach(block: ContentBlock) -> ContentBlock:
    """Copy of ``block`` sharing no mutable state with the original."""
    if isinstance(block, ToolUseBlock):
        return replace(block, input=copy.deepcopy(block.input))
    return block


@dataclass(frozen=True)
class Turn:
    """One message in a conversation. Content is stored as an immutable tuple."""
    role: Role
    content: tuple = ()

    def __post_init__(self):
        if self.role not in _ROLES:
            raise ValueError(f"Invalid role '{self.role}'. Expected one of {_ROLES}")
        object.__setattr__(self, "content", tuple(self.content))
        if not self.content:
            raise ValueError("A turn needs at least one content block")

    @classmethod
    def user_text(cls, text: str) -> "Turn":
        return cls(role="user", content=(TextBlock(text=text),))

    def detached(self) -> "Turn":
        return Turn(role=self.role, content=tuple(detach(b) for b in self.content))

    @property
    def text(self) -> str:
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock) and b.text)

    @property
    def breakpoint_count(self) -> int:
        return sum(1 for b in self.content if b.cache is not None)

    def to_wire(self) -> dict:
        return {"role": self.role, "content": [block_to_wire(b) for b in self.content]}

    @classmethod
    def from_wire(cls, data: dict) -> "Turn":
        content = data["content"]
        if isinstance(content, str):
            blocks = (TextBlock(text=content),)
        else:
            blocks = tuple(block_from_wire(b) for b in content)
        return cls(role=data["role"], content=blocks)


def canonical_json(obj: Any) -> bytes:
    """Deterministic compact JSON encoding used for request bodies."""
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
