"""Cache-aware request assembly.

Block order is what the provider matches cached prefixes against, so it is
fixed:

    system preamble [bp]
    large document [bp]          (optional)
    tools ... last tool [bp]     (optional)
    history turns                (unmodified)
    user text, empty marker [bp]

The trailing empty marker makes everything up to and including the new user
message the next cached prefix without touching the user's own text. The
conversation store strips it again before the turn is persisted.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from prompt_cache.cache_config import (
    CacheConfig,
    GenerationConfig,
    PromptCacheConfig,
    StaticAssets,
)
from prompt_cache.content import (
    CacheBreakpoint,
    CacheTTL,
    TextBlock,
    Turn,
    block_to_wire,
    canonical_json,
)

if TYPE_CHECKING:
    from prompt_cache.conversation import Transcript

logger = logging.getLogger(__name__)

# Breakpoints removed first when the ceiling is exceeded under the "drop"
# policy. The user-turn marker is never dropped.
_DROP_ORDER = ("document", "tools", "system")


class BreakpointLimitError(ValueError):
    """Raised when a request would carry more breakpoints than allowed."""


@dataclass(frozen=True)
class RequestOptions:
    """Per-call options. Not persisted."""
    use_1h_cache: bool = False
    include_large_document: bool = False
    include_tools: bool = False
    reset_conversation: bool = False

    @property
    def ttl(self) -> CacheTTL:
        return CacheTTL.for_options(self.use_1h_cache)


@dataclass
class OutboundRequest:
    """A fully assembled Messages API request."""
    model: str
    max_tokens: int
    system: list[TextBlock]
    messages: list[Turn]
    tools: list[dict] = field(default_factory=list)
    temperature: float | None = None
    generation: int = 0     # transcript generation at build time
    base_length: int = 0    # transcript length at build time
    resets_history: bool = False  # recording replaces the transcript

    @property
    def user_turn(self) -> Turn:
        return self.messages[-1]

    @property
    def history(self) -> list[Turn]:
        return self.messages[:-1]

    @property
    def breakpoint_count(self) -> int:
        count = sum(1 for b in self.system if b.cache is not None)
        count += sum(1 for t in self.tools if "cache_control" in t)
        count += sum(t.breakpoint_count for t in self.messages)
        return count

    def to_body(self) -> dict:
        body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": [block_to_wire(b) for b in self.system],
            "messages": [t.to_wire() for t in self.messages],
        }
        if self.tools:
            body["tools"] = self.tools
        if self.temperature is not None:
            body["temperature"] = self.temperature
        return body

    def to_bytes(self) -> bytes:
        return canonical_json(self.to_body())


class RequestBuilder:
    """Builds outbound requests from a transcript and static assets.

    Args:
        assets: System preamble, reference document and tool catalog.
        generation: Model id and sampling parameters.
        cache: Breakpoint ceiling and overflow policy.
    """

    def __init__(
        self,
        assets: StaticAssets | None = None,
        generation: GenerationConfig | None = None,
        cache: CacheConfig | None = None,
    ):
        self.assets = assets or StaticAssets()
        self.generation = generation or GenerationConfig()
        self.cache = cache or CacheConfig()

    @classmethod
    def from_config(cls, config: PromptCacheConfig, model: str | None = None) -> "RequestBuilder":
        generation = config.generation
        if model:
            generation = GenerationConfig(
                model=model,
                max_tokens=generation.max_tokens,
                temperature=generation.temperature,
            )
        return cls(assets=config.assets, generation=generation, cache=config.cache)

    def _active_breakpoints(self, options: RequestOptions) -> set[str]:
        slots = ["system"]
        if options.include_large_document:
            slots.append("document")
        if options.include_tools and self.assets.tools:
            slots.append("tools")
        slots.append("message")

        overflow = len(slots) - self.cache.max_breakpoints
        if overflow <= 0:
            return set(slots)

        if self.cache.overflow_policy == "reject":
            raise BreakpointLimitError(
                f"Request needs {len(slots)} cache breakpoints but the limit is "
                f"{self.cache.max_breakpoints}"
            )

        dropped = []
        for slot in _DROP_ORDER:
            if overflow == 0:
                break
            if slot in slots:
                slots.remove(slot)
                dropped.append(slot)
                overflow -= 1
        logger.warning(
            "Breakpoint limit %d exceeded, dropped breakpoints: %s",
            self.cache.max_breakpoints, ", ".join(dropped),
        )
        return set(slots)

    def _tool_catalog(self, marker: CacheBreakpoint | None) -> list[dict]:
        tools = []
        for tool in self.assets.tools:
            tool = copy.deepcopy(tool)
            tool.pop("cache_control", None)
            tools.append(tool)
        if tools and marker is not None:
            tools[-1]["cache_control"] = marker.to_wire()
        return tools

    def build(
        self,
        transcript: Transcript,
        user_text: str,
        options: RequestOptions | None = None,
    ) -> OutboundRequest:
        """Assemble the request for the next turn.

        With ``options.reset_conversation`` the history is treated as empty
        and the transcript is only cleared once the exchange is recorded.
        """
        options = options or RequestOptions()
        if not user_text or not user_text.strip():
            raise ValueError("User message must not be empty")

        active = self._active_breakpoints(options)
        marker = CacheBreakpoint(ttl=options.ttl)

        def mark(slot: str) -> CacheBreakpoint | None:
            return marker if slot in active else None

        system = [TextBlock(text=self.assets.system_prompt, cache=mark("system"))]
        if options.include_large_document:
            system.append(TextBlock(text=self.assets.document_text, cache=mark("document")))

        tools = self._tool_catalog(mark("tools")) if options.include_tools else []

        if options.reset_conversation:
            history: list[Turn] = []
        else:
            history = list(transcript.turns)

        user_turn = Turn(
            role="user",
            content=(TextBlock(text=user_text), TextBlock(text="", cache=marker)),
        )

        request = OutboundRequest(
            model=self.generation.model,
            max_tokens=self.generation.max_tokens,
            temperature=self.generation.temperature,
            system=system,
            tools=tools,
            messages=history + [user_turn],
            generation=transcript.generation,
            base_length=len(history),
            resets_history=options.reset_conversation,
        )

        if request.breakpoint_count > self.cache.max_breakpoints:
            # Recorded history carries no breakpoints.
            raise BreakpointLimitError(
                f"Request carries {request.breakpoint_count} cache breakpoints, "
                f"limit is {self.cache.max_breakpoints}"
            )

        logger.debug(
            "Built request: model=%s history=%d tools=%d breakpoints=%d ttl=%s",
            request.model, len(history), len(tools), request.breakpoint_count, options.ttl.value,
        )
        return request
