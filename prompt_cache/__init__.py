"""PromptCache: cache-aware request assembly and conversation state for prefix-caching LLMs.

Every turn is built so the system preamble, optional reference document, tool
catalog and prior history are byte-identical to the previous request, letting
the provider bill them as cache reads instead of fresh input.

Usage:
    from prompt_cache import ChatService, LLMConfig, PromptCacheConfig, RequestOptions

    service = ChatService.from_config(PromptCacheConfig(), LLMConfig.from_env())
    response = await service.chat("alice", "Summarize chapter one",
                                  RequestOptions(use_1h_cache=True))
    print(response.usage.cache_read_input_tokens)
"""

from prompt_cache.cache_config import CacheConfig, GenerationConfig, PromptCacheConfig, StaticAssets
from prompt_cache.chat_service import ChatResponse, ChatService, ChatSession, SessionBusyError
from prompt_cache.content import (
    CacheBreakpoint,
    CacheTTL,
    ContentBlock,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    Turn,
)
from prompt_cache.conversation import (
    ConversationStore,
    StaleExchangeError,
    Transcript,
    sanitize_user_turn,
)
from prompt_cache.llm_adapter import (
    ClaudeAdapter,
    LLMAdapter,
    LLMResponse,
    TransportError,
    UsageCounters,
    get_llm_adapter,
)
from prompt_cache.llm_config import ConfigurationError, LLMConfig
from prompt_cache.metrics import UsageTracker
from prompt_cache.request_builder import (
    BreakpointLimitError,
    OutboundRequest,
    RequestBuilder,
    RequestOptions,
)

__all__ = [
    "ChatService",
    "ChatSession",
    "ChatResponse",
    "SessionBusyError",
    "RequestBuilder",
    "RequestOptions",
    "OutboundRequest",
    "BreakpointLimitError",
    "ConversationStore",
    "Transcript",
    "StaleExchangeError",
    "sanitize_user_turn",
    "Turn",
    "ContentBlock",
    "TextBlock",
    "ToolUseBlock",
    "ToolResultBlock",
    "CacheBreakpoint",
    "CacheTTL",
    "LLMAdapter",
    "ClaudeAdapter",
    "LLMResponse",
    "UsageCounters",
    "TransportError",
    "get_llm_adapter",
    "LLMConfig",
    "ConfigurationError",
    "PromptCacheConfig",
    "StaticAssets",
    "GenerationConfig",
    "CacheConfig",
    "UsageTracker",
]
