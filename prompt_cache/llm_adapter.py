"""Transport adapters that send assembled requests to the LLM provider.

Uses httpx directly (no anthropic SDK needed). The request body is sent as
the builder's canonical bytes so identical prefixes stay byte-identical on
the wire.

No retries happen here: a failed exchange surfaces as one TransportError and
the caller decides whether to rebuild and resend.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from prompt_cache.content import ContentBlock, block_from_wire
from prompt_cache.llm_config import LLMConfig
from prompt_cache.request_builder import OutboundRequest

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """The round trip to the provider failed. The cause is chained."""


@dataclass
class UsageCounters:
    """Token accounting reported by the provider for one exchange."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0
    cache_creation_5m_input_tokens: int = 0
    cache_creation_1h_input_tokens: int = 0

    @classmethod
    def from_wire(cls, usage: dict | None) -> "UsageCounters":
        usage = usage or {}
        breakdown = usage.get("cache_creation") or {}
        return cls(
            input_tokens=usage.get("input_tokens") or 0,
            output_tokens=usage.get("output_tokens") or 0,
            cache_creation_input_tokens=usage.get("cache_creation_input_tokens") or 0,
            cache_read_input_tokens=usage.get("cache_read_input_tokens") or 0,
            cache_creation_5m_input_tokens=breakdown.get("ephemeral_5m_input_tokens") or 0,
            cache_creation_1h_input_tokens=breakdown.get("ephemeral_1h_input_tokens") or 0,
        )

    @property
    def total_input_tokens(self) -> int:
        """Uncached + cache-write + cache-read input tokens."""
        return self.input_tokens + self.cache_creation_input_tokens + self.cache_read_input_tokens

    @property
    def cache_hit_ratio(self) -> float:
        total = self.total_input_tokens
        return self.cache_read_input_tokens / total if total else 0.0

    def to_dict(self) -> dict:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_creation_input_tokens": self.cache_creation_input_tokens,
            "cache_read_input_tokens": self.cache_read_input_tokens,
            "cache_creation": {
                "ephemeral_5m_input_tokens": self.cache_creation_5m_input_tokens,
                "ephemeral_1h_input_tokens": self.cache_creation_1h_input_tokens,
            },
        }


@dataclass
class LLMResponse:
    """Parsed reply from the provider."""
    content: tuple[ContentBlock, ...]
    model: str
    usage: UsageCounters
    stop_reason: str | None
    latency_ms: float


class LLMAdapter(ABC):
    """Base class for provider transports.

    Args:
        api_key: Authentication key for the LLM API.
        base_url: Custom API endpoint URL for enterprise gateways.
        extra_headers: Additional HTTP headers merged into every request.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport, mainly for tests.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        extra_headers: dict[str, str] | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.extra_headers = extra_headers or {}
        self.timeout = timeout
        self.transport = transport

    @property
    @abstractmethod
    def default_url(self) -> str: ...

    @property
    def url(self) -> str:
        return self.base_url or self.default_url

    @abstractmethod
    def _build_headers(self) -> dict[str, str]: ...

    def _merged_headers(self) -> dict[str, str]:
        headers = self._build_headers()
        headers.update(self.extra_headers)
        return headers

    async def _post(self, payload: bytes) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(self.url, content=payload, headers=self._merged_headers())
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Provider returned HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request failed: {e}") from e
        except ValueError as e:
            raise TransportError("Provider returned a non-JSON body") from e

    @abstractmethod
    async def send(self, request: OutboundRequest) -> LLMResponse: ...


class ClaudeAdapter(LLMAdapter):
    """Adapter for the Anthropic Messages API."""

    @property
    def default_url(self) -> str:
        return "https://api.anthropic.com/v1/messages"

    def _build_headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }

    def parse_response(self, data: dict, fallback_model: str, latency_ms: float = 0.0) -> LLMResponse:
        if not isinstance(data, dict):
            raise TransportError(f"Expected a JSON object, got {type(data).__name__}")
        content = data.get("content")
        if not isinstance(content, list):
            raise TransportError(f"Malformed reply content: expected a list, got {type(content).__name__}")
        try:
            blocks = tuple(block_from_wire(b) for b in content)
            usage = UsageCounters.from_wire(data.get("usage"))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed reply content: {e}") from e
        if not blocks:
            raise TransportError("Reply contained no content blocks")

        return LLMResponse(
            content=blocks,
            model=data.get("model", fallback_model),
            usage=usage,
            stop_reason=data.get("stop_reason"),
            latency_ms=round(latency_ms, 1),
        )

    async def send(self, request: OutboundRequest) -> LLMResponse:
        logger.info(
            "Sending request: model=%s messages=%d tools=%d breakpoints=%d",
            request.model, len(request.messages), len(request.tools), request.breakpoint_count,
        )
        t0 = time.perf_counter()
        data = await self._post(request.to_bytes())
        latency_ms = (time.perf_counter() - t0) * 1000

        response = self.parse_response(data, request.model, latency_ms)
        logger.info("Provider usage: %s", response.usage.to_dict())
        return response


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

LLM_ADAPTER_REGISTRY: dict[str, type[LLMAdapter]] = {
    "claude": ClaudeAdapter,
}


def get_llm_adapter(
    config: LLMConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LLMAdapter:
    """Get an adapter for the provider named in ``config``."""
    adapter_cls = LLM_ADAPTER_REGISTRY.get(config.provider)
    if adapter_cls is None:
        raise ValueError(
            f"Unknown LLM provider '{config.provider}'. "
            f"Available: {list(LLM_ADAPTER_REGISTRY.keys())}"
        )
    return adapter_cls(
        api_key=config.api_key,
        base_url=config.base_url,
        extra_headers=config.extra_headers,
        timeout=config.timeout,
        transport=transport,
    )
