"""Multi-session chat orchestration on top of the builder, store and transport.

Each session owns its transcript and a lock, so at most one exchange is in
flight per session while independent sessions run in parallel.

Usage:
    service = ChatService.from_config(PromptCacheConfig(), LLMConfig.from_env())
    response = await service.chat("session-1", "Who is Mr. Darcy?",
                                  RequestOptions(include_large_document=True))
    print(response.reply.text, response.usage.cache_read_input_tokens)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from prompt_cache.cache_config import PromptCacheConfig
from prompt_cache.content import Turn
from prompt_cache.conversation import ConversationStore, StaleExchangeError
from prompt_cache.llm_adapter import LLMAdapter, TransportError, UsageCounters, get_llm_adapter
from prompt_cache.llm_config import LLMConfig
from prompt_cache.metrics import UsageTracker
from prompt_cache.request_builder import OutboundRequest, RequestBuilder, RequestOptions

logger = logging.getLogger(__name__)


class SessionBusyError(RuntimeError):
    """Another exchange is already in flight for this session."""


@dataclass
class ChatResponse:
    reply: Turn
    usage: UsageCounters
    model: str
    session_id: str
    recorded: bool = True
    latency_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "message": self.reply.to_wire(),
            "usage": self.usage.to_dict(),
            "model": self.model,
            "session_id": self.session_id,
            "recorded": self.recorded,
            "latency_ms": self.latency_ms,
        }


class ChatSession:
    """One conversation: its store plus the lock serializing exchanges."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.store = ConversationStore()
        self.lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self.lock.locked()


class ChatService:
    """Runs cache-aware exchanges for any number of independent sessions.

    Args:
        builder: Assembles outbound requests.
        adapter: Transport to the provider.
        metrics: Optional usage tracker.
        timeout: Optional deadline in seconds for one round trip.
        queue_when_busy: Wait for the in-flight exchange instead of raising
            SessionBusyError.
    """

    def __init__(
        self,
        builder: RequestBuilder,
        adapter: LLMAdapter,
        metrics: UsageTracker | None = None,
        timeout: float | None = None,
        queue_when_busy: bool = False,
    ):
        self.builder = builder
        self.adapter = adapter
        self.metrics = metrics or UsageTracker()
        self.timeout = timeout
        self.queue_when_busy = queue_when_busy
        self._sessions: dict[str, ChatSession] = {}

    @classmethod
    def from_config(cls, config: PromptCacheConfig, llm_config: LLMConfig, **kwargs) -> "ChatService":
        """Build a service, failing fast when credentials are missing."""
        llm_config.require_configured()
        builder = RequestBuilder.from_config(config, model=llm_config.model)
        adapter = get_llm_adapter(llm_config, transport=kwargs.pop("transport", None))
        return cls(builder, adapter, **kwargs)

    def session(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            session = ChatSession(session_id)
            self._sessions[session_id] = session
        return session

    def drop_session(self, session_id: str):
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.store.reset()
        self.metrics.forget(session_id)

    @property
    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def reset(self, session_id: str):
        """Clear a session's transcript immediately.

        An exchange still in flight for the session will not be recorded.
        """
        self.session(session_id).store.reset()

    def history(self, session_id: str) -> list[dict]:
        return self.session(session_id).store.export()

    async def _send(self, request: OutboundRequest):
        if self.timeout is None:
            return await self.adapter.send(request)
        try:
            return await asyncio.wait_for(self.adapter.send(request), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"No reply within {self.timeout}s") from e

    async def chat(
        self,
        session_id: str,
        user_text: str,
        options: RequestOptions | None = None,
    ) -> ChatResponse:
        """Run one exchange and record it on success.

        Raises:
            SessionBusyError: an exchange is in flight and queuing is off.
            TransportError: the round trip failed; the transcript is unchanged.
            BreakpointLimitError / ValueError: the request could not be built.
        """
        options = options or RequestOptions()
        session = self.session(session_id)
        if session.busy and not self.queue_when_busy:
            raise SessionBusyError(f"Session '{session_id}' already has an exchange in flight")

        async with session.lock:
            request = self.builder.build(session.store.transcript, user_text, options)
            try:
                response = await self._send(request)
            except TransportError:
                await self.metrics.record_failure(session_id)
                logger.warning("Exchange failed for session %s", session_id, exc_info=True)
                raise

            reply = Turn(role="assistant", content=response.content)
            recorded = True
            try:
                session.store.record_exchange(request, response.content)
            except StaleExchangeError as e:
                recorded = False
                logger.warning("Discarding reply for session %s: %s", session_id, e)

            await self.metrics.record_success(session_id, response.usage, response.latency_ms)
            return ChatResponse(
                reply=reply,
                usage=response.usage,
                model=response.model,
                session_id=session_id,
                recorded=recorded,
                latency_ms=response.latency_ms,
            )
