"""Per-session transcript and the store that mutates it.

The transcript only ever holds what the model actually saw, minus cache
bookkeeping. Replaying it through the request builder must reproduce the
previous request's bytes exactly, otherwise the provider-side prefix cache
misses on every later turn without any visible error.
"""

from __future__ import annotations

import logging
from typing import Iterator, Sequence

from prompt_cache.content import ContentBlock, Turn, is_cache_marker, without_cache
from prompt_cache.request_builder import OutboundRequest

logger = logging.getLogger(__name__)


class StaleExchangeError(RuntimeError):
    """The transcript changed between building a request and recording its reply."""


def sanitize_user_turn(turn: Turn) -> Turn:
    """Drop cache-marker blocks and clear any remaining breakpoint annotations."""
    blocks = tuple(without_cache(b) for b in turn.content if not is_cache_marker(b))
    return Turn(role=turn.role, content=blocks)


class Transcript:
    """Ordered user/assistant turns for one conversation.

    Append-only apart from a full reset. ``generation`` increases on every
    reset so that replies to requests built before the reset can be detected.
    Only ConversationStore mutates a transcript; ``turns`` hands out copies.
    """

    def __init__(self):
        self._turns: list[Turn] = []
        self._generation = 0

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(t.detached() for t in self._turns)

    @property
    def generation(self) -> int:
        return self._generation

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self.turns)

    def append_exchange(self, user_turn: Turn, assistant_turn: Turn):
        if user_turn.role != "user" or assistant_turn.role != "assistant":
            raise ValueError("An exchange is a user turn followed by an assistant turn")
        if self._turns and self._turns[-1].role != "assistant":
            raise ValueError("Transcript must alternate user/assistant turns")
        self._turns.append(user_turn.detached())
        self._turns.append(assistant_turn.detached())

    def clear(self):
        self._turns = []
        self._generation += 1


class ConversationStore:
    """Owns a transcript and applies completed exchanges to it."""

    def __init__(self, transcript: Transcript | None = None):
        self.transcript = transcript if transcript is not None else Transcript()

    def reset(self):
        dropped = len(self.transcript)
        self.transcript.clear()
        logger.debug("Transcript reset (dropped %d turns, generation=%d)",
                     dropped, self.transcript.generation)

    def record_exchange(
        self,
        request: OutboundRequest,
        reply: Sequence[ContentBlock],
    ) -> tuple[Turn, Turn]:
        """Append the sanitized user turn of ``request`` and the model's reply.

        Only call this after a successful round trip. A request built with
        ``reset_conversation`` clears the transcript here, right before the
        append. Raises StaleExchangeError if the transcript was reset, or
        otherwise no longer matches the history the request was built from.
        The returned turns are copies.
        """
        if request.generation != self.transcript.generation:
            raise StaleExchangeError(
                f"Transcript was reset since the request was built "
                f"(generation {request.generation} -> {self.transcript.generation})"
            )
        if not request.resets_history and request.base_length != len(self.transcript):
            raise StaleExchangeError(
                f"Request was built from {request.base_length} turns but the "
                f"transcript holds {len(self.transcript)}"
            )

        user_turn = sanitize_user_turn(request.user_turn)
        assistant_turn = Turn(role="assistant", content=tuple(without_cache(b) for b in reply))
        if request.resets_history:
            self.reset()
        self.transcript.append_exchange(user_turn, assistant_turn)
        return user_turn.detached(), assistant_turn.detached()

    def export(self) -> list[dict]:
        """Wire-format copy of the transcript, for display or external persistence."""
        return [t.to_wire() for t in self.transcript]
