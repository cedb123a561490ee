"""Per-session token and cache telemetry."""

from __future__ import annotations

import asyncio
from collections import defaultdict

from prompt_cache.llm_adapter import UsageCounters


def _empty() -> dict:
    return {
        "total_requests": 0,
        "errors": 0,
        "input_tokens": 0,
        "output_tokens": 0,
        "cache_write_tokens": 0,
        "cache_write_5m_tokens": 0,
        "cache_write_1h_tokens": 0,
        "cache_read_tokens": 0,
        "total_latency_ms": 0.0,
    }


class UsageTracker:
    """Accumulates provider usage per session. Safe to share across tasks."""

    def __init__(self):
        self._metrics: dict[str, dict] = defaultdict(_empty)
        self._lock = asyncio.Lock()

    async def record_success(self, session_id: str, usage: UsageCounters, latency_ms: float):
        async with self._lock:
            m = self._metrics[session_id]
            m["total_requests"] += 1
            m["input_tokens"] += usage.input_tokens
            m["output_tokens"] += usage.output_tokens
            m["cache_write_tokens"] += usage.cache_creation_input_tokens
            m["cache_write_5m_tokens"] += usage.cache_creation_5m_input_tokens
            m["cache_write_1h_tokens"] += usage.cache_creation_1h_input_tokens
            m["cache_read_tokens"] += usage.cache_read_input_tokens
            m["total_latency_ms"] += latency_ms

    async def record_failure(self, session_id: str):
        async with self._lock:
            m = self._metrics[session_id]
            m["total_requests"] += 1
            m["errors"] += 1

    def forget(self, session_id: str):
        self._metrics.pop(session_id, None)

    @staticmethod
    def _summarize(m: dict) -> dict:
        succeeded = max(m["total_requests"] - m["errors"], 1)
        prompt = m["input_tokens"] + m["cache_write_tokens"] + m["cache_read_tokens"]
        return {
            **m,
            "avg_latency_ms": round(m["total_latency_ms"] / succeeded, 1),
            "cache_hit_ratio": round(m["cache_read_tokens"] / prompt, 3) if prompt else 0.0,
        }

    def get_metrics(self, session_id: str | None = None) -> dict:
        if session_id:
            m = self._metrics.get(session_id)
            return self._summarize(m) if m else {}

        total = _empty()
        for m in self._metrics.values():
            for k, v in m.items():
                total[k] += v
        return {
            **self._summarize(total),
            "num_sessions": len(self._metrics),
            "per_session": {k: self._summarize(v) for k, v in self._metrics.items()},
        }
