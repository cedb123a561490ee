"""Provider credentials — loaded once at startup, never sent per request.

Usage:
    # From environment
    config = LLMConfig.from_env()  # reads PROMPTCACHE_LLM_*, falls back to ANTHROPIC_API_KEY

    # From JSON file
    config = LLMConfig.from_json("llm_config.json")

    # Fail fast before serving anything
    config.require_configured()
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


class ConfigurationError(RuntimeError):
    """Raised when provider credentials are missing or unusable."""


@dataclass
class LLMConfig:
    """Credentials and endpoint for the upstream LLM provider."""
    provider: str = "claude"
    api_key: str = ""                 # never exposed in responses
    model: Optional[str] = None       # overrides GenerationConfig.model
    base_url: Optional[str] = None    # custom endpoint (enterprise gateway)
    extra_headers: dict = field(default_factory=dict)
    timeout: float = 60.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def require_configured(self) -> "LLMConfig":
        if not self.is_configured:
            raise ConfigurationError(
                "LLM API key is not set. Export PROMPTCACHE_LLM_API_KEY "
                "(or ANTHROPIC_API_KEY) or provide a config file."
            )
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")
        return self

    def to_safe_dict(self) -> dict:
        """Return config dict with API key masked."""
        return {
            "provider": self.provider,
            "api_key": f"...{self.api_key[-4:]}" if len(self.api_key) > 4 else "***",
            "model": self.model,
            "base_url": self.base_url,
            "has_extra_headers": bool(self.extra_headers),
            "timeout": self.timeout,
        }

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """Load config from environment variables.

        Reads:
            PROMPTCACHE_LLM_PROVIDER  (default: "claude")
            PROMPTCACHE_LLM_API_KEY   (fallback: ANTHROPIC_API_KEY)
            PROMPTCACHE_LLM_MODEL
            PROMPTCACHE_LLM_BASE_URL
            PROMPTCACHE_LLM_TIMEOUT
        """
        api_key = os.environ.get("PROMPTCACHE_LLM_API_KEY") or os.environ.get("ANTHROPIC_API_KEY", "")
        timeout = os.environ.get("PROMPTCACHE_LLM_TIMEOUT")
        try:
            timeout_s = float(timeout) if timeout else 60.0
        except ValueError as e:
            raise ConfigurationError(f"PROMPTCACHE_LLM_TIMEOUT is not a number: {timeout!r}") from e
        return cls(
            provider=os.environ.get("PROMPTCACHE_LLM_PROVIDER", "claude"),
            api_key=api_key,
            model=os.environ.get("PROMPTCACHE_LLM_MODEL"),
            base_url=os.environ.get("PROMPTCACHE_LLM_BASE_URL"),
            timeout=timeout_s,
        )

    @classmethod
    def from_json(cls, path: str | Path) -> "LLMConfig":
        """Load config from a JSON file.

        Expected format:
        {
            "provider": "claude",
            "api_key": "sk-...",
            "model": "claude-3-haiku-20240307",
            "base_url": "https://gateway.internal.com/v1/messages"
        }
        """
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls(
            provider=data.get("provider", "claude"),
            api_key=data.get("api_key", ""),
            model=data.get("model"),
            base_url=data.get("base_url"),
            extra_headers=data.get("extra_headers", {}),
            timeout=data.get("timeout", 60.0),
        )
