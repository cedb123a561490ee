"""Configuration for prompt caching: static assets, generation and breakpoint limits."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI assistant tasked with analyzing literary works and answering "
    "user questions. Be thorough and provide insightful commentary.\n"
)

DEFAULT_DOCUMENT_PREAMBLE = "Here is the full text of a literary work for analysis:\n"

# Short demo text, below the provider's minimum cacheable length (~1024
# tokens), so it never produces a cache write on its own. Point
# assets.document_path at a full text to see document caching.
DEFAULT_DOCUMENT = """
<document>
<title>Pride and Prejudice by Jane Austen</title>
<summary>
Pride and Prejudice, a classic novel by Jane Austen, follows the emotional development of Elizabeth Bennet, who learns the error of making hasty judgments and comes to appreciate the difference between the superficial and the essential. Mr. Darcy, a wealthy aristocrat, likewise learns to overcome his proud and arrogant nature. The novel explores themes of manners, marriage, morality, education, and social class in the Regency era in Great Britain. Elizabeth's realization of Darcy's true character is a central part of the story, as she navigates the societal pressures of her time.
</summary>
<characters>
- Elizabeth Bennet: The witty and intelligent protagonist.
- Mr. Fitzwilliam Darcy: A wealthy, proud man who eventually wins Elizabeth's heart.
- Jane Bennet: Elizabeth's beautiful and kind older sister.
- Charles Bingley: A wealthy and amiable friend of Darcy.
</characters>
</document>
"""


def _default_tools() -> list[dict]:
    return [
        {
            "name": "get_current_time",
            "description": "Get the current time for a specified timezone.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "timezone": {
                        "type": "string",
                        "description": "The IANA timezone name, e.g., 'America/Los_Angeles'.",
                    },
                },
                "required": ["timezone"],
            },
        },
        {
            "name": "search_literary_database",
            "description": "Search a database for details about literary works, authors, or characters.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The search query, e.g., 'themes in 19th-century novels'.",
                    },
                },
                "required": ["query"],
            },
        },
    ]


OVERFLOW_POLICIES = ("reject", "drop")


@dataclass
class StaticAssets:
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    document: str = DEFAULT_DOCUMENT
    document_preamble: str = DEFAULT_DOCUMENT_PREAMBLE
    tools: list[dict] = field(default_factory=_default_tools)

    @property
    def document_text(self) -> str:
        return f"{self.document_preamble}{self.document}"


@dataclass
class GenerationConfig:
    model: str = "claude-3-haiku-20240307"
    max_tokens: int = 2048
    temperature: float | None = None


@dataclass
class CacheConfig:
    max_breakpoints: int = 4  # provider ceiling per request
    overflow_policy: str = "reject"  # "reject" or "drop"

    def __post_init__(self):
        if self.max_breakpoints < 1:
            raise ValueError(f"max_breakpoints must be >= 1, got {self.max_breakpoints}")
        if self.overflow_policy not in OVERFLOW_POLICIES:
            raise ValueError(
                f"Unknown overflow_policy '{self.overflow_policy}'. "
                f"Available: {list(OVERFLOW_POLICIES)}"
            )


@dataclass
class PromptCacheConfig:
    assets: StaticAssets = field(default_factory=StaticAssets)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PromptCacheConfig":
        """Load config from YAML file.

        ``assets.document_path`` is resolved relative to the YAML file and
        replaces any inline ``assets.document``.
        """
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        assets_data = dict(data.get("assets", {}))
        document_path = assets_data.pop("document_path", None)
        if document_path:
            doc_file = Path(document_path)
            if not doc_file.is_absolute():
                doc_file = path.parent / doc_file
            assets_data["document"] = doc_file.read_text(encoding="utf-8")

        return cls(
            assets=StaticAssets(**assets_data),
            generation=GenerationConfig(**data.get("generation", {})),
            cache=CacheConfig(**data.get("cache", {})),
        )
