"""Tests for PromptCacheConfig and its YAML loader."""

import os
import tempfile
from pathlib import Path

import pytest

from prompt_cache.cache_config import (
    DEFAULT_SYSTEM_PROMPT,
    CacheConfig,
    PromptCacheConfig,
    StaticAssets,
)


class TestDefaults:
    def test_default_assets(self):
        assets = StaticAssets()
        assert assets.system_prompt == DEFAULT_SYSTEM_PROMPT
        assert [t["name"] for t in assets.tools] == ["get_current_time", "search_literary_database"]
        assert assets.document_text.startswith(assets.document_preamble)

    def test_default_tools_not_shared(self):
        a, b = StaticAssets(), StaticAssets()
        a.tools.append({"name": "extra"})
        assert len(b.tools) == 2

    def test_default_cache(self):
        config = PromptCacheConfig()
        assert config.cache.max_breakpoints == 4
        assert config.cache.overflow_policy == "reject"
        assert config.generation.max_tokens == 2048


class TestCacheConfigValidation:
    def test_zero_breakpoints_rejected(self):
        with pytest.raises(ValueError, match="max_breakpoints"):
            CacheConfig(max_breakpoints=0)

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError, match="Unknown overflow_policy"):
            CacheConfig(overflow_policy="truncate")


class TestFromYaml:
    def test_loads_sections(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text(
                "generation:\n"
                "  model: claude-test\n"
                "  max_tokens: 512\n"
                "cache:\n"
                "  max_breakpoints: 3\n"
                "  overflow_policy: drop\n"
                "assets:\n"
                "  system_prompt: Be brief.\n",
                encoding="utf-8",
            )
            config = PromptCacheConfig.from_yaml(path)

        assert config.generation.model == "claude-test"
        assert config.generation.max_tokens == 512
        assert config.cache.max_breakpoints == 3
        assert config.cache.overflow_policy == "drop"
        assert config.assets.system_prompt == "Be brief."
        assert len(config.assets.tools) == 2

    def test_document_path_relative_to_yaml(self):
        with tempfile.TemporaryDirectory() as tmp:
            Path(tmp, "book.txt").write_text("It is a truth universally acknowledged", encoding="utf-8")
            path = Path(tmp) / "config.yaml"
            path.write_text("assets:\n  document_path: book.txt\n", encoding="utf-8")
            config = PromptCacheConfig.from_yaml(path)
        assert config.assets.document == "It is a truth universally acknowledged"

    def test_empty_file_gives_defaults(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            path = f.name
        try:
            config = PromptCacheConfig.from_yaml(path)
        finally:
            os.unlink(path)
        assert config == PromptCacheConfig()

    def test_bundled_example_config(self):
        root = Path(__file__).resolve().parents[1]
        config = PromptCacheConfig.from_yaml(root / "configs" / "prompt_cache.yaml")
        assert config.cache.max_breakpoints == 4
        assert config.assets.system_prompt.startswith("You are an AI assistant")
