"""Tests for content blocks, breakpoints and turns."""

import json

import pytest

from prompt_cache.content import (
    CacheBreakpoint,
    CacheTTL,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    Turn,
    block_from_wire,
    block_to_wire,
    canonical_json,
    is_cache_marker,
    without_cache,
)


class TestCacheBreakpoint:
    def test_short_ttl_wire(self):
        assert CacheBreakpoint(CacheTTL.SHORT).to_wire() == {"type": "ephemeral", "ttl": "5m"}

    def test_long_ttl_wire(self):
        assert CacheBreakpoint(CacheTTL.LONG).to_wire() == {"type": "ephemeral", "ttl": "1h"}

    def test_ttl_for_options(self):
        assert CacheTTL.for_options(True) is CacheTTL.LONG
        assert CacheTTL.for_options(False) is CacheTTL.SHORT

    def test_from_wire_without_ttl_defaults_to_short(self):
        assert CacheBreakpoint.from_wire({"type": "ephemeral"}).ttl is CacheTTL.SHORT


class TestBlockWire:
    def test_text_block(self):
        assert block_to_wire(TextBlock("hi")) == {"type": "text", "text": "hi"}

    def test_text_block_with_cache(self):
        wire = block_to_wire(TextBlock("", cache=CacheBreakpoint(CacheTTL.LONG)))
        assert wire == {"type": "text", "text": "", "cache_control": {"type": "ephemeral", "ttl": "1h"}}

    def test_tool_use_block(self):
        wire = block_to_wire(ToolUseBlock(id="toolu_1", name="get_current_time", input={"timezone": "UTC"}))
        assert wire == {
            "type": "tool_use", "id": "toolu_1",
            "name": "get_current_time", "input": {"timezone": "UTC"},
        }

    def test_tool_result_error_flag(self):
        wire = block_to_wire(ToolResultBlock(tool_use_id="toolu_1", content="boom", is_error=True))
        assert wire["is_error"] is True
        assert "is_error" not in block_to_wire(ToolResultBlock(tool_use_id="toolu_1"))

    def test_unsupported_block_raises(self):
        with pytest.raises(TypeError, match="Unsupported content block"):
            block_to_wire({"type": "text", "text": "raw dict"})

    def test_parse_tool_use(self):
        block = block_from_wire({"type": "tool_use", "id": "t1", "name": "search", "input": {"q": "x"}})
        assert block == ToolUseBlock(id="t1", name="search", input={"q": "x"})

    def test_parse_tool_result_list_content(self):
        block = block_from_wire({
            "type": "tool_result", "tool_use_id": "t1",
            "content": [{"type": "text", "text": "ok"}],
        })
        assert json.loads(block.content) == [{"type": "text", "text": "ok"}]

    def test_parse_keeps_cache_control(self):
        block = block_from_wire({"type": "text", "text": "", "cache_control": {"type": "ephemeral", "ttl": "1h"}})
        assert block.cache == CacheBreakpoint(CacheTTL.LONG)

    def test_parse_unknown_type_raises(self):
        with pytest.raises(ValueError, match="Unknown content block type"):
            block_from_wire({"type": "image", "source": {}})

    @pytest.mark.parametrize("data", [None, "x", ["text"]])
    def test_parse_non_object_raises(self, data):
        with pytest.raises(ValueError, match="must be an object"):
            block_from_wire(data)

    def test_tool_use_wire_input_is_a_copy(self):
        block = ToolUseBlock(id="t1", name="search", input={"q": {"term": "x"}})
        block_to_wire(block)["input"]["q"]["term"] = "y"
        assert block.input == {"q": {"term": "x"}}


class TestCacheMarker:
    def test_empty_text_with_cache_is_marker(self):
        assert is_cache_marker(TextBlock("", cache=CacheBreakpoint()))

    def test_empty_text_without_cache_is_not_marker(self):
        assert not is_cache_marker(TextBlock(""))

    def test_non_empty_text_with_cache_is_not_marker(self):
        assert not is_cache_marker(TextBlock("hi", cache=CacheBreakpoint()))

    def test_without_cache(self):
        block = TextBlock("hi", cache=CacheBreakpoint())
        assert without_cache(block) == TextBlock("hi")
        plain = TextBlock("hi")
        assert without_cache(plain) is plain


class TestTurn:
    def test_invalid_role(self):
        with pytest.raises(ValueError, match="Invalid role"):
            Turn(role="system", content=(TextBlock("x"),))

    def test_empty_content_rejected(self):
        with pytest.raises(ValueError, match="at least one"):
            Turn(role="user", content=())

    def test_content_is_copied_to_tuple(self):
        blocks = [TextBlock("a")]
        turn = Turn(role="user", content=blocks)
        blocks.append(TextBlock("b"))
        assert turn.content == (TextBlock("a"),)

    def test_text_joins_text_blocks(self):
        turn = Turn(role="assistant", content=(
            TextBlock("Let me check."),
            ToolUseBlock(id="t1", name="get_current_time", input={}),
        ))
        assert turn.text == "Let me check."

    def test_from_wire_string_content(self):
        turn = Turn.from_wire({"role": "user", "content": "Hi"})
        assert turn == Turn.user_text("Hi")

    def test_wire_round_trip_preserves_tool_use(self):
        data = {"role": "assistant", "content": [
            {"type": "text", "text": "Checking"},
            {"type": "tool_use", "id": "t1", "name": "get_current_time", "input": {"timezone": "UTC"}},
        ]}
        assert Turn.from_wire(data).to_wire() == data

    def test_detached_copies_tool_input(self):
        turn = Turn(role="assistant", content=(ToolUseBlock(id="t1", name="n", input={"a": 1}),))
        copy = turn.detached()
        copy.content[0].input["a"] = 2
        assert turn.content[0].input == {"a": 1}
        assert copy == Turn(role="assistant", content=(ToolUseBlock(id="t1", name="n", input={"a": 2}),))

    def test_breakpoint_count(self):
        turn = Turn(role="user", content=(TextBlock("Hi"), TextBlock("", cache=CacheBreakpoint())))
        assert turn.breakpoint_count == 1


class TestCanonicalJson:
    def test_compact_and_stable(self):
        assert canonical_json({"a": 1, "b": [1, 2]}) == b'{"a":1,"b":[1,2]}'

    def test_non_ascii_kept(self):
        assert canonical_json({"t": "café"}) == '{"t":"café"}'.encode("utf-8")
