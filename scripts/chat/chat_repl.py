#!/usr/bin/env python3
"""Interactive terminal chat that shows prompt-cache usage per turn.

Usage:
  export PROMPTCACHE_LLM_API_KEY=sk-ant-...
  python scripts/chat/chat_repl.py
  python scripts/chat/chat_repl.py --config configs/prompt_cache.yaml --document --tools --1h

Commands inside the prompt:
  /reset     start a new conversation
  /history   print the stored transcript
  /stats     print accumulated token and cache usage
  /quit      exit
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

from prompt_cache import (  # noqa: E402
    ChatService,
    ConfigurationError,
    LLMConfig,
    PromptCacheConfig,
    RequestOptions,
    TransportError,
)

SESSION_ID = "repl"


def _print_usage(usage):
    line = f"   Tokens: in={usage.input_tokens} out={usage.output_tokens}"
    if usage.cache_creation_input_tokens:
        line += f" | cache write={usage.cache_creation_input_tokens}"
    if usage.cache_read_input_tokens:
        line += f" | cache read={usage.cache_read_input_tokens}"
    print(line)


async def run(service: ChatService, options: RequestOptions):
    loop = asyncio.get_running_loop()
    while True:
        try:
            text = await loop.run_in_executor(None, input, "\nyou> ")
        except EOFError:
            break
        text = text.strip()
        if not text:
            continue
        if text == "/quit":
            break
        if text == "/reset":
            service.reset(SESSION_ID)
            print("   Conversation reset.")
            continue
        if text == "/history":
            print(json.dumps(service.history(SESSION_ID), indent=2))
            continue
        if text == "/stats":
            print(json.dumps(service.metrics.get_metrics(SESSION_ID), indent=2))
            continue

        try:
            response = await service.chat(SESSION_ID, text, options)
        except TransportError as e:
            print(f"   ERROR: {e}")
            continue
        print(f"\nassistant> {response.reply.text}")
        _print_usage(response.usage)


def main():
    parser = argparse.ArgumentParser(description="Chat with prompt caching")
    parser.add_argument("--config", type=str, default=None, help="YAML config path")
    parser.add_argument("--llm-config", type=str, default=None, help="JSON credentials path")
    parser.add_argument("--1h", dest="use_1h_cache", action="store_true", help="Use the 1-hour cache TTL")
    parser.add_argument("--document", action="store_true", help="Include the large reference document")
    parser.add_argument("--tools", action="store_true", help="Include the static tool catalog")
    parser.add_argument("--timeout", type=float, default=None)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    config = PromptCacheConfig.from_yaml(args.config) if args.config else PromptCacheConfig()
    llm_config = LLMConfig.from_json(args.llm_config) if args.llm_config else LLMConfig.from_env()
    try:
        service = ChatService.from_config(config, llm_config, timeout=args.timeout)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    options = RequestOptions(
        use_1h_cache=args.use_1h_cache,
        include_large_document=args.document,
        include_tools=args.tools,
    )
    print(f"PromptCache chat [{service.builder.generation.model}]")
    print(f"  LLM config: {llm_config.to_safe_dict()}")
    print(f"  Options:    1h={options.use_1h_cache} document={options.include_large_document} "
          f"tools={options.include_tools}")
    asyncio.run(run(service, options))


if __name__ == "__main__":
    main()
