"""Interactive chat shell and process entry point.

Usage:
    switchboard
    switchboard --config servers.json --model gpt-4o -v
    python -m switchboard --max-rounds 10
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from switchboard.config import AgentConfig, ConfigError, load_server_config
from switchboard.llm.engine import ConversationEngine
from switchboard.llm.providers import create_provider
from switchboard.models import DEFAULT_SYSTEM_PROMPT, Turn
from switchboard.tools.handle import ToolProviderHandle, TransportError
from switchboard.tools.registry import DuplicateToolError, ToolRegistry
from switchboard.ui.console import ConsoleInput

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("switchboard.shell")

QUIT_COMMAND = "quit"


class ChatShell:
    """Reads user lines, runs them through the engine, and prints replies."""

    def __init__(
        self,
        engine: ConversationEngine,
        prompt: Callable[[str], Awaitable[str]],
        *,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        self.engine = engine
        self._prompt = prompt
        self.history: list[Turn] = [Turn.user_text(system_prompt)]

    async def run(self) -> None:
        print("\nMCP Agent Started!")
        print("Type your queries or 'quit' to exit.")

        while True:
            try:
                message = await self._prompt("\nYou: ")
            except EOFError:
                break
            if message.lower() == QUIT_COMMAND:
                break
            response, self.history = await self.engine.process_query(
                message, self.history
            )
            # Only the first text part is shown.
            print("\nAI: " + (response.content.first_text() or ""))


def build_handles(
    config: AgentConfig,
    prompt: Callable[[str], Awaitable[str]],
) -> list[ToolProviderHandle]:
    """Create one unconnected handle per configured provider."""
    transports = load_server_config(config.server_config_path)
    return [
        ToolProviderHandle(
            name,
            transport,
            prompt=prompt,
            confirm_timeout=config.confirm_timeout,
            request_timeout=config.request_timeout,
        )
        for name, transport in transports.items()
    ]


async def run_session(config: AgentConfig, console: ConsoleInput | None = None) -> None:
    """Wire up providers, registry, and engine, then run the chat loop."""
    console = console or ConsoleInput()
    handles = build_handles(config, console.readline)
    try:
        provider = create_provider(config)
        registry = ToolRegistry(
            handles,
            provider_failure=config.provider_failure,
            tool_collision=config.tool_collision,
        )
        # Build the tool catalog up front so provider failures surface at startup.
        await registry.load_tools()
        engine = ConversationEngine(
            provider, registry, config.model, max_rounds=config.max_rounds
        )
        await ChatShell(engine, console.readline).run()
    finally:
        for handle in handles:
            await handle.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="switchboard",
        description="Chat with an LLM that can call tools on configured MCP servers.",
    )
    parser.add_argument("--config", type=Path, help="Path to the MCP provider JSON file")
    parser.add_argument("--model", help="Model identifier (e.g. gemini-2.0-flash, gpt-4o)")
    parser.add_argument(
        "--max-rounds",
        type=int,
        help="Maximum LLM calls per query (0 for unlimited)",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="Increase log verbosity"
    )
    return parser


def _apply_overrides(config: AgentConfig, args: argparse.Namespace) -> AgentConfig:
    changes: dict[str, object] = {}
    if args.config is not None:
        changes["server_config_path"] = args.config
    if args.model:
        changes["model"] = args.model
    if args.max_rounds is not None:
        if args.max_rounds < 0:
            raise ConfigError("--max-rounds must not be negative")
        changes["max_rounds"] = args.max_rounds or None
    return replace(config, **changes) if changes else config


def main(argv: list[str] | None = None) -> None:
    """Entry point: load env, build config, run the chat shell."""
    args = build_parser().parse_args(argv)
    load_dotenv()
    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level)

    try:
        config = _apply_overrides(AgentConfig.from_env(), args)
        asyncio.run(run_session(config))
    except (ConfigError, TransportError, DuplicateToolError) as exc:
        logger.error("Startup failed: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception:
        logger.exception("Error in main")
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
