"""Tool registry — one name-keyed catalog over every configured provider."""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from switchboard.tools.handle import TransportError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from switchboard.tools.handle import ToolProviderHandle

logger = logging.getLogger("switchboard.tools.registry")

# Provider-side schema keys the LLM function-declaration schema rejects.
STRIPPED_SCHEMA_KEYS = frozenset({"additionalProperties", "$schema"})


class UnknownToolError(KeyError):
    """Raised when the model requests a tool that no provider exposes."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown tool: {self.name}"


class DuplicateToolError(ValueError):
    """Raised when two providers expose the same tool name and collisions are fatal."""


@dataclass(frozen=True)
class ToolDefinition:
    """A tool as exposed to the LLM."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema

    def to_declaration(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": copy.deepcopy(self.parameters),
        }


@dataclass(frozen=True)
class ToolRegistryEntry:
    definition: ToolDefinition
    owner: ToolProviderHandle


def strip_schema(schema: dict[str, Any] | None) -> dict[str, Any]:
    """Drop provider-only top-level keys; every other key is kept as-is."""
    if not schema:
        return {}
    return {k: copy.deepcopy(v) for k, v in schema.items() if k not in STRIPPED_SCHEMA_KEYS}


def definition_from_tool(tool: Any) -> ToolDefinition:
    """Build a :class:`ToolDefinition` from an MCP ``Tool``."""
    return ToolDefinition(
        name=tool.name,
        description=tool.description or "",
        parameters=strip_schema(tool.inputSchema),
    )


class ToolRegistry:
    """Aggregates tool definitions from provider handles, built once and cached.

    Parameters
    ----------
    handles:
        Provider handles in configuration order. The registry does not own
        them and never closes them.
    provider_failure:
        ``"isolate"`` logs a failing provider and carries on without its
        tools; ``"abort"`` re-raises the :exc:`TransportError`.
    tool_collision:
        ``"last_wins"`` lets a later provider replace an earlier tool of the
        same name (with a warning); ``"error"`` raises
        :exc:`DuplicateToolError`.
    """

    def __init__(
        self,
        handles: Sequence[ToolProviderHandle],
        *,
        provider_failure: str = "isolate",
        tool_collision: str = "last_wins",
    ) -> None:
        self._handles = list(handles)
        self._provider_failure = provider_failure
        self._tool_collision = tool_collision
        self._entries: dict[str, ToolRegistryEntry] | None = None
        self._lock = asyncio.Lock()

    async def load_tools(self) -> list[dict[str, Any]]:
        """Return one ``{"functionDeclarations": [decl]}`` group per tool.

        Providers are queried on the first call only.
        """
        if self._entries is None:
            async with self._lock:
                if self._entries is None:
                    self._entries = await self._build()
        return [
            {"functionDeclarations": [entry.definition.to_declaration()]}
            for entry in self._entries.values()
        ]

    async def _build(self) -> dict[str, ToolRegistryEntry]:
        entries: dict[str, ToolRegistryEntry] = {}
        for handle in self._handles:
            try:
                tools = await handle.list_tools()
            except TransportError:
                if self._provider_failure == "abort":
                    raise
                logger.warning(
                    "Tool provider %s is unavailable; its tools are disabled for this session",
                    handle.name,
                    exc_info=True,
                )
                continue

            for tool in tools:
                definition = definition_from_tool(tool)
                existing = entries.get(definition.name)
                if existing is not None:
                    if self._tool_collision == "error":
                        raise DuplicateToolError(
                            f"Tool {definition.name!r} is exposed by both "
                            f"{existing.owner.name!r} and {handle.name!r}"
                        )
                    logger.warning(
                        "Tool %r from %s replaces the one from %s",
                        definition.name, handle.name, existing.owner.name,
                    )
                entries[definition.name] = ToolRegistryEntry(definition=definition, owner=handle)

        logger.info("Registry loaded %d tool(s) from %d provider(s)", len(entries), len(self._handles))
        return entries

    def resolve(self, name: str) -> ToolRegistryEntry:
        """Look up the entry for *name*. Raises :exc:`UnknownToolError`."""
        entry = (self._entries or {}).get(name)
        if entry is None:
            raise UnknownToolError(name)
        return entry
