"""Tool provider handle — one MCP client session over one transport.

The handle connects lazily, lists tools once, and gates every tool call
behind operator confirmation before anything reaches the provider.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mcp import ClientSession

from switchboard.permissions.confirm import confirm_tool_call

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from mcp.types import Tool

    from switchboard.tools.transports import Transport

logger = logging.getLogger("switchboard.tools.handle")


class TransportError(Exception):
    """Connecting to, listing, or calling a tool provider failed."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


@dataclass
class ToolInvocation:
    """Outcome of one gated tool call. ``accepted=False`` means the operator cancelled."""

    accepted: bool
    result: Any = None


def _to_json_compatible(result: Any) -> Any:
    if hasattr(result, "model_dump"):
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)
    return result


class ToolProviderHandle:
    """Lazily connected MCP client for a single configured provider.

    Parameters
    ----------
    name:
        Provider name from the configuration file.
    transport:
        How to reach the provider (stdio, streamable HTTP, or SSE).
    prompt:
        Async callable that writes a prompt and returns one line of input.
        Used by the confirmation gate.
    confirm_timeout:
        Seconds to wait for the operator before cancelling. ``None`` waits
        forever.
    request_timeout:
        Seconds allowed for each provider round-trip. ``None`` disables it.
    """

    def __init__(
        self,
        name: str,
        transport: Transport,
        *,
        prompt: Callable[[str], Awaitable[str]],
        confirm_timeout: float | None = None,
        request_timeout: float | None = None,
        _session_factory: Callable[[Any, Any], Any] | None = None,
    ) -> None:
        self.name = name
        self.transport = transport
        self._prompt = prompt
        self._confirm_timeout = confirm_timeout
        self._request_timeout = request_timeout
        self._session_factory = _session_factory or ClientSession
        self._stack: AsyncExitStack | None = None
        self._session: Any = None
        self._tools: list[Tool] | None = None

    def __repr__(self) -> str:
        return f"ToolProviderHandle({self.name!r}, {self.transport.kind}:{self.transport.describe()})"

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        """Open the transport and initialize the MCP session. No-op when connected."""
        if self.is_connected:
            return

        stack = AsyncExitStack()
        try:
            async with asyncio.timeout(self._request_timeout):
                read_stream, write_stream = await self.transport.open(stack)
                session = await stack.enter_async_context(
                    self._session_factory(read_stream, write_stream)
                )
                await session.initialize()
        except Exception as exc:
            await self._discard(stack)
            raise TransportError(
                f"Failed to connect to tool provider {self.name!r} "
                f"({self.transport.describe()}): {type(exc).__name__}: {exc}",
                exc,
            ) from exc
        except BaseException:
            await self._discard(stack)
            raise

        self._stack = stack
        self._session = session
        logger.info("Connected to tool provider %s via %s", self.name, self.transport.kind)

    async def list_tools(self) -> list[Tool]:
        """Return the provider's tool catalog, fetched once and cached."""
        if self._tools is None:
            await self.connect()
            try:
                async with asyncio.timeout(self._request_timeout):
                    result = await self._session.list_tools()
            except Exception as exc:
                raise TransportError(
                    f"Failed to list tools from {self.name!r}: {type(exc).__name__}: {exc}",
                    exc,
                ) from exc
            self._tools = list(result.tools)
            logger.info("Provider %s exposes %d tool(s)", self.name, len(self._tools))
        return self._tools

    async def call_tool(self, name: str, args: dict[str, Any]) -> ToolInvocation:
        """Ask the operator, then invoke *name* on the provider.

        Returns a cancelled :class:`ToolInvocation` without contacting the
        provider unless the operator answers exactly ``yes``.
        """
        approved = await confirm_tool_call(
            self._prompt, name, args, timeout=self._confirm_timeout
        )
        if not approved:
            print("Tool call cancelled.")
            logger.info("Operator cancelled %s on %s", name, self.name)
            return ToolInvocation(accepted=False)

        await self.connect()
        try:
            async with asyncio.timeout(self._request_timeout):
                result = await self._session.call_tool(name, arguments=args)
        except Exception as exc:
            raise TransportError(
                f"Tool {name!r} on {self.name!r} failed: {type(exc).__name__}: {exc}",
                exc,
            ) from exc
        return ToolInvocation(accepted=True, result=_to_json_compatible(result))

    async def close(self) -> None:
        """Release the transport. Safe when never connected."""
        stack, self._stack = self._stack, None
        self._session = None
        if stack is None:
            return
        await self._discard(stack)
        logger.info("Closed tool provider %s", self.name)

    async def _discard(self, stack: AsyncExitStack) -> None:
        try:
            await stack.aclose()
        except Exception:
            logger.warning("Error while closing transport for %s", self.name, exc_info=True)
