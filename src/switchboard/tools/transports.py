"""MCP transport descriptors — local process, streamable HTTP, and SSE.

Each transport knows how to open its channel inside an ``AsyncExitStack``
and hand back the ``(read_stream, write_stream)`` pair an
``mcp.ClientSession`` runs on. Wire framing is left to the ``mcp`` SDK.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from mcp import StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from switchboard.config import ConfigError

if TYPE_CHECKING:
    from contextlib import AsyncExitStack

TRANSPORT_TYPES = ("stdio", "http", "sse")


@runtime_checkable
class Transport(Protocol):
    """Capability shared by every transport kind."""

    kind: ClassVar[str]

    def describe(self) -> str: ...

    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]: ...


@dataclass(frozen=True)
class StdioTransport:
    """Spawn a local process and speak MCP over its stdin/stdout."""

    kind: ClassVar[str] = "stdio"

    command: str
    args: tuple[str, ...] = ()
    env: dict[str, str] | None = field(default=None, hash=False)
    cwd: str | None = None

    def describe(self) -> str:
        return " ".join([self.command, *self.args])

    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        params = StdioServerParameters(
            command=self.command,
            args=list(self.args),
            env=self.env,
            cwd=self.cwd,
        )
        read_stream, write_stream = await stack.enter_async_context(stdio_client(params))
        return read_stream, write_stream


@dataclass(frozen=True)
class StreamableHttpTransport:
    """Connect to an MCP server over streamable HTTP."""

    kind: ClassVar[str] = "http"

    url: str
    headers: dict[str, str] | None = field(default=None, hash=False)

    def describe(self) -> str:
        return self.url

    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        read_stream, write_stream, _get_session_id = await stack.enter_async_context(
            streamablehttp_client(self.url, headers=self.headers)
        )
        return read_stream, write_stream


@dataclass(frozen=True)
class SseTransport:
    """Connect to an MCP server over HTTP Server-Sent Events."""

    kind: ClassVar[str] = "sse"

    url: str
    headers: dict[str, str] | None = field(default=None, hash=False)

    def describe(self) -> str:
        return self.url

    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        read_stream, write_stream = await stack.enter_async_context(
            sse_client(self.url, headers=self.headers)
        )
        return read_stream, write_stream


def _string_map(name: str, key: str, value: Any) -> dict[str, str] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigError(f"Provider {name!r}: {key!r} must be an object")
    return {str(k): str(v) for k, v in value.items()}


def build_transport(name: str, descriptor: dict[str, Any]) -> Transport:
    """Select the transport for one provider descriptor.

    ``{command, args}`` selects stdio; ``{type: "http"|"sse", url}`` selects
    one of the HTTP variants. Anything else raises :exc:`ConfigError`.
    """
    transport_type = descriptor.get("type")
    if transport_type is not None and transport_type not in TRANSPORT_TYPES:
        raise ConfigError(f"Provider {name!r}: unknown transport type: {transport_type!r}")

    if "url" not in descriptor:
        if transport_type in ("http", "sse"):
            raise ConfigError(f"Provider {name!r}: {transport_type} transport requires a 'url'")
        command = descriptor.get("command")
        if not isinstance(command, str) or not command.strip():
            raise ConfigError(f"Provider {name!r}: stdio transport requires a 'command'")
        args = descriptor.get("args") or []
        if not isinstance(args, list):
            raise ConfigError(f"Provider {name!r}: 'args' must be a list")
        return StdioTransport(
            command=command,
            args=tuple(str(a) for a in args),
            env=_string_map(name, "env", descriptor.get("env")),
            cwd=descriptor.get("cwd"),
        )

    url = descriptor["url"]
    if not isinstance(url, str) or not url.strip():
        raise ConfigError(f"Provider {name!r}: 'url' must be a non-empty string")
    headers = _string_map(name, "headers", descriptor.get("headers"))

    if transport_type == "stdio":
        raise ConfigError(f"Provider {name!r}: stdio transport does not take a 'url'")
    if transport_type == "http":
        return StreamableHttpTransport(url=url, headers=headers)
    if transport_type == "sse":
        return SseTransport(url=url, headers=headers)
    raise ConfigError(f"Provider {name!r}: unknown transport type: {transport_type!r}")
