"""MCP tool providers — transports, handles, and the tool registry."""

from switchboard.tools.handle import ToolInvocation, ToolProviderHandle, TransportError
from switchboard.tools.registry import (
    DuplicateToolError,
    ToolDefinition,
    ToolRegistry,
    ToolRegistryEntry,
    UnknownToolError,
)
from switchboard.tools.transports import (
    SseTransport,
    StdioTransport,
    StreamableHttpTransport,
    Transport,
    build_transport,
)

__all__ = [
    "DuplicateToolError",
    "SseTransport",
    "StdioTransport",
    "StreamableHttpTransport",
    "ToolDefinition",
    "ToolInvocation",
    "ToolProviderHandle",
    "ToolRegistry",
    "ToolRegistryEntry",
    "Transport",
    "TransportError",
    "UnknownToolError",
    "build_transport",
]
