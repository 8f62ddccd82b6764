"""Shared test fixtures for switchboard."""

from __future__ import annotations

import copy
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from mcp.types import Tool

from switchboard.tools.handle import ToolProviderHandle

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AsyncExitStack

ENV_VARS = (
    "GOOGLE_API_KEY",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "SWITCHBOARD_MODEL",
    "SWITCHBOARD_CONFIG",
    "SWITCHBOARD_MAX_ROUNDS",
    "SWITCHBOARD_CONFIRM_TIMEOUT",
    "SWITCHBOARD_REQUEST_TIMEOUT",
    "SWITCHBOARD_PROVIDER_FAILURE",
    "SWITCHBOARD_TOOL_COLLISION",
)

ADD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "a": {"type": "number"},
        "b": {"type": "number"},
    },
    "required": ["a", "b"],
    "additionalProperties": False,
    "$schema": "http://json-schema.org/draft-07/schema#",
}


class FakeTransport:
    """Transport stand-in that opens nothing and counts attempts."""

    kind = "fake"

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.open_count = 0

    def describe(self) -> str:
        return "fake://provider"

    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        self.open_count += 1
        if self.error is not None:
            raise self.error
        return None, None


class FakeSession:
    """Minimal ``mcp.ClientSession`` replacement driven by canned results."""

    def __init__(
        self,
        tools: list[Tool] | None = None,
        results: dict[str, Any] | None = None,
    ) -> None:
        self.tools = list(tools or [])
        self.results = dict(results or {})
        self.initialized = False
        self.closed = False
        self.list_calls = 0
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.closed = True

    async def initialize(self) -> None:
        self.initialized = True

    async def list_tools(self) -> SimpleNamespace:
        self.list_calls += 1
        return SimpleNamespace(tools=self.tools)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        self.calls.append((name, arguments or {}))
        result = self.results[name]
        if isinstance(result, Exception):
            raise result
        return result


def make_tool(name: str, schema: dict[str, Any] | None = None, description: str | None = None) -> Tool:
    return Tool(
        name=name,
        description=description if description is not None else f"Tool {name}",
        inputSchema=schema if schema is not None else {"type": "object", "properties": {}},
    )


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove every environment variable the config reads."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def add_tool() -> Tool:
    return make_tool("add", ADD_SCHEMA, "Add two numbers")


@pytest.fixture
def make_handle() -> Callable[..., tuple[ToolProviderHandle, FakeSession, AsyncMock]]:
    """Factory returning ``(handle, session, prompt)`` backed by fakes."""

    def _make(
        name: str = "calc",
        tools: list[Tool] | None = None,
        results: dict[str, Any] | None = None,
        answer: str = "yes",
        transport: FakeTransport | None = None,
        **kwargs: Any,
    ) -> tuple[ToolProviderHandle, FakeSession, AsyncMock]:
        session = FakeSession(tools, results)
        prompt = AsyncMock(return_value=answer)
        handle = ToolProviderHandle(
            name,
            transport or FakeTransport(),
            prompt=prompt,
            _session_factory=lambda read, write: session,
            **kwargs,
        )
        return handle, session, prompt

    return _make


@pytest.fixture
def failing_transport() -> FakeTransport:
    return FakeTransport(error=OSError("spawn failed: no such file"))


@pytest.fixture
def add_schema() -> dict[str, Any]:
    return copy.deepcopy(ADD_SCHEMA)


@pytest.fixture
def tool_factory() -> Callable[..., Tool]:
    return make_tool
