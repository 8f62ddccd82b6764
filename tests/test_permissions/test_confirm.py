"""Tests for switchboard.permissions.confirm — the operator confirmation gate."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from switchboard.permissions.confirm import confirm_tool_call, format_arguments


class TestFormatArguments:
    def test_compact_and_sorted(self) -> None:
        assert format_arguments({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_stable_across_insertion_order(self) -> None:
        assert format_arguments({"x": 1, "y": 2}) == format_arguments({"y": 2, "x": 1})

    def test_empty(self) -> None:
        assert format_arguments({}) == "{}"


class TestConfirmToolCall:
    @pytest.mark.asyncio
    async def test_exact_yes_approves(self) -> None:
        prompt = AsyncMock(return_value="yes")
        assert await confirm_tool_call(prompt, "add", {"a": 2, "b": 2}) is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answer", ["", "no", "YES", "yes please", "yes\n", "ok"])
    async def test_other_answers_cancel(self, answer: str) -> None:
        prompt = AsyncMock(return_value=answer)
        assert await confirm_tool_call(prompt, "add", {}) is False

    @pytest.mark.asyncio
    async def test_prompt_names_tool_and_args(self) -> None:
        prompt = AsyncMock(return_value="no")
        await confirm_tool_call(prompt, "search", {"query": "mcp"})
        prompt.assert_awaited_once_with(
            '\nType yes to confirm calling tool search with args {"query":"mcp"} '
            "or anything else to cancel: "
        )

    @pytest.mark.asyncio
    async def test_timeout_cancels(self) -> None:
        async def slow(message: str) -> str:
            await asyncio.sleep(1)
            return "yes"

        assert await confirm_tool_call(slow, "add", {}, timeout=0.01) is False

    @pytest.mark.asyncio
    async def test_end_of_input_cancels(self) -> None:
        prompt = AsyncMock(side_effect=EOFError)
        assert await confirm_tool_call(prompt, "add", {}) is False
