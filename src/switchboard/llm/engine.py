"""Conversation engine — the tool-calling turn loop.

Sends the conversation and tool declarations to the LLM, dispatches any
function calls in the reply to their providers (each behind operator
confirmation), appends the results as a user turn, and loops until the
model answers with no function calls or the round cap is reached.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from switchboard.llm.providers import LLMResponse, Usage
from switchboard.models import Part, Turn
from switchboard.tools.handle import TransportError
from switchboard.tools.registry import UnknownToolError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from switchboard.llm.providers import LLMProvider
    from switchboard.models import FunctionCall
    from switchboard.tools.registry import ToolRegistry

logger = logging.getLogger("switchboard.llm.engine")

FAILED_CALL_RESPONSE: dict[str, Any] = {
    "content": {"type": "text", "text": "Tool/Function call failed or was cancelled."},
}


class EngineState(Enum):
    """Where the engine is within one ``process_query`` call."""

    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_CALLS = "dispatching_calls"
    DONE = "done"


class EngineEventType(Enum):
    """Lifecycle events emitted during the turn loop."""

    LLM_CALL_START = "llm_call_start"
    LLM_CALL_COMPLETE = "llm_call_complete"
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_COMPLETE = "tool_call_complete"
    LOOP_COMPLETE = "loop_complete"


@dataclass
class EngineEvent:
    """Event payload for turn loop lifecycle callbacks."""

    type: EngineEventType
    round: int
    tool_name: str | None = None
    tool_arguments: dict[str, Any] | None = None
    accepted: bool | None = None
    usage_delta: Usage | None = None
    total_usage: Usage | None = None
    tool_calls_made: int = 0
    tools_used: list[str] = field(default_factory=list)


async def _fire_event(
    on_event: Callable[[EngineEvent], Awaitable[None]] | None,
    event: EngineEvent,
) -> None:
    """Fire an event callback, swallowing any errors."""
    if on_event is None:
        return
    try:
        await on_event(event)
    except Exception:
        logger.warning("on_event callback error for %s", event.type, exc_info=True)


def _failed_response(call: FunctionCall) -> Part:
    return Part.from_response(call.name, copy.deepcopy(FAILED_CALL_RESPONSE), id=call.id)


class ConversationEngine:
    """Drives one query at a time through the LLM / tool-provider loop.

    Parameters
    ----------
    provider:
        The LLM provider (Gemini, OpenAI, or Anthropic).
    registry:
        Tool registry; owned by the engine for the session.
    model:
        Model identifier passed on every LLM call.
    max_rounds:
        Maximum LLM calls per query. ``None`` removes the cap.
    on_event:
        Optional async callback receiving :class:`EngineEvent` objects.
    """

    def __init__(
        self,
        provider: LLMProvider,
        registry: ToolRegistry,
        model: str,
        *,
        max_rounds: int | None = 25,
        on_event: Callable[[EngineEvent], Awaitable[None]] | None = None,
    ) -> None:
        if max_rounds is not None and max_rounds < 1:
            raise ValueError("max_rounds must be at least 1 or None")
        self.provider = provider
        self.registry = registry
        self.model = model
        self.max_rounds = max_rounds
        self.on_event = on_event
        self.state = EngineState.DONE

    async def process_query(
        self,
        query: str,
        history: Sequence[Turn] = (),
        role: str = "user",
    ) -> tuple[LLMResponse, list[Turn]]:
        """Run one query to completion.

        Returns ``(final_response, updated_history)``. *history* itself is
        left untouched; the returned list is a new, extended copy.
        """
        contents = [*history, Turn(role=role, parts=[Part.from_text(query)])]
        total_usage = Usage()
        tool_calls_made = 0
        tools_used: list[str] = []
        round_no = 0

        while True:
            if self.max_rounds is not None and round_no >= self.max_rounds:
                return self._stop_at_cap(contents, round_no, total_usage, tool_calls_made, tools_used)

            round_no += 1
            self.state = EngineState.AWAITING_MODEL
            await _fire_event(
                self.on_event,
                EngineEvent(
                    type=EngineEventType.LLM_CALL_START,
                    round=round_no,
                    total_usage=total_usage,
                    tool_calls_made=tool_calls_made,
                    tools_used=list(tools_used),
                ),
            )

            tools = await self.registry.load_tools()
            response = await self.provider.generate(contents, tools=tools, model=self.model)
            total_usage = total_usage + response.usage
            reply = response.candidates[0]
            contents.append(reply)

            await _fire_event(
                self.on_event,
                EngineEvent(
                    type=EngineEventType.LLM_CALL_COMPLETE,
                    round=round_no,
                    usage_delta=response.usage,
                    total_usage=total_usage,
                    tool_calls_made=tool_calls_made,
                    tools_used=list(tools_used),
                ),
            )

            calls = reply.function_calls()
            if not calls:
                self.state = EngineState.DONE
                logger.debug(
                    "Query finished after %d round(s), %d tool call(s), usage=%s",
                    round_no, tool_calls_made, total_usage,
                )
                await _fire_event(
                    self.on_event,
                    EngineEvent(
                        type=EngineEventType.LOOP_COMPLETE,
                        round=round_no,
                        total_usage=total_usage,
                        tool_calls_made=tool_calls_made,
                        tools_used=list(tools_used),
                    ),
                )
                return response, contents

            self.state = EngineState.DISPATCHING_CALLS
            response_parts: list[Part] = []
            for call in calls:
                await _fire_event(
                    self.on_event,
                    EngineEvent(
                        type=EngineEventType.TOOL_CALL_START,
                        round=round_no,
                        tool_name=call.name,
                        tool_arguments=call.args,
                        tool_calls_made=tool_calls_made,
                        tools_used=list(tools_used),
                    ),
                )

                part, accepted = await self._dispatch(call)
                response_parts.append(part)
                tool_calls_made += 1
                if call.name not in tools_used:
                    tools_used.append(call.name)

                await _fire_event(
                    self.on_event,
                    EngineEvent(
                        type=EngineEventType.TOOL_CALL_COMPLETE,
                        round=round_no,
                        tool_name=call.name,
                        accepted=accepted,
                        tool_calls_made=tool_calls_made,
                        tools_used=list(tools_used),
                    ),
                )

            contents.append(Turn(role="user", parts=response_parts))

    async def _dispatch(self, call: FunctionCall) -> tuple[Part, bool]:
        """Run one function call; any failure becomes the fixed failed-call payload."""
        if call.invalid_args is not None:
            logger.warning("Not calling %s: arguments were not a JSON object", call.name)
            return _failed_response(call), False

        try:
            entry = self.registry.resolve(call.name)
        except UnknownToolError as exc:
            logger.warning("%s requested by the model", exc)
            return _failed_response(call), False

        try:
            invocation = await entry.owner.call_tool(call.name, call.args)
        except TransportError as exc:
            logger.warning("%s", exc)
            return _failed_response(call), False
        except Exception:
            logger.exception("Tool %s raised an unexpected error", call.name)
            return _failed_response(call), False

        if not invocation.accepted:
            return _failed_response(call), False
        return Part.from_response(call.name, invocation.result, id=call.id), True

    def _stop_at_cap(
        self,
        contents: list[Turn],
        rounds: int,
        total_usage: Usage,
        tool_calls_made: int,
        tools_used: list[str],
    ) -> tuple[LLMResponse, list[Turn]]:
        message = (
            f"Stopped after {rounds} model rounds without a final answer. "
            f"Total tool calls: {tool_calls_made}. The request may be incomplete."
        )
        logger.warning("Round cap reached: %s", message)
        stop_turn = Turn(role="model", parts=[Part.from_text(message)])
        contents.append(stop_turn)
        self.state = EngineState.DONE
        response = LLMResponse(
            candidates=[stop_turn],
            stop_reason="max_rounds",
            usage=total_usage,
            model=self.model,
        )
        return response, contents
