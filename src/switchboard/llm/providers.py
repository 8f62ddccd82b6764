"""Multi-provider LLM client — Gemini, OpenAI, and Anthropic.

Conversation history is kept as role/parts :class:`~switchboard.models.Turn`
objects and tools as Gemini-style ``functionDeclarations`` groups. Each
provider translates both into its own wire format and normalizes the reply
back into an :class:`LLMResponse` whose candidates are model turns.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from switchboard.config import ConfigError
from switchboard.models import FunctionCall, Part, Turn

if TYPE_CHECKING:
    from collections.abc import Sequence

    from switchboard.config import AgentConfig

logger = logging.getLogger("switchboard.llm.providers")

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
OPENAI_MODEL_PREFIXES = ("gpt-", "chatgpt-", "o1-", "o3-", "o4-")


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass
class Usage:
    """Token usage for a single LLM call."""

    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


@dataclass
class LLMResponse:
    """Normalized response from any LLM provider."""

    candidates: list[Turn]
    stop_reason: str | None = None
    usage: Usage = field(default_factory=Usage)
    model: str = ""

    @property
    def content(self) -> Turn:
        """The first candidate; the engine reads no other."""
        return self.candidates[0]

    @property
    def text(self) -> str | None:
        return self.candidates[0].first_text() if self.candidates else None


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class LLMProvider(Protocol):
    """Interface that all LLM providers must implement."""

    @property
    def provider_name(self) -> str: ...

    async def generate(
        self,
        contents: Sequence[Turn],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> LLMResponse: ...


# ---------------------------------------------------------------------------
# Tool schema translation
# ---------------------------------------------------------------------------


def _iter_declarations(groups: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    return [decl for group in groups or [] for decl in group.get("functionDeclarations", [])]


def declarations_to_openai(groups: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Convert declaration groups to OpenAI's function calling format."""
    return [
        {
            "type": "function",
            "function": {
                "name": d["name"],
                "description": d.get("description", ""),
                "parameters": d.get("parameters") or {"type": "object", "properties": {}},
            },
        }
        for d in _iter_declarations(groups)
    ]


def declarations_to_anthropic(groups: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Convert declaration groups to Anthropic's tool schema format."""
    return [
        {
            "name": d["name"],
            "description": d.get("description", ""),
            "input_schema": d.get("parameters") or {"type": "object", "properties": {}},
        }
        for d in _iter_declarations(groups)
    ]


# ---------------------------------------------------------------------------
# Message format translation helpers
# ---------------------------------------------------------------------------


def _call_id(turn_index: int, part_index: int) -> str:
    return f"call_{turn_index}_{part_index}"


def _assign_call_ids(contents: Sequence[Turn]) -> list[list[str]]:
    """Resolve a stable id for every function call and response.

    Calls without an id get a positional one; responses without an id take
    the ids of the preceding model turn's calls in order.
    """
    ids: list[list[str]] = []
    pending: list[str] = []
    for t_idx, turn in enumerate(contents):
        turn_ids: list[str] = []
        if turn.role == "model":
            pending = []
            for p_idx, part in enumerate(turn.parts):
                if part.function_call is not None:
                    cid = part.function_call.id or _call_id(t_idx, p_idx)
                    pending.append(cid)
                    turn_ids.append(cid)
        else:
            position = 0
            for p_idx, part in enumerate(turn.parts):
                if part.function_response is not None:
                    cid = part.function_response.id
                    if cid is None:
                        cid = pending[position] if position < len(pending) else _call_id(t_idx, p_idx)
                    position += 1
                    turn_ids.append(cid)
        ids.append(turn_ids)
    return ids


def _response_text(response: Any) -> str:
    if isinstance(response, str):
        return response
    return json.dumps(response, default=str)


def _decode_call(name: str, raw_args: str | None, call_id: str | None) -> FunctionCall:
    """Build a call from JSON-encoded arguments, keeping undecodable text aside."""
    if not raw_args:
        return FunctionCall(name=name, id=call_id)
    try:
        args = json.loads(raw_args)
    except json.JSONDecodeError as exc:
        logger.warning("Model sent malformed arguments for %s: %s", name, exc)
        return FunctionCall(name=name, id=call_id, invalid_args=raw_args)
    if not isinstance(args, dict):
        logger.warning("Model sent non-object arguments for %s: %r", name, raw_args)
        return FunctionCall(name=name, id=call_id, invalid_args=raw_args)
    return FunctionCall(name=name, args=args, id=call_id)


def _turns_to_openai(contents: Sequence[Turn]) -> list[dict[str, Any]]:
    """Translate turns to OpenAI chat messages.

    - Model turns → assistant messages with ``tool_calls``
    - Function responses → ``role: "tool"`` messages
    - User text → user messages
    """
    translated: list[dict[str, Any]] = []
    all_ids = _assign_call_ids(contents)

    for turn, ids in zip(contents, all_ids, strict=True):
        texts = [p.text for p in turn.parts if p.text is not None]
        if turn.role == "model":
            calls = turn.function_calls()
            if not texts and not calls:
                continue
            msg: dict[str, Any] = {
                "role": "assistant",
                "content": "\n\n".join(texts) if texts else None,
            }
            if calls:
                msg["tool_calls"] = [
                    {
                        "id": cid,
                        "type": "function",
                        "function": {"name": fc.name, "arguments": json.dumps(fc.args)},
                    }
                    for fc, cid in zip(calls, ids, strict=True)
                ]
            translated.append(msg)
            continue

        responses = [p.function_response for p in turn.parts if p.function_response is not None]
        for fr, cid in zip(responses, ids, strict=True):
            translated.append({
                "role": "tool",
                "tool_call_id": cid,
                "content": _response_text(fr.response),
            })
        if texts:
            translated.append({"role": "user", "content": "\n\n".join(texts)})

    return translated


def _turns_to_anthropic(contents: Sequence[Turn]) -> list[dict[str, Any]]:
    """Translate turns to Anthropic messages with content blocks.

    Consecutive turns with the same role are merged since the Messages API
    expects strict user/assistant alternation.
    """
    translated: list[dict[str, Any]] = []
    all_ids = _assign_call_ids(contents)

    for turn, ids in zip(contents, all_ids, strict=True):
        role = "assistant" if turn.role == "model" else "user"
        blocks: list[dict[str, Any]] = []
        id_iter = iter(ids)
        for part in turn.parts:
            if part.function_call is not None:
                blocks.append({
                    "type": "tool_use",
                    "id": next(id_iter),
                    "name": part.function_call.name,
                    "input": part.function_call.args,
                })
            elif part.function_response is not None:
                blocks.append({
                    "type": "tool_result",
                    "tool_use_id": next(id_iter),
                    "content": _response_text(part.function_response.response),
                })
            elif part.text:
                blocks.append({"type": "text", "text": part.text})
        if not blocks:
            continue
        if translated and translated[-1]["role"] == role:
            translated[-1]["content"].extend(blocks)
        else:
            translated.append({"role": role, "content": blocks})

    return translated


# ---------------------------------------------------------------------------
# OpenAI provider
# ---------------------------------------------------------------------------


class OpenAIProvider:
    """LLM provider using the OpenAI Chat Completions API."""

    def __init__(
        self,
        api_key: str,
        default_model: str,
        *,
        base_url: str | None = None,
        _client: Any = None,
    ) -> None:
        self._default_model = default_model
        if _client is not None:
            self._client = _client
        else:
            import openai

            self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    @property
    def provider_name(self) -> str:
        return "openai"

    async def generate(
        self,
        contents: Sequence[Turn],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": model or self._default_model,
            "messages": _turns_to_openai(contents),
        }
        oai_tools = declarations_to_openai(tools)
        if oai_tools:
            kwargs["tools"] = oai_tools

        response = await self._client.chat.completions.create(**kwargs)

        choice = response.choices[0]
        message = choice.message

        parts: list[Part] = []
        if message.content:
            parts.append(Part.from_text(message.content))
        for tc in message.tool_calls or []:
            parts.append(Part(function_call=_decode_call(tc.function.name, tc.function.arguments, tc.id)))

        usage = Usage()
        if response.usage is not None:
            usage = Usage(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
            )

        return LLMResponse(
            candidates=[Turn(role="model", parts=parts)],
            stop_reason=choice.finish_reason,
            usage=usage,
            model=response.model,
        )


class GeminiProvider(OpenAIProvider):
    """Gemini via its OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: str,
        default_model: str,
        *,
        base_url: str = GEMINI_OPENAI_BASE_URL,
        _client: Any = None,
    ) -> None:
        super().__init__(api_key, default_model, base_url=base_url, _client=_client)

    @property
    def provider_name(self) -> str:
        return "gemini"


# ---------------------------------------------------------------------------
# Anthropic provider
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """LLM provider using the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        default_model: str,
        *,
        max_tokens: int = 4096,
        _client: Any = None,
    ) -> None:
        self._default_model = default_model
        self._max_tokens = max_tokens
        if _client is not None:
            self._client = _client
        else:
            import anthropic

            self._client = anthropic.AsyncAnthropic(api_key=api_key)

    @property
    def provider_name(self) -> str:
        return "anthropic"

    async def generate(
        self,
        contents: Sequence[Turn],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": model or self._default_model,
            "messages": _turns_to_anthropic(contents),
            "max_tokens": self._max_tokens,
        }
        anthropic_tools = declarations_to_anthropic(tools)
        if anthropic_tools:
            kwargs["tools"] = anthropic_tools

        response = await self._client.messages.create(**kwargs)

        parts: list[Part] = []
        for block in response.content:
            if block.type == "text":
                parts.append(Part.from_text(block.text))
            elif block.type == "tool_use":
                parts.append(Part.from_call(block.name, dict(block.input), id=block.id))

        return LLMResponse(
            candidates=[Turn(role="model", parts=parts)],
            stop_reason=response.stop_reason,
            usage=Usage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            ),
            model=response.model,
        )


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def create_provider(config: AgentConfig) -> LLMProvider:
    """Pick a provider for ``config.model`` based on its name prefix."""
    model = config.model
    if model.startswith("gemini-"):
        if not config.google_api_key:
            raise ConfigError(f"GOOGLE_API_KEY is required for model {model!r}")
        return GeminiProvider(config.google_api_key, model)
    if model.startswith(OPENAI_MODEL_PREFIXES):
        if not config.openai_api_key:
            raise ConfigError(f"OPENAI_API_KEY is required for model {model!r}")
        return OpenAIProvider(config.openai_api_key, model)
    if model.startswith("claude-"):
        if not config.anthropic_api_key:
            raise ConfigError(f"ANTHROPIC_API_KEY is required for model {model!r}")
        return AnthropicProvider(config.anthropic_api_key, model)
    raise ConfigError(f"No LLM provider known for model {model!r}")
