"""Conversation data model — turns, parts, and function call payloads.

Turns follow the role/parts layout of the Gemini API: a ``model`` turn
carries text and function calls, a ``user`` turn carries text or the
function responses that answer them. Provider translators map these
objects onto each vendor's message format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. "
    "USE AVAILABLE TOOLS FOR ANY INFORMATION YOU NEED BEFORE ASKING FOR THAT"
)

ROLES = ("user", "model")


class InvalidTurnError(ValueError):
    """Raised when a turn is built with an unknown role."""


@dataclass
class FunctionCall:
    """A tool invocation requested by the model.

    ``invalid_args`` holds the raw argument text when the model sent
    arguments that could not be decoded; ``args`` is then empty and the
    call is answered as failed without reaching the provider.
    """

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
    invalid_args: str | None = None


@dataclass
class FunctionResponse:
    """The result of a tool invocation, reported back to the model."""

    name: str
    response: Any
    id: str | None = None


@dataclass
class Part:
    """One element of a turn: text, a function call, or a function response."""

    text: str | None = None
    function_call: FunctionCall | None = None
    function_response: FunctionResponse | None = None

    @classmethod
    def from_text(cls, text: str) -> Part:
        return cls(text=text)

    @classmethod
    def from_call(cls, name: str, args: dict[str, Any], id: str | None = None) -> Part:
        return cls(function_call=FunctionCall(name=name, args=args, id=id))

    @classmethod
    def from_response(cls, name: str, response: Any, id: str | None = None) -> Part:
        return cls(function_response=FunctionResponse(name=name, response=response, id=id))


@dataclass
class Turn:
    """A role-tagged message made of an ordered list of parts."""

    role: str
    parts: list[Part] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise InvalidTurnError(f"Invalid role {self.role!r}; expected one of {ROLES}")

    @classmethod
    def user_text(cls, text: str) -> Turn:
        return cls(role="user", parts=[Part.from_text(text)])

    def function_calls(self) -> list[FunctionCall]:
        """Function call requests in the order they appear."""
        return [p.function_call for p in self.parts if p.function_call is not None]

    def has_function_calls(self) -> bool:
        return any(p.function_call is not None for p in self.parts)

    def first_text(self) -> str | None:
        """Return the first text part, or ``None`` if the turn has none."""
        for part in self.parts:
            if part.function_call is None and part.function_response is None:
                if part.text is not None:
                    return part.text
        return None
