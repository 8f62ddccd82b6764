"""Human-in-the-loop confirmation for tool calls."""

from switchboard.permissions.confirm import (
    APPROVE_ANSWER,
    CONFIRM_PROMPT,
    confirm_tool_call,
    format_arguments,
)

__all__ = [
    "APPROVE_ANSWER",
    "CONFIRM_PROMPT",
    "confirm_tool_call",
    "format_arguments",
]
