"""Confirmation gate — the operator must type ``yes`` before a tool runs.

Only the exact literal ``yes`` approves. Any other answer, an empty line,
end of input, or a timeout cancels the call.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("switchboard.permissions.confirm")

CONFIRM_PROMPT = (
    "\nType yes to confirm calling tool {name} with args {args} or anything else to cancel: "
)
APPROVE_ANSWER = "yes"


def format_arguments(args: dict[str, Any]) -> str:
    """Stable compact JSON for display in the confirmation prompt."""
    return json.dumps(args, sort_keys=True, separators=(",", ":"), default=str)


async def confirm_tool_call(
    prompt: Callable[[str], Awaitable[str]],
    tool_name: str,
    args: dict[str, Any],
    timeout: float | None = None,
) -> bool:
    """Ask the operator to approve *tool_name* with *args*.

    *prompt* writes its argument and returns one line of input. Returns
    ``True`` only for an exact ``yes`` answered within *timeout* seconds.
    """
    message = CONFIRM_PROMPT.format(name=tool_name, args=format_arguments(args))
    try:
        async with asyncio.timeout(timeout):
            answer = await prompt(message)
    except TimeoutError:
        logger.info("Confirmation for %s timed out after %ss", tool_name, timeout)
        return False
    except EOFError:
        logger.info("Input closed while confirming %s", tool_name)
        return False
    return answer == APPROVE_ANSWER
