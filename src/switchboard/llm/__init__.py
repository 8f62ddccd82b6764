"""LLM integration — multi-provider client and the conversation engine."""

from switchboard.llm.engine import (
    ConversationEngine,
    EngineEvent,
    EngineEventType,
    EngineState,
)
from switchboard.llm.providers import (
    AnthropicProvider,
    GeminiProvider,
    LLMProvider,
    LLMResponse,
    OpenAIProvider,
    Usage,
    create_provider,
)

__all__ = [
    "AnthropicProvider",
    "ConversationEngine",
    "EngineEvent",
    "EngineEventType",
    "EngineState",
    "GeminiProvider",
    "LLMProvider",
    "LLMResponse",
    "OpenAIProvider",
    "Usage",
    "create_provider",
]
