"""switchboard — a console agent that routes LLM tool calls to MCP servers."""

__version__ = "0.1.0"
