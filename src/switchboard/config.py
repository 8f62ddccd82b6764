"""Agent configuration loaded from environment variables and the provider map."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from switchboard.tools.transports import Transport

logger = logging.getLogger("switchboard.config")

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_SERVER_CONFIG = "mcp_config.json"
DEFAULT_MAX_ROUNDS = 25
DEFAULT_CONFIRM_TIMEOUT = 120.0
DEFAULT_REQUEST_TIMEOUT = 60.0

PROVIDER_FAILURE_POLICIES = ("isolate", "abort")
TOOL_COLLISION_POLICIES = ("last_wins", "error")


class ConfigError(ValueError):
    """Raised for missing, malformed, or unsupported configuration."""


def _env_str(name: str) -> str | None:
    return os.environ.get(name, "").strip() or None


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def _env_choice(name: str, choices: tuple[str, ...]) -> str:
    raw = (_env_str(name) or choices[0]).lower()
    if raw not in choices:
        raise ConfigError(f"{name} must be one of {', '.join(choices)}; got {raw!r}")
    return raw


@dataclass(frozen=True)
class AgentConfig:
    """Immutable agent configuration. Construct via ``from_env()`` or directly for tests."""

    model: str = DEFAULT_MODEL
    google_api_key: str | None = None
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    server_config_path: Path = Path(DEFAULT_SERVER_CONFIG)
    max_rounds: int | None = DEFAULT_MAX_ROUNDS
    confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    provider_failure: str = "isolate"
    tool_collision: str = "last_wins"

    @classmethod
    def from_env(cls) -> AgentConfig:
        """Build config from ``os.environ``. Raises ``ConfigError`` on invalid values."""
        raw_rounds = _env_str("SWITCHBOARD_MAX_ROUNDS")
        max_rounds: int | None = DEFAULT_MAX_ROUNDS
        if raw_rounds is not None:
            try:
                rounds = int(raw_rounds)
            except ValueError:
                raise ConfigError(
                    f"SWITCHBOARD_MAX_ROUNDS must be an integer, got {raw_rounds!r}"
                ) from None
            if rounds < 0:
                raise ConfigError("SWITCHBOARD_MAX_ROUNDS must not be negative")
            max_rounds = rounds or None

        raw_path = _env_str("SWITCHBOARD_CONFIG")
        server_config_path = (
            Path(raw_path).expanduser() if raw_path else Path(DEFAULT_SERVER_CONFIG)
        )

        config = cls(
            model=_env_str("SWITCHBOARD_MODEL") or DEFAULT_MODEL,
            google_api_key=_env_str("GOOGLE_API_KEY"),
            openai_api_key=_env_str("OPENAI_API_KEY"),
            anthropic_api_key=_env_str("ANTHROPIC_API_KEY"),
            server_config_path=server_config_path,
            max_rounds=max_rounds,
            confirm_timeout=_env_float("SWITCHBOARD_CONFIRM_TIMEOUT", DEFAULT_CONFIRM_TIMEOUT),
            request_timeout=_env_float("SWITCHBOARD_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            provider_failure=_env_choice("SWITCHBOARD_PROVIDER_FAILURE", PROVIDER_FAILURE_POLICIES),
            tool_collision=_env_choice("SWITCHBOARD_TOOL_COLLISION", TOOL_COLLISION_POLICIES),
        )
        logger.info(
            "Config loaded: model=%s, servers=%s, max_rounds=%s",
            config.model, config.server_config_path, config.max_rounds,
        )
        return config


def parse_server_config(data: Any) -> dict[str, Transport]:
    """Validate a provider map and build one transport per entry.

    Accepts either ``{name: descriptor}`` or the ``{"mcpServers": {...}}``
    wrapper. Every entry is checked up front so that a bad transport type
    fails at startup rather than on first use.
    """
    from switchboard.tools.transports import build_transport

    if isinstance(data, dict) and isinstance(data.get("mcpServers"), dict):
        data = data["mcpServers"]
    if not isinstance(data, dict):
        raise ConfigError("Provider config must be a JSON object mapping names to descriptors")

    transports: dict[str, Transport] = {}
    for name, descriptor in data.items():
        if not isinstance(descriptor, dict):
            raise ConfigError(f"Provider {name!r}: descriptor must be an object")
        transports[name] = build_transport(name, descriptor)
    return transports


def load_server_config(path: Path) -> dict[str, Transport]:
    """Load the provider map from *path*."""
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError:
        raise ConfigError(f"Provider config not found: {path}") from None
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Provider config {path} is not valid JSON: {exc}") from exc
    transports = parse_server_config(data)
    logger.info("Loaded %d tool provider(s) from %s", len(transports), path)
    return transports
