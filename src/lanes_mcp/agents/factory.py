"""Lookup of code agents by name."""

from __future__ import annotations

import logging
from typing import Callable

from .base import (
    ClaudeCodeAgent,
    CodeAgent,
    CodexAgent,
    CortexCodeAgent,
    GeminiAgent,
    OpenCodeAgent,
)

DEFAULT_AGENT_NAME = "claude"

logger = logging.getLogger(__name__)

_CONSTRUCTORS: dict[str, Callable[[], CodeAgent]] = {
    "claude": ClaudeCodeAgent,
    "codex": CodexAgent,
    "gemini": GeminiAgent,
    "opencode": OpenCodeAgent,
    "cortex": CortexCodeAgent,
}
_INSTANCES: dict[str, CodeAgent] = {}


def available_agents() -> list[str]:
    """Return the names of all known agents."""

    return list(_CONSTRUCTORS)


def _instance(name: str, constructor: Callable[[], CodeAgent]) -> CodeAgent:
    if name not in _INSTANCES:
        _INSTANCES[name] = constructor()
    return _INSTANCES[name]


def get_agent(name: str) -> CodeAgent | None:
    """Return the cached agent instance for ``name`` or ``None`` if unknown."""

    constructor = _CONSTRUCTORS.get(name)
    if constructor is None:
        return None
    return _instance(name, constructor)


def resolve_default_agent(name: str | None) -> CodeAgent:
    """Return the configured default agent, falling back to Claude."""

    agent = get_agent(name) if name else None
    if agent is not None:
        return agent
    logger.warning(
        "Unknown default agent; falling back to Claude",
        extra={"agent": name, "available": available_agents()},
    )
    return _instance(DEFAULT_AGENT_NAME, _CONSTRUCTORS[DEFAULT_AGENT_NAME])


__all__ = ["DEFAULT_AGENT_NAME", "available_agents", "get_agent", "resolve_default_agent"]
