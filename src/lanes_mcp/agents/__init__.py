"""Code agent capabilities: file naming and session/status parsing."""

from .base import ClaudeCodeAgent, CodeAgent, CodexAgent, CortexCodeAgent, GeminiAgent, OpenCodeAgent
from .factory import DEFAULT_AGENT_NAME, available_agents, get_agent, resolve_default_agent
from .models import AgentConfig, AgentStatus, SessionData

__all__ = [
    "AgentConfig",
    "AgentStatus",
    "ClaudeCodeAgent",
    "CodeAgent",
    "CodexAgent",
    "CortexCodeAgent",
    "DEFAULT_AGENT_NAME",
    "GeminiAgent",
    "OpenCodeAgent",
    "SessionData",
    "available_agents",
    "get_agent",
    "resolve_default_agent",
]
