"""Lanes MCP: per-session state persistence for isolated coding-agent worktrees."""

__version__ = "0.3.0"

__all__ = ["__version__"]
