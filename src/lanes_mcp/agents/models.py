"""Models shared by code agent implementations."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentConfig(BaseModel):
    """Static description of a code agent and the files it owns."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Stable identifier stored as agentName in session files.")
    display_name: str = Field(..., description="Human-friendly agent name.")
    cli_command: str = Field(..., description="Executable used to launch the agent.")
    session_file_name: str = Field(..., description="File name of the per-session id document.")
    status_file_name: str = Field(..., description="File name of the per-session status artifact.")
    settings_file_name: str = Field(..., description="File name of generated agent settings.")
    data_dir: str = Field(..., description="Agent data directory inside a worktree.")

    @field_validator("name", "session_file_name", "status_file_name")
    @classmethod
    def _require_value(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Agent name and file names must not be empty")
        return normalized


class SessionData(BaseModel):
    """Session id document as understood by a specific agent."""

    session_id: str
    timestamp: str | None = None
    workflow: str | None = None
    agent_name: str | None = None
    is_chime_enabled: bool | None = None


class AgentStatus(BaseModel):
    """Raw status reported by an agent, before state validation."""

    status: str
    timestamp: str | None = None
    message: str | None = None


__all__ = ["AgentConfig", "AgentStatus", "SessionData"]
