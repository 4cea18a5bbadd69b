"""Session state models."""

from __future__ import annotations

from typing import Literal, get_args

from pydantic import BaseModel, Field

AgentStatusState = Literal["working", "waiting_for_user", "active", "idle", "error"]
TerminalMode = Literal["code", "tmux"]

VALID_STATUS_VALUES: tuple[str, ...] = get_args(AgentStatusState)
TERMINAL_MODES: tuple[str, ...] = get_args(TerminalMode)


class AgentSessionStatus(BaseModel):
    """Validated status of an agent process."""

    status: AgentStatusState
    timestamp: str | None = None
    message: str | None = None


class AgentSessionData(BaseModel):
    """Session id document as exposed to callers."""

    session_id: str = Field(..., description="Opaque id issued by the agent.")
    timestamp: str | None = None
    workflow: str | None = None
    permission_mode: str | None = None
    agent_name: str | None = None
    is_chime_enabled: bool | None = None
    task_list_id: str | None = None
    terminal: TerminalMode | None = None
    log_path: str | None = Field(
        default=None,
        description="Agent log file, polled for status by hookless agents.",
    )


class WorkflowStatus(BaseModel):
    """Progress summary derived from a worktree's workflow-state.json."""

    active: bool
    workflow: str | None = None
    step: str | None = None
    progress: str | None = None
    summary: str | None = None


__all__ = [
    "AgentSessionData",
    "AgentSessionStatus",
    "AgentStatusState",
    "TERMINAL_MODES",
    "TerminalMode",
    "VALID_STATUS_VALUES",
    "WorkflowStatus",
]
