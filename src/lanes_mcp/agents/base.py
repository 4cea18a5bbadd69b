"""Code agent capability interface and the built-in agents."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from .models import AgentConfig, AgentStatus, SessionData

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
OPENCODE_SESSION_PATTERN = re.compile(r"^ses_[A-Za-z0-9]+$")
INDEX_PATTERN = re.compile(r"^\d+$")


def _load_json_object(content: str) -> dict[str, Any] | None:
    try:
        data = json.loads(content)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


class CodeAgent(ABC):
    """Per-agent file naming and parsing used by the session stores.

    Stores that are given no agent fall back to the legacy built-in parsing,
    which matches the historical Claude file format.
    """

    #: Whether the session document's ``isChimeEnabled`` flag is surfaced.
    keeps_chime_preference = True

    def __init__(self, config: AgentConfig) -> None:
        self._config = config

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def display_name(self) -> str:
        return self._config.display_name

    def session_file_name(self) -> str:
        return self._config.session_file_name

    def status_file_name(self) -> str:
        return self._config.status_file_name

    def is_valid_session_id(self, session_id: str) -> bool:
        # Session ids end up in shell resume commands.
        return bool(UUID_PATTERN.match(session_id))

    def parse_session_data(self, content: str) -> SessionData | None:
        """Parse raw session file content, returning ``None`` when invalid."""

        data = _load_json_object(content)
        if data is None:
            return None
        session_id = data.get("sessionId")
        if not isinstance(session_id, str) or not self.is_valid_session_id(session_id):
            return None
        chime = data.get("isChimeEnabled") if self.keeps_chime_preference else None
        return SessionData(
            session_id=session_id,
            timestamp=_optional_str(data.get("timestamp")),
            workflow=_optional_str(data.get("workflow")),
            agent_name=self.name,
            is_chime_enabled=chime if isinstance(chime, bool) else None,
        )

    def parse_status(self, content: str) -> AgentStatus | None:
        """Parse raw status file content, returning ``None`` when invalid."""

        data = _load_json_object(content)
        if data is None:
            return None
        status = data.get("status")
        if not isinstance(status, str) or not status:
            return None
        return AgentStatus(
            status=status,
            timestamp=_optional_str(data.get("timestamp")),
            message=_optional_str(data.get("message")),
        )

    @abstractmethod
    def valid_status_states(self) -> list[str]:
        """Status values this agent is able to report."""

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"{type(self).__name__}(name={self.name!r})"


class ClaudeCodeAgent(CodeAgent):
    """Claude Code: hook-driven status with granular working/waiting states."""

    keeps_chime_preference = False

    def __init__(self) -> None:
        super().__init__(
            AgentConfig(
                name="claude",
                display_name="Claude",
                cli_command="claude",
                session_file_name=".claude-session",
                status_file_name=".claude-status",
                settings_file_name="claude-settings.json",
                data_dir=".claude",
            )
        )

    def valid_status_states(self) -> list[str]:
        return ["working", "waiting_for_user", "idle", "error"]


class CodexAgent(CodeAgent):
    """Codex CLI: hookless, so status is limited to active/idle."""

    def __init__(self) -> None:
        super().__init__(
            AgentConfig(
                name="codex",
                display_name="Codex",
                cli_command="codex",
                session_file_name=".claude-session",
                status_file_name=".claude-status",
                settings_file_name="config.toml",
                data_dir=".codex",
            )
        )

    def valid_status_states(self) -> list[str]:
        return ["active", "idle"]


class GeminiAgent(CodeAgent):
    """Gemini CLI: resumes by UUID, by numeric index or with ``latest``."""

    LATEST = "latest"

    def __init__(self) -> None:
        super().__init__(
            AgentConfig(
                name="gemini",
                display_name="Gemini CLI",
                cli_command="gemini",
                session_file_name=".claude-session",
                status_file_name=".claude-status",
                settings_file_name="settings.json",
                data_dir=".gemini",
            )
        )

    def is_valid_session_id(self, session_id: str) -> bool:
        return (
            bool(UUID_PATTERN.match(session_id))
            or bool(INDEX_PATTERN.match(session_id))
            or session_id == self.LATEST
        )

    def valid_status_states(self) -> list[str]:
        return ["working", "waiting_for_user", "idle", "error"]


class OpenCodeAgent(CodeAgent):
    """OpenCode: ``ses_`` session ids; status comes from session log polling."""

    def __init__(self) -> None:
        super().__init__(
            AgentConfig(
                name="opencode",
                display_name="OpenCode",
                cli_command="opencode",
                session_file_name=".claude-session",
                status_file_name=".claude-status",
                settings_file_name="opencode.jsonc",
                data_dir=".opencode",
            )
        )

    def is_valid_session_id(self, session_id: str) -> bool:
        return bool(OPENCODE_SESSION_PATTERN.match(session_id))

    def valid_status_states(self) -> list[str]:
        return ["active", "idle", "working", "waiting_for_user"]


class CortexCodeAgent(CodeAgent):
    """Cortex Code: hook-driven like Claude, with UUID session ids."""

    def __init__(self) -> None:
        super().__init__(
            AgentConfig(
                name="cortex",
                display_name="Cortex Code",
                cli_command="cortex",
                session_file_name=".claude-session",
                status_file_name=".claude-status",
                settings_file_name="cortex-settings.json",
                data_dir=".cortex",
            )
        )

    def valid_status_states(self) -> list[str]:
        return ["working", "waiting_for_user", "idle", "error"]


__all__ = [
    "ClaudeCodeAgent",
    "CodeAgent",
    "CodexAgent",
    "CortexCodeAgent",
    "GeminiAgent",
    "OPENCODE_SESSION_PATTERN",
    "OpenCodeAgent",
    "UUID_PATTERN",
]
