"""Per-session state stored in the session id document."""

from __future__ import annotations

import base64
import json
import logging
import re
import secrets
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..agents import DEFAULT_AGENT_NAME, CodeAgent, get_agent
from ..storage import (
    ArtifactKind,
    JsonDocumentStore,
    StorageContext,
    StorageLocationResolver,
    session_name_from_worktree,
)
from .models import TERMINAL_MODES, AgentSessionData

SESSION_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
TASK_LIST_SUFFIX_LENGTH = 6

_URLSAFE_NON_ALNUM = str.maketrans("", "", "-_=")

logger = logging.getLogger(__name__)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _non_empty_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def generate_task_list_id(session_name: str) -> str:
    """Return ``<session_name>-<6 alphanumeric chars>``."""

    suffix = ""
    while len(suffix) < TASK_LIST_SUFFIX_LENGTH:
        encoded = base64.urlsafe_b64encode(secrets.token_bytes(6)).decode("ascii")
        suffix += encoded.translate(_URLSAFE_NON_ALNUM)
    return f"{session_name}-{suffix[:TASK_LIST_SUFFIX_LENGTH]}"


class SessionStateStore:
    """Typed accessors over a session's id document.

    Every setter merges the single field it owns into the stored document,
    so concurrent writers of different fields do not clobber each other.
    Getters treat missing files, malformed JSON and wrong-typed values as
    absent. Setters log and return ``False`` on I/O failure instead of
    raising, because session persistence is auxiliary to the caller's flow.
    """

    def __init__(
        self,
        context: StorageContext,
        *,
        documents: JsonDocumentStore | None = None,
        resolver: StorageLocationResolver | None = None,
    ) -> None:
        self._context = context
        self._documents = documents or JsonDocumentStore()
        self._resolver = resolver or StorageLocationResolver(context)

    @property
    def resolver(self) -> StorageLocationResolver:
        return self._resolver

    def _repo_root(self, worktree: str | Path) -> Path:
        return Path(self._context.base_repo_path or worktree)

    def session_file_path(self, worktree: str | Path, agent: CodeAgent | None = None) -> Path | None:
        """Write target for the session document, ``None`` for an unsafe session name."""

        resolved = self._resolver.resolve(
            self._repo_root(worktree),
            session_name_from_worktree(worktree),
            ArtifactKind.SESSION,
            agent=agent,
        )
        return resolved.path if resolved else None

    async def resolve_session_file_path(
        self, worktree: str | Path, agent: CodeAgent | None = None
    ) -> Path | None:
        """Read location: the write target, or the alternate location if only that exists."""

        primary = self.session_file_path(worktree, agent)
        if primary is None or await self._documents.exists(primary):
            return primary
        alternate = self._resolver.alternate(
            self._repo_root(worktree),
            session_name_from_worktree(worktree),
            ArtifactKind.SESSION,
            agent=agent,
        )
        if alternate is not None and await self._documents.exists(alternate.path):
            return alternate.path
        return primary

    async def _read(self, worktree: str | Path) -> dict[str, Any] | None:
        path = await self.resolve_session_file_path(worktree)
        if path is None:
            return None
        return await self._documents.read(path)

    async def _save_fields(self, worktree: str | Path, patch: dict[str, Any], label: str) -> bool:
        path = self.session_file_path(worktree)
        if path is None:
            return False
        try:
            await self._documents.merge(path, patch)
        except OSError as exc:
            logger.warning(
                "Failed to save session %s",
                label,
                extra={"path": str(path), "error": str(exc)},
            )
            return False
        return True

    # -- session id --------------------------------------------------------

    async def get_session_id(
        self, worktree: str | Path, agent: CodeAgent | None = None
    ) -> AgentSessionData | None:
        """Return the session data if it carries a valid session id.

        With an agent (explicit, the document's own ``agentName``, or the
        context default) validation is delegated to that agent's parser.
        Without one, the legacy allow-list ``[a-zA-Z0-9_-]+`` applies.
        """

        path = await self.resolve_session_file_path(worktree, agent)
        if path is None:
            return None
        content = await self._documents.read_text(path)
        if content is None:
            return None
        try:
            raw = json.loads(content)
        except ValueError:
            raw = None
        if not isinstance(raw, dict):
            raw = {}

        selected = agent or self._context.agent
        if agent is None and selected is not None:
            stored_name = raw.get("agentName")
            if isinstance(stored_name, str) and stored_name != selected.name:
                selected = get_agent(stored_name) or selected

        terminal = raw.get("terminal")
        chime = raw.get("isChimeEnabled")
        extras = {
            "permission_mode": _non_empty_str(raw.get("permissionMode")),
            "task_list_id": _non_empty_str(raw.get("taskListId")),
            "terminal": terminal if terminal in TERMINAL_MODES else None,
            "log_path": raw.get("logPath") if isinstance(raw.get("logPath"), str) else None,
        }

        if selected is not None:
            parsed = selected.parse_session_data(content)
            if parsed is None:
                return None
            return AgentSessionData(
                session_id=parsed.session_id,
                timestamp=parsed.timestamp,
                workflow=parsed.workflow,
                agent_name=parsed.agent_name,
                is_chime_enabled=parsed.is_chime_enabled,
                **extras,
            )

        session_id = _non_empty_str(raw.get("sessionId"))
        if session_id is None or not SESSION_ID_PATTERN.match(session_id):
            return None
        timestamp = raw.get("timestamp")
        workflow = raw.get("workflow")
        return AgentSessionData(
            session_id=session_id,
            timestamp=timestamp if isinstance(timestamp, str) else None,
            workflow=workflow if isinstance(workflow, str) else None,
            agent_name=_non_empty_str(raw.get("agentName")) or DEFAULT_AGENT_NAME,
            is_chime_enabled=chime if isinstance(chime, bool) else None,
            **extras,
        )

    async def save_session_id(
        self,
        worktree: str | Path,
        session_id: str,
        *,
        agent_name: str | None = None,
    ) -> bool:
        patch: dict[str, Any] = {"sessionId": session_id, "timestamp": _utc_timestamp()}
        if agent_name:
            patch["agentName"] = agent_name
        return await self._save_fields(worktree, patch, "id")

    async def initialize_session(
        self,
        worktree: str | Path,
        *,
        agent_name: str,
        workflow: str | None = None,
        permission_mode: str | None = None,
        terminal: str | None = None,
    ) -> bool:
        """Write the fields known at creation time, before the agent issues an id."""

        patch: dict[str, Any] = {"agentName": agent_name, "timestamp": _utc_timestamp()}
        if workflow:
            patch["workflow"] = workflow
        if permission_mode:
            patch["permissionMode"] = permission_mode
        if terminal in TERMINAL_MODES:
            patch["terminal"] = terminal
        return await self._save_fields(worktree, patch, "defaults")

    async def clear_session_id(self, worktree: str | Path) -> bool:
        """Remove ``sessionId`` but keep the rest, stamping ``timestamp`` if missing."""

        path = await self.resolve_session_file_path(worktree)
        if path is None:
            return False
        try:
            updated = await self._documents.remove_keys(
                path, ["sessionId"], defaults={"timestamp": _utc_timestamp()}
            )
        except OSError as exc:
            logger.warning(
                "Failed to clear session id", extra={"path": str(path), "error": str(exc)}
            )
            return False
        return updated is not None

    async def get_session_agent_name(self, worktree: str | Path) -> str:
        data = await self._read(worktree)
        return _non_empty_str((data or {}).get("agentName")) or DEFAULT_AGENT_NAME

    # -- preferences -------------------------------------------------------

    async def get_session_workflow(self, worktree: str | Path) -> str | None:
        data = await self._read(worktree)
        return _non_empty_str((data or {}).get("workflow"))

    async def save_session_workflow(self, worktree: str | Path, workflow: str) -> bool:
        return await self._save_fields(worktree, {"workflow": workflow}, "workflow")

    async def get_session_permission_mode(self, worktree: str | Path) -> str | None:
        data = await self._read(worktree)
        return _non_empty_str((data or {}).get("permissionMode"))

    async def save_session_permission_mode(self, worktree: str | Path, permission_mode: str) -> bool:
        return await self._save_fields(
            worktree, {"permissionMode": permission_mode}, "permission mode"
        )

    async def get_session_terminal_mode(self, worktree: str | Path) -> str | None:
        data = await self._read(worktree)
        terminal = (data or {}).get("terminal")
        return terminal if terminal in TERMINAL_MODES else None

    async def save_session_terminal_mode(self, worktree: str | Path, terminal: str) -> bool:
        if terminal not in TERMINAL_MODES:
            logger.warning(
                "Ignoring unsupported terminal mode",
                extra={"terminal": terminal, "allowed": list(TERMINAL_MODES)},
            )
            return False
        return await self._save_fields(worktree, {"terminal": terminal}, "terminal mode")

    async def get_session_chime_enabled(self, worktree: str | Path) -> bool:
        data = await self._read(worktree)
        enabled = (data or {}).get("isChimeEnabled")
        return enabled if isinstance(enabled, bool) else False

    async def set_session_chime_enabled(self, worktree: str | Path, enabled: bool) -> bool:
        return await self._save_fields(worktree, {"isChimeEnabled": bool(enabled)}, "chime preference")

    # -- prompt ------------------------------------------------------------

    def prompt_file_path(self, worktree: str | Path) -> Path | None:
        resolved = self._resolver.resolve(
            self._repo_root(worktree), session_name_from_worktree(worktree), ArtifactKind.PROMPT
        )
        return resolved.path if resolved else None

    async def save_prompt(self, worktree: str | Path, prompt: str) -> Path | None:
        """Write the starting prompt, returning its path or ``None`` on failure."""

        path = self.prompt_file_path(worktree)
        if path is None:
            return None
        try:
            await self._documents.write_text(path, prompt)
        except OSError as exc:
            logger.warning(
                "Failed to save session prompt", extra={"path": str(path), "error": str(exc)}
            )
            return None
        return path

    async def get_prompt(self, worktree: str | Path) -> str | None:
        path = self.prompt_file_path(worktree)
        if path is None:
            return None
        return await self._documents.read_text(path)

    # -- task list ---------------------------------------------------------

    async def get_task_list_id(self, worktree: str | Path) -> str | None:
        data = await self._read(worktree)
        return _non_empty_str((data or {}).get("taskListId"))

    async def get_or_create_task_list_id(
        self, worktree: str | Path, session_name: str | None = None
    ) -> str:
        """Return the cached task list id, creating and persisting one if needed.

        Not atomic against other processes; callers serialize creation.
        """

        existing = await self.get_task_list_id(worktree)
        if existing:
            return existing
        task_list_id = generate_task_list_id(session_name or session_name_from_worktree(worktree))
        await self._save_fields(worktree, {"taskListId": task_list_id}, "task list id")
        return task_list_id


__all__ = [
    "SESSION_ID_PATTERN",
    "SessionStateStore",
    "generate_task_list_id",
]
