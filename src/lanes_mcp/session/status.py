"""Read-only access to externally written status signals."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..agents import CodeAgent
from ..storage import (
    ArtifactKind,
    JsonDocumentStore,
    StorageContext,
    StorageLocationResolver,
    session_name_from_worktree,
)
from .models import VALID_STATUS_VALUES, AgentSessionStatus, WorkflowStatus

WORKFLOW_STATE_FILE = "workflow-state.json"
WAITING_FOR_USER = "waiting_for_user"

logger = logging.getLogger(__name__)


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


class AgentStatusStore:
    """Reads the agent status file and the workflow state snapshot.

    Both documents are owned by other processes; this store never writes.
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

    async def status_file_path(
        self, worktree: str | Path, agent: CodeAgent | None = None
    ) -> Path | None:
        repo_root = Path(self._context.base_repo_path or worktree)
        session_name = session_name_from_worktree(worktree)
        resolved = self._resolver.resolve(repo_root, session_name, ArtifactKind.STATUS, agent=agent)
        if resolved is None:
            return None
        if await self._documents.exists(resolved.path):
            return resolved.path
        alternate = self._resolver.alternate(
            repo_root, session_name, ArtifactKind.STATUS, agent=agent
        )
        if alternate is not None and await self._documents.exists(alternate.path):
            return alternate.path
        return resolved.path

    async def get_agent_status(
        self, worktree: str | Path, agent: CodeAgent | None = None
    ) -> AgentSessionStatus | None:
        """Return the validated status, or ``None`` for anything unrecognised."""

        agent = agent or self._context.agent
        path = await self.status_file_path(worktree, agent)
        if path is None:
            return None

        if agent is not None:
            content = await self._documents.read_text(path)
            if content is None:
                return None
            parsed = agent.parse_status(content)
            if parsed is None or parsed.status not in agent.valid_status_states():
                return None
            if parsed.status not in VALID_STATUS_VALUES:
                logger.debug(
                    "Ignoring agent status outside the known states",
                    extra={"path": str(path), "agent": agent.name, "status": parsed.status},
                )
                return None
            return AgentSessionStatus(
                status=parsed.status, timestamp=parsed.timestamp, message=parsed.message
            )

        data = await self._documents.read(path)
        if data is None:
            return None
        status = data.get("status")
        if status not in VALID_STATUS_VALUES:
            logger.debug(
                "Ignoring unrecognised agent status",
                extra={"path": str(path), "status": status},
            )
            return None
        return AgentSessionStatus(
            status=status,
            timestamp=_optional_str(data.get("timestamp")),
            message=_optional_str(data.get("message")),
        )

    async def get_workflow_status(self, worktree: str | Path) -> WorkflowStatus | None:
        data = await self._documents.read(Path(worktree) / WORKFLOW_STATE_FILE)
        if data is None:
            return None
        status = data.get("status")
        if not isinstance(status, str) or not status:
            return None

        progress = None
        task = data.get("task")
        if isinstance(task, dict):
            index = task.get("index")
            if isinstance(index, float) and index.is_integer():
                index = int(index)
            if isinstance(index, int) and not isinstance(index, bool):
                progress = f"Task {index + 1}"

        summary = data.get("summary")
        return WorkflowStatus(
            active=status == "running",
            workflow=_optional_str(data.get("workflow")) or None,
            step=_optional_str(data.get("step")) or None,
            progress=progress,
            summary=summary if isinstance(summary, str) and summary.strip() else None,
        )


class StatusTransitionTracker:
    """Remembers the last observed status per session name.

    ``observe`` returns ``True`` exactly once per transition into
    ``waiting_for_user``, which is when a chime should sound.
    """

    def __init__(self) -> None:
        self._previous: dict[str, str | None] = {}

    def observe(self, session_name: str, status: str | None) -> bool:
        previous = self._previous.get(session_name)
        self._previous[session_name] = status
        return status == WAITING_FOR_USER and previous != WAITING_FOR_USER

    def forget(self, session_name: str) -> None:
        self._previous.pop(session_name, None)


__all__ = [
    "AgentStatusStore",
    "StatusTransitionTracker",
    "WORKFLOW_STATE_FILE",
]
