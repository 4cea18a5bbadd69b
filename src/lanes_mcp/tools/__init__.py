"""Tool registration for Lanes MCP."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastmcp import Context, FastMCP

from ..agents import DEFAULT_AGENT_NAME, available_agents
from ..config import LanesSettings
from ..session import (
    TERMINAL_MODES,
    AgentStatusStore,
    SessionStateStore,
    StatusTransitionTracker,
)
from ..storage import (
    ArtifactKind,
    ProjectRegistry,
    StorageContext,
    ensure_lanes_gitignore,
    is_valid_session_name,
)
from ..taskqueue import TaskSerializer
from ..workflows import WorkflowLoader

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    create_session: Any
    get_session: Any
    update_session: Any
    clear_session: Any
    session_status: Any
    session_paths: Any
    list_workflows: Any
    unregister_session: Any
    transitions: StatusTransitionTracker


def register_tools(
    server: FastMCP,
    *,
    settings: LanesSettings,
    storage: StorageContext,
    sessions: SessionStateStore,
    statuses: AgentStatusStore,
    workflows: WorkflowLoader,
    serializer: TaskSerializer,
    registry: ProjectRegistry | None,
) -> ToolHandles:
    """Register the Lanes session tools on the server."""

    transitions = StatusTransitionTracker()
    storage_resolver = sessions.resolver
    repo_root = Path(storage.base_repo_path or settings.resolved_repo_root())

    def _worktree(session_name: str) -> Path:
        if not is_valid_session_name(session_name):
            raise ValueError(f"Invalid session name '{session_name}'")
        return repo_root / settings.worktrees_folder / session_name

    def _require_workflow(name: str) -> str:
        template = workflows.find(name)
        if template is None:
            raise ValueError(f"Unknown workflow '{name}'")
        return template.name

    def _require_terminal(terminal: str) -> str:
        if terminal not in TERMINAL_MODES:
            raise ValueError(
                f"Unsupported terminal '{terminal}'; expected one of {', '.join(TERMINAL_MODES)}"
            )
        return terminal

    async def _create_session(
        session_name: str,
        *,
        prompt: str | None = None,
        workflow: str | None = None,
        permission_mode: str | None = None,
        terminal: str | None = None,
        agent: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Create a session directory and its initial session state."""

        worktree = _worktree(session_name)
        agent_name = agent or (storage.agent.name if storage.agent else DEFAULT_AGENT_NAME)
        if agent_name not in available_agents():
            raise ValueError(f"Unknown agent '{agent_name}'")
        workflow_name = _require_workflow(workflow) if workflow else None
        if terminal is not None:
            _require_terminal(terminal)

        async def _create() -> dict[str, Any]:
            await asyncio.to_thread(worktree.mkdir, parents=True, exist_ok=True)

            resolved = storage_resolver.resolve(
                Path(storage.base_repo_path or worktree), session_name, ArtifactKind.SESSION
            )
            if resolved is not None and resolved.source == "legacy":
                await asyncio.to_thread(ensure_lanes_gitignore, repo_root)

            saved = await sessions.initialize_session(
                worktree,
                agent_name=agent_name,
                workflow=workflow_name,
                permission_mode=permission_mode,
                terminal=terminal,
            )
            prompt_file = await sessions.save_prompt(worktree, prompt) if prompt else None
            task_list_id = await sessions.get_or_create_task_list_id(worktree, session_name)

            registered = False
            if registry is not None:
                registered = await registry.add_project(session_name, str(worktree))

            return {
                "session_name": session_name,
                "worktree_path": str(worktree),
                "session_file": str(resolved.path) if resolved else None,
                "saved": saved,
                "prompt_file": str(prompt_file) if prompt_file else None,
                "task_list_id": task_list_id,
                "agent_name": agent_name,
                "workflow": workflow_name,
                "registered": registered,
            }

        result = await serializer.submit(_create, timeout_ms=settings.queue_timeout_ms)
        _emit_log(
            context,
            "info",
            "Created session",
            extra={
                "session_name": session_name,
                "agent": agent_name,
                "workflow": workflow_name,
                "saved": result["saved"],
            },
        )
        return result

    async def _get_session(session_name: str, context: Context | None = None) -> dict[str, Any]:
        """Return stored session state together with agent and workflow status."""

        worktree = _worktree(session_name)
        data = await sessions.get_session_id(worktree)
        agent_status = await statuses.get_agent_status(worktree)
        workflow_status = await statuses.get_workflow_status(worktree)
        payload = {
            "session_name": session_name,
            "worktree_path": str(worktree),
            "session_id": data.session_id if data else None,
            "agent_name": await sessions.get_session_agent_name(worktree),
            "workflow": await sessions.get_session_workflow(worktree),
            "permission_mode": await sessions.get_session_permission_mode(worktree),
            "terminal": await sessions.get_session_terminal_mode(worktree),
            "chime_enabled": await sessions.get_session_chime_enabled(worktree),
            "task_list_id": await sessions.get_task_list_id(worktree),
            "agent_status": agent_status.model_dump() if agent_status else None,
            "workflow_status": workflow_status.model_dump() if workflow_status else None,
        }
        _emit_log(
            context,
            "debug",
            "Fetched session",
            extra={"session_name": session_name, "has_session_id": data is not None},
        )
        return payload

    async def _update_session(
        session_name: str,
        *,
        workflow: str | None = None,
        permission_mode: str | None = None,
        terminal: str | None = None,
        chime_enabled: bool | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Update individual session preferences; unspecified fields are left alone."""

        worktree = _worktree(session_name)
        updated: dict[str, bool] = {}
        if workflow is not None:
            updated["workflow"] = await sessions.save_session_workflow(
                worktree, _require_workflow(workflow)
            )
        if permission_mode is not None:
            updated["permission_mode"] = await sessions.save_session_permission_mode(
                worktree, permission_mode
            )
        if terminal is not None:
            updated["terminal"] = await sessions.save_session_terminal_mode(
                worktree, _require_terminal(terminal)
            )
        if chime_enabled is not None:
            updated["chime_enabled"] = await sessions.set_session_chime_enabled(
                worktree, chime_enabled
            )
        if not updated:
            raise ValueError("No session fields provided to update")

        _emit_log(
            context,
            "info",
            "Updated session",
            extra={"session_name": session_name, "fields": updated},
        )
        return {"session_name": session_name, "updated": updated}

    async def _clear_session(session_name: str, context: Context | None = None) -> dict[str, Any]:
        """Forget the agent session id so the next launch starts fresh."""

        worktree = _worktree(session_name)
        cleared = await sessions.clear_session_id(worktree)
        _emit_log(
            context,
            "info",
            "Cleared session id",
            extra={"session_name": session_name, "cleared": cleared},
        )
        return {"session_name": session_name, "cleared": cleared}

    async def _session_status(session_name: str, context: Context | None = None) -> dict[str, Any]:
        """Return the agent status and whether a chime is due."""

        worktree = _worktree(session_name)
        status = await statuses.get_agent_status(worktree)
        chime_enabled = await sessions.get_session_chime_enabled(worktree)
        entered_waiting = transitions.observe(session_name, status.status if status else None)
        chime = entered_waiting and chime_enabled
        if chime:
            _emit_log(
                context, "info", "Session is waiting for user", extra={"session_name": session_name}
            )
        return {
            "session_name": session_name,
            "status": status.model_dump() if status else None,
            "chime_enabled": chime_enabled,
            "chime": chime,
        }

    def _session_paths(session_name: str, context: Context | None = None) -> dict[str, Any]:
        """Show where the session's files are stored."""

        worktree = _worktree(session_name)
        lookup_root = Path(storage.base_repo_path or worktree)
        paths: dict[str, Any] = {}
        for kind in ArtifactKind:
            resolved = storage_resolver.resolve(lookup_root, session_name, kind)
            paths[kind.value] = (
                {
                    "path": str(resolved.path),
                    "source": resolved.source,
                    "fallback_reason": resolved.fallback_reason,
                }
                if resolved
                else None
            )
        _emit_log(context, "debug", "Resolved session paths", extra={"session_name": session_name})
        return {"session_name": session_name, "worktree_path": str(worktree), "paths": paths}

    def _list_workflows(context: Context | None = None) -> list[dict[str, Any]]:
        """List available workflow templates."""

        templates = [template.model_dump(mode="json") for template in workflows.discover()]
        _emit_log(context, "debug", "Listing workflows", extra={"count": len(templates)})
        return templates

    async def _unregister_session(
        session_name: str, context: Context | None = None
    ) -> dict[str, Any]:
        """Remove the session's worktree from the project registry."""

        worktree = _worktree(session_name)
        if registry is None:
            return {"session_name": session_name, "removed": False, "error": "registry unavailable"}
        removed = await registry.remove(str(worktree))
        _emit_log(
            context,
            "info",
            "Unregistered session",
            extra={"session_name": session_name, "removed": removed},
        )
        return {"session_name": session_name, "removed": removed}

    tool_create = server.tool(
        name="create_session",
        description="Create a session worktree directory, its initial state, prompt and task list id.",
    )(_create_session)

    tool_get = server.tool(
        name="get_session",
        description="Fetch stored session state, agent status and workflow progress.",
    )(_get_session)

    tool_update = server.tool(
        name="update_session",
        description="Update a session's workflow, permission mode, terminal or chime preference.",
    )(_update_session)

    tool_clear = server.tool(
        name="clear_session",
        description="Clear the stored agent session id while keeping other preferences.",
    )(_clear_session)

    tool_status = server.tool(
        name="session_status",
        description="Read the agent status and report when a waiting-for-user chime is due.",
    )(_session_status)

    tool_paths = server.tool(
        name="session_paths",
        description="Resolve where session, status and prompt files are stored.",
    )(_session_paths)

    tool_workflows = server.tool(
        name="list_workflows",
        description="List built-in and workspace workflow templates.",
    )(_list_workflows)

    tool_unregister = server.tool(
        name="unregister_session",
        description="Remove a session worktree from the shared project registry.",
    )(_unregister_session)

    return ToolHandles(
        create_session=tool_create,
        get_session=tool_get,
        update_session=tool_update,
        clear_session=tool_clear,
        session_status=tool_status,
        session_paths=tool_paths,
        list_workflows=tool_workflows,
        unregister_session=tool_unregister,
        transitions=transitions,
    )


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Log through the MCP context logger when there is one, else the module logger."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)


__all__ = ["ToolHandles", "register_tools"]
