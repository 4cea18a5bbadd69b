"""FastMCP server bootstrap for Lanes."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .agents import available_agents
from .config import LanesSettings, get_settings
from .session import AgentStatusStore, SessionStateStore
from .storage import (
    JsonDocumentStore,
    ProjectRegistry,
    StorageContext,
    StorageLocationResolver,
    default_registry_path,
)
from .taskqueue import TaskSerializer
from .tools import register_tools
from .workflows import WorkflowLoader


def configure_logging(level: str) -> None:
    """Configure root logging for the Lanes server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def _registry_for(settings: LanesSettings) -> ProjectRegistry | None:
    if settings.registry_path is not None:
        return ProjectRegistry(settings.registry_path)
    if settings.global_storage_path is not None:
        return ProjectRegistry(default_registry_path(settings.global_storage_path))
    return None


def create_server(
    settings: Optional[LanesSettings] = None,
    storage: StorageContext | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with the session tools and status resource."""

    settings = settings or get_settings()
    storage = storage or StorageContext.from_settings(settings)

    documents = JsonDocumentStore()
    resolver = StorageLocationResolver(storage)
    sessions = SessionStateStore(storage, documents=documents, resolver=resolver)
    statuses = AgentStatusStore(storage, documents=documents, resolver=resolver)
    workflows = WorkflowLoader(
        settings.builtin_workflows_path,
        storage.base_repo_path or settings.resolved_repo_root(),
        settings.workflows_folder,
    )
    serializer = TaskSerializer(default_timeout_ms=settings.queue_timeout_ms)
    registry = _registry_for(settings)

    server = FastMCP(
        name="Lanes MCP",
        version=__version__,
        instructions=(
            "Lanes tracks per-session state for coding agents working in isolated "
            "worktrees. Use the tools to create sessions, inspect their agent status "
            "and update preferences."
        ),
    )

    handles = register_tools(
        server,
        settings=settings,
        storage=storage,
        sessions=sessions,
        statuses=statuses,
        workflows=workflows,
        serializer=serializer,
        registry=registry,
    )

    def status_snapshot(request_id: Any = None) -> dict[str, Any]:
        templates = workflows.discover()
        global_dir = None
        if storage.global_storage_ready and storage.use_global_storage:
            global_dir = str(storage.global_storage_path / storage.storage_key)
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "repo_root": str(storage.base_repo_path) if storage.base_repo_path else None,
            "worktrees_folder": settings.worktrees_folder,
            "storage": {
                "mode": "global" if global_dir else "legacy",
                "global_storage_path": (
                    str(storage.global_storage_path) if storage.global_storage_path else None
                ),
                "repo_storage_path": global_dir,
                "repo_identifier": storage.storage_key,
                "prompts_folder": storage.prompts_folder or None,
            },
            "agents": {
                "default": storage.agent.name if storage.agent else None,
                "available": available_agents(),
            },
            "queue": {
                "pending": serializer.pending,
                "processing": serializer.is_processing,
                "timeout_ms": settings.queue_timeout_ms,
            },
            "registry": {"path": str(registry.path) if registry else None},
            "workflows": {"count": len(templates), "names": [t.name for t in templates]},
            "request_id": request_id,
        }

    @server.resource(
        "resource://lanes/status",
        name="lanes_status",
        title="Lanes MCP Status",
        description="Configuration, storage mode and queue state of the Lanes MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing runtime state."""

        return json.dumps(status_snapshot(getattr(context, "request_id", None)))

    setattr(server, "storage_context", storage)
    setattr(server, "session_store", sessions)
    setattr(server, "status_store", statuses)
    setattr(server, "workflow_loader", workflows)
    setattr(server, "task_serializer", serializer)
    setattr(server, "project_registry", registry)
    setattr(server, "tool_handles", handles)
    setattr(server, "status_snapshot", status_snapshot)
    return server


def main() -> None:
    """Entry point for running the Lanes MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    storage: StorageContext = getattr(server, "storage_context")
    logging.getLogger(__name__).info(
        "Launching Lanes MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "repo_root": str(storage.base_repo_path),
            "global_storage": storage.global_storage_ready and storage.use_global_storage,
            "agent": storage.agent.name if storage.agent else None,
        },
    )
    server.run()


if __name__ == "__main__":
    main()
