from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from lanes_mcp.config import LanesSettings
from lanes_mcp.session import AgentStatusStore, SessionStateStore
from lanes_mcp.storage import ProjectRegistry, StorageContext
from lanes_mcp.taskqueue import TaskSerializer
from lanes_mcp.tools import ToolHandles, register_tools
from lanes_mcp.workflows import WorkflowLoader


class StubTool:
    def __init__(self, fn, name):
        self.fn = fn
        self.name = name


class StubServer:
    def __init__(self) -> None:
        self._tools: dict[str, StubTool] = {}

    def tool(self, *args, **kwargs):
        provided_name = None
        if args and isinstance(args[0], str):
            provided_name = args[0]
        provided_name = kwargs.get("name", provided_name)

        def decorator(fn):
            tool_name = provided_name or fn.__name__
            tool = StubTool(fn, tool_name)
            self._tools[tool_name] = tool
            return tool

        return decorator


class StubLogger:
    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def info(self, message: str, extra: dict[str, Any] | None = None) -> None:
        self.records.append(("info", message, extra or {}))

    def debug(self, message: str, extra: dict[str, Any] | None = None) -> None:
        self.records.append(("debug", message, extra or {}))


class StubContext:
    def __init__(self) -> None:
        self.logger = StubLogger()


def _setup(
    tmp_path: Path,
    *,
    registry: bool = True,
    global_storage: bool = False,
) -> tuple[StubServer, ToolHandles, Path]:
    repo = tmp_path / "repo"
    repo.mkdir()
    builtin = tmp_path / "builtin"
    builtin.mkdir()
    (builtin / "feature.yaml").write_text(
        "name: feature-dev\ndescription: Plan, implement, review\n", encoding="utf-8"
    )

    settings = LanesSettings(LANES_REPO_ROOT=str(repo), LANES_QUEUE_TIMEOUT_MS=5000)
    storage = StorageContext(
        global_storage_path=(tmp_path / "global") if global_storage else None,
        base_repo_path=repo,
    )
    server = StubServer()
    handles = register_tools(
        server,
        settings=settings,
        storage=storage,
        sessions=SessionStateStore(storage),
        statuses=AgentStatusStore(storage),
        workflows=WorkflowLoader(builtin, repo),
        serializer=TaskSerializer(default_timeout_ms=5000),
        registry=ProjectRegistry(tmp_path / "pm" / "projects.json") if registry else None,
    )
    return server, handles, repo


def test_all_tools_are_registered(tmp_path: Path) -> None:
    server, _, _ = _setup(tmp_path)

    assert set(server._tools) == {
        "create_session",
        "get_session",
        "update_session",
        "clear_session",
        "session_status",
        "session_paths",
        "list_workflows",
        "unregister_session",
    }


def test_create_session_writes_state_and_registers(tmp_path: Path) -> None:
    _, handles, repo = _setup(tmp_path)
    context = StubContext()

    result = asyncio.run(
        handles.create_session.fn(
            "feature-a",
            prompt="Build it",
            workflow="feature-dev",
            terminal="tmux",
            permission_mode="acceptEdits",
            context=context,
        )
    )

    worktree = repo / ".worktrees" / "feature-a"
    assert result["worktree_path"] == str(worktree)
    assert worktree.is_dir()
    assert result["agent_name"] == "claude"
    assert result["workflow"] == "feature-dev"
    assert result["registered"] is True
    assert result["task_list_id"].startswith("feature-a-")

    session_file = repo / ".lanes" / "session_management" / "feature-a" / ".claude-session"
    stored = json.loads(session_file.read_text(encoding="utf-8"))
    assert stored["agentName"] == "claude"
    assert stored["workflow"] == "feature-dev"
    assert stored["terminal"] == "tmux"
    assert stored["permissionMode"] == "acceptEdits"
    assert stored["taskListId"] == result["task_list_id"]
    assert (repo / ".lanes" / "feature-a.txt").read_text(encoding="utf-8") == "Build it"
    assert "/*.txt" in (repo / ".lanes" / ".gitignore").read_text(encoding="utf-8")

    registry = json.loads((tmp_path / "pm" / "projects.json").read_text(encoding="utf-8"))
    assert registry == [
        {"name": "feature-a", "rootPath": str(worktree), "enabled": True, "tags": ["lanes"]}
    ]
    assert context.logger.records[-1][1] == "Created session"


def test_create_session_validates_inputs(tmp_path: Path) -> None:
    _, handles, _ = _setup(tmp_path)

    with pytest.raises(ValueError):
        asyncio.run(handles.create_session.fn("../escape"))
    with pytest.raises(ValueError):
        asyncio.run(handles.create_session.fn("ok", workflow="unknown"))
    with pytest.raises(ValueError):
        asyncio.run(handles.create_session.fn("ok", terminal="vscode"))
    with pytest.raises(ValueError):
        asyncio.run(handles.create_session.fn("ok", agent="aider"))


def test_concurrent_creates_are_serialized(tmp_path: Path) -> None:
    _, handles, _ = _setup(tmp_path)

    async def scenario():
        return await asyncio.gather(
            *(handles.create_session.fn(f"s{index}") for index in range(5))
        )

    results = asyncio.run(scenario())

    registry = json.loads((tmp_path / "pm" / "projects.json").read_text(encoding="utf-8"))
    assert [entry["name"] for entry in registry] == [f"s{index}" for index in range(5)]
    assert len({result["task_list_id"] for result in results}) == 5


def test_get_update_and_clear_session(tmp_path: Path) -> None:
    _, handles, repo = _setup(tmp_path, global_storage=True)

    async def scenario():
        await handles.create_session.fn("feature-b", agent="codex")
        updated = await handles.update_session.fn(
            "feature-b", workflow="feature-dev", chime_enabled=True
        )
        fetched = await handles.get_session.fn("feature-b")
        cleared = await handles.clear_session.fn("feature-b")
        return updated, fetched, cleared

    updated, fetched, cleared = asyncio.run(scenario())

    assert updated["updated"] == {"workflow": True, "chime_enabled": True}
    assert fetched["agent_name"] == "codex"
    assert fetched["workflow"] == "feature-dev"
    assert fetched["chime_enabled"] is True
    assert fetched["session_id"] is None
    assert fetched["agent_status"] is None
    assert cleared == {"session_name": "feature-b", "cleared": True}
    assert not (repo / ".lanes" / "session_management").exists()


def test_update_session_requires_fields(tmp_path: Path) -> None:
    _, handles, _ = _setup(tmp_path)

    with pytest.raises(ValueError):
        asyncio.run(handles.update_session.fn("feature"))


def test_session_status_chimes_once(tmp_path: Path) -> None:
    _, handles, repo = _setup(tmp_path)
    status_file = repo / ".lanes" / "session_management" / "feature" / ".claude-status"

    async def scenario():
        await handles.create_session.fn("feature")
        await handles.update_session.fn("feature", chime_enabled=True)
        status_file.write_text(json.dumps({"status": "working"}), encoding="utf-8")
        first = await handles.session_status.fn("feature")
        status_file.write_text(json.dumps({"status": "waiting_for_user"}), encoding="utf-8")
        second = await handles.session_status.fn("feature")
        third = await handles.session_status.fn("feature")
        return first, second, third

    first, second, third = asyncio.run(scenario())

    assert first["status"]["status"] == "working"
    assert [first["chime"], second["chime"], third["chime"]] == [False, True, False]


def test_session_paths_and_workflows(tmp_path: Path) -> None:
    _, handles, repo = _setup(tmp_path)

    paths = handles.session_paths.fn("feature")
    workflows = handles.list_workflows.fn()

    assert paths["paths"]["session"]["source"] == "legacy"
    assert paths["paths"]["prompt"]["path"] == str(repo / ".lanes" / "feature.txt")
    assert [workflow["name"] for workflow in workflows] == ["feature-dev"]
    assert workflows[0]["is_builtin"] is True


def test_unregister_session(tmp_path: Path) -> None:
    _, handles, _ = _setup(tmp_path)

    async def scenario():
        await handles.create_session.fn("feature")
        return await handles.unregister_session.fn("feature")

    assert asyncio.run(scenario()) == {"session_name": "feature", "removed": True}
    registry = json.loads((tmp_path / "pm" / "projects.json").read_text(encoding="utf-8"))
    assert registry == []


def test_unregister_without_registry(tmp_path: Path) -> None:
    _, handles, _ = _setup(tmp_path, registry=False)

    result = asyncio.run(handles.unregister_session.fn("feature"))

    assert result["removed"] is False
    assert result["error"] == "registry unavailable"
