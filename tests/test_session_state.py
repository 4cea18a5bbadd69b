from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path

import pytest

from lanes_mcp.agents import get_agent
from lanes_mcp.session import SessionStateStore, generate_task_list_id
from lanes_mcp.storage import StorageContext

UUID = "123e4567-e89b-12d3-a456-426614174000"


@pytest.fixture()
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / ".worktrees" / "feature").mkdir(parents=True)
    return root


@pytest.fixture()
def worktree(repo: Path) -> Path:
    return repo / ".worktrees" / "feature"


def legacy_session_file(repo: Path, name: str = "feature") -> Path:
    return repo / ".lanes" / "session_management" / name / ".claude-session"


def test_setters_merge_single_fields(repo: Path, worktree: Path) -> None:
    store = SessionStateStore(StorageContext(base_repo_path=repo))

    async def scenario():
        assert await store.save_session_id(worktree, "abc_123")
        assert await store.save_session_workflow(worktree, "feature-dev")
        assert await store.save_session_permission_mode(worktree, "acceptEdits")
        assert await store.save_session_terminal_mode(worktree, "tmux")
        assert await store.set_session_chime_enabled(worktree, True)
        return (
            await store.get_session_id(worktree),
            await store.get_session_workflow(worktree),
            await store.get_session_permission_mode(worktree),
            await store.get_session_terminal_mode(worktree),
            await store.get_session_chime_enabled(worktree),
        )

    data, workflow, permission_mode, terminal, chime = asyncio.run(scenario())

    assert data is not None
    assert data.session_id == "abc_123"
    assert data.agent_name == "claude"
    assert data.workflow == "feature-dev"
    assert workflow == "feature-dev"
    assert permission_mode == "acceptEdits"
    assert terminal == "tmux"
    assert chime is True

    stored = json.loads(legacy_session_file(repo).read_text(encoding="utf-8"))
    assert stored["sessionId"] == "abc_123"
    assert stored["isChimeEnabled"] is True


def test_wrong_typed_values_read_as_absent(repo: Path, worktree: Path) -> None:
    path = legacy_session_file(repo)
    path.parent.mkdir(parents=True)
    path.write_text(
        json.dumps(
            {"sessionId": "bad id!", "terminal": "vscode", "isChimeEnabled": "yes", "workflow": 3}
        ),
        encoding="utf-8",
    )
    store = SessionStateStore(StorageContext(base_repo_path=repo))

    async def scenario():
        return (
            await store.get_session_id(worktree),
            await store.get_session_terminal_mode(worktree),
            await store.get_session_chime_enabled(worktree),
            await store.get_session_workflow(worktree),
            await store.get_session_agent_name(worktree),
        )

    assert asyncio.run(scenario()) == (None, None, False, None, "claude")


def test_malformed_document_reads_as_no_data(repo: Path, worktree: Path) -> None:
    path = legacy_session_file(repo)
    path.parent.mkdir(parents=True)
    path.write_text("{oops", encoding="utf-8")
    store = SessionStateStore(StorageContext(base_repo_path=repo))

    assert asyncio.run(store.get_session_id(worktree)) is None
    assert asyncio.run(store.get_session_workflow(worktree)) is None


def test_invalid_terminal_mode_is_rejected(repo: Path, worktree: Path) -> None:
    store = SessionStateStore(StorageContext(base_repo_path=repo))

    assert asyncio.run(store.save_session_terminal_mode(worktree, "vscode")) is False
    assert not legacy_session_file(repo).exists()


def test_clear_session_id_keeps_other_fields(repo: Path, worktree: Path) -> None:
    path = legacy_session_file(repo)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"sessionId": "abc", "workflow": "w"}), encoding="utf-8")
    store = SessionStateStore(StorageContext(base_repo_path=repo))

    assert asyncio.run(store.clear_session_id(worktree)) is True

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert "sessionId" not in stored
    assert stored["workflow"] == "w"
    assert stored["timestamp"]


def test_clear_session_id_without_document(repo: Path, worktree: Path) -> None:
    store = SessionStateStore(StorageContext(base_repo_path=repo))

    assert asyncio.run(store.clear_session_id(worktree)) is False
    assert not legacy_session_file(repo).exists()


def test_task_list_id_is_generated_once(repo: Path, worktree: Path) -> None:
    store = SessionStateStore(StorageContext(base_repo_path=repo))

    async def scenario():
        first = await store.get_or_create_task_list_id(worktree, "feature")
        second = await store.get_or_create_task_list_id(worktree, "feature")
        return first, second, await store.get_task_list_id(worktree)

    first, second, stored = asyncio.run(scenario())

    assert re.fullmatch(r"feature-[A-Za-z0-9]{6}", first)
    assert first == second == stored


def test_generate_task_list_id_shape() -> None:
    for _ in range(50):
        assert re.fullmatch(r"s-[A-Za-z0-9]{6}", generate_task_list_id("s"))


def test_agent_validation_is_delegated(repo: Path, worktree: Path) -> None:
    store = SessionStateStore(StorageContext(base_repo_path=repo, agent=get_agent("claude")))

    async def scenario():
        await store.save_session_id(worktree, "not-a-uuid")
        rejected = await store.get_session_id(worktree)
        await store.save_session_id(worktree, UUID)
        accepted = await store.get_session_id(worktree)
        return rejected, accepted

    rejected, accepted = asyncio.run(scenario())

    assert rejected is None
    assert accepted is not None and accepted.session_id == UUID


def test_stored_agent_name_overrides_default_parser(repo: Path, worktree: Path) -> None:
    path = legacy_session_file(repo)
    path.parent.mkdir(parents=True)
    path.write_text(
        json.dumps({"sessionId": UUID, "agentName": "codex", "isChimeEnabled": True}),
        encoding="utf-8",
    )
    store = SessionStateStore(StorageContext(base_repo_path=repo, agent=get_agent("claude")))

    data = asyncio.run(store.get_session_id(worktree))

    assert data is not None
    assert data.agent_name == "codex"
    assert data.is_chime_enabled is True


def test_opencode_session_ids_are_read_with_their_own_format(repo: Path, worktree: Path) -> None:
    path = legacy_session_file(repo)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"sessionId": "ses_Abc123", "agentName": "opencode"}), encoding="utf-8")
    store = SessionStateStore(StorageContext(base_repo_path=repo, agent=get_agent("claude")))

    data = asyncio.run(store.get_session_id(worktree))

    assert data is not None
    assert data.session_id == "ses_Abc123"
    assert data.agent_name == "opencode"


def test_global_storage_with_legacy_read_fallback(tmp_path: Path, repo: Path, worktree: Path) -> None:
    path = legacy_session_file(repo)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"sessionId": "legacy_id", "workflow": "w"}), encoding="utf-8")
    context = StorageContext(
        global_storage_path=tmp_path / "global",
        base_repo_path=repo,
        repo_identifier="repo-abc12345",
    )
    store = SessionStateStore(context)

    async def scenario():
        before = await store.get_session_id(worktree)
        await store.save_session_workflow(worktree, "next")
        return before

    before = asyncio.run(scenario())

    assert before is not None and before.session_id == "legacy_id"
    global_file = tmp_path / "global" / "repo-abc12345" / "feature" / ".claude-session"
    assert json.loads(global_file.read_text(encoding="utf-8")) == {"workflow": "next"}


def test_prompt_round_trip_in_custom_folder(repo: Path, worktree: Path) -> None:
    store = SessionStateStore(StorageContext(base_repo_path=repo, prompts_folder="prompts"))

    async def scenario():
        path = await store.save_prompt(worktree, "Implement the feature")
        return path, await store.get_prompt(worktree)

    path, content = asyncio.run(scenario())

    assert path == repo / "prompts" / "feature.txt"
    assert content == "Implement the feature"


def test_write_failure_returns_false(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / ".lanes").write_text("not a directory", encoding="utf-8")
    store = SessionStateStore(StorageContext(base_repo_path=repo))

    with caplog.at_level("WARNING"):
        saved = asyncio.run(store.save_session_workflow(repo / ".worktrees" / "x", "w"))

    assert saved is False
    assert "Failed to save session workflow" in caplog.text
