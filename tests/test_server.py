from __future__ import annotations

import logging
from pathlib import Path

from lanes_mcp import __version__
from lanes_mcp.config import LanesSettings
from lanes_mcp.server import configure_logging, create_server


def _settings(tmp_path: Path, **overrides) -> LanesSettings:
    values = {
        "LANES_REPO_ROOT": str(tmp_path / "repo"),
        "LANES_GLOBAL_STORAGE_PATH": str(tmp_path / "storage" / "lanes"),
        "LANES_DEFAULT_AGENT": "claude",
    }
    values.update(overrides)
    return LanesSettings(**values)


def test_create_server_wires_components(tmp_path: Path) -> None:
    server = create_server(_settings(tmp_path))

    registry = getattr(server, "project_registry")
    assert registry is not None
    assert registry.path == tmp_path / "storage" / "alefragnani.project-manager" / "projects.json"
    assert getattr(server, "storage_context").agent.name == "claude"
    assert getattr(server, "task_serializer").pending == 0


def test_explicit_registry_path_wins(tmp_path: Path) -> None:
    settings = _settings(tmp_path, LANES_REGISTRY_PATH=str(tmp_path / "custom.json"))

    server = create_server(settings)

    assert getattr(server, "project_registry").path == tmp_path / "custom.json"


def test_registry_absent_without_global_storage(tmp_path: Path) -> None:
    settings = LanesSettings(LANES_REPO_ROOT=str(tmp_path / "repo"))
    settings.global_storage_path = None
    settings.registry_path = None

    server = create_server(settings)

    assert getattr(server, "project_registry") is None


def test_status_snapshot_summarizes_runtime(tmp_path: Path) -> None:
    server = create_server(_settings(tmp_path, LANES_QUEUE_TIMEOUT_MS=1234))

    snapshot = getattr(server, "status_snapshot")(request_id="req-1")

    assert snapshot["server_version"] == __version__
    assert snapshot["storage"]["mode"] == "global"
    assert snapshot["storage"]["repo_identifier"].startswith("repo-")
    assert snapshot["agents"]["default"] == "claude"
    assert snapshot["queue"] == {"pending": 0, "processing": False, "timeout_ms": 1234}
    assert snapshot["workflows"] == {"count": 0, "names": []}
    assert snapshot["request_id"] == "req-1"


def test_configure_logging_accepts_level_names(monkeypatch) -> None:
    calls: list[dict] = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging("DEBUG")

    assert calls[0]["level"] == logging.DEBUG
    assert "%(name)s" in calls[0]["format"]
