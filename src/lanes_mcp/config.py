"""Configuration management for Lanes MCP."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path, PureWindowsPath

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_WORKTREES_FOLDER = ".worktrees"
DEFAULT_WORKFLOWS_FOLDER = ".lanes/workflows"


class LanesSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    repo_root: Path | None = Field(default=None, validation_alias="LANES_REPO_ROOT")
    global_storage_path: Path | None = Field(
        default=None, validation_alias="LANES_GLOBAL_STORAGE_PATH"
    )
    use_global_storage: bool = Field(default=True, validation_alias="LANES_USE_GLOBAL_STORAGE")
    prompts_folder: str = Field(default="", validation_alias="LANES_PROMPTS_FOLDER")
    worktrees_folder: str = Field(
        default=DEFAULT_WORKTREES_FOLDER, validation_alias="LANES_WORKTREES_FOLDER"
    )
    workflows_folder: str = Field(
        default=DEFAULT_WORKFLOWS_FOLDER, validation_alias="LANES_WORKFLOWS_FOLDER"
    )
    builtin_workflows_path: Path | None = Field(
        default=None, validation_alias="LANES_BUILTIN_WORKFLOWS_PATH"
    )
    default_agent: str | None = Field(default="claude", validation_alias="LANES_DEFAULT_AGENT")
    registry_path: Path | None = Field(default=None, validation_alias="LANES_REGISTRY_PATH")
    queue_timeout_ms: int = Field(default=30000, validation_alias="LANES_QUEUE_TIMEOUT_MS")
    log_level: str = Field(default="INFO", validation_alias="LANES_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "LANES_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("queue_timeout_ms")
    @classmethod
    def _validate_queue_timeout(cls, value: int) -> int:
        if value < 1:
            raise ValueError("LANES_QUEUE_TIMEOUT_MS must be >= 1")
        return value

    @field_validator("default_agent")
    @classmethod
    def _normalize_agent(cls, value: str | None) -> str | None:
        # Empty selects the legacy built-in parsing.
        if value is None:
            return None
        return value.strip().lower() or None

    @field_validator("worktrees_folder", mode="before")
    @classmethod
    def _normalize_worktrees_folder(cls, value):
        raw = "" if value is None else str(value).strip()
        if not raw or ".." in raw:
            return DEFAULT_WORKTREES_FOLDER
        if raw.startswith(("/", "\\")) or PureWindowsPath(raw).drive:
            return DEFAULT_WORKTREES_FOLDER
        return raw.replace("\\", "/").strip("/") or DEFAULT_WORKTREES_FOLDER

    def resolved_repo_root(self) -> Path:
        """Return the repository root, defaulting to the current directory."""

        return (self.repo_root or Path.cwd()).expanduser().resolve()


@lru_cache(maxsize=1)
def get_settings() -> LanesSettings:
    """Return cached settings instance."""

    settings = LanesSettings()
    if settings.global_storage_path is not None:
        settings.global_storage_path = settings.global_storage_path.expanduser().resolve()
    if settings.registry_path is not None:
        settings.registry_path = settings.registry_path.expanduser().resolve()
    if settings.builtin_workflows_path is not None:
        settings.builtin_workflows_path = settings.builtin_workflows_path.expanduser().resolve()
    return settings


__all__ = [
    "DEFAULT_WORKFLOWS_FOLDER",
    "DEFAULT_WORKTREES_FOLDER",
    "LanesSettings",
    "get_settings",
]
