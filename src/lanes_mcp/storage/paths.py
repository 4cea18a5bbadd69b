"""Storage location resolution for per-session artifacts."""

from __future__ import annotations

import hashlib
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path, PureWindowsPath

from ..agents import CodeAgent, resolve_default_agent
from ..config import LanesSettings
from .documents import atomic_write_text
from .models import ArtifactKind, ResolvedPath

LANES_DIR = ".lanes"
NON_GLOBAL_SESSION_PATH = Path(LANES_DIR) / "session_management"
PROMPTS_DIR_NAME = "prompts"
PROJECT_MANAGER_EXTENSION_ID = "alefragnani.project-manager"

DEFAULT_FILE_NAMES = {
    ArtifactKind.SESSION: ".claude-session",
    ArtifactKind.STATUS: ".claude-status",
}

GITIGNORE_ENTRIES = ("session_management", "/*.txt")

_REPO_NAME_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")

logger = logging.getLogger(__name__)


def session_name_from_worktree(worktree_path: str | Path) -> str:
    """Return the session name for a worktree directory."""

    return os.path.basename(os.path.normpath(str(worktree_path)))


def is_valid_session_name(name: str) -> bool:
    """A session name must be a bare directory component."""

    if not name or not name.strip():
        return False
    return not any(token in name for token in ("..", "/", "\\"))


def repo_identifier(repo_path: str | Path) -> str:
    """Stable ``<name>-<hash8>`` identifier for a repository root."""

    normalized = os.path.normpath(str(repo_path))
    digest = hashlib.sha256(normalized.lower().encode("utf-8")).hexdigest()[:8]
    repo_name = _REPO_NAME_UNSAFE.sub("_", os.path.basename(normalized))
    return f"{repo_name}-{digest}"


def sanitize_relative_folder(value: str | None) -> tuple[str | None, str | None]:
    """Normalise a user-configured folder relative to the repository root.

    Returns ``(folder, None)`` when usable, otherwise ``(None, reason)``.
    """

    if value is None or not value.strip():
        return None, "empty"
    folder = value.strip().replace("\\", "/").strip("/")
    if not folder:
        return None, "empty"
    if PureWindowsPath(folder).drive or os.path.isabs(folder):
        return None, "absolute path not allowed"
    if ".." in folder:
        return None, "parent directory traversal not allowed"
    return folder, None


def default_registry_path(global_storage_path: Path) -> Path:
    """Project Manager keeps its registry next to our own global storage directory."""

    return Path(global_storage_path).parent / PROJECT_MANAGER_EXTENSION_ID / "projects.json"


def ensure_lanes_gitignore(repo_root: Path) -> bool:
    """Make sure ``<repo>/.lanes/.gitignore`` excludes runtime data.

    Only missing entries are appended. Returns ``False`` when the file could
    not be written.
    """

    gitignore = Path(repo_root) / LANES_DIR / ".gitignore"
    try:
        existing = gitignore.read_text(encoding="utf-8")
    except FileNotFoundError:
        existing = ""
    except OSError as exc:
        logger.warning(
            "Failed to read .lanes/.gitignore", extra={"path": str(gitignore), "error": str(exc)}
        )
        return False

    present = {line.strip() for line in existing.splitlines()}
    missing = [entry for entry in GITIGNORE_ENTRIES if entry not in present]
    if not missing:
        return True

    separator = "\n" if existing and not existing.endswith("\n") else ""
    try:
        atomic_write_text(gitignore, existing + separator + "\n".join(missing) + "\n")
    except OSError as exc:
        logger.warning(
            "Failed to write .lanes/.gitignore", extra={"path": str(gitignore), "error": str(exc)}
        )
        return False
    return True


@dataclass(slots=True)
class StorageContext:
    """Injected storage capabilities shared by the session stores.

    ``global_storage_path`` is a directory writable across installs and
    ``base_repo_path`` (or an explicit ``repo_identifier``) keys it per
    repository. ``agent`` is ``None`` for the legacy built-in parsing.
    """

    global_storage_path: Path | None = None
    base_repo_path: Path | None = None
    agent: CodeAgent | None = None
    use_global_storage: bool = True
    prompts_folder: str = ""
    repo_identifier: str | None = None

    @property
    def storage_key(self) -> str | None:
        if self.repo_identifier:
            return self.repo_identifier
        if self.base_repo_path is not None:
            return repo_identifier(self.base_repo_path)
        return None

    @property
    def global_storage_ready(self) -> bool:
        return self.global_storage_path is not None and self.storage_key is not None

    @classmethod
    def from_settings(cls, settings: LanesSettings) -> "StorageContext":
        agent = resolve_default_agent(settings.default_agent) if settings.default_agent else None
        return cls(
            global_storage_path=settings.global_storage_path,
            base_repo_path=settings.resolved_repo_root(),
            agent=agent,
            use_global_storage=settings.use_global_storage,
            prompts_folder=settings.prompts_folder,
        )


class StorageLocationResolver:
    """Compute where session, status and prompt files live.

    Precedence for session and status files: global storage when it is
    initialised and enabled, otherwise ``<repo>/.lanes/session_management``.
    Prompts additionally honour a validated custom folder inside the repo.
    """

    def __init__(self, context: StorageContext) -> None:
        self._context = context

    @property
    def context(self) -> StorageContext:
        return self._context

    def file_name(self, kind: ArtifactKind, agent: CodeAgent | None = None) -> str:
        agent = agent or self._context.agent
        if kind is ArtifactKind.SESSION:
            return (agent.session_file_name() if agent else None) or DEFAULT_FILE_NAMES[kind]
        if kind is ArtifactKind.STATUS:
            return (agent.status_file_name() if agent else None) or DEFAULT_FILE_NAMES[kind]
        raise ValueError(f"Artifact kind '{kind.value}' has no fixed file name")

    def _global_root(self) -> Path | None:
        """The repository's global storage directory, whether or not it is enabled."""

        path, key = self._context.global_storage_path, self._context.storage_key
        if path is None or key is None:
            return None
        return Path(path) / key

    def _global_dir(self) -> Path | None:
        if not self._context.use_global_storage:
            return None
        return self._global_root()

    def resolve(
        self,
        repo_root: str | Path,
        session_name: str,
        kind: ArtifactKind | str,
        *,
        agent: CodeAgent | None = None,
    ) -> ResolvedPath | None:
        """Return the path of ``kind`` for ``session_name``, or ``None`` if the name is unsafe."""

        kind = ArtifactKind(kind)
        if not is_valid_session_name(session_name):
            logger.warning(
                "Invalid session name for storage path",
                extra={"session_name": session_name, "kind": kind.value},
            )
            return None

        repo_root = Path(repo_root)
        if kind is ArtifactKind.PROMPT:
            return self._resolve_prompt(repo_root, session_name)

        file_name = self.file_name(kind, agent)
        global_dir = self._global_dir()
        if global_dir is not None:
            session_dir = global_dir / session_name
            return ResolvedPath(session_dir / file_name, session_dir, "global")

        reason = None
        if self._context.global_storage_ready:
            reason = "global storage disabled"
        elif self._context.use_global_storage:
            reason = "global storage not initialised"
        session_dir = repo_root / NON_GLOBAL_SESSION_PATH / session_name
        return ResolvedPath(session_dir / file_name, session_dir, "legacy", reason)

    def alternate(
        self,
        repo_root: str | Path,
        session_name: str,
        kind: ArtifactKind | str,
        *,
        agent: CodeAgent | None = None,
    ) -> ResolvedPath | None:
        """The other session/status location, consulted for backward-compatible reads."""

        kind = ArtifactKind(kind)
        if kind is ArtifactKind.PROMPT or not is_valid_session_name(session_name):
            return None
        file_name = self.file_name(kind, agent)
        if self._global_dir() is not None:
            session_dir = Path(repo_root) / NON_GLOBAL_SESSION_PATH / session_name
            return ResolvedPath(session_dir / file_name, session_dir, "legacy")
        global_root = self._global_root()
        if global_root is not None:
            session_dir = global_root / session_name
            return ResolvedPath(session_dir / file_name, session_dir, "global")
        return None

    def _resolve_prompt(self, repo_root: Path, session_name: str) -> ResolvedPath:
        file_name = f"{session_name}.txt"
        reason = None
        configured = self._context.prompts_folder
        if configured and configured.strip():
            folder, reason = sanitize_relative_folder(configured)
            if folder is not None:
                prompts_dir = repo_root / folder
                return ResolvedPath(prompts_dir / file_name, prompts_dir, "custom")
            logger.warning(
                "Ignoring prompts folder setting",
                extra={"prompts_folder": configured, "reason": reason},
            )

        global_dir = self._global_dir()
        if global_dir is not None:
            prompts_dir = global_dir / PROMPTS_DIR_NAME
            return ResolvedPath(prompts_dir / file_name, prompts_dir, "global", reason)

        prompts_dir = repo_root / LANES_DIR
        return ResolvedPath(prompts_dir / file_name, prompts_dir, "legacy", reason)


__all__ = [
    "DEFAULT_FILE_NAMES",
    "GITIGNORE_ENTRIES",
    "LANES_DIR",
    "NON_GLOBAL_SESSION_PATH",
    "StorageContext",
    "StorageLocationResolver",
    "default_registry_path",
    "ensure_lanes_gitignore",
    "is_valid_session_name",
    "repo_identifier",
    "sanitize_relative_folder",
    "session_name_from_worktree",
]
