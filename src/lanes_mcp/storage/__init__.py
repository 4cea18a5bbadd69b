"""File-based storage for Lanes session artifacts."""

from .documents import JsonDocumentStore, atomic_write_text, read_json_object
from .models import ArtifactKind, RegistryRecord, ResolvedPath
from .paths import (
    StorageContext,
    StorageLocationResolver,
    default_registry_path,
    ensure_lanes_gitignore,
    is_valid_session_name,
    repo_identifier,
    session_name_from_worktree,
)
from .registry import ProjectRegistry

__all__ = [
    "ArtifactKind",
    "JsonDocumentStore",
    "ProjectRegistry",
    "RegistryRecord",
    "ResolvedPath",
    "StorageContext",
    "StorageLocationResolver",
    "atomic_write_text",
    "default_registry_path",
    "ensure_lanes_gitignore",
    "is_valid_session_name",
    "read_json_object",
    "repo_identifier",
    "session_name_from_worktree",
]
