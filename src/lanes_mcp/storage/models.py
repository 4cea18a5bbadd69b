"""Data models for file-based session storage."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class ArtifactKind(str, Enum):
    SESSION = "session"
    STATUS = "status"
    PROMPT = "prompt"


@dataclass(slots=True)
class ResolvedPath:
    """Where an artifact lives and which directory must exist before writing it."""

    path: Path
    required_dir: Path
    source: str
    fallback_reason: str | None = None


@dataclass(slots=True)
class RegistryRecord:
    name: str
    root_path: str
    enabled: bool = True
    tags: list[str] | None = None
    group: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RegistryRecord":
        known = {"name", "rootPath", "enabled", "tags", "group"}
        tags = payload.get("tags")
        return cls(
            name=str(payload.get("name", "")),
            root_path=str(payload.get("rootPath", "")),
            enabled=bool(payload.get("enabled", True)),
            tags=list(tags) if isinstance(tags, list) else None,
            group=payload.get("group") if isinstance(payload.get("group"), str) else None,
            extra={key: value for key, value in payload.items() if key not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            **self.extra,
            "name": self.name,
            "rootPath": self.root_path,
            "enabled": self.enabled,
        }
        if self.tags is not None:
            payload["tags"] = list(self.tags)
        if self.group is not None:
            payload["group"] = self.group
        return payload


__all__ = ["ArtifactKind", "RegistryRecord", "ResolvedPath"]
