"""Atomic read-modify-write of a shared project registry file."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable

from .models import RegistryRecord

DEFAULT_TAGS = ("lanes",)

logger = logging.getLogger(__name__)


class ProjectRegistry:
    """A JSON array of project records owned by a cooperating tool.

    Records are unique by ``rootPath``. Every write goes to a uniquely named
    temp file beside the registry and is renamed into place, so readers only
    ever observe a complete file. Failures are reported as ``False`` and
    never raised: the registry is optional for our own operation.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_entries(self) -> list[Any]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return []
        return data if isinstance(data, list) else []

    def _persist(self, entries: list[Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_name(f"{self._path.name}.{time.time_ns()}.tmp")
        try:
            temp_path.write_text(json.dumps(entries, indent=4), encoding="utf-8")
            os.replace(temp_path, self._path)
        except BaseException:
            try:
                temp_path.unlink()
            except OSError:
                pass
            raise

    def _update_sync(self, mutate: Callable[[list[Any]], bool]) -> bool:
        entries = self._read_entries()
        if mutate(entries):
            self._persist(entries)
        return True

    async def _update(self, action: str, mutate: Callable[[list[Any]], bool]) -> bool:
        try:
            return await asyncio.to_thread(self._update_sync, mutate)
        except OSError as exc:
            logger.error(
                "Failed to update project registry",
                extra={"action": action, "path": str(self._path), "error": str(exc)},
            )
            return False

    async def load(self) -> list[RegistryRecord]:
        entries = await asyncio.to_thread(self._read_entries)
        return [RegistryRecord.from_dict(entry) for entry in entries if isinstance(entry, dict)]

    async def upsert(self, record: RegistryRecord) -> bool:
        """Insert ``record`` or update the entry with the same root path."""

        if not record.name.strip() or not record.root_path.strip():
            logger.warning(
                "Registry record requires a name and root path",
                extra={"name": record.name, "root_path": record.root_path},
            )
            return False

        def mutate(entries: list[Any]) -> bool:
            for index, entry in enumerate(entries):
                if isinstance(entry, dict) and entry.get("rootPath") == record.root_path:
                    updated = dict(entry)
                    updated["name"] = record.name
                    if record.tags is not None:
                        updated["tags"] = list(record.tags)
                    if record.group is not None:
                        updated["group"] = record.group
                    entries[index] = updated
                    return True
            entries.append(record.to_dict())
            return True

        return await self._update("upsert", mutate)

    async def add_project(
        self,
        name: str,
        root_path: str,
        tags: list[str] | None = None,
    ) -> bool:
        return await self.upsert(
            RegistryRecord(name=name, root_path=root_path, tags=list(tags or DEFAULT_TAGS))
        )

    async def remove(self, root_path: str) -> bool:
        """Drop every entry whose ``rootPath`` matches. Unknown paths are a no-op."""

        if not root_path or not root_path.strip():
            logger.warning("Registry removal requires a root path")
            return False

        def mutate(entries: list[Any]) -> bool:
            kept = [
                entry
                for entry in entries
                if not (isinstance(entry, dict) and entry.get("rootPath") == root_path)
            ]
            if len(kept) == len(entries):
                return False
            entries[:] = kept
            return True

        return await self._update("remove", mutate)


__all__ = ["DEFAULT_TAGS", "ProjectRegistry"]
