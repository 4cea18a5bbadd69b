"""Read-merge-write persistence for JSON object documents."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` through a temp file and ``os.replace``.

    The temp file lives in the destination directory so the rename stays on
    one filesystem. Parent directories are created as needed.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(
        dir=str(target.parent),
        prefix=f".{target.name}.",
        suffix=".tmp",
        text=True,
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(temp_path, target)
    except BaseException:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def read_json_object(path: Path) -> dict[str, Any] | None:
    """Return the JSON object stored at ``path``.

    Missing, empty, unreadable or non-object content all yield ``None``.
    """

    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Unable to read document", extra={"path": str(path), "error": str(exc)})
        return None
    if not text.strip():
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Ignoring malformed document", extra={"path": str(path)})
        return None
    return data if isinstance(data, dict) else None


class JsonDocumentStore:
    """Async facade over JSON object files.

    Blocking file I/O runs in a worker thread so the event loop only
    suspends on I/O. ``merge`` is a shallow read-merge-write: writers that
    own disjoint fields never erase each other's data, although concurrent
    writers outside a serializer still race last-writer-wins.
    """

    def __init__(self, *, indent: int = 2) -> None:
        self._indent = indent

    def _write_sync(self, path: Path, document: Mapping[str, Any]) -> None:
        atomic_write_text(Path(path), json.dumps(dict(document), indent=self._indent))

    def _merge_sync(self, path: Path, patch: Mapping[str, Any]) -> dict[str, Any]:
        merged = read_json_object(path) or {}
        merged.update(patch)
        self._write_sync(path, merged)
        return merged

    def _remove_keys_sync(
        self,
        path: Path,
        keys: Iterable[str],
        defaults: Mapping[str, Any] | None,
    ) -> dict[str, Any] | None:
        data = read_json_object(path)
        if data is None:
            return None
        for key in keys:
            data.pop(key, None)
        for key, value in (defaults or {}).items():
            if not data.get(key):
                data[key] = value
        self._write_sync(path, data)
        return data

    async def read(self, path: Path) -> dict[str, Any] | None:
        return await asyncio.to_thread(read_json_object, Path(path))

    async def read_text(self, path: Path) -> str | None:
        """Return raw file content, or ``None`` when the file cannot be read."""

        def _read() -> str | None:
            try:
                return Path(path).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                return None

        return await asyncio.to_thread(_read)

    async def exists(self, path: Path) -> bool:
        return await asyncio.to_thread(Path(path).is_file)

    async def write(self, path: Path, document: Mapping[str, Any]) -> None:
        """Replace the document at ``path``. Raises ``OSError`` on failure."""

        await asyncio.to_thread(self._write_sync, Path(path), document)

    async def write_text(self, path: Path, content: str) -> None:
        await asyncio.to_thread(atomic_write_text, Path(path), content)

    async def merge(self, path: Path, patch: Mapping[str, Any]) -> dict[str, Any]:
        """Shallow-merge ``patch`` over the stored document (or ``{}``) and persist it."""

        return await asyncio.to_thread(self._merge_sync, Path(path), dict(patch))

    async def remove_keys(
        self,
        path: Path,
        keys: Iterable[str],
        *,
        defaults: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Drop ``keys`` from an existing document, filling unset ``defaults``.

        Returns ``None`` without writing when there is no document.
        """

        return await asyncio.to_thread(
            self._remove_keys_sync, Path(path), list(keys), dict(defaults or {})
        )


__all__ = ["JsonDocumentStore", "atomic_write_text", "read_json_object"]
