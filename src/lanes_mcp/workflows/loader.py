"""Workflow template discovery."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..config import DEFAULT_WORKFLOWS_FOLDER
from .models import WorkflowTemplate

logger = logging.getLogger(__name__)


class WorkflowLoader:
    """Lists workflow templates from the built-in and workspace folders.

    Built-in templates come first. Files that fail to parse or lack a string
    ``name`` and ``description`` are skipped with a warning.
    """

    def __init__(
        self,
        builtin_path: Path | None,
        workspace_root: Path,
        custom_folder: str = DEFAULT_WORKFLOWS_FOLDER,
    ) -> None:
        self._builtin_path = Path(builtin_path) if builtin_path else None
        self._workspace_root = Path(workspace_root)
        self._custom_folder = custom_folder

    @property
    def custom_path(self) -> Path | None:
        """The validated custom folder, or ``None`` if it escapes the workspace."""

        folder = self._custom_folder or DEFAULT_WORKFLOWS_FOLDER
        if ".." in folder:
            logger.warning(
                "Parent directory traversal not allowed in workflows folder",
                extra={"workflows_folder": folder},
            )
            return None
        root = os.path.normpath(str(self._workspace_root))
        candidate = os.path.normpath(os.path.join(root, folder))
        if not candidate.startswith(root.rstrip(os.sep) + os.sep):
            logger.warning(
                "Workflows folder resolves outside the workspace",
                extra={"workflows_folder": folder, "workspace_root": root},
            )
            return None
        return Path(candidate)

    def _load_directory(self, directory: Path, is_builtin: bool) -> list[WorkflowTemplate]:
        if not directory.is_dir():
            return []
        templates: list[WorkflowTemplate] = []
        for path in sorted(directory.glob("*.yaml")):
            if not path.is_file():
                continue
            try:
                document = yaml.safe_load(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
                logger.warning(
                    "Skipping unreadable workflow file", extra={"path": str(path), "error": str(exc)}
                )
                continue
            if not isinstance(document, dict) or not all(
                isinstance(document.get(key), str) for key in ("name", "description")
            ):
                logger.warning("Skipping invalid workflow file", extra={"path": str(path)})
                continue
            try:
                template = WorkflowTemplate(
                    name=document["name"],
                    description=document["description"],
                    path=path.resolve(),
                    is_builtin=is_builtin,
                )
            except ValidationError as exc:
                logger.warning(
                    "Skipping invalid workflow file", extra={"path": str(path), "error": str(exc)}
                )
                continue
            templates.append(template)
        return templates

    def discover(self) -> list[WorkflowTemplate]:
        templates: list[WorkflowTemplate] = []
        if self._builtin_path is not None:
            templates.extend(self._load_directory(self._builtin_path, True))
        custom = self.custom_path
        if custom is not None:
            templates.extend(self._load_directory(custom, False))
        return templates

    def find(self, name: str) -> WorkflowTemplate | None:
        """Return the template called ``name``; workspace templates win over built-ins."""

        match = None
        for template in self.discover():
            if template.name == name:
                match = template
        return match


__all__ = ["WorkflowLoader"]
