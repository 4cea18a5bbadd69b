"""Lanes MCP diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from lanes_mcp.config import LanesSettings
from lanes_mcp.session import AgentStatusStore, SessionStateStore
from lanes_mcp.storage import (
    ArtifactKind,
    ProjectRegistry,
    StorageContext,
    StorageLocationResolver,
    default_registry_path,
    is_valid_session_name,
)


def load_settings() -> LanesSettings:
    return LanesSettings()


def load_context(settings: LanesSettings) -> StorageContext:
    return StorageContext.from_settings(settings)


def _worktree(settings: LanesSettings, context: StorageContext, session: str) -> Path:
    if not is_valid_session_name(session):
        print(f"Invalid session name: {session!r}")
        raise SystemExit(2)
    root = context.base_repo_path or settings.resolved_repo_root()
    return Path(root) / settings.worktrees_folder / session


def cmd_paths(args: argparse.Namespace) -> None:
    settings = load_settings()
    context = load_context(settings)
    worktree = _worktree(settings, context, args.session)
    resolver = StorageLocationResolver(context)
    repo_root = context.base_repo_path or worktree

    payload = {}
    for kind in ArtifactKind:
        resolved = resolver.resolve(repo_root, args.session, kind)
        alternate = resolver.alternate(repo_root, args.session, kind)
        payload[kind.value] = {
            "path": str(resolved.path) if resolved else None,
            "source": resolved.source if resolved else None,
            "fallback_reason": resolved.fallback_reason if resolved else None,
            "alternate": str(alternate.path) if alternate else None,
        }
    print(json.dumps(payload, indent=2))


def cmd_session(args: argparse.Namespace) -> None:
    settings = load_settings()
    context = load_context(settings)
    worktree = _worktree(settings, context, args.session)
    sessions = SessionStateStore(context)
    statuses = AgentStatusStore(context)

    async def _collect() -> dict:
        data = await sessions.get_session_id(worktree)
        status = await statuses.get_agent_status(worktree)
        workflow = await statuses.get_workflow_status(worktree)
        return {
            "session": args.session,
            "worktree_path": str(worktree),
            "data": data.model_dump() if data else None,
            "agent_name": await sessions.get_session_agent_name(worktree),
            "chime_enabled": await sessions.get_session_chime_enabled(worktree),
            "status": status.model_dump() if status else None,
            "workflow_status": workflow.model_dump() if workflow else None,
        }

    print(json.dumps(asyncio.run(_collect()), indent=2))


def cmd_registry(args: argparse.Namespace) -> None:
    settings = load_settings()
    path = args.path or settings.registry_path
    if path is None and settings.global_storage_path is not None:
        path = default_registry_path(settings.global_storage_path)
    if path is None:
        print("Registry unavailable: set LANES_REGISTRY_PATH or LANES_GLOBAL_STORAGE_PATH")
        raise SystemExit(1)

    records = asyncio.run(ProjectRegistry(Path(path)).load())
    if args.tag:
        records = [record for record in records if args.tag in (record.tags or [])]
    print(json.dumps([record.to_dict() for record in records], indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Lanes MCP diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_paths = sub.add_parser("paths", help="Resolve session, status and prompt paths")
    p_paths.add_argument("session")
    p_paths.set_defaults(func=cmd_paths)

    p_session = sub.add_parser("session", help="Show stored state and status for a session")
    p_session.add_argument("session")
    p_session.set_defaults(func=cmd_session)

    p_registry = sub.add_parser("registry", help="List project registry records")
    p_registry.add_argument("--path", type=Path, default=None, help="Registry file to read")
    p_registry.add_argument("--tag", default=None, help="Only show records with this tag")
    p_registry.set_defaults(func=cmd_registry)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
