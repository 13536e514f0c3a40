"""Command-line interface for track."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config import TrackSettings, get_settings
from .errors import StorageError, TrackError
from .git import detect_worktree
from .manager import TrackManager
from .models import ACTIVE_STATUSES, UNSET, Status
from .render import render_machine, render_status, render_track
from .server import configure_logging, create_server
from .tools import CLEAR_WORKTREE

logger = logging.getLogger(__name__)

_SQLITE_SIDECARS = ("-wal", "-shm", "-journal")


def load_settings(args: argparse.Namespace) -> TrackSettings:
    settings = get_settings()
    if getattr(args, "db", None):
        settings = settings.model_copy(update={"db_path": Path(args.db).expanduser().resolve()})
    return settings


def load_manager(settings: TrackSettings) -> TrackManager:
    return TrackManager.from_path(settings.db_path, busy_timeout_ms=settings.busy_timeout_ms)


def _output_format(args: argparse.Namespace) -> str | None:
    if getattr(args, "yaml", False):
        return "yaml"
    if getattr(args, "json", False):
        return "json"
    return None


def _remove_database(path: Path) -> None:
    for candidate in [path, *(path.with_name(path.name + suffix) for suffix in _SQLITE_SIDECARS)]:
        if candidate.exists():
            candidate.unlink()


def cmd_init(args: argparse.Namespace, settings: TrackSettings) -> int:
    manager = load_manager(settings)
    if manager.exists():
        if not args.force:
            print("Error: Track project already exists.", file=sys.stderr)
            print(f"Database present at {manager.path}. Use --force to overwrite.", file=sys.stderr)
            return 1
        print("Removing existing track database...")
        _remove_database(manager.path)

    project_name = args.name or Path.cwd().name
    manager.initialize()
    root = manager.create_track(project_name)

    print(f"Initialized track project: {root.title}")
    print(f"Project ID: {root.id}")
    print(f"Database: {manager.path}")
    return 0


def _resolve_worktree(
    manager: TrackManager,
    settings: TrackSettings,
    parent_id: str,
    explicit: str | None,
) -> str | None:
    if explicit is not None:
        return explicit
    parent = manager.get_track(parent_id)
    if parent is not None and parent.worktree:
        return parent.worktree
    if not settings.detect_worktree:
        return None
    return detect_worktree(Path(settings.git_path) if settings.git_path else None)


def cmd_new(args: argparse.Namespace, settings: TrackSettings) -> int:
    manager = load_manager(settings)
    parent_id = args.parent
    if parent_id is None:
        root = manager.get_root_track()
        if root is None:
            print("Error: No root track found. Run 'track init' first.", file=sys.stderr)
            return 1
        parent_id = root.id

    worktree = _resolve_worktree(manager, settings, parent_id, args.worktree)
    track = manager.create_track(
        args.title,
        parent_id=parent_id,
        summary=args.summary,
        next_prompt=args.next,
        status=args.status,
        worktree=worktree,
        files=args.file,
    )
    manager.block(track.id, args.blocks)

    print(f"Created track: {track.title}")
    print(f"Track ID: {track.id}")
    print(f"Parent: {parent_id}")
    if worktree:
        print(f"Worktree: {worktree}")
    if args.file:
        print(f"Files: {len(args.file)} file(s) associated")
    if args.blocks:
        print(f"Blocks: {', '.join(args.blocks)}")
    return 0


def cmd_update(args: argparse.Namespace, settings: TrackSettings) -> int:
    manager = load_manager(settings)
    if args.worktree is None:
        worktree = UNSET
    elif args.worktree == CLEAR_WORKTREE:
        worktree = None
    else:
        worktree = args.worktree

    track = manager.update_track(
        args.track_id,
        summary=args.summary,
        next_prompt=args.next,
        status=args.status,
        worktree=worktree,
        files=args.file,
    )
    manager.block(track.id, args.blocks)
    manager.unblock(track.id, args.unblocks)
    released = manager.release_dependents(track.id) if track.is_done else []

    print(f"Updated track: {track.id}")
    print(f"Status: {track.status.value}")
    if args.worktree is not None:
        print(f"Worktree: {track.worktree or '(unset)'}")
    if args.file:
        print(f"Files: {len(args.file)} file(s) associated")
    if args.blocks:
        print(f"Now blocks: {', '.join(args.blocks)}")
    if args.unblocks:
        print(f"No longer blocks: {', '.join(args.unblocks)}")
    if released:
        print(f"Unblocked tracks: {', '.join(released)}")
    return 0


def cmd_status(args: argparse.Namespace, settings: TrackSettings) -> int:
    manager = load_manager(settings)
    report = manager.get_status(
        statuses=None if args.all else ACTIVE_STATUSES,
        worktree=args.worktree,
    )
    fmt = _output_format(args)
    if fmt:
        print(render_machine(report.to_payload(), fmt))
    else:
        print(render_status(report))
    return 0


def cmd_show(args: argparse.Namespace, settings: TrackSettings) -> int:
    manager = load_manager(settings)
    details = manager.get_track_details(args.track_id)
    fmt = _output_format(args)
    if fmt:
        print(render_machine(details.to_payload(), fmt))
    else:
        print(render_track(details))
    return 0


def cmd_mcp(args: argparse.Namespace, settings: TrackSettings) -> int:
    create_server(settings).run()
    return 0


def _add_output_flags(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--json", action="store_true", help="Output JSON")
    group.add_argument("--yaml", action="store_true", help="Output YAML")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="track", description="Track progress on hierarchical work")
    parser.add_argument("--db", help="Path to the track database (overrides TRACK_DB_PATH)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="cmd")

    p_init = sub.add_parser("init", help="Create a project and its root track")
    p_init.add_argument("name", nargs="?", help="Project name (defaults to the directory name)")
    p_init.add_argument("-F", "--force", action="store_true", help="Overwrite an existing project")
    p_init.set_defaults(func=cmd_init)

    p_new = sub.add_parser("new", help="Create a feature or task")
    p_new.add_argument("title")
    p_new.add_argument("--parent", help="Parent track id (defaults to the root)")
    p_new.add_argument("--summary", default="", help="Current state")
    p_new.add_argument("--next", default="", help="Next action")
    p_new.add_argument(
        "--status",
        default=Status.PLANNED.value,
        help=f"Initial status ({', '.join(Status.values())})",
    )
    p_new.add_argument("--file", action="append", default=[], help="Associate a file (repeatable)")
    p_new.add_argument("--worktree", help="Worktree tag (defaults to the parent's or the git worktree)")
    p_new.add_argument("--blocks", action="append", default=[], help="Track id this one blocks (repeatable)")
    p_new.set_defaults(func=cmd_new)

    p_update = sub.add_parser("update", help="Replace a track's state")
    p_update.add_argument("track_id")
    p_update.add_argument("--summary", required=True, help="Current state")
    p_update.add_argument("--next", required=True, help="Next action")
    p_update.add_argument(
        "--status",
        default=Status.IN_PROGRESS.value,
        help=f"New status ({', '.join(Status.values())})",
    )
    p_update.add_argument("--file", action="append", default=[], help="Associate a file (repeatable)")
    p_update.add_argument("--worktree", help="Worktree tag; '-' clears it")
    p_update.add_argument("--blocks", action="append", default=[], help="Track id this one blocks (repeatable)")
    p_update.add_argument(
        "--unblocks", action="append", default=[], help="Track id this one no longer blocks (repeatable)"
    )
    p_update.set_defaults(func=cmd_update)

    p_status = sub.add_parser("status", help="Show the track tree")
    p_status.add_argument("--all", action="store_true", help="Include done and superseded tracks")
    p_status.add_argument("--worktree", help="Only tracks tagged with this worktree")
    _add_output_flags(p_status)
    p_status.set_defaults(func=cmd_status)

    p_show = sub.add_parser("show", help="Show one track")
    p_show.add_argument("track_id")
    _add_output_flags(p_show)
    p_show.set_defaults(func=cmd_show)

    p_mcp = sub.add_parser("mcp", help="Run the MCP server on stdio")
    p_mcp.set_defaults(func=cmd_mcp)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 0

    settings = load_settings(args)
    configure_logging(settings.log_level)
    try:
        return args.func(args, settings)
    except (TrackError, StorageError) as exc:
        logger.debug("Command failed", extra={"command": args.cmd, "error": str(exc)})
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
