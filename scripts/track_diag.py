"""Track diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from collections import Counter
from pathlib import Path

from track_mcp.config import TrackSettings
from track_mcp.errors import StorageError
from track_mcp.graph import DependencyGraph
from track_mcp.manager import TrackManager


def load_manager(settings: TrackSettings, db: str | None = None) -> TrackManager:
    path = Path(db).expanduser().resolve() if db else settings.db_path.expanduser().resolve()
    manager = TrackManager.from_path(path, busy_timeout_ms=settings.busy_timeout_ms)
    try:
        manager.ping()
    except StorageError as exc:
        print(f"Track database unavailable: {exc}")
        raise SystemExit(1)
    return manager


def find_violations(manager: TrackManager) -> list[str]:
    """Check persisted data against the tree and dependency invariants."""

    tracks = manager.get_all_tracks()
    ids = {track.id for track in tracks}
    edges = manager.list_dependencies()
    violations: list[str] = []

    roots = [track.id for track in tracks if track.parent_id is None]
    if len(roots) != 1:
        violations.append(f"expected exactly one root track, found {len(roots)}: {roots}")

    for track in tracks:
        if track.parent_id is not None and track.parent_id not in ids:
            violations.append(f"track {track.id} has unknown parent {track.parent_id}")
        if track.updated_at < track.created_at:
            violations.append(f"track {track.id} was updated before it was created")

    for blocking_id, blocked_id in edges:
        if blocking_id == blocked_id:
            violations.append(f"self dependency on {blocking_id}")
        for endpoint in (blocking_id, blocked_id):
            if endpoint not in ids:
                violations.append(f"dependency {blocking_id}->{blocked_id} references unknown track {endpoint}")

    cycle = DependencyGraph(edges).find_cycle()
    if cycle:
        violations.append(f"dependency cycle: {' -> '.join(cycle)}")
    return violations


def cmd_check(args: argparse.Namespace) -> None:
    manager = load_manager(TrackSettings(), args.db)
    violations = find_violations(manager)
    if args.json:
        print(json.dumps({"ok": not violations, "violations": violations}, indent=2))
    elif violations:
        for violation in violations:
            print(f"FAIL {violation}")
    else:
        print("OK")
    if violations:
        raise SystemExit(1)


def cmd_metrics(args: argparse.Namespace) -> None:
    manager = load_manager(TrackSettings(), args.db)
    report = manager.get_status()

    status_counts = Counter(track.status.value for track in report.tracks)
    kind_counts = Counter(track.kind.value for track in report.tracks)
    waiting = [track.id for track in report.tracks if manager.open_blockers(track.id)]

    metrics = {
        "tracks_total": len(report.tracks),
        "status_counts": dict(status_counts),
        "kind_counts": dict(kind_counts),
        "dependencies_total": len(manager.list_dependencies()),
        "waiting_on_blockers": len(waiting),
        "files_total": sum(len(track.files) for track in report.tracks),
    }
    print(json.dumps(metrics, indent=2))


def cmd_blocked(args: argparse.Namespace) -> None:
    manager = load_manager(TrackSettings(), args.db)
    report = manager.get_status()

    payload = []
    for track in report.tracks:
        open_blockers = manager.open_blockers(track.id)
        if open_blockers:
            payload.append(
                {
                    "track_id": track.id,
                    "title": track.title,
                    "status": track.status.value,
                    "open_blockers": open_blockers,
                }
            )
    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        for entry in payload:
            print(
                f"{entry['track_id']} [{entry['status']}] {entry['title']} "
                f"<- {', '.join(entry['open_blockers'])}"
            )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Track diagnostics")
    parser.add_argument("--db", help="Path to the track database (overrides TRACK_DB_PATH)")
    sub = parser.add_subparsers(dest="cmd")

    p_check = sub.add_parser("check", help="Verify tree and dependency invariants")
    p_check.add_argument("--json", action="store_true", help="Output JSON")
    p_check.set_defaults(func=cmd_check)

    p_metrics = sub.add_parser("metrics", help="Show track, kind and dependency counts")
    p_metrics.set_defaults(func=cmd_metrics)

    p_blocked = sub.add_parser("blocked", help="List tracks waiting on unfinished blockers")
    p_blocked.add_argument("--json", action="store_true", help="Output JSON")
    p_blocked.set_defaults(func=cmd_blocked)

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
