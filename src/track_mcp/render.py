"""Text and machine renderings of tracks for the command line."""

from __future__ import annotations

import json
from typing import Any

import yaml

from .models import Status, StatusReport, TrackWithDetails

TREE_BRANCH = "├──"
TREE_LAST = "└──"
TREE_PIPE = "│  "
TREE_SPACE = "   "

STATUS_ICONS = {
    Status.PLANNED: "○",
    Status.IN_PROGRESS: "●",
    Status.DONE: "✓",
    Status.BLOCKED: "⚠",
    Status.SUPERSEDED: "✗",
}

LABEL_WIDTH = 8


def format_status(status: Status) -> str:
    return f"{STATUS_ICONS[status]} {status.value}"


def format_label(label: str, value: str, width: int = LABEL_WIDTH) -> str:
    return f"{label.ljust(width)} {value}"


def _detail_lines(track: TrackWithDetails) -> list[str]:
    lines = [
        format_label("summary:", track.summary),
        format_label("next:", track.next_prompt),
        format_label("status:", format_status(track.status)),
    ]
    if track.worktree:
        lines.append(format_label("worktree:", track.worktree))
    if track.files:
        lines.append(format_label("files:", ", ".join(track.files)))
    if track.blocked_by:
        lines.append(format_label("waits:", ", ".join(track.blocked_by)))
    if track.blocks:
        lines.append(format_label("blocks:", ", ".join(track.blocks)))
    return lines


def render_status(report: StatusReport) -> str:
    """Render the report as a tree rooted at the project track."""

    root = report.root
    if root is None:
        return "No tracks found."

    index = {track.id: track for track in report.tracks}
    lines = [f"Project: {root.title} ({root.id})", ""]

    def visit(track: TrackWithDetails, prefix: str, is_last: bool) -> None:
        connector = TREE_LAST if is_last else TREE_BRANCH
        detail_prefix = prefix + (TREE_SPACE if is_last else TREE_PIPE) + "  "
        lines.append(f"{prefix}{connector} [{track.kind.value}] {track.id} - {track.title}")
        lines.extend(detail_prefix + line for line in _detail_lines(track))

        children = [index[child_id] for child_id in track.children if child_id in index]
        if children:
            lines.append("")
        child_prefix = prefix + (TREE_SPACE if is_last else TREE_PIPE)
        for position, child in enumerate(children):
            last_child = position == len(children) - 1
            visit(child, child_prefix, last_child)
            if not last_child:
                lines.append("")

    visit(root, "", True)
    return "\n".join(lines)


def render_track(track: TrackWithDetails) -> str:
    lines = [f"[{track.kind.value}] {track.id} - {track.title}"]
    lines.extend("  " + line for line in _detail_lines(track))
    if track.children:
        lines.append("  " + format_label("children:", ", ".join(track.children)))
    return "\n".join(lines)


def render_machine(payload: dict[str, Any], fmt: str) -> str:
    """Serialize a JSON-ready payload as ``json`` or ``yaml``."""

    if fmt == "yaml":
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True).rstrip("\n")
    return json.dumps(payload, indent=2, ensure_ascii=False)


__all__ = [
    "STATUS_ICONS",
    "format_label",
    "format_status",
    "render_machine",
    "render_status",
    "render_track",
]
