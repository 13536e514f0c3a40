"""Tool registration for track-mcp."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ToolError

from ..config import TrackSettings
from ..errors import StorageError, StorageUnavailableError, TrackError
from ..manager import TrackManager
from ..models import ACTIVE_STATUSES, UNSET, Status

logger = logging.getLogger(__name__)

CLEAR_WORKTREE = "-"


@dataclass(slots=True)
class ToolHandles:
    create_track: Any
    update_track: Any
    get_track: Any
    track_status: Any
    add_files: Any
    add_dependency: Any
    remove_dependency: Any
    check_dependency: Any
    track_blockers: Any


@contextmanager
def _tool_errors() -> Iterator[None]:
    """Translate track and storage failures into MCP tool errors."""

    try:
        yield
    except TrackError as exc:
        raise ToolError(f"{exc.code}: {exc}") from exc
    except StorageUnavailableError as exc:
        raise ToolError(f"storage_unavailable: {exc}") from exc
    except StorageError as exc:
        raise ToolError(f"storage_error: {exc}") from exc


def register_tools(
    server: FastMCP,
    *,
    manager: TrackManager,
    settings: TrackSettings,
) -> ToolHandles:
    """Register the track tools on the server."""

    def _create_track(
        title: str,
        parent_id: str | None = None,
        summary: str = "",
        next_prompt: str = "",
        status: str = Status.PLANNED.value,
        worktree: str | None = None,
        files: list[str] | None = None,
        blocks: list[str] | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        with _tool_errors():
            if parent_id is None:
                root = manager.get_root_track()
                parent_id = root.id if root is not None else None
            if worktree is None and parent_id is not None:
                parent = manager.get_track(parent_id)
                worktree = parent.worktree if parent is not None else None

            track = manager.create_track(
                title,
                parent_id=parent_id,
                summary=summary,
                next_prompt=next_prompt,
                status=status,
                worktree=worktree,
                files=files or [],
            )
            newly_blocked = manager.block(track.id, blocks or [])

        _emit_log(
            context,
            "info",
            "Created track",
            extra={"track_id": track.id, "parent_id": parent_id, "blocks": blocks or []},
        )
        return {
            "track": track.to_payload(),
            "blocks": list(blocks or []),
            "newly_blocked": newly_blocked,
        }

    def _update_track(
        track_id: str,
        summary: str,
        next_prompt: str,
        status: str = Status.IN_PROGRESS.value,
        worktree: str | None = None,
        files: list[str] | None = None,
        blocks: list[str] | None = None,
        unblocks: list[str] | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        if worktree is None:
            worktree_value = UNSET
        elif worktree == CLEAR_WORKTREE:
            worktree_value = None
        else:
            worktree_value = worktree

        with _tool_errors():
            track = manager.update_track(
                track_id,
                summary=summary,
                next_prompt=next_prompt,
                status=status,
                worktree=worktree_value,
                files=files or [],
            )
            newly_blocked = manager.block(track_id, blocks or [])
            returned = manager.unblock(track_id, unblocks or [])
            released = manager.release_dependents(track_id) if track.is_done else []

        _emit_log(
            context,
            "info",
            "Updated track",
            extra={"track_id": track_id, "status": track.status.value, "released": released},
        )
        return {
            "track": track.to_payload(),
            "newly_blocked": newly_blocked,
            "unblocked": returned,
            "released": released,
        }

    def _get_track(track_id: str, context: Context | None = None) -> dict[str, Any]:
        with _tool_errors():
            details = manager.get_track_details(track_id)
        _emit_log(context, "debug", "Fetched track", extra={"track_id": track_id})
        return details.to_payload()

    def _track_status(
        include_all: bool = False,
        worktree: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        with _tool_errors():
            report = manager.get_status(
                statuses=None if include_all else ACTIVE_STATUSES,
                worktree=worktree,
            )
        _emit_log(
            context,
            "debug",
            "Track status",
            extra={"count": len(report.tracks), "include_all": include_all},
        )
        return report.to_payload()

    def _add_files(
        track_id: str,
        files: list[str],
        context: Context | None = None,
    ) -> dict[str, Any]:
        with _tool_errors():
            added = manager.add_files(track_id, files)
            current = manager.list_files(track_id)
        _emit_log(context, "info", "Associated files", extra={"track_id": track_id, "added": added})
        return {"track_id": track_id, "added": added, "files": current}

    def _add_dependency(
        blocking_id: str,
        blocked_id: str,
        context: Context | None = None,
    ) -> dict[str, Any]:
        with _tool_errors():
            newly_blocked = manager.block(blocking_id, [blocked_id])
        _emit_log(
            context,
            "info",
            "Added dependency",
            extra={"blocking_id": blocking_id, "blocked_id": blocked_id},
        )
        return {
            "blocking_id": blocking_id,
            "blocked_id": blocked_id,
            "newly_blocked": newly_blocked,
        }

    def _remove_dependency(
        blocking_id: str,
        blocked_id: str,
        context: Context | None = None,
    ) -> dict[str, Any]:
        with _tool_errors():
            returned = manager.unblock(blocking_id, [blocked_id])
        _emit_log(
            context,
            "info",
            "Removed dependency",
            extra={"blocking_id": blocking_id, "blocked_id": blocked_id},
        )
        return {"blocking_id": blocking_id, "blocked_id": blocked_id, "unblocked": returned}

    def _check_dependency(
        blocking_id: str,
        blocked_id: str,
        context: Context | None = None,
    ) -> dict[str, Any]:
        with _tool_errors():
            would_cycle = manager.would_create_cycle(blocking_id, blocked_id)
        return {
            "blocking_id": blocking_id,
            "blocked_id": blocked_id,
            "would_create_cycle": would_cycle,
        }

    def _track_blockers(track_id: str, context: Context | None = None) -> dict[str, Any]:
        with _tool_errors():
            payload = {
                "track_id": track_id,
                "blocked_by": manager.get_blockers_of(track_id),
                "blocks": manager.get_blocked_by(track_id),
                "has_blockers": manager.has_blockers(track_id),
                "all_blockers_done": manager.are_all_blockers_done(track_id),
            }
        _emit_log(context, "debug", "Track blockers", extra={"track_id": track_id})
        return payload

    tool_create = server.tool(
        name="create_track",
        description=(
            "Create a track under a parent (defaults to the project root). "
            "The worktree defaults to the parent's; 'blocks' lists tracks the new one blocks."
        ),
    )(_create_track)

    tool_update = server.tool(
        name="update_track",
        description=(
            "Replace a track's summary, next prompt and status (default in_progress). "
            "Pass worktree '-' to clear it. Marking a track done releases blocked dependents."
        ),
    )(_update_track)

    tool_get = server.tool(
        name="get_track",
        description="Fetch one track with its kind, children, files and dependencies.",
    )(_get_track)

    tool_status = server.tool(
        name="track_status",
        description="List active tracks (or all with include_all) with derived tree fields.",
    )(_track_status)

    tool_files = server.tool(
        name="add_files",
        description="Associate file paths with a track; existing associations are kept.",
    )(_add_files)

    tool_add_dependency = server.tool(
        name="add_dependency",
        description="Record that blocking_id must be done before blocked_id; rejects cycles.",
    )(_add_dependency)

    tool_remove_dependency = server.tool(
        name="remove_dependency",
        description="Remove a blocking dependency; a no-op when the edge does not exist.",
    )(_remove_dependency)

    tool_check_dependency = server.tool(
        name="check_dependency",
        description="Report whether adding blocking_id -> blocked_id would create a cycle.",
    )(_check_dependency)

    tool_blockers = server.tool(
        name="track_blockers",
        description="List a track's blockers and the tracks it blocks.",
    )(_track_blockers)

    logger.debug("Registered track tools", extra={"db_path": str(settings.db_path)})

    return ToolHandles(
        create_track=tool_create,
        update_track=tool_update,
        get_track=tool_get,
        track_status=tool_status,
        add_files=tool_files,
        add_dependency=tool_add_dependency,
        remove_dependency=tool_remove_dependency,
        check_dependency=tool_check_dependency,
        track_blockers=tool_blockers,
    )


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)


__all__ = ["CLEAR_WORKTREE", "ToolHandles", "register_tools"]
