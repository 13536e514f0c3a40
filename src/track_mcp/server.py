"""FastMCP server bootstrap for track."""

import json
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from fastmcp import FastMCP

from . import __version__
from .config import TrackSettings, get_settings
from .errors import StorageError
from .manager import TrackManager
from .tools import register_tools

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for the track tools."""

    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[TrackSettings] = None,
    manager: TrackManager | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with the track tools and status resource."""

    settings = settings or get_settings()
    manager = manager or TrackManager.from_path(
        settings.db_path, busy_timeout_ms=settings.busy_timeout_ms
    )

    storage_metadata = {
        "available": False,
        "path": str(manager.path),
        "migrations": [],
        "error": None,
    }

    try:
        manager.ping()
        storage_metadata["migrations"] = manager.migrate()
        storage_metadata["available"] = True
    except StorageError as exc:
        storage_metadata["error"] = str(exc)

    server = FastMCP(
        name="Track MCP",
        instructions=(
            "Track records hierarchical units of work with status, next steps, "
            "associated files and blocking dependencies. Read track_status before "
            "starting work and update_track when you stop."
        ),
    )

    handles = register_tools(server, manager=manager, settings=settings)

    def status_resource() -> str:
        """Return a JSON string summarizing the project state."""

        by_status: Counter[str] = Counter()
        by_kind: Counter[str] = Counter()
        dependency_count = 0
        root: dict[str, str] | None = None
        storage_error = storage_metadata["error"]
        try:
            report = manager.get_status()
            for track in report.tracks:
                by_status[track.status.value] += 1
                by_kind[track.kind.value] += 1
                dependency_count += len(track.blocks)
            if report.root is not None:
                root = {"id": report.root.id, "title": report.root.title}
        except StorageError as exc:
            storage_error = str(exc)

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "project": root,
            "tracks": {
                "count": sum(by_status.values()),
                "by_status": dict(by_status),
                "by_kind": dict(by_kind),
            },
            "dependencies": {"count": dependency_count},
            "storage": {**storage_metadata, "error": storage_error},
        }
        return json.dumps(payload)

    server.resource(
        "resource://track/status",
        name="track_status",
        description="Provides track counts by status and kind plus storage health.",
        mime_type="application/json",
    )(status_resource)

    setattr(server, "track_manager", manager)
    setattr(server, "storage_metadata", storage_metadata)
    setattr(server, "tool_handles", handles)
    setattr(server, "status_resource", status_resource)
    return server


def main() -> None:
    """Entry point for running the track MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logger.info(
        "Launching track MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "db_path": str(settings.db_path),
            "storage_available": getattr(server, "storage_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
