"""Storage abstractions for track-mcp."""

from .database import TrackStore, dependencies_table, metadata, track_files_table, tracks_table
from .models import DependencyEdge

__all__ = [
    "DependencyEdge",
    "TrackStore",
    "dependencies_table",
    "metadata",
    "track_files_table",
    "tracks_table",
]
