"""Error taxonomy for track operations."""

from __future__ import annotations


class TrackError(Exception):
    """Base class for recoverable track errors surfaced to callers."""

    code = "track_error"


class InvalidReference(TrackError):
    """Raised when an id argument names no existing track."""

    code = "invalid_reference"

    def __init__(self, track_id: str, role: str = "track") -> None:
        super().__init__(f"Unknown {role} id: {track_id}")
        self.track_id = track_id
        self.role = role


class SelfDependency(TrackError):
    """Raised when a track would block itself."""

    code = "self_dependency"

    def __init__(self, track_id: str) -> None:
        super().__init__(f"Track {track_id} cannot block itself")
        self.track_id = track_id


class CycleDetected(TrackError):
    """Raised when a new blocking edge would close a directed cycle."""

    code = "cycle_detected"

    def __init__(self, blocking_id: str, blocked_id: str) -> None:
        super().__init__(
            f"Adding dependency would create a cycle: {blocking_id} cannot block {blocked_id}"
        )
        self.blocking_id = blocking_id
        self.blocked_id = blocked_id


class NotFound(TrackError):
    """Raised when an update or lookup targets a missing track."""

    code = "not_found"

    def __init__(self, track_id: str) -> None:
        super().__init__(f"Track not found: {track_id}")
        self.track_id = track_id


class InvalidStatus(TrackError):
    """Raised for a status outside the closed status set."""

    code = "invalid_status"

    def __init__(self, value: object, allowed: list[str]) -> None:
        super().__init__(f"Invalid status: {value!r}. Valid statuses: {', '.join(allowed)}")
        self.value = value


class EmptyTitle(TrackError):
    """Raised when a track title is empty or only whitespace."""

    code = "empty_title"

    def __init__(self) -> None:
        super().__init__("Track title cannot be empty")


class RootExists(TrackError):
    """Raised when a second parentless track is requested."""

    code = "root_exists"

    def __init__(self, root_id: str) -> None:
        super().__init__(f"Project already has a root track: {root_id}")
        self.root_id = root_id


class StorageError(RuntimeError):
    """Raised when the underlying database rejects an operation."""


class StorageUnavailableError(StorageError):
    """Raised when the track database does not exist or cannot be opened."""


__all__ = [
    "CycleDetected",
    "EmptyTitle",
    "InvalidReference",
    "InvalidStatus",
    "NotFound",
    "RootExists",
    "SelfDependency",
    "StorageError",
    "StorageUnavailableError",
    "TrackError",
]
