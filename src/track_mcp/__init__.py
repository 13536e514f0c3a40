"""Track: a progress tracker for hierarchical units of work."""

__version__ = "0.1.0"

from .errors import (  # noqa: E402
    CycleDetected,
    EmptyTitle,
    InvalidReference,
    InvalidStatus,
    NotFound,
    RootExists,
    SelfDependency,
    StorageError,
    StorageUnavailableError,
    TrackError,
)
from .manager import TrackManager  # noqa: E402
from .models import UNSET, Kind, Status, StatusReport, Track, TrackWithDetails  # noqa: E402

__all__ = [
    "CycleDetected",
    "EmptyTitle",
    "InvalidReference",
    "InvalidStatus",
    "Kind",
    "NotFound",
    "RootExists",
    "SelfDependency",
    "Status",
    "StatusReport",
    "StorageError",
    "StorageUnavailableError",
    "Track",
    "TrackError",
    "TrackManager",
    "TrackWithDetails",
    "UNSET",
    "__version__",
]
