"""Track models and tree derivation exports."""

from .track import (
    ACTIVE_STATUSES,
    UNSET,
    Kind,
    Status,
    StatusReport,
    Track,
    TrackUpdate,
    TrackWithDetails,
    Unset,
)
from .tree import derive_kind, derive_tree

__all__ = [
    "ACTIVE_STATUSES",
    "Kind",
    "Status",
    "StatusReport",
    "Track",
    "TrackUpdate",
    "TrackWithDetails",
    "UNSET",
    "Unset",
    "derive_kind",
    "derive_tree",
]
