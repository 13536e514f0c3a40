"""Track models shared by storage, the facade and its collaborators."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..errors import InvalidStatus


class Status(str, Enum):
    """Track lifecycle states."""

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"
    SUPERSEDED = "superseded"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]

    @classmethod
    def parse(cls, value: "Status | str") -> "Status":
        """Coerce a raw value into a status, raising ``InvalidStatus`` otherwise."""

        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidStatus(value, cls.values())


ACTIVE_STATUSES: tuple[Status, ...] = (Status.PLANNED, Status.IN_PROGRESS, Status.BLOCKED)


class Kind(str, Enum):
    """Structural role derived from the parent/child tree; never persisted."""

    SUPER = "super"
    FEATURE = "feature"
    TASK = "task"


class Unset(Enum):
    UNSET = "unset"

    def __repr__(self) -> str:
        return "UNSET"


UNSET = Unset.UNSET
"""Marks an optional update field that was not supplied at all."""


class Track(BaseModel):
    """A unit of work as stored in the ``tracks`` relation."""

    id: str = Field(..., description="Opaque short identifier, immutable.")
    title: str = Field(..., description="Track title, immutable after creation.")
    parent_id: str | None = Field(default=None, description="Parent track id; null for the root.")
    summary: str = Field(default="", description="Description of the current state.")
    next_prompt: str = Field(default="", description="Next action to take.")
    status: Status = Field(default=Status.PLANNED)
    worktree: str | None = Field(default=None, description="Optional workspace tag.")
    created_at: str = Field(..., description="ISO-8601 UTC creation timestamp.")
    updated_at: str = Field(..., description="ISO-8601 UTC timestamp of the last mutation.")

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Track title must not be empty")
        return normalized

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_done(self) -> bool:
        return self.status is Status.DONE

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-ready dict keyed by the relation's column names."""

        return self.model_dump(mode="json")


class TrackWithDetails(Track):
    """Track enriched with derived and associated data for output."""

    kind: Kind
    files: list[str] = Field(default_factory=list)
    children: list[str] = Field(default_factory=list, description="Direct child ids.")
    blocks: list[str] = Field(default_factory=list, description="Ids this track blocks.")
    blocked_by: list[str] = Field(default_factory=list, description="Ids blocking this track.")


class TrackUpdate(BaseModel):
    """Mutable fields written by an update.

    ``worktree_set`` distinguishes "leave unchanged" from an explicit value,
    including an explicit ``None`` that clears the tag.
    """

    summary: str
    next_prompt: str
    status: Status
    updated_at: str
    worktree: str | None = None
    worktree_set: bool = False


class StatusReport(BaseModel):
    """Result of a status read: every selected track with derived fields."""

    tracks: list[TrackWithDetails] = Field(default_factory=list)

    def get(self, track_id: str) -> TrackWithDetails | None:
        for track in self.tracks:
            if track.id == track_id:
                return track
        return None

    @property
    def root(self) -> TrackWithDetails | None:
        for track in self.tracks:
            if track.parent_id is None:
                return track
        return None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


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
]
