"""Public operation surface over the track store, tree deriver and dependency graph."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .errors import EmptyTitle, InvalidReference, NotFound, RootExists
from .graph import DependencyGraph
from .models import (
    UNSET,
    Status,
    StatusReport,
    Track,
    TrackUpdate,
    TrackWithDetails,
    Unset,
    derive_tree,
)
from .storage import TrackStore
from .utils import current_timestamp, generate_id

logger = logging.getLogger(__name__)


class TrackManager:
    """Create, update and query tracks bound to one database.

    Every read is computed from persisted state; the dependency graph is
    rebuilt from the stored edges on each call.
    """

    def __init__(
        self,
        store: TrackStore,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._id_factory = id_factory or generate_id

    @classmethod
    def from_path(cls, path: Path, *, busy_timeout_ms: int = 5000, **kwargs) -> "TrackManager":
        return cls(TrackStore(Path(path), busy_timeout_ms=busy_timeout_ms), **kwargs)

    @property
    def path(self) -> Path:
        return self._store.path

    def _now(self) -> str:
        return current_timestamp(self._clock())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        return self._store.exists()

    def initialize(self) -> None:
        self._store.initialize()

    def migrate(self) -> list[str]:
        return self._store.migrate()

    def ping(self) -> bool:
        """Raise ``StorageError`` unless the database can be opened and queried."""

        return self._store.ping()

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------

    def create_track(
        self,
        title: str,
        *,
        parent_id: str | None = None,
        summary: str = "",
        next_prompt: str = "",
        status: Status | str = Status.PLANNED,
        worktree: str | None = None,
        files: Sequence[str] = (),
    ) -> Track:
        """Create a track and persist its initial file associations.

        A track without ``parent_id`` becomes the project root; only one may
        exist.
        """

        normalized_title = (title or "").strip()
        if not normalized_title:
            raise EmptyTitle()
        resolved_status = Status.parse(status)

        if parent_id is None:
            root = self._store.get_root_track()
            if root is not None:
                raise RootExists(root.id)
        elif not self._store.track_exists(parent_id):
            raise InvalidReference(parent_id, "parent track")

        now = self._now()
        track = Track(
            id=self._id_factory(),
            title=normalized_title,
            parent_id=parent_id,
            summary=summary or "",
            next_prompt=next_prompt or "",
            status=resolved_status,
            worktree=worktree,
            created_at=now,
            updated_at=now,
        )
        self._store.insert_track(track, files)
        logger.info(
            "Created track",
            extra={"track_id": track.id, "parent_id": parent_id, "status": track.status.value},
        )
        return track

    def update_track(
        self,
        track_id: str,
        *,
        summary: str,
        next_prompt: str,
        status: Status | str,
        worktree: str | None | Unset = UNSET,
        files: Sequence[str] | None = None,
    ) -> Track:
        """Replace the mutable state of a track.

        ``worktree`` left as ``UNSET`` keeps the stored tag, ``None`` clears
        it and a string sets it.
        """

        if not self._store.track_exists(track_id):
            raise NotFound(track_id)
        resolved_status = Status.parse(status)

        changes = TrackUpdate(
            summary=summary,
            next_prompt=next_prompt,
            status=resolved_status,
            updated_at=self._now(),
            worktree=None if worktree is UNSET else worktree,
            worktree_set=worktree is not UNSET,
        )
        self._store.update_track(track_id, changes)
        if files:
            self._store.add_files(track_id, files)
        logger.info(
            "Updated track",
            extra={"track_id": track_id, "status": resolved_status.value},
        )
        return self.require_track(track_id)

    def _set_status(self, track: Track, status: Status) -> None:
        self._store.update_track(
            track.id,
            TrackUpdate(
                summary=track.summary,
                next_prompt=track.next_prompt,
                status=status,
                updated_at=self._now(),
            ),
        )
        logger.info(
            "Changed track status",
            extra={"track_id": track.id, "from": track.status.value, "to": status.value},
        )

    def get_track(self, track_id: str) -> Track | None:
        return self._store.get_track(track_id)

    def require_track(self, track_id: str) -> Track:
        track = self._store.get_track(track_id)
        if track is None:
            raise NotFound(track_id)
        return track

    def get_root_track(self) -> Track | None:
        return self._store.get_root_track()

    def track_exists(self, track_id: str) -> bool:
        return self._store.track_exists(track_id)

    def get_all_tracks(self) -> list[Track]:
        return self._store.list_tracks()

    def get_status(
        self,
        *,
        statuses: Iterable[Status | str] | None = None,
        worktree: str | None = None,
    ) -> StatusReport:
        """Return every track enriched with kind, children, files and dependencies.

        Kinds are derived over the whole tree before any filter applies, and
        the root is always part of the result.
        """

        tracks = self._store.list_tracks()
        graph = DependencyGraph(edge.as_tuple() for edge in self._store.list_dependencies())
        detailed = derive_tree(tracks, self._store.files_by_track(), graph.relations())

        wanted = None if statuses is None else {Status.parse(status) for status in statuses}
        selected: list[TrackWithDetails] = []
        for track in detailed:
            if track.is_root:
                selected.append(track)
                continue
            if wanted is not None and track.status not in wanted:
                continue
            if worktree is not None and track.worktree != worktree:
                continue
            selected.append(track)
        return StatusReport(tracks=selected)

    def get_track_details(self, track_id: str) -> TrackWithDetails:
        """Return one enriched track, raising ``NotFound`` for an unknown id."""

        details = self.get_status().get(track_id)
        if details is None:
            raise NotFound(track_id)
        return details

    def add_files(self, track_id: str, file_paths: Iterable[str]) -> int:
        if not self._store.track_exists(track_id):
            raise NotFound(track_id)
        added = self._store.add_files(track_id, file_paths)
        logger.info("Associated files", extra={"track_id": track_id, "added": added})
        return added

    def list_files(self, track_id: str) -> list[str]:
        return self._store.list_files(track_id)

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def _load_graph(self) -> DependencyGraph:
        statuses = {track.id: track.status for track in self._store.list_tracks()}
        edges = (edge.as_tuple() for edge in self._store.list_dependencies())
        return DependencyGraph(edges, statuses=statuses)

    def add_dependency(self, blocking_id: str, blocked_id: str) -> bool:
        """Record that ``blocking_id`` blocks ``blocked_id``.

        Returns ``False`` when the edge already existed.
        """

        graph = self._load_graph()
        if not graph.add_dependency(blocking_id, blocked_id, exists=self._store.track_exists):
            return False
        inserted = self._store.insert_dependency(blocking_id, blocked_id)
        if inserted:
            logger.info(
                "Added dependency",
                extra={"blocking_id": blocking_id, "blocked_id": blocked_id},
            )
        return inserted

    def remove_dependency(self, blocking_id: str, blocked_id: str) -> bool:
        removed = self._store.delete_dependency(blocking_id, blocked_id)
        if removed:
            logger.info(
                "Removed dependency",
                extra={"blocking_id": blocking_id, "blocked_id": blocked_id},
            )
        return removed

    def would_create_cycle(self, blocking_id: str, blocked_id: str) -> bool:
        return self._load_graph().would_create_cycle(blocking_id, blocked_id)

    def get_blockers_of(self, track_id: str) -> list[str]:
        return self._load_graph().blockers_of(track_id)

    def get_blocked_by(self, track_id: str) -> list[str]:
        return self._load_graph().blocked_by(track_id)

    def are_all_blockers_done(self, track_id: str) -> bool:
        return self._load_graph().are_all_blockers_done(track_id)

    def has_blockers(self, track_id: str) -> bool:
        return self._load_graph().has_blockers(track_id)

    def open_blockers(self, track_id: str) -> list[str]:
        """Blockers of ``track_id`` that are not yet done."""

        return self._load_graph().open_blockers(track_id)

    def list_dependencies(self) -> list[tuple[str, str]]:
        """Every ``(blocking_id, blocked_id)`` edge in insertion order."""

        return [edge.as_tuple() for edge in self._store.list_dependencies()]

    # ------------------------------------------------------------------
    # Status cascades
    # ------------------------------------------------------------------

    def block(self, blocking_id: str, blocked_ids: Iterable[str]) -> list[str]:
        """Add ``blocking_id -> blocked`` edges; planned targets become blocked.

        Returns the ids whose status changed.
        """

        changed: list[str] = []
        for blocked_id in blocked_ids:
            self.add_dependency(blocking_id, blocked_id)
            blocked = self._store.get_track(blocked_id)
            if blocked is not None and blocked.status is Status.PLANNED:
                self._set_status(blocked, Status.BLOCKED)
                changed.append(blocked_id)
        return changed

    def unblock(self, blocking_id: str, blocked_ids: Iterable[str]) -> list[str]:
        """Remove edges; blocked targets left without blockers return to planned."""

        changed: list[str] = []
        for blocked_id in blocked_ids:
            self.remove_dependency(blocking_id, blocked_id)
            blocked = self._store.get_track(blocked_id)
            if blocked is None or blocked.status is not Status.BLOCKED:
                continue
            if not self.has_blockers(blocked_id):
                self._set_status(blocked, Status.PLANNED)
                changed.append(blocked_id)
        return changed

    def release_dependents(self, track_id: str) -> list[str]:
        """Return blocked dependents of ``track_id`` to planned once all their blockers are done."""

        graph = self._load_graph()
        released: list[str] = []
        for blocked_id in graph.blocked_by(track_id):
            blocked = self._store.get_track(blocked_id)
            if blocked is None or blocked.status is not Status.BLOCKED:
                continue
            if graph.has_blockers(blocked_id) and graph.are_all_blockers_done(blocked_id):
                self._set_status(blocked, Status.PLANNED)
                released.append(blocked_id)
        return released


__all__ = ["TrackManager"]
