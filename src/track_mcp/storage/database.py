"""SQLite persistence layer built on SQLAlchemy Core."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterable, Iterator, Sequence

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    MetaData,
    Table,
    Text,
    create_engine,
    delete,
    event,
    inspect,
    literal_column,
    select,
    update,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError, StorageUnavailableError
from ..models import Track, TrackUpdate
from .models import DependencyEdge

logger = logging.getLogger(__name__)

metadata = MetaData()

tracks_table = Table(
    "tracks",
    metadata,
    Column("id", Text, primary_key=True),
    Column("title", Text, nullable=False),
    Column("parent_id", Text, ForeignKey("tracks.id"), nullable=True),
    Column("summary", Text, nullable=False),
    Column("next_prompt", Text, nullable=False),
    Column("status", Text, nullable=False),
    Column("worktree", Text, nullable=True),
    Column("created_at", Text, nullable=False),
    Column("updated_at", Text, nullable=False),
    Index("idx_tracks_parent", "parent_id"),
    Index("idx_tracks_status", "status"),
    Index("idx_tracks_worktree", "worktree"),
)

track_files_table = Table(
    "track_files",
    metadata,
    Column("track_id", Text, ForeignKey("tracks.id"), primary_key=True),
    Column("file_path", Text, primary_key=True),
    Index("idx_track_files_track", "track_id"),
)

dependencies_table = Table(
    "dependencies",
    metadata,
    Column("blocking_id", Text, ForeignKey("tracks.id"), primary_key=True),
    Column("blocked_id", Text, ForeignKey("tracks.id"), primary_key=True),
    CheckConstraint("blocking_id != blocked_id", name="ck_dependencies_no_self"),
    Index("idx_dependencies_blocking", "blocking_id"),
    Index("idx_dependencies_blocked", "blocked_id"),
)

# Insertion order; every table keeps SQLite's implicit rowid.
_ROWID = literal_column("rowid")


class TrackStore:
    """Manage persistence of tracks, file associations and dependency edges."""

    def __init__(
        self,
        path: Path,
        *,
        busy_timeout_ms: int = 5000,
        engine_factory: Callable[[], Engine] | None = None,
    ) -> None:
        self._path = Path(path)
        self._busy_timeout_ms = busy_timeout_ms
        self._engine_factory = engine_factory or self._default_engine_factory
        self._custom_engine = engine_factory is not None
        self._engine: Engine | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _default_engine_factory(self) -> Engine:
        engine = create_engine(f"sqlite:///{self._path}")
        busy_timeout_ms = int(self._busy_timeout_ms)

        @event.listens_for(engine, "connect")
        def _configure_connection(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
            cursor.close()

        return engine

    def _ensure_engine(self, *, create: bool = False) -> Engine:
        if self._engine is None:
            if not self._custom_engine and not create and not self.exists():
                raise StorageUnavailableError(
                    f"No track database at {self._path}; run 'track init' first"
                )
            self._engine = self._engine_factory()
        return self._engine

    @contextmanager
    def _begin(self) -> Iterator[Connection]:
        engine = self._ensure_engine()
        try:
            with engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        return self._path.exists()

    def initialize(self) -> None:
        """Create the database file and schema."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        engine = self._ensure_engine(create=True)
        try:
            with engine.connect() as conn:
                conn.exec_driver_sql("PRAGMA journal_mode = WAL")
            metadata.create_all(engine)
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc
        logger.info("Initialized track database", extra={"path": str(self._path)})

    def migrate(self) -> list[str]:
        """Bring an older schema up to date; returns the applied steps."""

        engine = self._ensure_engine()
        applied: list[str] = []
        try:
            inspector = inspect(engine)
            tables = set(inspector.get_table_names())
            with engine.begin() as conn:
                if "tracks" in tables:
                    columns = {column["name"] for column in inspector.get_columns("tracks")}
                    if "worktree" not in columns:
                        conn.exec_driver_sql("ALTER TABLE tracks ADD COLUMN worktree TEXT DEFAULT NULL")
                        applied.append("add tracks.worktree")
                    for index in tracks_table.indexes:
                        if index.name == "idx_tracks_worktree":
                            index.create(conn, checkfirst=True)
                if "dependencies" not in tables:
                    applied.append("create dependencies")
                metadata.create_all(conn, checkfirst=True)
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc
        if applied:
            logger.info("Migrated track database", extra={"steps": applied})
        return applied

    def ping(self) -> bool:
        """Verify that the database can be opened and queried."""

        with self._begin() as conn:
            conn.execute(select(literal_column("1")))
        return True

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------

    @staticmethod
    def _to_track(row) -> Track:
        return Track.model_validate(dict(row._mapping))

    def insert_track(self, track: Track, files: Sequence[str] = ()) -> Track:
        """Persist a new track row and its initial files in one transaction."""

        with self._begin() as conn:
            conn.execute(
                tracks_table.insert().values(
                    id=track.id,
                    title=track.title,
                    parent_id=track.parent_id,
                    summary=track.summary,
                    next_prompt=track.next_prompt,
                    status=track.status.value,
                    worktree=track.worktree,
                    created_at=track.created_at,
                    updated_at=track.updated_at,
                )
            )
            self._insert_files(conn, track.id, files)
        return track

    def update_track(self, track_id: str, changes: TrackUpdate) -> bool:
        """Write mutable fields; ``worktree`` only when ``worktree_set`` is true."""

        values: dict[str, object] = {
            "summary": changes.summary,
            "next_prompt": changes.next_prompt,
            "status": changes.status.value,
            "updated_at": changes.updated_at,
        }
        if changes.worktree_set:
            values["worktree"] = changes.worktree

        with self._begin() as conn:
            result = conn.execute(
                update(tracks_table).where(tracks_table.c.id == track_id).values(**values)
            )
        return result.rowcount > 0

    def get_track(self, track_id: str) -> Track | None:
        with self._begin() as conn:
            row = conn.execute(
                select(tracks_table).where(tracks_table.c.id == track_id)
            ).first()
        return self._to_track(row) if row is not None else None

    def track_exists(self, track_id: str) -> bool:
        with self._begin() as conn:
            row = conn.execute(
                select(tracks_table.c.id).where(tracks_table.c.id == track_id).limit(1)
            ).first()
        return row is not None

    def get_root_track(self) -> Track | None:
        with self._begin() as conn:
            row = conn.execute(
                select(tracks_table)
                .where(tracks_table.c.parent_id.is_(None))
                .order_by(_ROWID)
                .limit(1)
            ).first()
        return self._to_track(row) if row is not None else None

    def list_tracks(self) -> list[Track]:
        """Return every track in insertion order."""

        with self._begin() as conn:
            rows = conn.execute(select(tracks_table).order_by(_ROWID)).all()
        return [self._to_track(row) for row in rows]

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    @staticmethod
    def _insert_files(conn: Connection, track_id: str, file_paths: Iterable[str]) -> int:
        unique = list(dict.fromkeys(path for path in file_paths if path))
        if not unique:
            return 0
        statement = sqlite_insert(track_files_table).on_conflict_do_nothing(
            index_elements=["track_id", "file_path"]
        )
        result = conn.execute(
            statement, [{"track_id": track_id, "file_path": path} for path in unique]
        )
        return max(result.rowcount, 0)

    def add_files(self, track_id: str, file_paths: Iterable[str]) -> int:
        """Associate files with a track; existing pairs are ignored."""

        with self._begin() as conn:
            return self._insert_files(conn, track_id, file_paths)

    def list_files(self, track_id: str) -> list[str]:
        with self._begin() as conn:
            rows = conn.execute(
                select(track_files_table.c.file_path)
                .where(track_files_table.c.track_id == track_id)
                .order_by(_ROWID)
            ).all()
        return [row.file_path for row in rows]

    def files_by_track(self) -> dict[str, list[str]]:
        with self._begin() as conn:
            rows = conn.execute(select(track_files_table).order_by(_ROWID)).all()
        file_map: dict[str, list[str]] = {}
        for row in rows:
            file_map.setdefault(row.track_id, []).append(row.file_path)
        return file_map

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def insert_dependency(self, blocking_id: str, blocked_id: str) -> bool:
        """Insert an edge once; returns ``False`` when it already existed."""

        statement = (
            sqlite_insert(dependencies_table)
            .values(blocking_id=blocking_id, blocked_id=blocked_id)
            .on_conflict_do_nothing(index_elements=["blocking_id", "blocked_id"])
        )
        with self._begin() as conn:
            result = conn.execute(statement)
        return result.rowcount > 0

    def delete_dependency(self, blocking_id: str, blocked_id: str) -> bool:
        with self._begin() as conn:
            result = conn.execute(
                delete(dependencies_table).where(
                    dependencies_table.c.blocking_id == blocking_id,
                    dependencies_table.c.blocked_id == blocked_id,
                )
            )
        return result.rowcount > 0

    def list_dependencies(self) -> list[DependencyEdge]:
        with self._begin() as conn:
            rows = conn.execute(select(dependencies_table).order_by(_ROWID)).all()
        return [DependencyEdge(blocking_id=row.blocking_id, blocked_id=row.blocked_id) for row in rows]


__all__ = [
    "TrackStore",
    "dependencies_table",
    "metadata",
    "track_files_table",
    "tracks_table",
]
