from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from track_mcp.manager import TrackManager
from track_mcp.storage import TrackStore


@pytest.fixture
def clock():
    start = datetime(2025, 1, 1, tzinfo=timezone.utc)
    ticks = itertools.count()
    return lambda: start + timedelta(milliseconds=next(ticks))


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / ".track" / "track.db"


@pytest.fixture
def manager(db_path: Path, clock) -> TrackManager:
    counter = itertools.count(1)
    instance = TrackManager(
        TrackStore(db_path),
        clock=clock,
        id_factory=lambda: f"trk{next(counter):05d}",
    )
    instance.initialize()
    return instance
