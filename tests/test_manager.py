from __future__ import annotations

import pytest

from track_mcp.errors import (
    CycleDetected,
    EmptyTitle,
    InvalidReference,
    InvalidStatus,
    NotFound,
    RootExists,
    SelfDependency,
    StorageUnavailableError,
)
from track_mcp.manager import TrackManager
from track_mcp.models import ACTIVE_STATUSES, UNSET, Kind, Status


def build_project(manager: TrackManager):
    root = manager.create_track("Project")
    feature = manager.create_track("Feature", parent_id=root.id)
    task = manager.create_track("Task", parent_id=feature.id)
    return root, feature, task


def test_create_root_track(manager: TrackManager) -> None:
    root = manager.create_track("  Project  ")

    assert root.title == "Project"
    assert root.parent_id is None
    assert root.status is Status.PLANNED
    assert root.created_at == root.updated_at
    assert root.created_at.endswith("Z")
    assert manager.get_root_track() == root


def test_second_root_rejected(manager: TrackManager) -> None:
    root = manager.create_track("Project")

    with pytest.raises(RootExists) as excinfo:
        manager.create_track("Another")
    assert excinfo.value.root_id == root.id


def test_create_validates_input(manager: TrackManager) -> None:
    root = manager.create_track("Project")

    with pytest.raises(EmptyTitle):
        manager.create_track("   ", parent_id=root.id)
    with pytest.raises(InvalidReference):
        manager.create_track("Orphan", parent_id="missing")
    with pytest.raises(InvalidStatus):
        manager.create_track("Bad", parent_id=root.id, status="finished")
    assert len(manager.get_all_tracks()) == 1


def test_create_persists_files_and_fields(manager: TrackManager) -> None:
    root = manager.create_track("Project")

    track = manager.create_track(
        "Task",
        parent_id=root.id,
        summary="started",
        next_prompt="write tests",
        status="in_progress",
        worktree="wt-a",
        files=["src/a.py", "src/b.py"],
    )

    details = manager.get_track_details(track.id)
    assert details.files == ["src/a.py", "src/b.py"]
    assert details.status is Status.IN_PROGRESS
    assert details.worktree == "wt-a"
    assert details.next_prompt == "write tests"


def test_update_unknown_track(manager: TrackManager) -> None:
    manager.create_track("Project")

    with pytest.raises(NotFound):
        manager.update_track("ghost", summary="", next_prompt="", status="done")


def test_update_rejects_invalid_status(manager: TrackManager) -> None:
    root = manager.create_track("Project")

    with pytest.raises(InvalidStatus):
        manager.update_track(root.id, summary="", next_prompt="", status="paused")
    assert manager.require_track(root.id).status is Status.PLANNED


@pytest.mark.parametrize("status", ["DONE", "  done ", "Planned", "IN_PROGRESS"])
def test_status_must_match_exactly(manager: TrackManager, status: str) -> None:
    root = manager.create_track("Project")

    with pytest.raises(InvalidStatus):
        manager.update_track(root.id, summary="", next_prompt="", status=status)
    with pytest.raises(InvalidStatus):
        manager.create_track("Task", parent_id=root.id, status=status)
    assert manager.require_track(root.id).status is Status.PLANNED
    assert [track.id for track in manager.get_all_tracks()] == [root.id]


def test_update_worktree_is_tri_state(manager: TrackManager) -> None:
    root = manager.create_track("Project", worktree="main-wt")

    kept = manager.update_track(root.id, summary="a", next_prompt="b", status="in_progress")
    assert kept.worktree == "main-wt"

    changed = manager.update_track(
        root.id, summary="a", next_prompt="b", status="in_progress", worktree="other"
    )
    assert changed.worktree == "other"

    cleared = manager.update_track(
        root.id, summary="a", next_prompt="b", status="in_progress", worktree=None
    )
    assert cleared.worktree is None

    untouched = manager.update_track(
        root.id, summary="c", next_prompt="d", status="done", worktree=UNSET
    )
    assert untouched.worktree is None
    assert untouched.summary == "c"


def test_update_refreshes_timestamp_and_appends_files(manager: TrackManager) -> None:
    root = manager.create_track("Project")
    manager.add_files(root.id, ["a.py"])

    updated = manager.update_track(
        root.id, summary="s", next_prompt="n", status="in_progress", files=["a.py", "b.py"]
    )

    assert updated.updated_at > updated.created_at
    assert updated.created_at == root.created_at
    assert manager.get_track_details(root.id).files == ["a.py", "b.py"]


def test_add_files_requires_existing_track(manager: TrackManager) -> None:
    with pytest.raises(NotFound):
        manager.add_files("ghost", ["a.py"])


def test_require_track_and_details_raise_for_unknown(manager: TrackManager) -> None:
    manager.create_track("Project")

    assert manager.get_track("ghost") is None
    with pytest.raises(NotFound):
        manager.require_track("ghost")
    with pytest.raises(NotFound):
        manager.get_track_details("ghost")


def test_status_derives_kinds_over_all_tracks(manager: TrackManager) -> None:
    root, feature, task = build_project(manager)
    manager.update_track(task.id, summary="", next_prompt="", status="done")

    active = manager.get_status(statuses=ACTIVE_STATUSES)

    assert [track.id for track in active.tracks] == [root.id, feature.id]
    assert active.get(feature.id).kind is Kind.FEATURE
    assert active.get(feature.id).children == [task.id]


def test_status_always_keeps_root(manager: TrackManager) -> None:
    root, feature, _task = build_project(manager)
    manager.update_track(root.id, summary="", next_prompt="", status="done")

    report = manager.get_status(statuses=[Status.IN_PROGRESS])

    assert [track.id for track in report.tracks] == [root.id]
    assert report.root.id == root.id


def test_status_filters_by_worktree(manager: TrackManager) -> None:
    root = manager.create_track("Project")
    tagged = manager.create_track("Tagged", parent_id=root.id, worktree="wt-x")
    manager.create_track("Other", parent_id=root.id)

    report = manager.get_status(worktree="wt-x")

    assert [track.id for track in report.tracks] == [root.id, tagged.id]


def test_status_without_filters_returns_everything(manager: TrackManager) -> None:
    root, feature, task = build_project(manager)
    manager.add_dependency(task.id, feature.id)

    report = manager.get_status()

    assert [track.id for track in report.tracks] == [root.id, feature.id, task.id]
    assert report.get(task.id).blocks == [feature.id]
    assert report.get(feature.id).blocked_by == [task.id]


def test_dependency_errors_surface(manager: TrackManager) -> None:
    root, feature, task = build_project(manager)

    with pytest.raises(SelfDependency):
        manager.add_dependency(task.id, task.id)
    with pytest.raises(InvalidReference):
        manager.add_dependency(task.id, "ghost")

    assert manager.add_dependency(task.id, feature.id) is True
    assert manager.add_dependency(task.id, feature.id) is False
    assert manager.get_blockers_of(feature.id) == [task.id]


def test_queries_on_unknown_ids_are_vacuous(manager: TrackManager) -> None:
    manager.create_track("Project")

    assert manager.get_blockers_of("ghost") == []
    assert manager.get_blocked_by("ghost") == []
    assert manager.has_blockers("ghost") is False
    assert manager.are_all_blockers_done("ghost") is True
    assert manager.would_create_cycle("ghost", "phantom") is False
    assert manager.remove_dependency("ghost", "phantom") is False


def test_block_and_unblock_cascade_status(manager: TrackManager) -> None:
    root = manager.create_track("Project")
    first = manager.create_track("First", parent_id=root.id)
    second = manager.create_track("Second", parent_id=root.id)
    target = manager.create_track("Target", parent_id=root.id)

    assert manager.block(first.id, [target.id]) == [target.id]
    assert manager.block(second.id, [target.id]) == []
    assert manager.require_track(target.id).status is Status.BLOCKED

    assert manager.unblock(first.id, [target.id]) == []
    assert manager.require_track(target.id).status is Status.BLOCKED
    assert manager.unblock(second.id, [target.id]) == [target.id]
    assert manager.require_track(target.id).status is Status.PLANNED


def test_block_leaves_started_tracks_alone(manager: TrackManager) -> None:
    root = manager.create_track("Project")
    blocker = manager.create_track("Blocker", parent_id=root.id)
    busy = manager.create_track("Busy", parent_id=root.id, status="in_progress")

    assert manager.block(blocker.id, [busy.id]) == []
    assert manager.require_track(busy.id).status is Status.IN_PROGRESS
    assert manager.has_blockers(busy.id)


def test_release_dependents_waits_for_every_blocker(manager: TrackManager) -> None:
    root = manager.create_track("Project")
    first = manager.create_track("First", parent_id=root.id)
    second = manager.create_track("Second", parent_id=root.id)
    target = manager.create_track("Target", parent_id=root.id)
    manager.block(first.id, [target.id])
    manager.block(second.id, [target.id])

    manager.update_track(first.id, summary="", next_prompt="", status="done")
    assert manager.release_dependents(first.id) == []
    assert manager.require_track(target.id).status is Status.BLOCKED

    manager.update_track(second.id, summary="", next_prompt="", status="done")
    assert manager.release_dependents(second.id) == [target.id]

    released = manager.require_track(target.id)
    assert released.status is Status.PLANNED
    assert released.summary == target.summary


def test_end_to_end_scenario(manager: TrackManager) -> None:
    root = manager.create_track("R")
    assert manager.get_status().get(root.id).kind is Kind.SUPER

    feature = manager.create_track("F", parent_id=root.id)
    report = manager.get_status()
    assert report.get(feature.id).kind is Kind.TASK
    assert report.get(root.id).children == [feature.id]

    task = manager.create_track("T", parent_id=feature.id)
    report = manager.get_status()
    assert report.get(feature.id).kind is Kind.FEATURE
    assert report.get(task.id).kind is Kind.TASK

    manager.add_dependency(task.id, feature.id)
    assert manager.get_blockers_of(feature.id) == [task.id]
    assert manager.are_all_blockers_done(feature.id) is False

    manager.update_track(task.id, summary="finished", next_prompt="", status="done")
    assert manager.are_all_blockers_done(feature.id) is True

    with pytest.raises(CycleDetected):
        manager.add_dependency(feature.id, task.id)
    assert manager.would_create_cycle(feature.id, task.id) is True


def test_migrate_is_repeatable(manager: TrackManager) -> None:
    assert manager.migrate() == []
    assert manager.exists()


def test_files_edges_and_open_blockers(manager: TrackManager) -> None:
    root = manager.create_track("Project", files=["README.md"])
    first = manager.create_track("First", parent_id=root.id)
    second = manager.create_track("Second", parent_id=root.id)
    target = manager.create_track("Target", parent_id=root.id)
    manager.block(first.id, [target.id])
    manager.block(second.id, [target.id])

    manager.add_files(root.id, ["src/app.py"])
    assert manager.list_files(root.id) == ["README.md", "src/app.py"]
    assert manager.list_files("ghost") == []
    assert manager.list_dependencies() == [(first.id, target.id), (second.id, target.id)]
    assert manager.open_blockers(target.id) == [first.id, second.id]

    manager.update_track(first.id, summary="", next_prompt="", status="done")
    assert manager.open_blockers(target.id) == [second.id]
    assert manager.open_blockers(first.id) == []


def test_ping_checks_database(manager: TrackManager, tmp_path) -> None:
    assert manager.ping() is True

    with pytest.raises(StorageUnavailableError):
        TrackManager.from_path(tmp_path / "missing" / "track.db").ping()
