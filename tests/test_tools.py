from __future__ import annotations

from pathlib import Path

import pytest
from fastmcp.exceptions import ToolError

from track_mcp.config import TrackSettings
from track_mcp.manager import TrackManager
from track_mcp.models import Status
from track_mcp.tools import register_tools


class StubTool:
    def __init__(self, fn, name):
        self.fn = fn
        self.name = name


class StubServer:
    def __init__(self) -> None:
        self._tools: dict[str, StubTool] = {}

    def tool(self, *args, **kwargs):
        provided_name = None
        if args and isinstance(args[0], str):
            provided_name = args[0]
        provided_name = kwargs.get("name", provided_name)

        def decorator(fn):
            tool_name = provided_name or fn.__name__
            tool = StubTool(fn, tool_name)
            self._tools[tool_name] = tool
            return tool

        return decorator


class StubLogger:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str, dict]] = []

    def info(self, message, extra=None):
        self.messages.append(("info", message, extra or {}))

    def debug(self, message, extra=None):
        self.messages.append(("debug", message, extra or {}))


class StubContext:
    def __init__(self) -> None:
        self.logger = StubLogger()


def _setup(manager: TrackManager, db_path: Path):
    server = StubServer()
    handles = register_tools(server, manager=manager, settings=TrackSettings(TRACK_DB_PATH=str(db_path)))
    return server, handles


def test_register_tools_exposes_every_tool(manager: TrackManager, db_path: Path) -> None:
    server, _handles = _setup(manager, db_path)

    assert set(server._tools) == {
        "create_track",
        "update_track",
        "get_track",
        "track_status",
        "add_files",
        "add_dependency",
        "remove_dependency",
        "check_dependency",
        "track_blockers",
    }


def test_create_track_defaults_to_root_and_inherits_worktree(manager: TrackManager, db_path: Path) -> None:
    root = manager.create_track("Project", worktree="wt-root")
    _server, handles = _setup(manager, db_path)
    context = StubContext()

    result = handles.create_track.fn(title="Task", files=["a.py"], context=context)

    track = result["track"]
    assert track["parent_id"] == root.id
    assert track["worktree"] == "wt-root"
    assert track["status"] == "planned"
    assert manager.list_files(track["id"]) == ["a.py"]
    assert context.logger.messages[-1][1] == "Created track"


def test_create_track_with_blocks_marks_target_blocked(manager: TrackManager, db_path: Path) -> None:
    root = manager.create_track("Project")
    target = manager.create_track("Target", parent_id=root.id)
    _server, handles = _setup(manager, db_path)

    result = handles.create_track.fn(title="Blocker", blocks=[target.id])

    assert result["newly_blocked"] == [target.id]
    assert manager.require_track(target.id).status is Status.BLOCKED


def test_create_track_reports_track_errors(manager: TrackManager, db_path: Path) -> None:
    manager.create_track("Project")
    _server, handles = _setup(manager, db_path)

    with pytest.raises(ToolError) as excinfo:
        handles.create_track.fn(title="Child", parent_id="missing")
    assert str(excinfo.value).startswith("invalid_reference:")

    with pytest.raises(ToolError) as excinfo:
        handles.create_track.fn(title="   ")
    assert str(excinfo.value).startswith("empty_title:")


def test_update_track_done_releases_dependents(manager: TrackManager, db_path: Path) -> None:
    root = manager.create_track("Project")
    blocker = manager.create_track("Blocker", parent_id=root.id)
    target = manager.create_track("Target", parent_id=root.id)
    _server, handles = _setup(manager, db_path)
    handles.add_dependency.fn(blocking_id=blocker.id, blocked_id=target.id)

    result = handles.update_track.fn(
        track_id=blocker.id, summary="shipped", next_prompt="", status="done"
    )

    assert result["track"]["status"] == "done"
    assert result["released"] == [target.id]
    assert manager.require_track(target.id).status is Status.PLANNED


def test_update_track_worktree_dash_clears(manager: TrackManager, db_path: Path) -> None:
    root = manager.create_track("Project", worktree="wt")
    _server, handles = _setup(manager, db_path)

    kept = handles.update_track.fn(track_id=root.id, summary="a", next_prompt="b")
    assert kept["track"]["worktree"] == "wt"
    assert kept["track"]["status"] == "in_progress"

    cleared = handles.update_track.fn(track_id=root.id, summary="a", next_prompt="b", worktree="-")
    assert cleared["track"]["worktree"] is None


def test_update_track_unknown_id(manager: TrackManager, db_path: Path) -> None:
    _server, handles = _setup(manager, db_path)

    with pytest.raises(ToolError) as excinfo:
        handles.update_track.fn(track_id="ghost", summary="", next_prompt="")
    assert str(excinfo.value).startswith("not_found:")


def test_get_track_and_status(manager: TrackManager, db_path: Path) -> None:
    root = manager.create_track("Project")
    child = manager.create_track("Child", parent_id=root.id)
    finished = manager.create_track("Finished", parent_id=root.id, status="done")
    _server, handles = _setup(manager, db_path)

    payload = handles.get_track.fn(track_id=root.id)
    assert payload["kind"] == "super"
    assert payload["children"] == [child.id, finished.id]

    active = handles.track_status.fn()
    assert [track["id"] for track in active["tracks"]] == [root.id, child.id]

    everything = handles.track_status.fn(include_all=True)
    assert len(everything["tracks"]) == 3


def test_add_files_is_idempotent(manager: TrackManager, db_path: Path) -> None:
    root = manager.create_track("Project")
    _server, handles = _setup(manager, db_path)

    handles.add_files.fn(track_id=root.id, files=["a.py"])
    result = handles.add_files.fn(track_id=root.id, files=["a.py", "b.py"])

    assert result["files"] == ["a.py", "b.py"]


def test_dependency_tools(manager: TrackManager, db_path: Path) -> None:
    root = manager.create_track("Project")
    first = manager.create_track("First", parent_id=root.id)
    second = manager.create_track("Second", parent_id=root.id)
    _server, handles = _setup(manager, db_path)

    added = handles.add_dependency.fn(blocking_id=first.id, blocked_id=second.id)
    assert added["newly_blocked"] == [second.id]

    preview = handles.check_dependency.fn(blocking_id=second.id, blocked_id=first.id)
    assert preview["would_create_cycle"] is True

    with pytest.raises(ToolError) as excinfo:
        handles.add_dependency.fn(blocking_id=second.id, blocked_id=first.id)
    assert str(excinfo.value).startswith("cycle_detected:")

    with pytest.raises(ToolError) as excinfo:
        handles.add_dependency.fn(blocking_id=first.id, blocked_id=first.id)
    assert str(excinfo.value).startswith("self_dependency:")

    blockers = handles.track_blockers.fn(track_id=second.id)
    assert blockers["blocked_by"] == [first.id]
    assert blockers["has_blockers"] is True
    assert blockers["all_blockers_done"] is False

    removed = handles.remove_dependency.fn(blocking_id=first.id, blocked_id=second.id)
    assert removed["unblocked"] == [second.id]
    assert handles.track_blockers.fn(track_id=second.id)["has_blockers"] is False


def test_tools_report_missing_database(tmp_path: Path) -> None:
    missing = tmp_path / "nowhere" / "track.db"
    manager = TrackManager.from_path(missing)
    _server, handles = _setup(manager, missing)

    with pytest.raises(ToolError) as excinfo:
        handles.track_status.fn()
    assert str(excinfo.value).startswith("storage_unavailable:")
