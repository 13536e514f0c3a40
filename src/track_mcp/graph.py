"""Blocking-dependency graph between tracks.

Edges are directed ``blocking -> blocked`` pairs, independent of the
parent/child tree. The graph is materialized from persisted edges for each
operation and kept acyclic by checking reachability before every insert.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Callable, Iterable, Mapping

from .errors import CycleDetected, InvalidReference, SelfDependency
from .models import Status

logger = logging.getLogger(__name__)

Edge = tuple[str, str]


class DependencyGraph:
    """In-memory view of the ``blocks`` relation for one project."""

    def __init__(
        self,
        edges: Iterable[Edge] = (),
        *,
        statuses: Mapping[str, Status] | None = None,
    ) -> None:
        self._statuses: dict[str, Status] = dict(statuses or {})
        self._edges: list[Edge] = []
        self._blocks: dict[str, list[str]] = defaultdict(list)
        self._blocked_by: dict[str, list[str]] = defaultdict(list)
        for blocking_id, blocked_id in edges:
            self._link(blocking_id, blocked_id)

    def _link(self, blocking_id: str, blocked_id: str) -> bool:
        if blocked_id in self._blocks.get(blocking_id, ()):
            return False
        self._edges.append((blocking_id, blocked_id))
        self._blocks[blocking_id].append(blocked_id)
        self._blocked_by[blocked_id].append(blocking_id)
        return True

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges)

    def __len__(self) -> int:
        return len(self._edges)

    def __contains__(self, edge: object) -> bool:
        if not isinstance(edge, tuple) or len(edge) != 2:
            return False
        blocking_id, blocked_id = edge
        return blocked_id in self._blocks.get(blocking_id, ())

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def validate_edge(
        self,
        blocking_id: str,
        blocked_id: str,
        *,
        exists: Callable[[str], bool],
    ) -> None:
        """Raise if ``blocking_id -> blocked_id`` may not be inserted.

        Checks run in order: both ids must exist, the ids must differ, and
        the new edge must not close a cycle.
        """

        for track_id, role in ((blocking_id, "blocking track"), (blocked_id, "blocked track")):
            if not exists(track_id):
                raise InvalidReference(track_id, role)
        if blocking_id == blocked_id:
            raise SelfDependency(blocking_id)
        if self.would_create_cycle(blocking_id, blocked_id):
            raise CycleDetected(blocking_id, blocked_id)

    def add_dependency(
        self,
        blocking_id: str,
        blocked_id: str,
        *,
        exists: Callable[[str], bool] | None = None,
    ) -> bool:
        """Insert an edge once; returns ``False`` when it was already present."""

        known = exists or (lambda track_id: track_id in self._statuses)
        self.validate_edge(blocking_id, blocked_id, exists=known)
        return self._link(blocking_id, blocked_id)

    def remove_dependency(self, blocking_id: str, blocked_id: str) -> bool:
        """Delete an edge; removing a missing edge is a no-op returning ``False``."""

        if (blocking_id, blocked_id) not in self:
            return False
        self._edges.remove((blocking_id, blocked_id))
        self._blocks[blocking_id].remove(blocked_id)
        self._blocked_by[blocked_id].remove(blocking_id)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def would_create_cycle(self, blocking_id: str, blocked_id: str) -> bool:
        """Return True if ``blocked_id`` already reaches ``blocking_id``.

        Breadth-first over the "blocks" relation starting at ``blocked_id``.
        The visited set keeps the search finite even on a corrupted graph.
        """

        visited: set[str] = set()
        queue: deque[str] = deque([blocked_id])
        while queue:
            current = queue.popleft()
            if current == blocking_id:
                return True
            if current in visited:
                continue
            visited.add(current)
            queue.extend(self._blocks.get(current, ()))
        return False

    def blockers_of(self, track_id: str) -> list[str]:
        """Direct predecessors: tracks with an edge ``blocking -> track_id``."""

        return list(self._blocked_by.get(track_id, ()))

    def blocked_by(self, track_id: str) -> list[str]:
        """Direct successors: tracks ``track_id`` blocks."""

        return list(self._blocks.get(track_id, ()))

    def has_blockers(self, track_id: str) -> bool:
        return bool(self._blocked_by.get(track_id))

    def are_all_blockers_done(self, track_id: str) -> bool:
        """True when every direct blocker is ``done``; vacuously true without blockers."""

        return all(
            self._statuses.get(blocker) is Status.DONE for blocker in self.blockers_of(track_id)
        )

    def open_blockers(self, track_id: str) -> list[str]:
        return [
            blocker
            for blocker in self.blockers_of(track_id)
            if self._statuses.get(blocker) is not Status.DONE
        ]

    def relations(self) -> dict[str, dict[str, list[str]]]:
        """Map every id touching an edge to its ``blocks`` and ``blocked_by`` lists."""

        relations: dict[str, dict[str, list[str]]] = {}
        for blocking_id, blocked_id in self._edges:
            relations.setdefault(blocking_id, {"blocks": [], "blocked_by": []})["blocks"].append(
                blocked_id
            )
            relations.setdefault(blocked_id, {"blocks": [], "blocked_by": []})[
                "blocked_by"
            ].append(blocking_id)
        return relations

    def find_cycle(self) -> list[str] | None:
        """Return one cycle as ``[a, b, ..., a]`` or ``None`` if the graph is acyclic."""

        visited: set[str] = set()
        on_path: set[str] = set()
        path: list[str] = []

        def visit(node: str) -> list[str] | None:
            visited.add(node)
            on_path.add(node)
            path.append(node)
            for successor in self._blocks.get(node, ()):
                if successor in on_path:
                    start = path.index(successor)
                    return path[start:] + [successor]
                if successor not in visited:
                    found = visit(successor)
                    if found:
                        return found
            on_path.discard(node)
            path.pop()
            return None

        for blocking_id, _ in self._edges:
            if blocking_id not in visited:
                cycle = visit(blocking_id)
                if cycle:
                    logger.warning("Dependency cycle detected", extra={"cycle": cycle})
                    return cycle
        return None


__all__ = ["DependencyGraph", "Edge"]
