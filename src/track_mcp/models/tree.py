"""Tree derivation over a flat track list."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Mapping, Sequence

from .track import Kind, Track, TrackWithDetails

Relations = Mapping[str, Mapping[str, Sequence[str]]]


def derive_kind(track: Track, children: Sequence[Track]) -> Kind:
    """Classify a track from its parent link and its current children.

    - super: no parent (the project root)
    - feature: has a parent and at least one child
    - task: has a parent and no children
    """

    if track.parent_id is None:
        return Kind.SUPER
    if children:
        return Kind.FEATURE
    return Kind.TASK


def derive_tree(
    tracks: Iterable[Track],
    file_map: Mapping[str, Sequence[str]] | None = None,
    relations: Relations | None = None,
) -> list[TrackWithDetails]:
    """Return every track with ``kind``, ``children``, ``files`` and dependency lists.

    Children keep the order of ``tracks``. A ``parent_id`` that names no
    track in the input is not an error here; the orphan simply derives as a
    leaf.
    """

    ordered = list(tracks)
    file_map = file_map or {}
    relations = relations or {}

    children_by_parent: dict[str, list[Track]] = defaultdict(list)
    for track in ordered:
        if track.parent_id is not None:
            children_by_parent[track.parent_id].append(track)

    detailed: list[TrackWithDetails] = []
    for track in ordered:
        children = children_by_parent.get(track.id, [])
        edges = relations.get(track.id, {})
        detailed.append(
            TrackWithDetails(
                **track.model_dump(),
                kind=derive_kind(track, children),
                files=list(file_map.get(track.id, [])),
                children=[child.id for child in children],
                blocks=list(edges.get("blocks", [])),
                blocked_by=list(edges.get("blocked_by", [])),
            )
        )
    return detailed


__all__ = ["derive_kind", "derive_tree"]
