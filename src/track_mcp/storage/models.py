"""Row records for the association relations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    """One ``blocking -> blocked`` row of the dependencies relation."""

    blocking_id: str
    blocked_id: str

    def as_tuple(self) -> tuple[str, str]:
        return (self.blocking_id, self.blocked_id)


__all__ = ["DependencyEdge"]
