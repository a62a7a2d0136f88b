# pagecomposer/services/change_tracker.py
from __future__ import annotations

from typing import FrozenSet, Iterable, List, Set


class ChangeTracker:
    """Ids of components with unsaved edits."""

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._dirty: Set[str] = set(ids)

    def mark_dirty(self, component_id: str) -> None:
        self._dirty.add(component_id)

    def mark_many(self, component_ids: Iterable[str]) -> None:
        self._dirty.update(component_ids)

    def clear(self, component_id: str) -> None:
        self._dirty.discard(component_id)

    def clear_all(self) -> None:
        self._dirty.clear()

    def is_dirty(self, component_id: str) -> bool:
        return component_id in self._dirty

    def dirty_count(self) -> int:
        return len(self._dirty)

    @property
    def dirty_ids(self) -> List[str]:
        return sorted(self._dirty)

    def snapshot(self) -> FrozenSet[str]:
        return frozenset(self._dirty)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._dirty

    def __len__(self) -> int:
        return len(self._dirty)
