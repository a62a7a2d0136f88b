# pagecomposer/services/reorder_service.py
# Drag & drop -> new ordering. orderIndex is the ordering signal the pages API persists.
from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Sequence

from pagecomposer.models.page import ComponentRecord


def renumber(components: Sequence[ComponentRecord]) -> List[ComponentRecord]:
    """order_index = position + 1 for every record; records already in place are reused."""
    out: List[ComponentRecord] = []
    for pos, comp in enumerate(components, 1):
        out.append(comp if comp.order_index == pos else replace(comp, order_index=pos))
    return out


def normalize_order(components: Sequence[ComponentRecord]) -> List[ComponentRecord]:
    """
    Sorts by the stored order_index (id as tiebreaker) and renumbers 1..n.
    Repairs duplicates and gaps coming from the backend.
    """
    ordered = sorted(components, key=lambda c: (c.order_index, _id_sort_key(c.id)))
    return renumber(ordered)


def _id_sort_key(component_id: str):
    # numeric ids sort numerically, before non-numeric ones
    return (0, int(component_id), "") if component_id.isdigit() else (1, 0, component_id)


def reorder(
    components: Sequence[ComponentRecord],
    source_id: str,
    destination_id: str,
) -> List[ComponentRecord]:
    """
    Moves `source_id` to the current position of `destination_id` (list-move,
    not swap) and renumbers. Returns the input unchanged when the ids are equal
    or either is missing.
    """
    if source_id == destination_id:
        return list(components)
    ids = [c.id for c in components]
    if source_id not in ids or destination_id not in ids:
        return list(components)

    old_index = ids.index(source_id)
    new_index = ids.index(destination_id)

    items = list(components)
    moved = items.pop(old_index)
    items.insert(new_index, moved)
    return renumber(items)


def changed_ids(before: Sequence[ComponentRecord], after: Sequence[ComponentRecord]) -> List[str]:
    """Ids whose order_index differs between two orderings of the same records."""
    prev: Dict[str, int] = {c.id: c.order_index for c in before}
    return [c.id for c in after if prev.get(c.id) != c.order_index]
