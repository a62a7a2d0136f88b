# pagecomposer/models/json_value.py
# Immutable JSON tree + path addressing (read/write a nested node without rebuilding the whole document)
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence, Tuple, Union


class PathError(ValueError):
    """A write could not reach its target; the tree passed in is left untouched."""


# ===================== Nodes =====================

@dataclass(frozen=True)
class JNull:
    pass


@dataclass(frozen=True)
class JBool:
    value: bool


@dataclass(frozen=True)
class JNumber:
    value: Union[int, float]


@dataclass(frozen=True)
class JString:
    value: str


@dataclass(frozen=True)
class JList:
    items: Tuple["JsonValue", ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator["JsonValue"]:
        return iter(self.items)

    def replace(self, index: int, value: "JsonValue") -> "JList":
        if index == len(self.items):
            return JList(self.items + (value,))
        return JList(self.items[:index] + (value,) + self.items[index + 1:])

    def remove(self, index: int) -> "JList":
        return JList(self.items[:index] + self.items[index + 1:])


@dataclass(frozen=True)
class JMapping:
    """Ordered key -> value mapping. Insertion order is kept; replacing a key keeps its position."""
    entries: Tuple[Tuple[str, "JsonValue"], ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: object) -> bool:
        return any(k == key for k, _ in self.entries)

    def keys(self) -> list[str]:
        return [k for k, _ in self.entries]

    def items(self) -> list[Tuple[str, "JsonValue"]]:
        return list(self.entries)

    def get(self, key: str) -> Optional["JsonValue"]:
        for k, v in self.entries:
            if k == key:
                return v
        return None

    def with_entry(self, key: str, value: "JsonValue") -> "JMapping":
        if key in self:
            return JMapping(tuple((k, value if k == key else v) for k, v in self.entries))
        return JMapping(self.entries + ((key, value),))

    def without(self, key: str) -> "JMapping":
        return JMapping(tuple((k, v) for k, v in self.entries if k != key))


JsonValue = Union[JNull, JBool, JNumber, JString, JList, JMapping]
Segment = Union[str, int]
Path = Sequence[Segment]

PRIMITIVES = (JNull, JBool, JNumber, JString)


def is_primitive(value: Any) -> bool:
    return isinstance(value, PRIMITIVES)


def _is_index(seg: Any) -> bool:
    return isinstance(seg, int) and not isinstance(seg, bool) and seg >= 0


def format_path(path: Path) -> str:
    """['features', 2, 'title'] -> 'features[2].title'"""
    out = ""
    for seg in path:
        if _is_index(seg):
            out += f"[{seg}]"
        else:
            out += f".{seg}" if out else str(seg)
    return out or "<root>"


# ===================== Conversion =====================

def from_python(obj: Any) -> JsonValue:
    if obj is None:
        return JNull()
    if isinstance(obj, bool):
        return JBool(obj)
    if isinstance(obj, (int, float)):
        if isinstance(obj, float) and not math.isfinite(obj):
            raise ValueError(f"Not a JSON number: {obj}")
        return JNumber(obj)
    if isinstance(obj, str):
        return JString(obj)
    if isinstance(obj, dict):
        return JMapping(tuple((str(k), from_python(v)) for k, v in obj.items()))
    if isinstance(obj, (list, tuple)):
        return JList(tuple(from_python(v) for v in obj))
    raise TypeError(f"Not a JSON value: {type(obj).__name__}")


def to_python(value: JsonValue) -> Any:
    if isinstance(value, JNull):
        return None
    if isinstance(value, (JBool, JNumber, JString)):
        return value.value
    if isinstance(value, JList):
        return [to_python(v) for v in value.items]
    if isinstance(value, JMapping):
        return {k: to_python(v) for k, v in value.entries}
    raise TypeError(f"Not a JsonValue: {type(value).__name__}")


def parse_json(text: str) -> JsonValue:
    """Raises ValueError on malformed input, NaN and Infinity included."""
    return from_python(json.loads(text))


def dump_json(value: JsonValue, *, indent: Optional[int] = None) -> str:
    if indent is None:
        return json.dumps(to_python(value), ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    return json.dumps(to_python(value), ensure_ascii=False, allow_nan=False, indent=indent)


# ===================== Paths =====================

def get_path(value: JsonValue, path: Path) -> Optional[JsonValue]:
    """
    Returns the node at `path`, or None when the path does not resolve.
    JSON null is JNull(), so None is never ambiguous. Never raises on a
    segment of the wrong type.
    """
    cur: JsonValue = value
    for seg in path:
        if isinstance(cur, JMapping) and isinstance(seg, str):
            nxt = cur.get(seg)
            if nxt is None:
                return None
            cur = nxt
        elif isinstance(cur, JList) and _is_index(seg):
            if seg >= len(cur.items):
                return None
            cur = cur.items[seg]
        else:
            return None
    return cur


def set_path(value: JsonValue, path: Path, new_value: JsonValue) -> JsonValue:
    """
    Returns a new tree with the node at `path` replaced. Missing mapping keys on
    the way are created as empty mappings; an index equal to the list length
    appends. Writing through a primitive raises PathError.
    """
    path = tuple(path)
    if not path:
        return new_value
    return _set(value, path, 0, new_value)


def _set(node: JsonValue, path: Tuple[Segment, ...], depth: int, new_value: JsonValue) -> JsonValue:
    seg = path[depth]
    last = depth == len(path) - 1

    if isinstance(node, JMapping):
        if not isinstance(seg, str):
            raise PathError(f"Expected a key at '{format_path(path[:depth + 1])}', got {seg!r}")
        if last:
            return node.with_entry(seg, new_value)
        child = node.get(seg)
        if child is None:
            child = JMapping()
        return node.with_entry(seg, _set(child, path, depth + 1, new_value))

    if isinstance(node, JList):
        if not _is_index(seg):
            raise PathError(f"Expected a list index at '{format_path(path[:depth + 1])}', got {seg!r}")
        size = len(node.items)
        if seg > size or (seg == size and not last):
            raise PathError(f"Index {seg} out of range at '{format_path(path[:depth])}' (size {size})")
        if last:
            return node.replace(seg, new_value)
        return node.replace(seg, _set(node.items[seg], path, depth + 1, new_value))

    raise PathError(f"Cannot write through a primitive at '{format_path(path[:depth])}'")


def delete_path(value: JsonValue, path: Path) -> JsonValue:
    """Removes a mapping key or list element; later list elements shift down."""
    path = tuple(path)
    if not path:
        raise PathError("Cannot delete the document root")
    parent_path, seg = path[:-1], path[-1]
    parent = get_path(value, parent_path)

    if isinstance(parent, JMapping) and isinstance(seg, str) and seg in parent:
        new_parent: JsonValue = parent.without(seg)
    elif isinstance(parent, JList) and _is_index(seg) and seg < len(parent):
        new_parent = parent.remove(seg)
    else:
        raise PathError(f"Nothing to delete at '{format_path(path)}'")

    return set_path(value, parent_path, new_parent)
