# pagecomposer/services/form_service.py
# Editable field tree generated on the fly from a component's content (there is no per-type schema)
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from pagecomposer.models.json_value import (
    JBool,
    JList,
    JMapping,
    JNumber,
    JString,
    JsonValue,
    Path,
    PathError,
    Segment,
    format_path,
    from_python,
    get_path,
    is_primitive,
    set_path,
    to_python,
)

# --- Field kinds ---------------------------------------------------------
KIND_LIST = "list"
KIND_GROUP = "group"
KIND_EMAIL = "email"
KIND_URL = "url"
KIND_NUMBER = "number"
KIND_TEXTAREA = "textarea"
KIND_TEXT = "text"
KIND_SWITCH = "switch"

_URL_HINTS = ("url", "link", "image", "src")
_TEXTAREA_HINTS = ("description", "content")
TEXTAREA_MIN_LENGTH = 50

_TRUE_STRINGS = {"true", "1", "on", "yes"}


@dataclass
class FormField:
    key: str
    label: str
    path: Tuple[Segment, ...]
    kind: str
    value: Any = None
    placeholder: Optional[str] = None
    add_label: Optional[str] = None
    children: List["FormField"] = field(default_factory=list)


# --- Labels --------------------------------------------------------------
def humanize(key: str) -> str:
    """'ctaButton' -> 'Cta Button', 'meta_title' -> 'Meta Title'"""
    spaced = re.sub(r"([A-Z])", r" \1", str(key)).replace("_", " ")
    words = [w for w in spaced.split() if w]
    return " ".join(w[:1].upper() + w[1:] for w in words)


def singular(key: str) -> str:
    return key[:-1] if len(key) > 1 and key.endswith("s") else key


def field_kind(key: str, value: JsonValue) -> str:
    """Input kind for a primitive leaf, picked from the key name and the value."""
    if isinstance(value, JBool):
        return KIND_SWITCH
    k = str(key).lower()
    if "email" in k:
        return KIND_EMAIL
    if any(h in k for h in _URL_HINTS):
        return KIND_URL
    if isinstance(value, JNumber):
        return KIND_NUMBER
    if any(h in k for h in _TEXTAREA_HINTS):
        return KIND_TEXTAREA
    if isinstance(value, JString) and len(value.value) > TEXTAREA_MIN_LENGTH:
        return KIND_TEXTAREA
    return KIND_TEXT


# --- Tree construction ---------------------------------------------------
def build_form(content: JsonValue) -> List[FormField]:
    if isinstance(content, JMapping):
        return [_build_node(k, v, (k,)) for k, v in content.items()]
    if isinstance(content, JList):
        return [_build_node("items", content, ())]
    return [_leaf("value", content, (), placeholder="Enter value")]


def _build_node(key: str, value: JsonValue, path: Tuple[Segment, ...]) -> FormField:
    label = humanize(key)
    if isinstance(value, JList):
        item_label = humanize(singular(key))
        return FormField(
            key=key,
            label=label,
            path=path,
            kind=KIND_LIST,
            add_label=f"Add {item_label}",
            children=[_build_item(key, i, item, path + (i,)) for i, item in enumerate(value.items)],
        )
    if isinstance(value, JMapping):
        return FormField(
            key=key,
            label=label,
            path=path,
            kind=KIND_GROUP,
            children=[_build_node(k, v, path + (k,)) for k, v in value.items()],
        )
    return _leaf(key, value, path, placeholder=f"Enter {label.lower()}")


def _build_item(list_key: str, index: int, item: JsonValue, path: Tuple[Segment, ...]) -> FormField:
    item_label = f"{humanize(singular(list_key))} {index + 1}"
    if isinstance(item, JMapping):
        return FormField(
            key=str(index),
            label=item_label,
            path=path,
            kind=KIND_GROUP,
            children=[_build_node(k, v, path + (k,)) for k, v in item.items()],
        )
    if isinstance(item, JList):
        node = _build_node(singular(list_key), item, path)
        node.key, node.label = str(index), item_label
        return node
    leaf = _leaf(list_key, item, path, placeholder=item_label.lower())
    leaf.key, leaf.label = str(index), item_label
    return leaf


def _leaf(key: str, value: JsonValue, path: Tuple[Segment, ...], *, placeholder: str) -> FormField:
    return FormField(
        key=key,
        label=humanize(key),
        path=path,
        kind=field_kind(key, value),
        value=to_python(value),
        placeholder=placeholder,
    )


# --- Edits ---------------------------------------------------------------
def apply_edit(content: JsonValue, path: Path, value: JsonValue) -> JsonValue:
    return set_path(content, path, value)


def blank_item_for(items: JList) -> JsonValue:
    """A mapping shaped like the first element (values reset to ''), or '' for primitive lists."""
    if len(items) and isinstance(items.items[0], JMapping):
        first: JMapping = items.items[0]  # type: ignore[assignment]
        return JMapping(tuple((k, JString("")) for k in first.keys()))
    return JString("")


def add_list_item(content: JsonValue, path: Path) -> JsonValue:
    target = get_path(content, path)
    if not isinstance(target, JList):
        raise PathError(f"No list at '{format_path(path)}'")
    return set_path(content, path, target.replace(len(target), blank_item_for(target)))


def remove_list_item(content: JsonValue, path: Path, index: int) -> JsonValue:
    target = get_path(content, path)
    if not isinstance(target, JList):
        raise PathError(f"No list at '{format_path(path)}'")
    if index < 0 or index >= len(target):
        raise PathError(f"Index {index} out of range at '{format_path(path)}' (size {len(target)})")
    return set_path(content, path, target.remove(index))


def kind_at(content: JsonValue, path: Path) -> Optional[str]:
    """Kind of the existing leaf at `path`; None when the path holds a container or nothing."""
    existing = get_path(content, path)
    if existing is None or not is_primitive(existing):
        return None
    keys = [seg for seg in path if isinstance(seg, str)]
    return field_kind(keys[-1] if keys else "value", existing)


def coerce_input(kind: Optional[str], raw: Any) -> JsonValue:
    """Converts raw form input into a JsonValue; numeric/boolean text is parsed for those kinds."""
    if isinstance(raw, str):
        s = raw.strip()
        if kind == KIND_NUMBER and s:
            try:
                return JNumber(int(s))
            except ValueError:
                try:
                    number = float(s)
                except ValueError:
                    return JString(raw)
                # nan/inf have no JSON representation
                return JNumber(number) if math.isfinite(number) else JString(raw)
        if kind == KIND_SWITCH:
            return JBool(s.lower() in _TRUE_STRINGS)
    return from_python(raw)
