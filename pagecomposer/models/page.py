# pagecomposer/models/page.py
# In-memory page model held by an editor session (the pages API owns persistence)
from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional

from pagecomposer.models.json_value import JMapping, JsonValue


class Theme(IntEnum):
    # ThemeMode enum of the pages API
    LIGHT = 1
    DARK = 2

    @classmethod
    def coerce(cls, raw: object) -> "Theme":
        if isinstance(raw, str):
            name = raw.strip().upper()
            if name in cls.__members__:
                return cls[name]
        try:
            return cls(int(raw))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return cls.LIGHT


@dataclass(frozen=True)
class ComponentRecord:
    id: str
    component_type: str
    component_name: str
    content: JsonValue = field(default_factory=JMapping)
    order_index: int = 1          # 1-based, contiguous within a page
    is_visible: bool = True
    theme: Theme = Theme.LIGHT


@dataclass
class PageAggregate:
    id: int
    name: str
    slug: str
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    category_id: Optional[int] = None
    is_homepage: bool = False
    components: List[ComponentRecord] = field(default_factory=list)

    def find(self, component_id: str) -> Optional[ComponentRecord]:
        for c in self.components:
            if c.id == component_id:
                return c
        return None

    def index_of(self, component_id: str) -> int:
        for i, c in enumerate(self.components):
            if c.id == component_id:
                return i
        return -1
