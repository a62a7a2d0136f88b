# pagecomposer/web/ui/preview_renderer.py
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from pagecomposer.models.json_value import to_python
from pagecomposer.models.page import ComponentRecord

logger = logging.getLogger(__name__)

# ===================== Models handed to the template =====================

@dataclass
class Button:
    label: str
    href: Optional[str] = None
    style: Optional[str] = None


@dataclass
class Card:
    title: Optional[str]
    description: Optional[str]
    icon: Optional[str] = None
    image: Optional[str] = None


@dataclass
class Block:
    kind: str               # "text" | "cards" | "faq" | "buttons" | "kv" | "list" | "json"
    title: Optional[str]
    payload: Any
    tech_only: bool = False # hidden behind the "show technical" toggle by default


@dataclass
class SectionRender:
    anchor: str
    component_id: str
    title: str              # component name
    subtitle: str           # component type
    theme: str              # "light" | "dark"
    is_visible: bool
    fallback: bool          # True when the default renderer was used
    blocks: List[Block]
    raw: Any


@dataclass
class PreviewPage:
    toc: List[Dict[str, str]]
    sections: List[SectionRender]
    meta: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


Renderer = Callable[[Any], List[Block]]

PREVIEW_MODE = "preview"
EDIT_MODE = "edit"

# ===================== Utils =====================

def _text(x: Any) -> Optional[str]:
    return x if isinstance(x, str) and x.strip() else None


def _btn(x: Any) -> Optional[Button]:
    if not isinstance(x, dict):
        return None
    label = _text(x.get("text")) or _text(x.get("label"))
    if not label:
        return None
    href = x.get("link") or x.get("href") or x.get("url")
    return Button(label=label, href=href if isinstance(href, str) else None, style=x.get("style"))


def _as_list_of_dicts(x: Any) -> List[Dict[str, Any]]:
    if isinstance(x, list):
        return [it for it in x if isinstance(it, dict)]
    return []


def _add_block(blocks: List[Block], *, kind: str, title: Optional[str], payload: Any, mark_tech: bool = False):
    blocks.append(Block(kind=kind, title=title, payload=payload, tech_only=mark_tech))


def _heading_blocks(d: Dict[str, Any]) -> List[Block]:
    blocks: List[Block] = []
    for key, title in (("title", "Title"), ("subtitle", "Subtitle"), ("description", "Description")):
        if _text(d.get(key)):
            _add_block(blocks, kind="text", title=title, payload=d[key])
    return blocks


def _cards(items: Iterable[Dict[str, Any]], *, title_key: str) -> List[Card]:
    cards: List[Card] = []
    for it in items:
        title = _text(it.get(title_key)) or _text(it.get("title"))
        desc = _text(it.get("description"))
        icon = _text(it.get("icon"))
        if any([title, desc, icon]):
            cards.append(Card(title=title, description=desc, icon=icon, image=_text(it.get("image"))))
    return cards

# ===================== Renderers by componentType =====================

def render_payroll_hero(d: Any) -> List[Block]:
    d = d if isinstance(d, dict) else {}
    blocks = _heading_blocks(d)
    cta = _btn(d.get("ctaButton"))
    if cta:
        _add_block(blocks, kind="buttons", title="CTA", payload=[asdict(cta)])
    return blocks


def render_service_grid(d: Any) -> List[Block]:
    d = d if isinstance(d, dict) else {}
    blocks = _heading_blocks(d)
    cards = _cards(_as_list_of_dicts(d.get("services")), title_key="name")
    if cards:
        _add_block(blocks, kind="cards", title="Services", payload=[asdict(c) for c in cards])
    return blocks


def render_hr_modules(d: Any) -> List[Block]:
    d = d if isinstance(d, dict) else {}
    blocks = _heading_blocks(d)
    cards = _cards(_as_list_of_dicts(d.get("features")), title_key="title")
    if cards:
        _add_block(blocks, kind="cards", title="Features", payload=[asdict(c) for c in cards])
    return blocks


def render_payroll_faq(d: Any) -> List[Block]:
    d = d if isinstance(d, dict) else {}
    blocks = _heading_blocks(d)
    faqs = [
        {"question": f.get("question") or "", "answer": f.get("answer") or ""}
        for f in _as_list_of_dicts(d.get("faqs"))
        if f.get("question") or f.get("answer")
    ]
    if faqs:
        _add_block(blocks, kind="faq", title="FAQs", payload=faqs)
    return blocks


BUILTIN_RENDERERS: Dict[str, Renderer] = {
    "PayrollHeroSection": render_payroll_hero,
    "ServiceGrid": render_service_grid,
    "HRModulesSection": render_hr_modules,
    "PayrollFAQSection": render_payroll_faq,
}

# ===================== Fallback =====================

def render_default(content: Any, *, name: str, component_type: str) -> List[Block]:
    """Name/type label plus the raw content, pretty-printed. Works for any JSON."""
    return [
        Block(kind="text", title="Component", payload=f"{name or component_type} · {component_type}"),
        Block(kind="json", title="Raw", payload=json.dumps(content, indent=2, ensure_ascii=False)),
    ]

# ===================== Registry =====================

class PreviewRegistry:
    """
    componentType -> renderer. Open for extension: new types are registered,
    lookup never changes. Unknown types (and renderers that blow up) go through
    the default renderer.
    """

    def __init__(self, renderers: Optional[Dict[str, Renderer]] = None) -> None:
        self._renderers: Dict[str, Renderer] = dict(renderers or {})

    def register(self, component_type: str, renderer: Optional[Renderer] = None):
        if renderer is not None:
            self._renderers[component_type] = renderer
            return renderer

        def _decorator(fn: Renderer) -> Renderer:
            self._renderers[component_type] = fn
            return fn

        return _decorator

    def unregister(self, component_type: str) -> None:
        self._renderers.pop(component_type, None)

    def renderer_for(self, component_type: str) -> Optional[Renderer]:
        return self._renderers.get(component_type)

    def __contains__(self, component_type: object) -> bool:
        return component_type in self._renderers

    @property
    def types(self) -> List[str]:
        return sorted(self._renderers)

    def render(self, record: ComponentRecord, *, position: int = 1) -> SectionRender:
        content = to_python(record.content)
        renderer = self._renderers.get(record.component_type)
        fallback = renderer is None
        blocks: List[Block] = []

        if renderer is not None:
            try:
                blocks = list(renderer(content) or [])
            except Exception:
                logger.exception(
                    "Preview renderer for %s failed on component %s; using default",
                    record.component_type, record.id,
                )
                fallback = True

        if fallback:
            blocks = render_default(content, name=record.component_name, component_type=record.component_type)
        else:
            if not blocks:
                _add_block(blocks, kind="text", title=None, payload="(No content yet)")
            # raw JSON last, tech-only in the template
            _add_block(blocks, kind="json", title="JSON", payload=json.dumps(content, indent=2, ensure_ascii=False),
                       mark_tech=True)

        return SectionRender(
            anchor=f"sec-{position}-{record.component_type}".lower().replace(" ", "-"),
            component_id=record.id,
            title=record.component_name or record.component_type,
            subtitle=record.component_type,
            theme=record.theme.name.lower(),
            is_visible=record.is_visible,
            fallback=fallback,
            blocks=blocks,
            raw=content,
        )

    def build_page(self, records: Iterable[ComponentRecord], *, mode: str = PREVIEW_MODE) -> PreviewPage:
        """
        Ordered by order_index. Hidden components are skipped in preview mode;
        in edit mode everything renders.
        """
        ordered = sorted(records, key=lambda r: r.order_index)
        sections: List[SectionRender] = []
        toc: List[Dict[str, str]] = []
        hidden = 0
        for rec in ordered:
            if mode == PREVIEW_MODE and not rec.is_visible:
                hidden += 1
                continue
            sec = self.render(rec, position=len(sections) + 1)
            sections.append(sec)
            toc.append({"anchor": sec.anchor, "label": f"{len(sections)}. {sec.title}"})
        return PreviewPage(toc=toc, sections=sections, meta={"mode": mode, "count": len(sections), "hidden": hidden})


def build_default_registry() -> PreviewRegistry:
    return PreviewRegistry(BUILTIN_RENDERERS)
