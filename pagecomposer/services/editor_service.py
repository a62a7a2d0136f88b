# pagecomposer/services/editor_service.py
# One editor session per page: local edits, dirty tracking, and the calls that push them to the pages API.
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from pagecomposer.core.settings import settings
from pagecomposer.models.json_value import JMapping, JsonValue, Path, dump_json, from_python, parse_json, to_python
from pagecomposer.models.page import ComponentRecord, PageAggregate, Theme
from pagecomposer.schemas.page import (
    ComponentOut,
    ComponentWire,
    EditorStateOut,
    PageMetaUpdate,
    PageMetaWire,
    PageWire,
    ReorderItem,
    SavePageItem,
)
from pagecomposer.services import form_service
from pagecomposer.services.change_tracker import ChangeTracker
from pagecomposer.services.gateway import GatewayError, PersistenceGateway
from pagecomposer.services.notification_service import (
    EVENT_CONTENT_RECOVERED,
    EVENT_PAGE_UPDATED,
    NotificationBus,
)
from pagecomposer.services.reorder_service import changed_ids, normalize_order, renumber, reorder
from pagecomposer.utils.slugs import slugify
from pagecomposer.web.ui.preview_renderer import PREVIEW_MODE, PreviewPage, PreviewRegistry, build_default_registry

logger = logging.getLogger(__name__)

DEFAULT_COMPONENT_CONTENT = {"title": "", "content": ""}


# ===== Errors =====
class EditorError(Exception):
    pass


class ComponentNotFound(EditorError, LookupError):
    def __init__(self, component_id: str) -> None:
        super().__init__(f"Component '{component_id}' not found")
        self.component_id = component_id


class ConfirmationRequired(EditorError):
    pass


# ===== Wire <-> record =====
def new_component_id(component_type: str) -> str:
    return f"comp-{uuid.uuid4().hex[:8]}-{component_type}"


def content_from_wire(raw: Optional[str]) -> Tuple[JsonValue, bool]:
    """Parsed content plus a flag telling whether it had to be replaced by an empty mapping."""
    if raw is None or not raw.strip():
        return JMapping(), False
    try:
        return parse_json(raw), False
    except ValueError:
        return JMapping(), True


def record_to_save_item(rec: ComponentRecord) -> SavePageItem:
    return SavePageItem(
        component_type=rec.component_type,
        component_name=rec.component_name,
        content_json=dump_json(rec.content),
        order_index=rec.order_index,
    )


def record_to_wire(rec: ComponentRecord, page_id: int) -> ComponentWire:
    return ComponentWire(
        id=rec.id,
        page_id=page_id,
        component_type=rec.component_type,
        component_name=rec.component_name,
        content_json=dump_json(rec.content),
        order_index=rec.order_index,
        is_visible=rec.is_visible,
        theme=int(rec.theme),
    )


class PageEditor:
    """
    Holds the page being edited. Content is an immutable JSON tree, so every
    edit swaps one ComponentRecord for a new one and marks it dirty.

    `_persisted` keeps the last version of each component the pages API is
    known to hold; it is what gets sent for the components that a single
    save or a toggle is not meant to touch.
    """

    def __init__(
        self,
        page: PageAggregate,
        gateway: PersistenceGateway,
        *,
        bus: Optional[NotificationBus] = None,
        previews: Optional[PreviewRegistry] = None,
        recovered_ids: Iterable[str] = (),
    ) -> None:
        page.components = normalize_order(page.components)
        self.page = page
        self.gateway = gateway
        self.bus = bus or NotificationBus(settings.NOTIFICATION_BUFFER_SIZE)
        self.previews = previews or build_default_registry()
        self.tracker = ChangeTracker()
        self.expanded: Set[str] = set()
        self.recovered_ids: Set[str] = set(recovered_ids)
        self._persisted: Dict[str, ComponentRecord] = {c.id: c for c in page.components}

    # ---------- Loading ----------
    @classmethod
    async def open(
        cls,
        page_id: int,
        gateway: PersistenceGateway,
        *,
        bus: Optional[NotificationBus] = None,
        previews: Optional[PreviewRegistry] = None,
    ) -> "PageEditor":
        wire = await gateway.load_page(page_id)
        return cls.from_wire(wire, gateway, bus=bus, previews=previews)

    @classmethod
    def from_wire(
        cls,
        wire: PageWire,
        gateway: PersistenceGateway,
        *,
        bus: Optional[NotificationBus] = None,
        previews: Optional[PreviewRegistry] = None,
    ) -> "PageEditor":
        bus = bus or NotificationBus(settings.NOTIFICATION_BUFFER_SIZE)
        records: List[ComponentRecord] = []
        recovered: List[str] = []
        seen: Set[str] = set()

        for cw in wire.components:
            cid = str(cw.id) if cw.id is not None else ""
            if not cid or cid in seen:
                cid = new_component_id(cw.component_type)
                logger.warning("Page %s: component without a unique id, assigned %s", wire.id, cid)
            seen.add(cid)

            content, broken = content_from_wire(cw.content_json)
            name = cw.component_name or cw.component_type
            if broken:
                recovered.append(cid)
                logger.warning("Page %s: content of component %s is not valid JSON, reset to {}", wire.id, cid)
                bus.warning(
                    f'Content of "{name}" could not be read and was reset',
                    event=EVENT_CONTENT_RECOVERED,
                    component_id=cid,
                )

            records.append(
                ComponentRecord(
                    id=cid,
                    component_type=cw.component_type,
                    component_name=name,
                    content=content,
                    order_index=cw.order_index,
                    is_visible=cw.is_visible,
                    theme=Theme.coerce(cw.theme),
                )
            )

        page = PageAggregate(
            id=wire.id,
            name=wire.name,
            slug=wire.slug or slugify(wire.name),
            meta_title=wire.meta_title,
            meta_description=wire.meta_description,
            category_id=wire.category_id,
            is_homepage=wire.is_homepage,
            components=records,
        )
        return cls(page, gateway, bus=bus, previews=previews, recovered_ids=recovered)

    # ---------- Lookup ----------
    @property
    def components(self) -> List[ComponentRecord]:
        return self.page.components

    def get(self, component_id: str) -> ComponentRecord:
        rec = self.page.find(component_id)
        if rec is None:
            raise ComponentNotFound(component_id)
        return rec

    def _put(self, rec: ComponentRecord) -> None:
        idx = self.page.index_of(rec.id)
        if idx < 0:
            raise ComponentNotFound(rec.id)
        self.page.components[idx] = rec

    def _renumber(self) -> None:
        before = list(self.page.components)
        self.page.components = renumber(before)
        self.tracker.mark_many(changed_ids(before, self.page.components))

    # ---------- Content editing ----------
    def form(self, component_id: str) -> List[form_service.FormField]:
        return form_service.build_form(self.get(component_id).content)

    def edit_field(self, component_id: str, path: Path, value: Any) -> ComponentRecord:
        rec = self.get(component_id)
        new_value = form_service.coerce_input(form_service.kind_at(rec.content, path), value)
        content = form_service.apply_edit(rec.content, path, new_value)
        return self._replace_content(rec, content)

    def add_list_item(self, component_id: str, path: Path) -> ComponentRecord:
        rec = self.get(component_id)
        return self._replace_content(rec, form_service.add_list_item(rec.content, path))

    def remove_list_item(self, component_id: str, path: Path, index: int) -> ComponentRecord:
        rec = self.get(component_id)
        return self._replace_content(rec, form_service.remove_list_item(rec.content, path, index))

    def _replace_content(self, rec: ComponentRecord, content: JsonValue) -> ComponentRecord:
        updated = replace(rec, content=content)
        self._put(updated)
        self.tracker.mark_dirty(rec.id)
        return updated

    def toggle_expanded(self, component_id: str) -> bool:
        self.get(component_id)
        if component_id in self.expanded:
            self.expanded.discard(component_id)
            return False
        self.expanded.add(component_id)
        return True

    # ---------- Structure ----------
    def add_component(
        self,
        component_type: str,
        component_name: Optional[str] = None,
        content: Any = None,
        *,
        is_visible: bool = True,
        theme: Any = Theme.LIGHT,
    ) -> ComponentRecord:
        rec = ComponentRecord(
            id=new_component_id(component_type),
            component_type=component_type,
            component_name=component_name or component_type,
            content=from_python(DEFAULT_COMPONENT_CONTENT if content is None else content),
            order_index=len(self.page.components) + 1,
            is_visible=is_visible,
            theme=Theme.coerce(theme),
        )
        self.page.components.append(rec)
        self.tracker.mark_dirty(rec.id)
        self.expanded.add(rec.id)
        self.bus.success(f'Component "{rec.component_name}" added')
        return rec

    def duplicate(self, component_id: str) -> ComponentRecord:
        src = self.get(component_id)
        # content is immutable, so sharing it is a deep copy for every purpose
        copy = replace(
            src,
            id=new_component_id(src.component_type),
            component_name=f"{src.component_name} (Copy)",
            order_index=len(self.page.components) + 1,
        )
        self.page.components.append(copy)
        self.tracker.mark_dirty(copy.id)
        self.expanded.add(copy.id)
        self.bus.success("Component duplicated!")
        return copy

    def delete(self, component_id: str, *, confirm: bool = False) -> None:
        rec = self.get(component_id)
        if not confirm:
            raise ConfirmationRequired(f'Deleting "{rec.component_name}" needs confirmation')
        self.page.components = [c for c in self.page.components if c.id != component_id]
        self.tracker.clear(component_id)
        self.expanded.discard(component_id)
        self.recovered_ids.discard(component_id)
        # records after the deleted one shift up; they now differ from the stored order
        self._renumber()
        self.bus.info("Component deleted!")

    # ---------- Persistence ----------
    async def reorder(self, source_id: str, destination_id: str) -> bool:
        """
        Moves locally, then pushes the whole ordering. If the pages API rejects
        it, only the move is undone (edits made meanwhile stay) and
        GatewayError is re-raised. Returns False for a no-op move.
        """
        before = list(self.page.components)
        after = reorder(before, source_id, destination_id)
        if [c.id for c in after] == [c.id for c in before]:
            return False

        dirty_before = self.tracker.snapshot()
        self.page.components = after
        moved = changed_ids(before, after)
        self.tracker.mark_many(moved)

        items = [ReorderItem(id=c.id, order_index=c.order_index) for c in after]
        try:
            await self.gateway.reorder_components(self.page.id, items)
        except GatewayError as exc:
            self._undo_move(before, after, [cid for cid in moved if cid not in dirty_before])
            logger.warning("Page %s: reorder %s -> %s rolled back: %s", self.page.id, source_id, destination_id, exc)
            self.bus.error(f"Error reordering components: {exc}")
            raise

        self.bus.success("Components reordered successfully")
        return True

    def _undo_move(
        self,
        before: List[ComponentRecord],
        after: List[ComponentRecord],
        marked_by_move: List[str],
    ) -> None:
        """
        Puts the current records back in the pre-move order. Records added
        since go last in their current order, deleted ones stay deleted. Dirty
        marks the move added are dropped unless the record changed since.
        """
        moved_record = {c.id: c for c in after}
        current = {c.id: c for c in self.page.components}
        untouched = [cid for cid in marked_by_move if current.get(cid) is moved_record[cid]]

        rank = {c.id: pos for pos, c in enumerate(before)}
        restored = sorted(self.page.components, key=lambda c: rank.get(c.id, len(rank)))
        self.page.components = renumber(restored)

        for cid in untouched:
            self.tracker.clear(cid)
        stored_order = {c.id: c.order_index for c in before}
        self.tracker.mark_many(
            c.id for c in self.page.components
            if c.id in stored_order and stored_order[c.id] != c.order_index
        )

    async def save_component(self, component_id: str) -> None:
        """
        Commits one component's current content. The pages API only accepts the
        whole list, so the others go out as last persisted (new, never-saved
        ones as they are) in the current order.
        """
        target = self.get(component_id)
        items: List[SavePageItem] = []
        for c in self.page.components:
            if c.id == component_id:
                items.append(record_to_save_item(c))
            else:
                base = self._persisted.get(c.id, c)
                items.append(record_to_save_item(replace(base, order_index=c.order_index)))

        try:
            await self.gateway.save_page(self.page.id, items)
        except GatewayError as exc:
            logger.warning("Page %s: saving component %s failed: %s", self.page.id, component_id, exc)
            self.bus.error(f"Failed to save component: {exc}")
            raise

        self._persisted[component_id] = target
        # edited again while the request was out: still unsaved
        if self.page.find(component_id) is target:
            self.tracker.clear(component_id)
        self.bus.success("Component saved successfully!")
        self._announce_update()

    async def save_all(self) -> int:
        """Commits every component; returns how many were dirty."""
        sent = {c.id: c for c in self.page.components}
        items = [record_to_save_item(c) for c in sent.values()]
        dirty = self.tracker.dirty_count()
        try:
            await self.gateway.save_page(self.page.id, items)
        except GatewayError as exc:
            logger.warning("Page %s: save all failed: %s", self.page.id, exc)
            self.bus.error(f"Failed to save components: {exc}")
            raise

        self._persisted = dict(sent)
        for c in self.page.components:
            if sent.get(c.id) is c:
                self.tracker.clear(c.id)
        self.bus.success(f"All changes saved ({dirty} component(s))")
        self._announce_update()
        return dirty

    def _announce_update(self) -> None:
        self.bus.emit(
            "info",
            f'Page "{self.page.name}" updated',
            event=EVENT_PAGE_UPDATED,
            page_id=self.page.id,
            slug=self.page.slug,
        )

    # ---------- Instant toggles ----------
    async def set_visibility(self, component_id: str, is_visible: bool) -> ComponentRecord:
        return await self._toggle(component_id, "is_visible", bool(is_visible), "visibility")

    async def set_theme(self, component_id: str, theme: Any) -> ComponentRecord:
        return await self._toggle(component_id, "theme", Theme.coerce(theme), "theme")

    async def _toggle(self, component_id: str, attr: str, value: Any, label: str) -> ComponentRecord:
        rec = self.get(component_id)
        previous = getattr(rec, attr)
        if previous == value:
            return rec

        updated = replace(rec, **{attr: value})
        self._put(updated)

        base = self._persisted.get(component_id)
        if base is None:
            # never saved: the pages API has nothing to update yet
            self.tracker.mark_dirty(component_id)
            return updated

        pushed = replace(base, order_index=updated.order_index, **{attr: value})
        try:
            await self.gateway.update_component(record_to_wire(pushed, self.page.id))
        except GatewayError as exc:
            current = self.page.find(component_id)
            if current is not None:
                self._put(replace(current, **{attr: previous}))
            logger.warning("Page %s: %s update of %s reverted: %s", self.page.id, label, component_id, exc)
            self.bus.error(f"Failed to update {label}: {exc}")
            raise

        self._persisted[component_id] = pushed
        self.bus.success(f"{label.capitalize()} updated")
        return updated

    # ---------- Page metadata ----------
    async def update_meta(self, patch: PageMetaUpdate) -> PageAggregate:
        changes = patch.model_dump(exclude_unset=True)
        if not changes:
            return self.page

        previous = {k: getattr(self.page, k) for k in changes}
        for k, v in changes.items():
            setattr(self.page, k, v)

        meta = PageMetaWire(
            name=self.page.name,
            slug=self.page.slug,
            meta_title=self.page.meta_title,
            meta_description=self.page.meta_description,
            category_id=self.page.category_id,
            is_homepage=self.page.is_homepage,
        )
        try:
            await self.gateway.update_page_meta(self.page.id, meta)
        except GatewayError as exc:
            # fields changed again while the request was out keep the newer value
            for k, v in previous.items():
                if getattr(self.page, k) == changes[k]:
                    setattr(self.page, k, v)
            logger.warning("Page %s: metadata update reverted: %s", self.page.id, exc)
            self.bus.error(f"Failed to update page: {exc}")
            raise

        self.bus.success("Page updated")
        self._announce_update()
        return self.page

    # ---------- Views ----------
    def preview(self, mode: str = PREVIEW_MODE) -> PreviewPage:
        return self.previews.build_page(self.page.components, mode=mode)

    def component_out(self, rec: ComponentRecord) -> ComponentOut:
        return ComponentOut(
            id=rec.id,
            component_type=rec.component_type,
            component_name=rec.component_name,
            content=to_python(rec.content),
            order_index=rec.order_index,
            is_visible=rec.is_visible,
            theme=int(rec.theme),
            is_dirty=self.tracker.is_dirty(rec.id),
            is_expanded=rec.id in self.expanded,
        )

    def to_state(self) -> EditorStateOut:
        p = self.page
        return EditorStateOut(
            page_id=p.id,
            name=p.name,
            slug=p.slug,
            meta_title=p.meta_title,
            meta_description=p.meta_description,
            category_id=p.category_id,
            is_homepage=p.is_homepage,
            components=[self.component_out(c) for c in p.components],
            dirty_ids=self.tracker.dirty_ids,
            dirty_count=self.tracker.dirty_count(),
            expanded_ids=sorted(self.expanded),
            recovered_ids=sorted(self.recovered_ids),
        )
