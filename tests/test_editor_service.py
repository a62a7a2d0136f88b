import asyncio
import json

import pytest

from pagecomposer.models.json_value import PathError, get_path, to_python
from pagecomposer.models.page import Theme
from pagecomposer.schemas.page import PageMetaUpdate, PageWire
from pagecomposer.services.editor_service import ComponentNotFound, ConfirmationRequired, PageEditor
from pagecomposer.services.gateway import GatewayError
from pagecomposer.services.notification_service import EVENT_CONTENT_RECOVERED, EVENT_PAGE_UPDATED


def _ids(editor):
    return [c.id for c in editor.components]


def _orders(editor):
    return [c.order_index for c in editor.components]


# ----- loading -----

def test_load_normalizes_order(gateway, wire_component):
    gateway.pages[2] = PageWire(id=2, name="Messy Page", components=[
        wire_component(5, "A", "a", {}, 4),
        wire_component(6, "B", "b", {}, 4),
        wire_component(7, "C", "c", {}, 1),
    ])
    editor = asyncio.run(PageEditor.open(2, gateway))
    assert _ids(editor) == ["7", "5", "6"]
    assert _orders(editor) == [1, 2, 3]
    assert editor.page.slug == "messy-page"
    assert editor.tracker.dirty_count() == 0


def test_malformed_content_is_recovered(gateway, wire_component):
    gateway.pages[3] = PageWire(id=3, name="Broken", components=[
        wire_component(1, "Hero", "Hero", "{not json", 1),
        wire_component(2, "Grid", "Grid", {"ok": True}, 2),
    ])
    editor = asyncio.run(PageEditor.open(3, gateway))

    assert to_python(editor.get("1").content) == {}
    assert to_python(editor.get("2").content) == {"ok": True}
    assert editor.recovered_ids == {"1"}
    [note] = editor.bus.drain()
    assert note.level == "warning" and note.event == EVENT_CONTENT_RECOVERED
    assert note.detail["component_id"] == "1"


def test_non_finite_content_is_recovered(gateway, wire_component):
    gateway.pages[5] = PageWire(id=5, name="Stats", components=[
        wire_component(1, "Stats", "Stats", '{"users": NaN}', 1),
    ])
    editor = asyncio.run(PageEditor.open(5, gateway))
    assert to_python(editor.get("1").content) == {}
    assert editor.recovered_ids == {"1"}


def test_load_failure_propagates(gateway):
    with pytest.raises(GatewayError):
        asyncio.run(PageEditor.open(404, gateway))


# ----- content edits -----

def test_edit_marks_dirty_and_keeps_siblings(editor):
    before = editor.get("11").content
    editor.edit_field("11", ["services", 1, "name"], "Perks")

    after = editor.get("11").content
    assert to_python(get_path(after, ["services", 1, "name"])) == "Perks"
    assert get_path(after, ["services", 0]) is get_path(before, ["services", 0])
    assert editor.tracker.dirty_ids == ["11"]


def test_invalid_edit_changes_nothing(editor):
    before = editor.get("10")
    with pytest.raises(PathError):
        editor.edit_field("10", ["title", "text"], "x")
    assert editor.get("10") is before
    assert editor.tracker.dirty_count() == 0


def test_edit_unknown_component(editor):
    with pytest.raises(ComponentNotFound):
        editor.edit_field("nope", ["title"], "x")


def test_number_fields_parse_text(gateway, wire_component):
    gateway.pages[4] = PageWire(id=4, name="Stats", components=[
        wire_component(1, "Stats", "Stats", {"count": 3}, 1),
    ])
    editor = asyncio.run(PageEditor.open(4, gateway))
    editor.edit_field("1", ["count"], "12")
    assert to_python(editor.get("1").content) == {"count": 12}


def test_list_items(editor):
    editor.add_list_item("12", ["faqs"])
    faqs = to_python(editor.get("12").content)["faqs"]
    assert faqs[1] == {"question": "", "answer": ""}

    editor.remove_list_item("12", ["faqs"], 0)
    assert to_python(editor.get("12").content)["faqs"] == [{"question": "", "answer": ""}]
    assert editor.tracker.is_dirty("12")


# ----- structure -----

def test_duplicate(editor):
    copy = editor.duplicate("11")
    assert copy.id != "11" and copy.id.startswith("comp-")
    assert copy.component_name == "Services (Copy)"
    assert copy.order_index == 4
    assert editor.tracker.is_dirty(copy.id)
    assert copy.id in editor.expanded

    editor.edit_field(copy.id, ["services", 0, "name"], "Changed")
    assert to_python(editor.get("11").content)["services"][0]["name"] == "Payroll"


def test_delete_requires_confirmation(editor):
    with pytest.raises(ConfirmationRequired):
        editor.delete("10")
    assert len(editor.components) == 3


def test_delete_renumbers(editor):
    editor.edit_field("10", ["title"], "x")
    editor.toggle_expanded("10")
    editor.delete("10", confirm=True)

    assert _ids(editor) == ["11", "12"]
    assert _orders(editor) == [1, 2]
    assert "10" not in editor.tracker and "10" not in editor.expanded
    assert editor.tracker.dirty_ids == ["11", "12"]


def test_add_component_defaults(editor):
    rec = editor.add_component("Banner")
    assert to_python(rec.content) == {"title": "", "content": ""}
    assert rec.component_name == "Banner"
    assert rec.order_index == 4
    assert editor.tracker.is_dirty(rec.id) and rec.id in editor.expanded


def test_toggle_expanded(editor):
    assert editor.toggle_expanded("10") is True
    assert editor.toggle_expanded("10") is False
    with pytest.raises(ComponentNotFound):
        editor.toggle_expanded("x")


# ----- reorder -----

def test_reorder_pushes_new_order(editor, gateway):
    assert asyncio.run(editor.reorder("12", "10")) is True
    assert _ids(editor) == ["12", "10", "11"]
    assert _orders(editor) == [1, 2, 3]
    assert editor.tracker.dirty_ids == ["10", "11", "12"]

    [(page_id, items)] = gateway.calls_of("reorder_components")
    assert page_id == 1
    assert [(i.id, i.order_index) for i in items] == [("12", 1), ("10", 2), ("11", 3)]


def test_reorder_noop(editor, gateway):
    assert asyncio.run(editor.reorder("10", "10")) is False
    assert asyncio.run(editor.reorder("10", "missing")) is False
    assert gateway.calls_of("reorder_components") == []


def test_reorder_failure_rolls_back(editor, gateway):
    editor.edit_field("11", ["title"], "dirty before")
    gateway.failing.add("reorder_components")

    with pytest.raises(GatewayError):
        asyncio.run(editor.reorder("12", "10"))

    assert _ids(editor) == ["10", "11", "12"]
    assert _orders(editor) == [1, 2, 3]
    assert editor.tracker.dirty_ids == ["11"]
    assert editor.bus.drain()[-1].level == "error"


# ----- saving -----

def test_save_all_sends_full_list(editor, gateway):
    editor.edit_field("10", ["title"], "New title")
    editor.duplicate("12")
    saved = asyncio.run(editor.save_all())

    assert saved == 2
    [(page_id, items)] = gateway.calls_of("save_page")
    assert page_id == 1 and len(items) == 4
    assert json.loads(items[0].content_json)["title"] == "New title"
    assert [i.order_index for i in items] == [1, 2, 3, 4]
    assert editor.tracker.dirty_count() == 0

    updated = [n for n in editor.bus.drain() if n.event == EVENT_PAGE_UPDATED]
    assert updated and updated[-1].detail["slug"] == "payroll-landing"


def test_save_component_sends_only_its_edits(editor, gateway):
    editor.edit_field("10", ["title"], "Hero edit")
    editor.edit_field("11", ["title"], "Grid edit")
    asyncio.run(editor.save_component("10"))

    [(_, items)] = gateway.calls_of("save_page")
    contents = [json.loads(i.content_json) for i in items]
    assert contents[0]["title"] == "Hero edit"
    assert contents[1]["title"] == "What we do"
    assert editor.tracker.dirty_ids == ["11"]


def test_save_failure_keeps_dirty(editor, gateway):
    editor.edit_field("10", ["title"], "x")
    gateway.failing.add("save_page")
    with pytest.raises(GatewayError):
        asyncio.run(editor.save_all())
    assert editor.tracker.dirty_ids == ["10"]
    assert editor.bus.drain()[-1].level == "error"


# ----- instant toggles -----

def test_visibility_is_pushed(editor, gateway):
    editor.edit_field("10", ["title"], "unsaved")
    rec = asyncio.run(editor.set_visibility("10", False))
    assert rec.is_visible is False

    [wire] = gateway.calls_of("update_component")
    assert wire.is_visible is False
    # unsaved content edits do not ride along
    assert json.loads(wire.content_json)["title"] == "Payroll made easy"


def test_theme_failure_reverts(editor, gateway):
    gateway.failing.add("update_component")
    with pytest.raises(GatewayError):
        asyncio.run(editor.set_theme("11", "dark"))
    assert editor.get("11").theme == Theme.LIGHT
    assert editor.bus.drain()[-1].level == "error"


def test_toggle_on_unsaved_component_stays_local(editor, gateway):
    rec = editor.add_component("Banner")
    asyncio.run(editor.set_theme(rec.id, Theme.DARK))
    assert editor.get(rec.id).theme == Theme.DARK
    assert gateway.calls_of("update_component") == []


# ----- metadata -----

def test_update_meta(editor, gateway):
    asyncio.run(editor.update_meta(PageMetaUpdate(name="Payroll", meta_title="Pay")))
    assert editor.page.name == "Payroll" and editor.page.meta_title == "Pay"
    [(_, meta)] = gateway.calls_of("update_page_meta")
    assert meta.slug == "payroll-landing"


def test_update_meta_failure_reverts(editor, gateway):
    gateway.failing.add("update_page_meta")
    with pytest.raises(GatewayError):
        asyncio.run(editor.update_meta(PageMetaUpdate(slug="new-slug")))
    assert editor.page.slug == "payroll-landing"


# ----- views -----

def test_state_and_preview(editor):
    editor.edit_field("12", ["faqs", 0, "answer"], "Very.")
    state = editor.to_state()
    assert state.dirty_count == 1 and state.dirty_ids == ["12"]
    assert [c.is_dirty for c in state.components] == [False, False, True]

    page = editor.preview()
    assert [s.component_id for s in page.sections] == ["10", "11", "12"]


# ----- edits while a request is out -----

def _while_in_flight(gateway, request, meanwhile):
    """Starts `request`, runs `meanwhile` while the gateway holds it, then lets it answer."""
    async def scenario():
        gateway.hold = asyncio.Event()
        task = asyncio.ensure_future(request())
        await asyncio.sleep(0)
        meanwhile()
        gateway.hold.set()
        return await task

    return asyncio.run(scenario())


def test_failed_reorder_keeps_edits_made_meanwhile(editor, gateway):
    gateway.failing.add("reorder_components")
    added = []

    def meanwhile():
        editor.edit_field("11", ["title"], "edited meanwhile")
        added.append(editor.add_component("Banner"))

    with pytest.raises(GatewayError):
        _while_in_flight(gateway, lambda: editor.reorder("12", "10"), meanwhile)

    new_id = added[0].id
    assert _ids(editor) == ["10", "11", "12", new_id]
    assert _orders(editor) == [1, 2, 3, 4]
    assert to_python(editor.get("11").content)["title"] == "edited meanwhile"
    assert editor.tracker.dirty_ids == sorted(["11", new_id])


def test_failed_reorder_keeps_moves_of_a_deletion_made_meanwhile(editor, gateway):
    gateway.failing.add("reorder_components")

    with pytest.raises(GatewayError):
        _while_in_flight(
            gateway,
            lambda: editor.reorder("12", "11"),
            lambda: editor.delete("10", confirm=True),
        )

    assert _ids(editor) == ["11", "12"]
    assert _orders(editor) == [1, 2]
    # both moved up from their stored positions
    assert editor.tracker.dirty_ids == ["11", "12"]


def test_save_all_leaves_edits_made_meanwhile_dirty(editor, gateway):
    editor.edit_field("10", ["title"], "sent")

    def meanwhile():
        editor.edit_field("10", ["title"], "newer")
        editor.edit_field("11", ["title"], "edited meanwhile")

    saved = _while_in_flight(gateway, editor.save_all, meanwhile)

    assert saved == 1
    assert editor.tracker.dirty_ids == ["10", "11"]
    assert to_python(editor._persisted["10"].content)["title"] == "sent"
    assert to_python(editor._persisted["11"].content)["title"] == "What we do"

    # a later single save of "11" must not ship the newer "10" title
    asyncio.run(editor.save_component("11"))
    _, items = gateway.calls_of("save_page")[-1]
    assert json.loads(items[0].content_json)["title"] == "sent"
    assert json.loads(items[1].content_json)["title"] == "edited meanwhile"


def test_save_component_leaves_edit_made_meanwhile_dirty(editor, gateway):
    editor.edit_field("10", ["title"], "first")

    _while_in_flight(
        gateway,
        lambda: editor.save_component("10"),
        lambda: editor.edit_field("10", ["title"], "second"),
    )

    assert editor.tracker.dirty_ids == ["10"]
    assert to_python(editor._persisted["10"].content)["title"] == "first"
    assert to_python(editor.get("10").content)["title"] == "second"


def test_failed_meta_update_keeps_value_set_meanwhile(editor, gateway):
    gateway.failing.add("update_page_meta")

    def meanwhile():
        editor.page.meta_title = "Set meanwhile"

    with pytest.raises(GatewayError):
        _while_in_flight(
            gateway,
            lambda: editor.update_meta(PageMetaUpdate(slug="new-slug", meta_title="Pushed")),
            meanwhile,
        )

    assert editor.page.slug == "payroll-landing"
    assert editor.page.meta_title == "Set meanwhile"
