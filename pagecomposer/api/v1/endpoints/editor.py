# =============================================================================
# Editor Endpoints (open/close sessions, content edits, structure, save, reorder, preview)
# pagecomposer/api/v1/endpoints/editor.py
# =============================================================================
from __future__ import annotations

from typing import List, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query

from pagecomposer.api.deps import get_editor, get_gateway, get_preview_registry, get_session_store
from pagecomposer.models.json_value import PathError, from_python
from pagecomposer.schemas.page import (
    AddComponentIn,
    ComponentOut,
    EditorStateOut,
    FieldEditIn,
    FormFieldOut,
    ListItemIn,
    ListItemRemoveIn,
    NotificationOut,
    PageMetaUpdate,
    ReorderIn,
    ThemeIn,
    VisibilityIn,
)
from pagecomposer.services.editor_service import ComponentNotFound, ConfirmationRequired, PageEditor
from pagecomposer.services.form_service import FormField
from pagecomposer.services.gateway import GatewayError, PersistenceGateway
from pagecomposer.services.session_store import EditorSessionStore
from pagecomposer.utils.payload_guard import enforce_content_size
from pagecomposer.web.ui.preview_renderer import EDIT_MODE, PREVIEW_MODE, PreviewRegistry

router = APIRouter(prefix="/editor/pages", tags=["editor"])


# ---------- helpers ----------
def _raise_http(e: Exception) -> NoReturn:
    if isinstance(e, ComponentNotFound):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConfirmationRequired):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValueError):
        # PathError, and numbers JSON cannot carry
        raise HTTPException(status_code=400, detail=str(e))
    if isinstance(e, GatewayError):
        raise HTTPException(status_code=502, detail=f"Pages API error: {e}")
    raise e


def _form_out(f: FormField) -> FormFieldOut:
    return FormFieldOut(
        key=f.key,
        label=f.label,
        path=list(f.path),
        kind=f.kind,
        value=f.value,
        placeholder=f.placeholder,
        add_label=f.add_label,
        children=[_form_out(c) for c in f.children],
    )


# ---------- sessions ----------
@router.post("/{page_id}/open", response_model=EditorStateOut)
async def open_page(
    page_id: int,
    reload: bool = Query(False, description="Discard local changes and load again"),
    store: EditorSessionStore = Depends(get_session_store),
    gateway: PersistenceGateway = Depends(get_gateway),
    previews: PreviewRegistry = Depends(get_preview_registry),
):
    try:
        editor = await store.open(page_id, gateway, previews=previews, reload=reload)
    except GatewayError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail=f"Page {page_id} not found")
        _raise_http(e)
    return editor.to_state()


@router.get("/{page_id}", response_model=EditorStateOut)
async def get_state(editor: PageEditor = Depends(get_editor)):
    return editor.to_state()


@router.delete("/{page_id}", status_code=204)
async def close_page(page_id: int, store: EditorSessionStore = Depends(get_session_store)):
    if store.pop(page_id) is None:
        raise HTTPException(status_code=404, detail=f"No editor session for page {page_id}")


# ---------- content ----------
@router.get("/{page_id}/components/{component_id}/form", response_model=List[FormFieldOut])
async def get_form(component_id: str, editor: PageEditor = Depends(get_editor)):
    try:
        fields = editor.form(component_id)
    except ComponentNotFound as e:
        _raise_http(e)
    return [_form_out(f) for f in fields]


@router.patch("/{page_id}/components/{component_id}/content", response_model=ComponentOut)
async def edit_content(component_id: str, payload: FieldEditIn, editor: PageEditor = Depends(get_editor)):
    try:
        enforce_content_size(from_python(payload.value))
        rec = editor.edit_field(component_id, payload.path, payload.value)
    except (ComponentNotFound, ValueError) as e:
        _raise_http(e)
    return editor.component_out(rec)


@router.post("/{page_id}/components/{component_id}/content/items", response_model=ComponentOut)
async def add_item(component_id: str, payload: ListItemIn, editor: PageEditor = Depends(get_editor)):
    try:
        rec = editor.add_list_item(component_id, payload.path)
    except (ComponentNotFound, PathError) as e:
        _raise_http(e)
    return editor.component_out(rec)


@router.delete("/{page_id}/components/{component_id}/content/items", response_model=ComponentOut)
async def remove_item(component_id: str, payload: ListItemRemoveIn, editor: PageEditor = Depends(get_editor)):
    try:
        rec = editor.remove_list_item(component_id, payload.path, payload.index)
    except (ComponentNotFound, PathError) as e:
        _raise_http(e)
    return editor.component_out(rec)


# ---------- structure ----------
@router.post("/{page_id}/components", response_model=ComponentOut, status_code=201)
async def add_component(payload: AddComponentIn, editor: PageEditor = Depends(get_editor)):
    try:
        if payload.content is not None:
            enforce_content_size(from_python(payload.content))
        rec = editor.add_component(
            payload.component_type,
            payload.component_name,
            payload.content,
            is_visible=payload.is_visible,
            theme=payload.theme,
        )
    except ValueError as e:
        _raise_http(e)
    return editor.component_out(rec)


@router.post("/{page_id}/components/{component_id}/duplicate", response_model=ComponentOut, status_code=201)
async def duplicate_component(component_id: str, editor: PageEditor = Depends(get_editor)):
    try:
        rec = editor.duplicate(component_id)
    except ComponentNotFound as e:
        _raise_http(e)
    return editor.component_out(rec)


@router.delete("/{page_id}/components/{component_id}", response_model=EditorStateOut)
async def delete_component(
    component_id: str,
    confirm: bool = Query(False),
    editor: PageEditor = Depends(get_editor),
):
    try:
        editor.delete(component_id, confirm=confirm)
    except (ComponentNotFound, ConfirmationRequired) as e:
        _raise_http(e)
    return editor.to_state()


@router.post("/{page_id}/components/{component_id}/toggle-expanded")
async def toggle_expanded(component_id: str, editor: PageEditor = Depends(get_editor)):
    try:
        expanded = editor.toggle_expanded(component_id)
    except ComponentNotFound as e:
        _raise_http(e)
    return {"id": component_id, "is_expanded": expanded}


# ---------- instant toggles ----------
@router.put("/{page_id}/components/{component_id}/visibility", response_model=ComponentOut)
async def set_visibility(component_id: str, payload: VisibilityIn, editor: PageEditor = Depends(get_editor)):
    try:
        rec = await editor.set_visibility(component_id, payload.is_visible)
    except (ComponentNotFound, GatewayError) as e:
        _raise_http(e)
    return editor.component_out(rec)


@router.put("/{page_id}/components/{component_id}/theme", response_model=ComponentOut)
async def set_theme(component_id: str, payload: ThemeIn, editor: PageEditor = Depends(get_editor)):
    try:
        rec = await editor.set_theme(component_id, payload.theme)
    except (ComponentNotFound, GatewayError) as e:
        _raise_http(e)
    return editor.component_out(rec)


# ---------- persistence ----------
@router.post("/{page_id}/reorder", response_model=EditorStateOut)
async def reorder_components(payload: ReorderIn, editor: PageEditor = Depends(get_editor)):
    try:
        await editor.reorder(payload.source_id, payload.destination_id)
    except GatewayError as e:
        _raise_http(e)
    return editor.to_state()


@router.post("/{page_id}/components/{component_id}/save", response_model=EditorStateOut)
async def save_component(component_id: str, editor: PageEditor = Depends(get_editor)):
    try:
        await editor.save_component(component_id)
    except (ComponentNotFound, GatewayError) as e:
        _raise_http(e)
    return editor.to_state()


@router.post("/{page_id}/save", response_model=EditorStateOut)
async def save_all(editor: PageEditor = Depends(get_editor)):
    try:
        await editor.save_all()
    except GatewayError as e:
        _raise_http(e)
    return editor.to_state()


@router.patch("/{page_id}/meta", response_model=EditorStateOut)
async def update_meta(patch: PageMetaUpdate, editor: PageEditor = Depends(get_editor)):
    try:
        await editor.update_meta(patch)
    except GatewayError as e:
        _raise_http(e)
    return editor.to_state()


# ---------- views ----------
@router.get("/{page_id}/preview")
async def preview(
    mode: str = Query(PREVIEW_MODE, pattern=f"^({PREVIEW_MODE}|{EDIT_MODE})$"),
    editor: PageEditor = Depends(get_editor),
):
    return editor.preview(mode).to_dict()


@router.get("/{page_id}/notifications", response_model=List[NotificationOut])
async def drain_notifications(editor: PageEditor = Depends(get_editor)):
    return [
        NotificationOut(level=n.level, message=n.message, event=n.event, detail=n.detail, created_at=n.created_at)
        for n in editor.bus.drain()
    ]
