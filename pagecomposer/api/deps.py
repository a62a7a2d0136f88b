# pagecomposer/api/deps.py
from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from pagecomposer.services.editor_service import PageEditor
from pagecomposer.services.gateway import PersistenceGateway
from pagecomposer.services.session_store import EditorSessionStore
from pagecomposer.web.ui.preview_renderer import PreviewRegistry


async def get_session_store(request: Request) -> EditorSessionStore:
    return request.app.state.sessions


async def get_gateway(request: Request) -> PersistenceGateway:
    return request.app.state.gateway


async def get_preview_registry(request: Request) -> PreviewRegistry:
    return request.app.state.previews


async def get_editor(
    page_id: int,
    store: EditorSessionStore = Depends(get_session_store),
) -> PageEditor:
    editor = store.get(page_id)
    if editor is None:
        raise HTTPException(status_code=404, detail=f"No editor session for page {page_id}; open it first")
    return editor
