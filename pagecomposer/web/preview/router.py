# pagecomposer/web/preview/router.py
from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from pagecomposer.api.deps import get_editor
from pagecomposer.services.editor_service import PageEditor
from pagecomposer.web.ui.preview_renderer import EDIT_MODE, PREVIEW_MODE

router = APIRouter(prefix="/preview", tags=["preview"])

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[2] / "templates"))


@router.get("/pages/{page_id}", response_class=HTMLResponse)
async def live_preview(
    request: Request,
    mode: str = Query(PREVIEW_MODE, pattern=f"^({PREVIEW_MODE}|{EDIT_MODE})$"),
    tech: bool = Query(False, description="Show the raw JSON blocks"),
    editor: PageEditor = Depends(get_editor),
):
    model = editor.preview(mode)
    return templates.TemplateResponse(
        request,
        "preview.html",
        {
            "page": editor.page,
            "model": model,
            "mode": mode,
            "show_tech": tech,
            "dirty_count": editor.tracker.dirty_count(),
        },
    )
