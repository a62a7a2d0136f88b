# pagecomposer/core/config.py
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pagecomposer.services.gateway import HttpPersistenceGateway, PersistenceGateway
from pagecomposer.services.session_store import EditorSessionStore
from pagecomposer.web.ui.preview_renderer import PreviewRegistry, build_default_registry

from .settings import settings


def create_app(
    gateway: Optional[PersistenceGateway] = None,
    previews: Optional[PreviewRegistry] = None,
) -> FastAPI:
    app = FastAPI(title=settings.APP_NAME)

    if settings.BACKEND_CORS_ORIGINS:
        origins = settings.CORS_ORIGINS
        allow_credentials = True
        if "*" in origins:
            origins = ["*"]
            allow_credentials = False
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=allow_credentials,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # shared by every request; editor sessions live here, not in module globals
    app.state.gateway = gateway or HttpPersistenceGateway()
    app.state.previews = previews or build_default_registry()
    app.state.sessions = EditorSessionStore()
    return app
