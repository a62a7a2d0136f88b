# pagecomposer/main.py
from __future__ import annotations

from fastapi.responses import RedirectResponse

from pagecomposer.api.v1.router import api_router
from pagecomposer.core.config import create_app
from pagecomposer.core.logging import configure_logging
from pagecomposer.core.settings import settings
from pagecomposer.web.preview.router import router as preview_router

from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware


app = create_app()
configure_logging(settings.LOG_LEVEL)

app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")


@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse(url="/docs", status_code=302)


# Editor API
app.include_router(api_router, prefix=settings.API_V1_STR)

# Live HTML preview
app.include_router(preview_router)
