# pagecomposer/core/settings.py
from __future__ import annotations

import json
from typing import List, Union

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _origins_from_text(text: str) -> List[str]:
    """
    '["https://a","http://b"]', '[https://a,http://b]' and 'https://a,http://b'
    all give ['https://a', 'http://b']. Blank text gives [].
    """
    s = text.strip()
    if s.startswith("[") and s.endswith("]"):
        try:
            parsed = json.loads(s)
        except ValueError:
            s = s[1:-1]
        else:
            if isinstance(parsed, list):
                return [str(x).strip() for x in parsed if str(x).strip()]
    return [item.strip().strip("\"'") for item in s.split(",") if item.strip().strip("\"'")]


class Settings(BaseSettings):
    # ============== App / API ==============
    APP_NAME: str = "Page Composer"
    API_V1_STR: str = "/api/v1"
    ENV: str = "dev"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # ============== Pages API (persistence gateway) ==============
    PAGES_API_BASE_URL: str = "http://localhost:5000/api"
    PAGES_API_TOKEN: str | None = None
    GATEWAY_TIMEOUT_SECONDS: float = 10.0
    GATEWAY_MAX_RETRIES: int = 3
    GATEWAY_BACKOFF_SECONDS: float = 0.5

    @field_validator("PAGES_API_BASE_URL", mode="before")
    @classmethod
    def _normalize_pages_api(cls, v):
        """' https://host/api/ ' -> 'https://host/api'. Only http(s) URLs are accepted."""
        s = str(v or "").strip().rstrip("/")
        if not s.lower().startswith(("http://", "https://")):
            raise ValueError(f"PAGES_API_BASE_URL must be an http(s) URL, got {v!r}")
        return s

    @property
    def PAGES_API_URL(self) -> str:
        return self.PAGES_API_BASE_URL

    # ============== Editor ==============
    MAX_CONTENT_KB: int = 256
    NOTIFICATION_BUFFER_SIZE: int = Field(50, ge=1)

    # ================= CORS =================
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors(cls, v):
        # env values come as text: JSON list, bracketed list or CSV
        if isinstance(v, str):
            return _origins_from_text(v)
        return list(v or [])

    @property
    def CORS_ORIGINS(self) -> List[str]:
        return [str(x).rstrip("/") for x in (self.BACKEND_CORS_ORIGINS or [])]

    # ============== Pydantic v2 ==============
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
