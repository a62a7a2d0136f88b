from __future__ import annotations

from fastapi import HTTPException

from pagecomposer.core.settings import settings
from pagecomposer.models.json_value import JsonValue, dump_json


def content_size_kb(content: JsonValue) -> float:
    # compact JSON, i.e. what the pages API receives as contentJson
    return len(dump_json(content).encode("utf-8")) / 1024.0


def enforce_content_size(content: JsonValue) -> None:
    """
    Enforces a maximum serialized size (in KB) for a component's content.
    Raises HTTP 413 on overflow.
    """
    limit_kb = float(getattr(settings, "MAX_CONTENT_KB", 0) or 0)
    if limit_kb <= 0:
        return
    kb = content_size_kb(content)
    if kb > limit_kb:
        raise HTTPException(
            status_code=413,
            detail=f"Payload too large: content is {kb:.1f}KB, limit is {limit_kb:.0f}KB",
        )
