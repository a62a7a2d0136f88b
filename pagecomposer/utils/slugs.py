from __future__ import annotations

import re

SLUG_PATTERN = r"^[a-z0-9-]+$"

DEFAULT_SLUG = "untitled-page"


def slugify(name: str | None) -> str:
    """'About Us & Team' -> 'about-us-team'. Empty or unusable input -> 'untitled-page'."""
    if not name or not isinstance(name, str):
        return DEFAULT_SLUG
    s = name.lower()
    s = re.sub(r"[^a-z0-9\s-]", "", s)
    s = re.sub(r"\s+", "-", s)
    s = re.sub(r"-+", "-", s)
    s = s.strip().strip("-")
    return s or DEFAULT_SLUG
