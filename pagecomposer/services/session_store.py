# pagecomposer/services/session_store.py
from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from pagecomposer.core.settings import settings
from pagecomposer.services.editor_service import PageEditor
from pagecomposer.services.gateway import PersistenceGateway
from pagecomposer.services.notification_service import NotificationBus
from pagecomposer.web.ui.preview_renderer import PreviewRegistry

logger = logging.getLogger(__name__)


class EditorSessionStore:
    """In-memory editor sessions keyed by page id. Last write wins across sessions."""

    def __init__(self) -> None:
        self._sessions: Dict[int, PageEditor] = {}
        self._lock = threading.Lock()

    def get(self, page_id: int) -> Optional[PageEditor]:
        with self._lock:
            return self._sessions.get(page_id)

    def put(self, editor: PageEditor) -> None:
        with self._lock:
            self._sessions[editor.page.id] = editor

    def pop(self, page_id: int) -> Optional[PageEditor]:
        with self._lock:
            return self._sessions.pop(page_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    async def open(
        self,
        page_id: int,
        gateway: PersistenceGateway,
        *,
        previews: Optional[PreviewRegistry] = None,
        reload: bool = False,
    ) -> PageEditor:
        """
        Returns the open session for `page_id`, loading it from the pages API
        when there is none (or when `reload` asks to throw local changes away).
        """
        if not reload:
            existing = self.get(page_id)
            if existing is not None:
                return existing

        editor = await PageEditor.open(
            page_id,
            gateway,
            bus=NotificationBus(settings.NOTIFICATION_BUFFER_SIZE),
            previews=previews,
        )
        self.put(editor)
        logger.info("Opened editor for page %s (%d components)", page_id, len(editor.components))
        return editor
