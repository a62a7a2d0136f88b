# tests/conftest.py
from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import pytest
from fastapi.testclient import TestClient

from pagecomposer.api.deps import get_gateway, get_session_store
from pagecomposer.schemas.page import ComponentWire, PageMetaWire, PageWire, ReorderItem, SavePageItem
from pagecomposer.services.editor_service import PageEditor
from pagecomposer.services.gateway import GatewayError
from pagecomposer.services.session_store import EditorSessionStore


class FakeGateway:
    """
    In-memory pages API. Every call is recorded in `calls`; operation names
    added to `failing` raise GatewayError (like a 503 after retries). While
    `hold` is set to an unset Event, writes wait on it before answering.
    """

    def __init__(self, pages: Optional[Dict[int, PageWire]] = None) -> None:
        self.pages: Dict[int, PageWire] = dict(pages or {})
        self.calls: List[Tuple[str, Any]] = []
        self.failing: Set[str] = set()
        self.hold: Optional[asyncio.Event] = None

    def _enter(self, op: str, payload: Any) -> None:
        self.calls.append((op, payload))
        if op in self.failing:
            raise GatewayError(f"{op} unavailable", status_code=503)

    async def _held(self) -> None:
        if self.hold is not None:
            await self.hold.wait()

    def calls_of(self, op: str) -> List[Any]:
        return [p for name, p in self.calls if name == op]

    async def load_page(self, page_id: int) -> PageWire:
        self._enter("load_page", page_id)
        if page_id not in self.pages:
            raise GatewayError(f"GET /Pages/{page_id} failed with 404: not found", status_code=404)
        return self.pages[page_id].model_copy(deep=True)

    async def save_page(self, page_id: int, components: Sequence[SavePageItem]) -> None:
        await self._held()
        self._enter("save_page", (page_id, list(components)))

    async def reorder_components(self, page_id: int, items: Sequence[ReorderItem]) -> None:
        await self._held()
        self._enter("reorder_components", (page_id, list(items)))

    async def update_component(self, component: ComponentWire) -> None:
        await self._held()
        self._enter("update_component", component)

    async def update_page_meta(self, page_id: int, meta: PageMetaWire) -> None:
        await self._held()
        self._enter("update_page_meta", (page_id, meta))


def component(cid: int, ctype: str, name: str, content: Any, order: int, **extra: Any) -> ComponentWire:
    raw = content if isinstance(content, str) else json.dumps(content)
    return ComponentWire(
        id=cid, page_id=1, component_type=ctype, component_name=name,
        content_json=raw, order_index=order, **extra,
    )


def sample_page() -> PageWire:
    return PageWire(
        id=1,
        name="Payroll Landing",
        slug="payroll-landing",
        meta_title="Payroll",
        components=[
            component(10, "PayrollHeroSection", "Hero", {
                "title": "Payroll made easy",
                "subtitle": "For teams of any size",
                "ctaButton": {"text": "Start now", "link": "/start"},
            }, 1),
            component(11, "ServiceGrid", "Services", {
                "title": "What we do",
                "services": [
                    {"name": "Payroll", "description": "Monthly runs", "icon": "cash"},
                    {"name": "Benefits", "description": "Health plans", "icon": "heart"},
                ],
            }, 2),
            component(12, "PayrollFAQSection", "FAQ", {
                "faqs": [{"question": "Is it secure?", "answer": "Yes."}],
            }, 3),
        ],
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway({1: sample_page()})


@pytest.fixture
def editor(gateway: FakeGateway) -> PageEditor:
    return PageEditor.from_wire(gateway.pages[1], gateway)


@pytest.fixture
def client(gateway: FakeGateway):
    """
    TestClient against the real app with the pages API replaced by the fake
    and a fresh session store per test.
    """
    from pagecomposer.main import app  # late import to avoid cycles
    store = EditorSessionStore()
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_session_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_gateway, None)
        app.dependency_overrides.pop(get_session_store, None)


@pytest.fixture
def wire_component():
    return component
