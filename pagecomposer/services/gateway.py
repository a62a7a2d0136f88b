# pagecomposer/services/gateway.py
# Persistence gateway: the pages API is a black box; content only crosses it as a JSON string.
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

import httpx

from pagecomposer.core.settings import settings
from pagecomposer.schemas.page import ComponentWire, PageMetaWire, PageWire, ReorderItem, SavePageItem

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Any failure talking to the pages API (transport, timeout or non-2xx)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PersistenceGateway(Protocol):
    async def load_page(self, page_id: int) -> PageWire: ...

    async def save_page(self, page_id: int, components: Sequence[SavePageItem]) -> None: ...

    async def reorder_components(self, page_id: int, items: Sequence[ReorderItem]) -> None: ...

    async def update_component(self, component: ComponentWire) -> None: ...

    async def update_page_meta(self, page_id: int, meta: PageMetaWire) -> None: ...


def wire_id(component_id: Union[str, int, None]) -> Union[str, int, None]:
    # the pages API keys components by integer id; locally-created ids stay strings
    if isinstance(component_id, str) and component_id.isdigit():
        return int(component_id)
    return component_id


def _unwrap(body: Any) -> Any:
    # some endpoints wrap the payload as {"success": ..., "data": ...}
    if isinstance(body, dict) and "data" in body and "id" not in body:
        return body["data"]
    return body


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body.get("title") or body)[:200]
    return str(body)[:200]


class HttpPersistenceGateway:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.PAGES_API_URL).rstrip("/")
        self.token = token if token is not None else settings.PAGES_API_TOKEN
        self.timeout = float(timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS)
        self.max_retries = max(1, int(max_retries if max_retries is not None else settings.GATEWAY_MAX_RETRIES))
        self.backoff_seconds = float(
            backoff_seconds if backoff_seconds is not None else settings.GATEWAY_BACKOFF_SECONDS
        )
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, *, json: Any = None) -> httpx.Response:
        """
        Sends one request, retrying transport errors and 5xx responses with a
        linear backoff. 4xx responses fail immediately.
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                async with httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=self.timeout,
                    headers=self._headers(),
                    transport=self._transport,
                ) as client:
                    resp = await client.request(method, path, json=json)
            except httpx.HTTPError as exc:
                last_error = exc
                logger.warning("%s %s attempt %d/%d failed: %s", method, path, attempt, self.max_retries, exc)
            else:
                if resp.is_success:
                    return resp
                detail = _error_detail(resp)
                if resp.status_code < 500:
                    raise GatewayError(
                        f"{method} {path} failed with {resp.status_code}: {detail}",
                        status_code=resp.status_code,
                    )
                last_error = GatewayError(
                    f"{method} {path} failed with {resp.status_code}: {detail}",
                    status_code=resp.status_code,
                )
                logger.warning(
                    "%s %s attempt %d/%d got %d", method, path, attempt, self.max_retries, resp.status_code
                )
            if attempt < self.max_retries:
                await asyncio.sleep(self.backoff_seconds * attempt)

        status = getattr(last_error, "status_code", None)
        raise GatewayError(
            f"{method} {path} failed after {self.max_retries} attempt(s): {last_error}",
            status_code=status,
        ) from last_error

    # -------- Operations --------
    async def load_page(self, page_id: int) -> PageWire:
        page_resp = await self._request("GET", f"/Pages/{page_id}")
        comps_resp = await self._request("GET", f"/Pages/{page_id}/components")
        try:
            page_body = _unwrap(page_resp.json())
            comps_body = _unwrap(comps_resp.json())
        except ValueError as exc:
            raise GatewayError(f"Pages API returned invalid JSON for page {page_id}") from exc

        if not isinstance(page_body, dict):
            raise GatewayError(f"Unexpected page payload for page {page_id}")
        page_body = dict(page_body)
        page_body["components"] = comps_body if isinstance(comps_body, list) else []
        return PageWire.model_validate(page_body)

    async def save_page(self, page_id: int, components: Sequence[SavePageItem]) -> None:
        body: List[Dict[str, Any]] = [c.model_dump(by_alias=True) for c in components]
        await self._request("PUT", f"/Pages/{page_id}/components", json=body)

    async def reorder_components(self, page_id: int, items: Sequence[ReorderItem]) -> None:
        body = [{"id": wire_id(i.id), "orderIndex": i.order_index} for i in items]
        await self._request("PUT", f"/Pages/{page_id}/components/reorder", json=body)

    async def update_component(self, component: ComponentWire) -> None:
        body = component.model_dump(by_alias=True)
        body["id"] = wire_id(component.id)
        await self._request("PUT", f"/Pages/components/{body['id']}", json=body)

    async def update_page_meta(self, page_id: int, meta: PageMetaWire) -> None:
        body = {"id": page_id, **meta.model_dump(by_alias=True)}
        await self._request("PUT", f"/Pages/{page_id}", json=body)
