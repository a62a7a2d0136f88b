# scripts/normalize_page_order.py
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# --- Ensure repo root is on sys.path so "pagecomposer.*" imports work when run as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pagecomposer.core.logging import configure_logging
from pagecomposer.core.settings import settings
from pagecomposer.schemas.page import ReorderItem
from pagecomposer.services.editor_service import PageEditor
from pagecomposer.services.gateway import GatewayError, HttpPersistenceGateway, PersistenceGateway


async def normalize_page(gateway: PersistenceGateway, page_id: int, *, dry_run: bool = False) -> int:
    """
    Loads a page, sorts its components by orderIndex (id breaks ties), renumbers
    them 1..n and pushes the result. Returns how many components moved.
    """
    wire = await gateway.load_page(page_id)
    stored = {str(c.id): c.order_index for c in wire.components if c.id is not None}
    editor = PageEditor.from_wire(wire, gateway)

    moved = [c for c in editor.components if stored.get(c.id) != c.order_index]
    for c in editor.components:
        mark = "*" if c in moved else " "
        print(f" {mark} {c.order_index:>3}  id={c.id}  {c.component_type}  (was {stored.get(c.id)})")

    if not moved:
        print(f"[OK] Page {page_id}: order already contiguous ({len(editor.components)} components)")
        return 0
    if dry_run:
        print(f"[DRY-RUN] Page {page_id}: {len(moved)} component(s) would be renumbered")
        return len(moved)

    items = [ReorderItem(id=c.id, order_index=c.order_index) for c in editor.components]
    await gateway.reorder_components(page_id, items)
    print(f"[OK] Page {page_id}: {len(moved)} component(s) renumbered")
    return len(moved)


def run(page_id: int, *, base_url: Optional[str] = None, dry_run: bool = False) -> int:
    gateway = HttpPersistenceGateway(base_url)
    try:
        asyncio.run(normalize_page(gateway, page_id, dry_run=dry_run))
    except GatewayError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    return 0


def main():
    ap = argparse.ArgumentParser(
        description="Repair component orderIndex values of a page (sort, then renumber 1..n).",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    ap.add_argument("--page-id", type=int, required=True, help="Page id in the pages API")
    ap.add_argument("--base-url", default=settings.PAGES_API_URL, help="Pages API base URL")
    ap.add_argument("--dry-run", action="store_true", help="Only print what would change")
    args = ap.parse_args()

    configure_logging(settings.LOG_LEVEL)
    sys.exit(run(args.page_id, base_url=args.base_url, dry_run=args.dry_run))


if __name__ == "__main__":
    main()
