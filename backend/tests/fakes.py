"""In-memory stand-ins for the ledger, the object store and the marketplace."""

from __future__ import annotations

import json
from typing import Any, Optional

from tilemarket.errors import UpstreamUnavailable
from tilemarket.models import CreationEvent, LedgerTileRecord, ListingPage, MarketplaceOverlay, ObjectHandle

OWNER_A = "0x1111111111111111111111111111111111111111"
OWNER_B = "0x2222222222222222222222222222222222222222"


def handle(n: int, *, file_name: str = "metadata.json", mime_type: str | None = "application/json",
           created_at: int | None = None, cid: str | None = None) -> ObjectHandle:
    return ObjectHandle(
        id=f"h{n}",
        cid=cid or f"cid{n}",
        file_name=file_name,
        mime_type=mime_type,
        created_at=created_at if created_at is not None else n,
    )


def doc_bytes(**fields: Any) -> bytes:
    return json.dumps(fields).encode("utf-8")


class FakeStore:
    """Pages a flat handle list by cursor the way the upload listing does."""

    def __init__(
        self,
        handles: list[ObjectHandle] | None = None,
        objects: dict[str, bytes] | None = None,
        page_size: int = 2000,
    ):
        self.handles = list(handles or [])
        self.objects = dict(objects or {})
        self.page_size = page_size
        self.list_calls: list[Optional[str]] = []
        self.fetch_calls: list[str] = []
        self.list_error = False

    def add(self, h: ObjectHandle, payload: bytes) -> None:
        self.handles.append(h)
        self.objects[h.cid] = payload

    async def list_page(self, cursor: Optional[str]) -> ListingPage:
        self.list_calls.append(cursor)
        if self.list_error:
            raise UpstreamUnavailable("store", "listing down")
        start = 0
        if cursor is not None:
            ids = [h.id for h in self.handles]
            start = ids.index(cursor) + 1
        chunk = self.handles[start:start + self.page_size]
        return ListingPage(handles=chunk, row_count=len(chunk), last_key=chunk[-1].id if chunk else None)

    async def fetch_bytes(self, cid: str) -> bytes:
        self.fetch_calls.append(cid)
        if cid not in self.objects:
            raise UpstreamUnavailable("store", f"{cid}: 404")
        return self.objects[cid]


class FakeLedger:
    def __init__(
        self,
        events: list[CreationEvent] | None = None,
        states: dict[int, LedgerTileRecord] | None = None,
        window: tuple[int, int] = (0, 10_000),
        total_tiles: int = 0,
    ):
        self.events = list(events or [])
        self.states = dict(states or {})
        self.window = window
        self.total_tiles = total_tiles
        self.failing: set[int] = set()
        self.range_error = False
        self.ownership_error = False
        self.lookups: list[int] = []

    def mint(self, identity: int, owner: str, metadata_ref: str | None = None, block: int = 1) -> None:
        self.events.append(CreationEvent(
            identity=identity, owner=owner, metadata_ref=metadata_ref,
            block_number=block, log_index=len(self.events),
        ))
        self.states[identity] = LedgerTileRecord(
            identity=identity, owner=owner, metadata_ref=metadata_ref, exists=True,
        )

    async def fetch_scan_window(self) -> tuple[int, int]:
        return self.window

    async def fetch_creation_events(self, from_block: int, to_block: int) -> list[CreationEvent]:
        if self.range_error:
            raise UpstreamUnavailable("ledger", "get_logs: connection refused")
        return [e for e in self.events if from_block <= e.block_number <= to_block]

    async def fetch_tile(self, identity: int) -> LedgerTileRecord:
        self.lookups.append(identity)
        if identity in self.failing:
            raise UpstreamUnavailable("ledger", f"getTile({identity}): timed out")
        return self.states.get(identity, LedgerTileRecord(identity=identity, exists=False))

    async def fetch_existence(self, identity: int) -> bool:
        return (await self.fetch_tile(identity)).exists

    async def fetch_total_tiles(self) -> int:
        if self.range_error:
            raise UpstreamUnavailable("ledger", "totalTilesCount: connection refused")
        return self.total_tiles

    async def fetch_user_tiles(self, owner: str) -> list[int]:
        if self.range_error or self.ownership_error:
            raise UpstreamUnavailable("ledger", "getUserOwnedTiles: connection refused")
        wanted = owner.lower()
        return sorted(
            identity for identity, record in self.states.items()
            if record.exists and (record.owner or "").lower() == wanted
        )


class FakeOverlays:
    def __init__(self, overlays: dict[int, MarketplaceOverlay] | None = None):
        self.overlays = dict(overlays or {})
        self.failing: set[int] = set()

    async def fetch_overlay(self, identity: int) -> Optional[MarketplaceOverlay]:
        if identity in self.failing:
            raise UpstreamUnavailable("marketplace", f"getTileDetails({identity}): reverted")
        return self.overlays.get(identity, MarketplaceOverlay(identity=identity))
