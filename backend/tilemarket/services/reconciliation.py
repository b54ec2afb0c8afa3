"""
Reconciliation engine.

One cycle scans the ledger window and walks the metadata store concurrently,
then merges the two views per tile identity. Every merged tile, whether from
a full cycle or a single-tile lookup, goes through ``merge_tile`` so both
paths apply the same precedence.
"""

import asyncio
from typing import Optional

from tilemarket.config import settings
from tilemarket.errors import UpstreamUnavailable
from tilemarket.logging import get_logger
from tilemarket.models import (
    CreationEvent,
    CycleStatus,
    LedgerSource,
    LedgerTileRecord,
    MarketplaceOverlay,
    MetadataDocument,
    MetadataSource,
    Provenance,
    ReconciledTile,
    ReconciliationSnapshot,
    TileFailure,
)
from tilemarket.services.concurrency import gather_bounded
from tilemarket.services.ledger import Ledger
from tilemarket.services.marketplace import OverlaySource
from tilemarket.services.metadata_resolver import MetadataResolver

logger = get_logger('services.reconciliation')


def latest_events(events: list[CreationEvent]) -> dict[int, CreationEvent]:
    """Keep the most recent creation event per identity (last write wins)."""
    latest: dict[int, CreationEvent] = {}
    for event in sorted(events, key=lambda e: (e.block_number, e.log_index)):
        latest[event.identity] = event
    return latest


def record_from_event(event: CreationEvent) -> LedgerTileRecord:
    return LedgerTileRecord(
        identity=event.identity,
        owner=event.owner,
        metadata_ref=event.metadata_ref,
        is_native_payment=event.is_native_payment,
        exists=True,
    )


def merge_tile(
    record: LedgerTileRecord,
    ledger_source: LedgerSource,
    corpus_document: Optional[MetadataDocument] = None,
    ref_document: Optional[MetadataDocument] = None,
    overlay: Optional[MarketplaceOverlay] = None,
) -> ReconciledTile:
    """
    Merge one tile's ledger record with its metadata and market overlay.

    Metadata precedence: corpus document, then the document behind the
    ledger's metadata reference, then the placeholder.
    """
    if corpus_document is not None and not corpus_document.is_placeholder:
        metadata, metadata_source = corpus_document, MetadataSource.CORPUS
    elif ref_document is not None:
        metadata, metadata_source = ref_document, MetadataSource.LEDGER_REF
    else:
        metadata = MetadataDocument.placeholder(record.identity)
        metadata_source = MetadataSource.PLACEHOLDER

    market = overlay if record.exists else None
    return ReconciledTile(
        identity=record.identity,
        exists=record.exists,
        owner=record.owner if record.exists else None,
        metadata_ref=record.metadata_ref,
        is_native_payment=record.is_native_payment,
        metadata=metadata,
        market=market,
        provenance=Provenance(
            ledger=ledger_source,
            metadata=metadata_source,
            market=market is not None,
        ),
    )


class ReconciliationEngine:
    """Stateless orchestrator; each call is an independent cycle."""

    def __init__(
        self,
        ledger: Ledger,
        resolver: MetadataResolver,
        overlays: OverlaySource | None = None,
        ledger_concurrency: int = settings.LEDGER_CONCURRENCY,
    ):
        self.ledger = ledger
        self.resolver = resolver
        self.overlays = overlays
        self.ledger_concurrency = ledger_concurrency

    async def _load_corpus(self) -> Optional[dict[int, MetadataDocument]]:
        try:
            corpus, _ = await self.resolver.load_corpus()
            return corpus
        except UpstreamUnavailable as e:
            logger.error(f"Metadata store unavailable; reconciling without corpus: {e}")
            return None

    async def _resolve_refs(
        self,
        records: dict[int, LedgerTileRecord],
        corpus: dict[int, MetadataDocument],
    ) -> dict[int, MetadataDocument]:
        pending = [i for i, r in records.items() if i not in corpus and r.metadata_ref]
        if not pending:
            return {}
        documents, _ = await gather_bounded(
            pending,
            lambda identity: self.resolver.resolve_ref(records[identity].metadata_ref),
            self.resolver.concurrency,
        )
        return {i: d for i, d in documents.items() if d is not None}

    async def _fetch_overlays(self, identities: list[int]) -> tuple[dict[int, MarketplaceOverlay], bool]:
        if self.overlays is None:
            return {}, False
        if not identities:
            return {}, True

        overlays, failures = await gather_bounded(
            identities, self.overlays.fetch_overlay, self.ledger_concurrency
        )
        for identity, error in failures.items():
            logger.warning(f"Market overlay unavailable for tile {identity}: {error}")
        present = {i: o for i, o in overlays.items() if o is not None}
        return present, bool(overlays) or not failures

    async def reconcile(self) -> ReconciliationSnapshot:
        """
        Run one full reconciliation cycle.

        :raises UpstreamUnavailable: When the ledger window or its event range cannot be read
        """
        from_block, to_block = await self.ledger.fetch_scan_window()

        scan, corpus = await asyncio.gather(
            self.ledger.fetch_creation_events(from_block, to_block),
            self._load_corpus(),
            return_exceptions=True,
        )
        if isinstance(scan, BaseException):
            raise scan
        if isinstance(corpus, BaseException):
            raise corpus

        events = latest_events(scan)
        states, lookup_failures = await gather_bounded(
            events.keys(), self.ledger.fetch_tile, self.ledger_concurrency
        )

        records: dict[int, LedgerTileRecord] = {}
        sources: dict[int, LedgerSource] = {}
        failures: list[TileFailure] = []
        for identity, event in events.items():
            if identity in states:
                records[identity] = states[identity]
                sources[identity] = LedgerSource.STATE
                continue
            error = lookup_failures[identity]
            logger.warning(f"Ledger lookup failed for tile {identity}; using event payload: {error}")
            records[identity] = record_from_event(event)
            sources[identity] = LedgerSource.EVENT
            failures.append(TileFailure(identity=identity, source="ledger", error=str(error)))

        existing = {i: r for i, r in records.items() if r.exists}
        corpus_map = corpus or {}
        ref_documents = await self._resolve_refs(existing, corpus_map)
        overlays, market_available = await self._fetch_overlays(sorted(existing))

        tiles = [
            merge_tile(
                existing[identity],
                sources[identity],
                corpus_document=corpus_map.get(identity),
                ref_document=ref_documents.get(identity),
                overlay=overlays.get(identity),
            )
            for identity in sorted(existing)
        ]

        snapshot = ReconciliationSnapshot(
            status=CycleStatus.COMPLETE if corpus is not None else CycleStatus.DEGRADED,
            from_block=from_block,
            to_block=to_block,
            tiles=tiles,
            failures=sorted(failures, key=lambda f: f.identity),
            metadata_available=corpus is not None,
            market_available=market_available,
        )
        logger.info(
            f"Reconciled {len(tiles)} tiles from {len(events)} events in blocks {from_block}..{to_block} "
            f"(status={snapshot.status.value}, lookup_failures={len(failures)})"
        )
        return snapshot

    async def reconcile_tile(self, identity: int) -> tuple[ReconciledTile, CycleStatus]:
        """
        Reconcile a single tile without a full cycle.

        A tile the ledger does not know still resolves, with ``exists=False``.

        :raises UpstreamUnavailable: When the ledger point lookup fails
        """
        record = await self.ledger.fetch_tile(identity)
        status = CycleStatus.COMPLETE

        try:
            corpus_document = await self.resolver.resolve_by_identity(identity)
        except UpstreamUnavailable as e:
            logger.warning(f"Metadata store unavailable for tile {identity}: {e}")
            corpus_document = None
            status = CycleStatus.DEGRADED

        ref_document = None
        if (corpus_document is None or corpus_document.is_placeholder) and record.metadata_ref:
            ref_document = await self.resolver.resolve_ref(record.metadata_ref)

        overlay = None
        if record.exists and self.overlays is not None:
            try:
                overlay = await self.overlays.fetch_overlay(identity)
            except UpstreamUnavailable as e:
                logger.warning(f"Market overlay unavailable for tile {identity}: {e}")

        source = LedgerSource.STATE if record.exists else LedgerSource.NONE
        tile = merge_tile(record, source, corpus_document, ref_document, overlay)
        return tile, status
