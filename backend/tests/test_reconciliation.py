import asyncio

import pytest

from tilemarket.errors import UpstreamUnavailable
from tilemarket.models import (
    CreationEvent,
    CycleStatus,
    LedgerSource,
    LedgerTileRecord,
    MarketplaceOverlay,
    MetadataDocument,
    MetadataSource,
)
from tilemarket.services.reconciliation import ReconciliationEngine, latest_events, merge_tile

from fakes import OWNER_A, OWNER_B, doc_bytes, handle

REF_CID = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"


def test_latest_events_last_write_wins():
    events = [
        CreationEvent(identity=1, owner=OWNER_B, block_number=20, log_index=0),
        CreationEvent(identity=1, owner=OWNER_A, block_number=10, log_index=3),
        CreationEvent(identity=2, owner=OWNER_A, block_number=20, log_index=1),
    ]

    latest = latest_events(events)

    assert latest[1].owner == OWNER_B
    assert set(latest) == {1, 2}


def test_merge_prefers_corpus_then_ref_then_placeholder():
    record = LedgerTileRecord(identity=5, owner=OWNER_A, exists=True)
    corpus_doc = MetadataDocument(identity=5, cid="c", name="corpus")
    ref_doc = MetadataDocument(cid="r", name="ref")

    assert merge_tile(record, LedgerSource.STATE, corpus_doc, ref_doc).metadata.name == "corpus"

    from_ref = merge_tile(record, LedgerSource.STATE, None, ref_doc)
    assert from_ref.provenance.metadata == MetadataSource.LEDGER_REF

    bare = merge_tile(record, LedgerSource.STATE)
    assert bare.metadata.is_placeholder
    assert bare.metadata.name == "Tile #5"
    assert bare.provenance.metadata == MetadataSource.PLACEHOLDER


def test_merge_drops_owner_and_market_for_missing_tile():
    record = LedgerTileRecord(identity=5, owner=OWNER_A, exists=False)
    tile = merge_tile(record, LedgerSource.NONE, overlay=MarketplaceOverlay(identity=5, is_for_sale=True))

    assert tile.owner is None
    assert tile.market is None


def test_cycle_merges_ledger_and_corpus(ledger, store, engine):
    ledger.mint(1, OWNER_A)
    ledger.mint(2, OWNER_B)
    store.add(handle(1), doc_bytes(tile=1, name="First"))

    snapshot = asyncio.run(engine.reconcile())

    assert snapshot.status == CycleStatus.COMPLETE
    assert [t.identity for t in snapshot.tiles] == [1, 2]
    assert snapshot.get(1).metadata.name == "First"
    assert snapshot.get(1).provenance.metadata == MetadataSource.CORPUS
    assert snapshot.get(2).metadata.name == "Tile #2"
    assert snapshot.get(2).provenance.ledger == LedgerSource.STATE
    assert snapshot.failures == []


def test_corpus_tiles_unknown_to_ledger_are_not_reported(ledger, store, engine):
    ledger.mint(1, OWNER_A)
    store.add(handle(1), doc_bytes(tile=99, name="Unminted"))

    snapshot = asyncio.run(engine.reconcile())

    assert [t.identity for t in snapshot.tiles] == [1]


def test_cycles_are_idempotent(ledger, store, engine):
    for identity in (3, 1, 2):
        ledger.mint(identity, OWNER_A)
    store.add(handle(1), doc_bytes(tile=2, name="Two"))

    first = asyncio.run(engine.reconcile())
    second = asyncio.run(engine.reconcile())

    assert first.model_dump_json() == second.model_dump_json()


def test_ledger_state_overrides_event_payload(ledger, engine):
    ledger.mint(1, OWNER_A)
    ledger.states[1] = LedgerTileRecord(identity=1, owner=OWNER_B, exists=True)

    snapshot = asyncio.run(engine.reconcile())

    assert snapshot.get(1).owner == OWNER_B


def test_burned_tiles_are_dropped(ledger, engine):
    ledger.mint(1, OWNER_A)
    ledger.mint(2, OWNER_A)
    ledger.states[2] = LedgerTileRecord(identity=2, exists=False)

    snapshot = asyncio.run(engine.reconcile())

    assert [t.identity for t in snapshot.tiles] == [1]


def test_one_failed_lookup_keeps_event_payload(ledger, engine):
    for identity in range(1, 6):
        ledger.mint(identity, OWNER_A)
    ledger.failing.add(4)

    snapshot = asyncio.run(engine.reconcile())

    assert len(snapshot.tiles) == 5
    sources = {t.identity: t.provenance.ledger for t in snapshot.tiles}
    assert sources[4] == LedgerSource.EVENT
    assert [i for i, s in sources.items() if s == LedgerSource.STATE] == [1, 2, 3, 5]
    assert snapshot.get(4).owner == OWNER_A
    assert [f.identity for f in snapshot.failures] == [4]
    assert snapshot.failures[0].source == "ledger"


def test_store_outage_degrades_cycle(ledger, store, engine):
    ledger.mint(1, OWNER_A)
    store.list_error = True

    snapshot = asyncio.run(engine.reconcile())

    assert snapshot.status == CycleStatus.DEGRADED
    assert not snapshot.metadata_available
    assert snapshot.get(1).metadata.is_placeholder


def test_ledger_range_failure_is_fatal(ledger, engine):
    ledger.mint(1, OWNER_A)
    ledger.range_error = True

    with pytest.raises(UpstreamUnavailable) as excinfo:
        asyncio.run(engine.reconcile())
    assert excinfo.value.source == "ledger"


def test_events_outside_window_are_ignored(ledger, engine):
    ledger.window = (100, 200)
    ledger.mint(1, OWNER_A, block=50)
    ledger.mint(2, OWNER_A, block=150)

    snapshot = asyncio.run(engine.reconcile())

    assert [t.identity for t in snapshot.tiles] == [2]
    assert (snapshot.from_block, snapshot.to_block) == (100, 200)


def test_ledger_ref_fills_missing_corpus_entry(ledger, store, engine):
    ledger.mint(1, OWNER_A, metadata_ref=f"ipfs://{REF_CID}")
    store.objects[REF_CID] = doc_bytes(name="Referenced")

    snapshot = asyncio.run(engine.reconcile())

    tile = snapshot.get(1)
    assert tile.metadata.name == "Referenced"
    assert tile.provenance.metadata == MetadataSource.LEDGER_REF


def test_overlays_attach_and_failures_are_absorbed(ledger, overlays, engine):
    ledger.mint(1, OWNER_A)
    ledger.mint(2, OWNER_A)
    overlays.overlays[1] = MarketplaceOverlay(identity=1, is_for_sale=True, sale_price=10**18)
    overlays.failing.add(2)

    snapshot = asyncio.run(engine.reconcile())

    assert snapshot.market_available
    assert snapshot.get(1).market.is_for_sale
    assert snapshot.get(1).provenance.market
    assert snapshot.get(2).market is None


def test_cycle_without_marketplace(ledger, resolver):
    ledger.mint(1, OWNER_A)
    engine = ReconciliationEngine(ledger, resolver, overlays=None)

    snapshot = asyncio.run(engine.reconcile())

    assert not snapshot.market_available
    assert snapshot.get(1).available_for_use


def test_single_tile_lookup_matches_cycle(ledger, store, engine):
    ledger.mint(7, OWNER_A)
    store.add(handle(1), doc_bytes(tile="7-1", name="Seven"))

    tile, status = asyncio.run(engine.reconcile_tile(7))
    snapshot = asyncio.run(engine.reconcile())

    assert status == CycleStatus.COMPLETE
    assert tile == snapshot.get(7)


def test_single_tile_lookup_for_unknown_tile(engine):
    tile, status = asyncio.run(engine.reconcile_tile(12))

    assert not tile.exists
    assert tile.owner is None
    assert tile.provenance.ledger == LedgerSource.NONE
    assert tile.metadata.name == "Tile #12"


def test_single_tile_lookup_with_store_down(ledger, store, engine):
    ledger.mint(3, OWNER_A)
    store.list_error = True

    tile, status = asyncio.run(engine.reconcile_tile(3))

    assert status == CycleStatus.DEGRADED
    assert tile.metadata.is_placeholder
