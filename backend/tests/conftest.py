from __future__ import annotations

import pytest

from tilemarket.config import settings
from tilemarket.services.listing_cache import InMemoryListingCache
from tilemarket.services.metadata_resolver import MetadataResolver
from tilemarket.services.metadata_walker import MetadataStoreWalker
from tilemarket.services.reconciliation import ReconciliationEngine

from fakes import FakeLedger, FakeOverlays, FakeStore


@pytest.fixture(autouse=True)
def _fast_upstream_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "UPSTREAM_MAX_RETRIES", 0)
    monkeypatch.setattr(settings, "UPSTREAM_RETRY_BASE_SECONDS", 0.0)
    monkeypatch.setattr(settings, "REQUEST_TIMEOUT_SECONDS", 5.0)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def overlays() -> FakeOverlays:
    return FakeOverlays()


@pytest.fixture
def cache() -> InMemoryListingCache:
    return InMemoryListingCache(ttl_seconds=300)


@pytest.fixture
def walker(store: FakeStore, cache: InMemoryListingCache) -> MetadataStoreWalker:
    return MetadataStoreWalker(store, cache, page_size=store.page_size)


@pytest.fixture
def resolver(store: FakeStore, walker: MetadataStoreWalker, cache: InMemoryListingCache) -> MetadataResolver:
    return MetadataResolver(store, walker, cache, row_width=40, concurrency=4)


@pytest.fixture
def engine(ledger: FakeLedger, resolver: MetadataResolver, overlays: FakeOverlays) -> ReconciliationEngine:
    return ReconciliationEngine(ledger, resolver, overlays, ledger_concurrency=4)
