"""Domain models: ledger records, metadata documents and reconciled tiles."""

from tilemarket.models.domain.metadata import ObjectHandle, ListingPage, MetadataDocument
from tilemarket.models.domain.tile import (
    CreationEvent,
    LedgerTileRecord,
    MarketplaceOverlay,
    Provenance,
    ReconciledTile,
    TileFailure,
    ReconciliationSnapshot,
)

__all__ = [
    "ObjectHandle", "ListingPage", "MetadataDocument",
    "CreationEvent", "LedgerTileRecord", "MarketplaceOverlay", "Provenance",
    "ReconciledTile", "TileFailure", "ReconciliationSnapshot",
]
