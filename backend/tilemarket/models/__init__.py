"""
Tile state models.

Usage:
    from tilemarket.models import ReconciledTile, MetadataDocument, LedgerTileRecord
    from tilemarket.models import LedgerSource, MetadataSource, normalize_address
    from tilemarket.models import MarketSummary, UserPortfolio
"""

# --- Enums & utilities ---
from tilemarket.models.enums import (
    ZERO_ADDRESS,
    LedgerSource,
    MetadataSource,
    CycleStatus,
    normalize_address,
)

# --- Domain models ---
from tilemarket.models.domain import (
    ObjectHandle, ListingPage, MetadataDocument,
    CreationEvent, LedgerTileRecord, MarketplaceOverlay, Provenance,
    ReconciledTile, TileFailure, ReconciliationSnapshot,
)

# --- Result models ---
from tilemarket.models.results import (
    ViewResult, PortfolioEntry, UserPortfolio, MarketSummary, TileDetail,
)

__all__ = [
    # Enums
    "ZERO_ADDRESS", "LedgerSource", "MetadataSource", "CycleStatus", "normalize_address",
    # Domain
    "ObjectHandle", "ListingPage", "MetadataDocument",
    "CreationEvent", "LedgerTileRecord", "MarketplaceOverlay", "Provenance",
    "ReconciledTile", "TileFailure", "ReconciliationSnapshot",
    # Results
    "ViewResult", "PortfolioEntry", "UserPortfolio", "MarketSummary", "TileDetail",
]
