"""Tile domain models: ledger projections, market overlay and reconciled tiles."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from tilemarket.models.domain.metadata import MetadataDocument
from tilemarket.models.enums import CycleStatus, LedgerSource, MetadataSource


class CreationEvent(BaseModel):
    """A `TileCreated` log entry."""
    model_config = ConfigDict(frozen=True)

    identity: int = Field(ge=0)
    owner: str
    metadata_ref: Optional[str] = None
    is_native_payment: bool = False
    block_number: int = 0
    log_index: int = 0


class LedgerTileRecord(BaseModel):
    """Current on-chain state of one tile."""
    model_config = ConfigDict(frozen=True)

    identity: int = Field(ge=0)
    owner: Optional[str] = None
    metadata_ref: Optional[str] = None
    is_native_payment: bool = False
    exists: bool = False


class MarketplaceOverlay(BaseModel):
    """Market listing state of a tile. Prices are integer wei."""
    model_config = ConfigDict(frozen=True)

    identity: int = Field(ge=0)
    is_for_sale: bool = False
    is_for_rent: bool = False
    is_currently_rented: bool = False
    sale_price: int = 0
    rent_price_per_day: int = 0
    current_renter: Optional[str] = None
    rental_end: int = 0


class Provenance(BaseModel):
    """Which upstream sources contributed to a reconciled tile."""
    model_config = ConfigDict(frozen=True)

    ledger: LedgerSource = LedgerSource.NONE
    metadata: MetadataSource = MetadataSource.PLACEHOLDER
    market: bool = False


class ReconciledTile(BaseModel):
    """The merged, consumer-facing view of a tile."""
    model_config = ConfigDict(frozen=True)

    identity: int = Field(ge=0)
    exists: bool
    owner: Optional[str] = None
    metadata_ref: Optional[str] = None
    is_native_payment: bool = False
    metadata: MetadataDocument
    market: Optional[MarketplaceOverlay] = None
    provenance: Provenance = Field(default_factory=Provenance)

    @property
    def available_for_use(self) -> bool:
        if self.market is None:
            return True
        return not (
            self.market.is_for_sale
            or self.market.is_for_rent
            or self.market.is_currently_rented
        )


class TileFailure(BaseModel):
    """A per-tile upstream failure absorbed during a cycle."""
    model_config = ConfigDict(frozen=True)

    identity: int
    source: str
    error: str


class ReconciliationSnapshot(BaseModel):
    """Immutable result of one reconciliation cycle, tiles sorted by identity."""
    model_config = ConfigDict(frozen=True)

    status: CycleStatus = CycleStatus.COMPLETE
    from_block: int = 0
    to_block: int = 0
    tiles: list[ReconciledTile] = Field(default_factory=list)
    failures: list[TileFailure] = Field(default_factory=list)
    metadata_available: bool = True
    market_available: bool = False

    def get(self, identity: int) -> Optional[ReconciledTile]:
        for tile in self.tiles:
            if tile.identity == identity:
                return tile
        return None
