"""
Result models for aggregation views.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from tilemarket.models.domain.tile import ReconciledTile
from tilemarket.models.enums import CycleStatus


class ViewResult(BaseModel):
    """Base result for views derived from a reconciliation snapshot."""
    model_config = ConfigDict(frozen=True)

    status: CycleStatus = CycleStatus.COMPLETE


class PortfolioEntry(BaseModel):
    """A tile held by a user, with its derived usability."""
    model_config = ConfigDict(frozen=True)

    tile: ReconciledTile
    available_for_use: bool


class UserPortfolio(ViewResult):
    """Tiles currently owned by one address."""
    owner: str
    tiles: list[PortfolioEntry] = Field(default_factory=list)
    ledger_owned_count: Optional[int] = Field(
        default=None,
        description="Tiles the ledger attributes to the owner; null when the lookup failed.",
    )


class MarketSummary(ViewResult):
    """Plain counts over the reconciled tile set."""
    total_tiles: int = 0
    for_sale_count: int = 0
    for_rent_count: int = 0
    currently_rented_count: int = 0
    ledger_total_tiles: Optional[int] = None


class TileDetail(ViewResult):
    """Single-tile lookup; never empty, unknown tiles read as ``exists=False``."""
    tile: ReconciledTile
