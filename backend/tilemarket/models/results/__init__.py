"""Result models for view operations."""

from tilemarket.models.results.views import (
    ViewResult, PortfolioEntry, UserPortfolio, MarketSummary, TileDetail,
)

__all__ = [
    "ViewResult", "PortfolioEntry", "UserPortfolio", "MarketSummary", "TileDetail",
]
