"""Aggregation views over reconciled tile snapshots."""

from tilemarket.errors import UpstreamUnavailable
from tilemarket.logging import get_logger
from tilemarket.models import (
    CycleStatus,
    MarketSummary,
    MetadataDocument,
    PortfolioEntry,
    ReconciliationSnapshot,
    TileDetail,
    UserPortfolio,
    normalize_address,
)
from tilemarket.services.concurrency import gather_bounded
from tilemarket.services.ledger import Ledger
from tilemarket.services.reconciliation import ReconciliationEngine

logger = get_logger('services.views')


def portfolio_from_snapshot(snapshot: ReconciliationSnapshot, owner: str) -> UserPortfolio:
    wanted = normalize_address(owner)
    entries = [
        PortfolioEntry(tile=tile, available_for_use=tile.available_for_use)
        for tile in snapshot.tiles
        if tile.exists and wanted is not None and normalize_address(tile.owner) == wanted
    ]
    return UserPortfolio(status=snapshot.status, owner=owner, tiles=entries)


def summarize(snapshot: ReconciliationSnapshot, ledger_total_tiles: int | None = None) -> MarketSummary:
    tiles = [t for t in snapshot.tiles if t.exists]
    return MarketSummary(
        status=snapshot.status,
        total_tiles=len(tiles),
        for_sale_count=sum(1 for t in tiles if t.market and t.market.is_for_sale),
        for_rent_count=sum(1 for t in tiles if t.market and t.market.is_for_rent),
        currently_rented_count=sum(1 for t in tiles if t.market and t.market.is_currently_rented),
        ledger_total_tiles=ledger_total_tiles,
    )


class TileViewService:
    """Read-only projections computed fresh from a reconciliation cycle."""

    def __init__(self, engine: ReconciliationEngine, ledger: Ledger):
        self.engine = engine
        self.ledger = ledger

    async def snapshot(self) -> ReconciliationSnapshot:
        return await self.engine.reconcile()

    async def user_portfolio(self, owner: str) -> UserPortfolio:
        """
        Tiles held by ``owner``.

        The cycle only sees tiles minted inside the scan window; older holdings
        come from the ledger's per-owner index and are reconciled one by one.
        When that index is unreachable the cycle-only portfolio is returned
        with ``ledger_owned_count`` unset.
        """
        snapshot = await self.engine.reconcile()
        portfolio = portfolio_from_snapshot(snapshot, owner)

        try:
            owned = await self.ledger.fetch_user_tiles(owner)
        except UpstreamUnavailable as e:
            logger.warning(f"Ledger ownership index unavailable for {owner}: {e}")
            return portfolio

        known = {entry.tile.identity for entry in portfolio.tiles}
        older = [identity for identity in owned if identity not in known]
        reconciled, failures = await gather_bounded(
            older, self.engine.reconcile_tile, self.engine.ledger_concurrency
        )
        for identity, error in failures.items():
            logger.warning(f"Could not reconcile owned tile {identity} for {owner}: {error}")

        wanted = normalize_address(owner)
        entries = list(portfolio.tiles)
        status = portfolio.status
        for tile, tile_status in reconciled.values():
            if not tile.exists or normalize_address(tile.owner) != wanted:
                continue
            entries.append(PortfolioEntry(tile=tile, available_for_use=tile.available_for_use))
            if tile_status == CycleStatus.DEGRADED:
                status = CycleStatus.DEGRADED

        return UserPortfolio(
            status=status,
            owner=owner,
            tiles=sorted(entries, key=lambda entry: entry.tile.identity),
            ledger_owned_count=len(owned),
        )

    async def market_summary(self) -> MarketSummary:
        snapshot = await self.engine.reconcile()
        try:
            ledger_total = await self.ledger.fetch_total_tiles()
        except UpstreamUnavailable as e:
            logger.warning(f"Ledger tile count unavailable: {e}")
            ledger_total = None
        return summarize(snapshot, ledger_total)

    async def tile_metadata(self, identity: int) -> MetadataDocument:
        return await self.engine.resolver.resolve_by_identity(identity)

    async def tile_detail(self, identity: int) -> TileDetail:
        tile, status = await self.engine.reconcile_tile(identity)
        return TileDetail(status=status, tile=tile)
