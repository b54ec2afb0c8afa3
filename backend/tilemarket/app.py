"""
Tilemarket - FastAPI Backend
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tilemarket.config import settings
from tilemarket.database.db import init_cache_db
from tilemarket.logging import setup_logging, get_logger
from tilemarket.routers import market, tiles, users
from tilemarket.services.ledger import LedgerReader, build_web3
from tilemarket.services.listing_cache import (
    InMemoryListingCache,
    ListingCache,
    NullListingCache,
    SqliteListingCache,
)
from tilemarket.services.marketplace import MarketplaceReader
from tilemarket.services.metadata_resolver import MetadataResolver
from tilemarket.services.metadata_walker import MetadataStoreWalker
from tilemarket.services.reconciliation import ReconciliationEngine
from tilemarket.services.store import LighthouseStoreClient
from tilemarket.services.views import TileViewService

logger = get_logger('main')


async def build_listing_cache() -> ListingCache:
    backend = settings.LISTING_CACHE_BACKEND.strip().lower()
    if backend == "sqlite":
        db_path = await init_cache_db(settings.CACHE_DATABASE_PATH)
        return SqliteListingCache(db_path, settings.LISTING_CACHE_TTL_SECONDS)
    if backend == "none":
        return NullListingCache()
    return InMemoryListingCache(settings.LISTING_CACHE_TTL_SECONDS)


async def build_view_service(app: FastAPI) -> TileViewService:
    # raises ConfigurationMissing before any upstream is touched
    settings.require("RPC_URL", "TILE_CORE_ADDRESS", "LIGHTHOUSE_API_KEY")

    cache = await build_listing_cache()
    store = LighthouseStoreClient(
        api_key=settings.LIGHTHOUSE_API_KEY,
        api_base_url=settings.LIGHTHOUSE_API_BASE_URL,
        gateway_url=settings.IPFS_GATEWAY_URL,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )
    app.state.store_client = store

    w3 = build_web3(settings.RPC_URL)
    ledger = LedgerReader(
        w3,
        settings.TILE_CORE_ADDRESS,
        scan_window=settings.SCAN_WINDOW_BLOCKS,
        chunk_blocks=settings.LOG_CHUNK_BLOCKS,
    )
    overlays = None
    if settings.marketplace_configured:
        overlays = MarketplaceReader(w3, settings.MARKETPLACE_ADDRESS)
    else:
        logger.warning("MARKETPLACE_ADDRESS not set - market overlays will be omitted")

    walker = MetadataStoreWalker(store, cache, page_size=settings.STORE_PAGE_SIZE)
    resolver = MetadataResolver(
        store,
        walker,
        cache,
        row_width=settings.GRID_ROW_WIDTH,
        concurrency=settings.STORE_FETCH_CONCURRENCY,
    )
    engine = ReconciliationEngine(
        ledger,
        resolver,
        overlays,
        ledger_concurrency=settings.LEDGER_CONCURRENCY,
    )
    return TileViewService(engine, ledger)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.DEBUG)
    logger.info("Starting Tilemarket API")

    if getattr(app.state, "view_service", None) is None:
        app.state.view_service = await build_view_service(app)
        logger.info("Services initialized")

    yield

    logger.info("Shutting down application")
    store = getattr(app.state, "store_client", None)
    if store is not None:
        await store.aclose()


def create_app(view_service: TileViewService | None = None) -> FastAPI:
    app = FastAPI(
        title="Tilemarket API",
        description="Reconciled tile state from the ledger and the metadata store",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.view_service = view_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(tiles.router, prefix="/api/tiles", tags=["Tiles"])
    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(market.router, prefix="/api/market", tags=["Market"])

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "tilemarket",
            "marketplace_configured": settings.marketplace_configured,
        }

    @app.get("/")
    async def root():
        return {
            "name": "Tilemarket API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health"
        }

    return app


def main() -> None:
    import uvicorn

    uvicorn.run("tilemarket.app:create_app", factory=True, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
