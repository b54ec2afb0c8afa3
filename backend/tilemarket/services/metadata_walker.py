"""
Metadata store walker.

Pages through the store's upload listing and narrows it to objects that can be
tile metadata documents.
"""

from tilemarket.config import settings
from tilemarket.logging import get_logger
from tilemarket.models import ObjectHandle
from tilemarket.services.listing_cache import ListingCache, NullListingCache
from tilemarket.services.store import ObjectStore

logger = get_logger('services.metadata_walker')

LISTING_CACHE_KEY = "store:listing"
DOCUMENT_MIME_TYPES = {"application/json", "application/octet-stream"}


def is_document_candidate(handle: ObjectHandle) -> bool:
    """Structured-data objects only; images and other binaries are skipped."""
    if handle.file_name.lower().endswith(".json"):
        return True
    mime_type = (handle.mime_type or "").split(";", 1)[0].strip().lower()
    return mime_type in DOCUMENT_MIME_TYPES


def document_candidates(handles: list[ObjectHandle]) -> list[ObjectHandle]:
    """Filter to document candidates, keeping the first handle seen per CID."""
    seen: set[str] = set()
    candidates: list[ObjectHandle] = []
    for handle in handles:
        if handle.cid in seen or not is_document_candidate(handle):
            continue
        seen.add(handle.cid)
        candidates.append(handle)
    return candidates


class MetadataStoreWalker:
    """Walks the full upload listing using the store's continuation cursor."""

    def __init__(
        self,
        store: ObjectStore,
        cache: ListingCache | None = None,
        page_size: int = settings.STORE_PAGE_SIZE,
    ):
        self.store = store
        self.cache = cache or NullListingCache()
        self.page_size = max(int(page_size), 1)

    async def list_all_objects(self, use_cache: bool = True) -> list[ObjectHandle]:
        """
        Collect every listing entry, duplicates included.

        Stops on an empty page or a page with fewer raw rows than ``page_size``.

        :raises UpstreamUnavailable: When any page cannot be listed
        """
        handles, _ = await self.load_listing(use_cache=use_cache)
        return handles

    async def load_listing(self, use_cache: bool = True) -> tuple[list[ObjectHandle], bool]:
        """Like ``list_all_objects`` but also reports whether the cache answered."""
        if use_cache:
            cached = await self.cache.get(LISTING_CACHE_KEY)
            if cached is not None:
                logger.debug("Listing cache hit (%d handles)", len(cached))
                return [ObjectHandle(**row) for row in cached], True

        handles = await self._walk()
        await self.cache.set(LISTING_CACHE_KEY, [h.model_dump() for h in handles])
        return handles, False

    async def _walk(self) -> list[ObjectHandle]:
        handles: list[ObjectHandle] = []
        cursor: str | None = None
        pages = 0
        while True:
            page = await self.store.list_page(cursor)
            pages += 1
            handles.extend(page.handles)

            # raw row count: rows dropped for a missing CID still fill the page
            if page.row_count == 0 or page.row_count < self.page_size:
                break

            next_cursor = page.last_key
            if not next_cursor or next_cursor == cursor:
                logger.warning("Store listing cursor did not advance at %s; stopping walk", cursor)
                break
            cursor = next_cursor

        logger.info(f"Walked store listing: {len(handles)} objects in {pages} pages")
        return handles

    async def list_document_candidates(self, use_cache: bool = True) -> list[ObjectHandle]:
        handles = await self.list_all_objects(use_cache=use_cache)
        candidates = document_candidates(handles)
        logger.debug(
            "Document candidates: %d of %d listed objects", len(candidates), len(handles)
        )
        return candidates

    async def invalidate(self) -> None:
        await self.cache.invalidate(LISTING_CACHE_KEY)
