"""
Metadata resolver.

Turns store objects into typed metadata documents, builds the identity-keyed
corpus, and answers single-identity lookups. Failures on individual objects
are logged and the object is left out; the corpus is built best-effort from
whatever validates.
"""

import json
from typing import Any, Optional

from tilemarket.config import settings
from tilemarket.errors import InvalidIdentity, MalformedMetadata, OffGridCoordinate, UpstreamUnavailable
from tilemarket.logging import get_logger
from tilemarket.models import MetadataDocument, ObjectHandle
from tilemarket.services.concurrency import gather_bounded
from tilemarket.services.identity import normalize, parse_content_ref
from tilemarket.services.listing_cache import ListingCache, NullListingCache
from tilemarket.services.metadata_walker import MetadataStoreWalker, document_candidates
from tilemarket.services.store import ObjectStore

logger = get_logger('services.metadata_resolver')

_KNOWN_FIELDS = {
    "tile": "identity",
    "name": "name",
    "imageCID": "image_ref",
    "socials": "socials",
    "website": "website",
    "address": "external_address",
}


def _object_cache_key(cid: str) -> str:
    return f"object:{cid}"


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def decode_payload(cid: str, raw: bytes) -> dict[str, Any]:
    """Decode raw object bytes into a JSON object or raise MalformedMetadata."""
    try:
        payload = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedMetadata(cid, f"not JSON ({e})") from e
    if not isinstance(payload, dict):
        raise MalformedMetadata(cid, f"expected a JSON object, got {type(payload).__name__}")
    return payload


def build_document(
    cid: str,
    payload: dict[str, Any],
    handle: ObjectHandle | None = None,
    require_tile: bool = True,
) -> MetadataDocument:
    """
    Lift known fields out of a metadata payload; the rest goes to raw_fields.

    :raises MalformedMetadata: When ``require_tile`` and the payload declares no tile
    """
    tile = payload.get("tile")
    if require_tile and (tile is None or tile == ""):
        raise MalformedMetadata(cid, "missing `tile` field")

    known = {attr: payload.get(key) for key, attr in _KNOWN_FIELDS.items()}
    raw_fields = {k: v for k, v in payload.items() if k not in _KNOWN_FIELDS}
    return MetadataDocument(
        identity=known["identity"],
        cid=cid,
        name=_optional_str(known["name"]),
        image_ref=_optional_str(known["image_ref"]),
        socials=known["socials"],
        website=_optional_str(known["website"]),
        external_address=_optional_str(known["external_address"]),
        raw_fields=raw_fields,
        uploaded_at=handle.created_at if handle else None,
    )


def _precedence(document: MetadataDocument) -> tuple[int, str]:
    return (document.uploaded_at if document.uploaded_at is not None else -1, document.cid or "")


def prefer_document(current: MetadataDocument | None, candidate: MetadataDocument) -> MetadataDocument:
    """Latest upload wins; equal timestamps fall back to the larger CID."""
    if current is None or _precedence(candidate) > _precedence(current):
        return candidate
    return current


class MetadataResolver:
    """Resolves store objects and tile identities to metadata documents."""

    def __init__(
        self,
        store: ObjectStore,
        walker: MetadataStoreWalker,
        cache: ListingCache | None = None,
        row_width: int = settings.GRID_ROW_WIDTH,
        concurrency: int = settings.STORE_FETCH_CONCURRENCY,
    ):
        self.store = store
        self.walker = walker
        self.cache = cache or NullListingCache()
        self.row_width = row_width
        self.concurrency = concurrency

    async def _load_payload(self, cid: str) -> dict[str, Any]:
        cached = await self.cache.get(_object_cache_key(cid))
        if cached is not None:
            return cached
        raw = await self.store.fetch_bytes(cid)
        payload = decode_payload(cid, raw)
        # content addressing makes the payload immutable for this cid
        await self.cache.set(_object_cache_key(cid), payload)
        return payload

    async def resolve(self, cid: str, handle: ObjectHandle | None = None) -> MetadataDocument:
        """
        Fetch and parse one tile metadata document.

        :raises MalformedMetadata: Unparsable object or no declared tile
        :raises UpstreamUnavailable: Gateway fetch failed
        """
        payload = await self._load_payload(cid)
        return build_document(cid, payload, handle)

    async def resolve_ref(self, metadata_ref: str | None) -> Optional[MetadataDocument]:
        """Resolve a ledger metadata reference; None when absent or unusable."""
        cid = parse_content_ref(metadata_ref)
        if not cid:
            return None
        try:
            payload = await self._load_payload(cid)
        except (MalformedMetadata, UpstreamUnavailable) as e:
            logger.warning(f"Ledger metadata reference {metadata_ref} unusable: {e}")
            return None
        return build_document(cid, payload, require_tile=False)

    async def build_corpus(self, handles: list[ObjectHandle]) -> dict[int, MetadataDocument]:
        """Resolve every document candidate and key the valid ones by normalized identity."""
        candidates = document_candidates(handles)
        by_cid = {h.cid: h for h in candidates}

        documents, failures = await gather_bounded(
            by_cid.keys(),
            lambda cid: self.resolve(cid, by_cid[cid]),
            self.concurrency,
        )

        for cid, error in failures.items():
            if isinstance(error, (MalformedMetadata, UpstreamUnavailable)):
                logger.warning(f"Excluding store object {cid}: {error}")
            else:
                logger.error(f"Unexpected failure resolving store object {cid}: {error!r}")

        corpus: dict[int, MetadataDocument] = {}
        for cid in sorted(documents):
            document = documents[cid]
            try:
                identity = normalize(document.identity, self.row_width)
            except OffGridCoordinate as e:
                logger.warning(f"Data quality: excluding store object {cid} with off-grid coordinate: {e}")
                continue
            except InvalidIdentity as e:
                logger.warning(f"Excluding store object {cid}: {e}")
                continue
            existing = corpus.get(identity)
            chosen = prefer_document(existing, document)
            if existing is not None:
                logger.info(
                    "Tile %d declared by %s and %s; keeping %s",
                    identity, existing.cid, document.cid, chosen.cid,
                )
            corpus[identity] = chosen

        logger.info(
            f"Metadata corpus: {len(corpus)} tiles from {len(candidates)} candidates "
            f"({len(failures)} excluded on fetch/parse)"
        )
        return corpus

    async def load_corpus(self, use_cache: bool = True) -> tuple[dict[int, MetadataDocument], bool]:
        """
        Walk the store and build the corpus.

        :return: The corpus and whether the listing came from the cache
        :raises UpstreamUnavailable: When the listing cannot be walked
        """
        handles, from_cache = await self.walker.load_listing(use_cache=use_cache)
        return await self.build_corpus(handles), from_cache

    async def resolve_by_identity(self, identity: int) -> MetadataDocument:
        """
        Find the corpus document for ``identity``; the placeholder when none exists.

        A miss against a cached listing invalidates it and walks the store once
        more, so fresh uploads become visible without waiting for the TTL.

        :raises UpstreamUnavailable: When the store listing cannot be walked
        """
        corpus, from_cache = await self.load_corpus()
        document = corpus.get(identity)
        if document is None and from_cache:
            logger.debug("Tile %d missing from cached listing; re-walking store", identity)
            await self.walker.invalidate()
            corpus, _ = await self.load_corpus(use_cache=False)
            document = corpus.get(identity)
        return document or MetadataDocument.placeholder(identity)
