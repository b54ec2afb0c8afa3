"""
Content-addressed store (Lighthouse / IPFS) integration service.

Handles the upload listing API and gateway fetches. Parsing and corpus logic
live in the metadata walker and resolver; this is the transport layer.
"""

from typing import Any, Optional, Protocol

import httpx

from tilemarket.config import settings
from tilemarket.errors import UpstreamUnavailable
from tilemarket.logging import get_logger
from tilemarket.models import ListingPage, ObjectHandle
from tilemarket.services.transport import run_with_retry

logger = get_logger('services.store')

LISTING_PATH = "/api/user/files_uploaded"


class ObjectStore(Protocol):
    """Read interface the walker and resolver depend on."""

    async def list_page(self, cursor: Optional[str]) -> ListingPage: ...

    async def fetch_bytes(self, cid: str) -> bytes: ...


def _optional_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _row_key(row: Any) -> str | None:
    """Continuation key of a raw listing row, whether or not it has a CID."""
    if not isinstance(row, dict):
        return None
    key = str(row.get("id") or row.get("cid") or "").strip()
    return key or None


def _row_to_handle(row: dict) -> ObjectHandle | None:
    cid = str(row.get("cid") or "").strip()
    if not cid:
        return None
    return ObjectHandle(
        id=str(row.get("id") or cid),
        cid=cid,
        file_name=str(row.get("fileName") or ""),
        mime_type=row.get("mimeType"),
        created_at=_optional_int(row.get("createdAt")),
        size_bytes=_optional_int(row.get("fileSizeInBytes")),
    )


class LighthouseStoreClient:
    """Client for the Lighthouse upload listing and IPFS gateway."""

    def __init__(
        self,
        api_key: str,
        api_base_url: str = settings.LIGHTHOUSE_API_BASE_URL,
        gateway_url: str = settings.IPFS_GATEWAY_URL,
        timeout: float = settings.REQUEST_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.api_base_url = api_base_url.rstrip("/")
        self.gateway_url = gateway_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True)

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        await self.client.aclose()

    # ── Listing ──

    async def list_page(self, cursor: Optional[str]) -> ListingPage:
        if not self.is_available:
            raise UpstreamUnavailable("store", "LIGHTHOUSE_API_KEY not set")

        params = {"lastKey": cursor} if cursor else {}

        async def _get() -> httpx.Response:
            response = await self.client.get(
                f"{self.api_base_url}{LISTING_PATH}",
                params=params,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            return response

        try:
            response = await run_with_retry("list_uploads", _get)
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to list uploads (cursor={cursor}): {e}")
            raise UpstreamUnavailable("store", str(e)) from e

        data = body.get("data", body) if isinstance(body, dict) else {}
        rows = data.get("fileList") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            raise UpstreamUnavailable("store", "listing response has no fileList")

        handles = [h for h in (_row_to_handle(r) for r in rows if isinstance(r, dict)) if h is not None]
        if len(handles) < len(rows):
            logger.debug("Skipped %d listing rows without a CID", len(rows) - len(handles))
        logger.debug("Listed %d uploads (cursor=%s)", len(rows), cursor or "(start)")
        return ListingPage(handles=handles, row_count=len(rows), last_key=_row_key(rows[-1]) if rows else None)

    # ── Gateway ──

    async def fetch_bytes(self, cid: str) -> bytes:
        async def _get() -> httpx.Response:
            response = await self.client.get(f"{self.gateway_url}/ipfs/{cid}")
            response.raise_for_status()
            return response

        try:
            response = await run_with_retry("gateway_fetch", _get)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable("store", f"{cid}: {e}") from e
        return response.content
