"""
Marketplace overlay source (TileMarketplace contract).

Optional: when no marketplace address is configured the engine runs without
overlays and every tile reads as unlisted.
"""

from typing import Any, Optional, Protocol

from web3 import AsyncWeb3

from tilemarket.errors import UpstreamUnavailable
from tilemarket.logging import get_logger
from tilemarket.models import MarketplaceOverlay, normalize_address
from tilemarket.services.transport import run_with_retry, with_timeout

logger = get_logger('services.marketplace')

_TILE_DETAILS_COMPONENTS = [
    {"internalType": "uint256", "name": "tileId", "type": "uint256"},
    {"internalType": "address", "name": "owner", "type": "address"},
    {"internalType": "string", "name": "metadataUri", "type": "string"},
    {"internalType": "bool", "name": "isNativePayment", "type": "bool"},
    {"internalType": "uint256", "name": "createdAt", "type": "uint256"},
    {"internalType": "address", "name": "originalBuyer", "type": "address"},
    {"internalType": "bool", "name": "isForSale", "type": "bool"},
    {"internalType": "bool", "name": "isForRent", "type": "bool"},
    {"internalType": "bool", "name": "isCurrentlyRented", "type": "bool"},
    {"internalType": "uint256", "name": "salePrice", "type": "uint256"},
    {"internalType": "uint256", "name": "rentPricePerDay", "type": "uint256"},
    {"internalType": "address", "name": "currentRenter", "type": "address"},
    {"internalType": "uint256", "name": "rentalEnd", "type": "uint256"},
]

TILE_MARKETPLACE_ABI: list[dict[str, Any]] = [
    {
        "inputs": [{"internalType": "uint256", "name": "tileId", "type": "uint256"}],
        "name": "getTileDetails",
        "outputs": [
            {
                "components": _TILE_DETAILS_COMPONENTS,
                "internalType": "struct TileMarketplace.TileDetails",
                "name": "",
                "type": "tuple",
            }
        ],
        "stateMutability": "view",
        "type": "function",
    },
]


class OverlaySource(Protocol):
    async def fetch_overlay(self, identity: int) -> Optional[MarketplaceOverlay]: ...


def details_to_overlay(identity: int, details: Any) -> MarketplaceOverlay:
    """Map a `getTileDetails` tuple onto the overlay model."""
    (
        _tile_id, _owner, _metadata_uri, _is_native, _created_at, _original_buyer,
        is_for_sale, is_for_rent, is_currently_rented,
        sale_price, rent_price_per_day, current_renter, rental_end,
    ) = details
    return MarketplaceOverlay(
        identity=identity,
        is_for_sale=bool(is_for_sale),
        is_for_rent=bool(is_for_rent),
        is_currently_rented=bool(is_currently_rented),
        sale_price=int(sale_price),
        rent_price_per_day=int(rent_price_per_day),
        current_renter=str(current_renter) if normalize_address(current_renter) else None,
        rental_end=int(rental_end),
    )


class MarketplaceReader:
    """Reads per-tile listing state from the marketplace contract."""

    def __init__(self, w3: AsyncWeb3, marketplace_address: str):
        self.contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(marketplace_address),
            abi=TILE_MARKETPLACE_ABI,
        )

    async def fetch_overlay(self, identity: int) -> Optional[MarketplaceOverlay]:
        try:
            details = await run_with_retry(
                "getTileDetails",
                lambda: with_timeout(self.contract.functions.getTileDetails(identity).call()),
            )
        except Exception as e:
            raise UpstreamUnavailable("marketplace", f"getTileDetails({identity}): {e}") from e
        return details_to_overlay(identity, details)
