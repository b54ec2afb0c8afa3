"""
Ledger (TileCore contract) read service.

Range queries over `TileCreated` logs and point lookups of tile state over
JSON-RPC. Every call carries a timeout and goes through the shared retry
helper; failures surface as UpstreamUnavailable.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

from web3 import AsyncHTTPProvider, AsyncWeb3

from tilemarket.config import settings
from tilemarket.errors import UpstreamUnavailable
from tilemarket.logging import get_logger
from tilemarket.models import CreationEvent, LedgerTileRecord, normalize_address
from tilemarket.services.transport import run_with_retry, with_timeout

logger = get_logger('services.ledger')
_T = TypeVar("_T")

TILE_CORE_ABI: list[dict[str, Any]] = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "owner", "type": "address"},
            {"indexed": True, "internalType": "uint256", "name": "tileId", "type": "uint256"},
            {"indexed": False, "internalType": "string", "name": "metadataUri", "type": "string"},
            {"indexed": False, "internalType": "bool", "name": "isNativePayment", "type": "bool"},
        ],
        "name": "TileCreated",
        "type": "event",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "tileId", "type": "uint256"}],
        "name": "getTile",
        "outputs": [
            {"internalType": "address", "name": "owner", "type": "address"},
            {"internalType": "string", "name": "metadataUri", "type": "string"},
            {"internalType": "bool", "name": "isNativePayment", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "tileId", "type": "uint256"}],
        "name": "checkTileExists",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "totalTilesCount",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "address", "name": "user", "type": "address"}],
        "name": "getUserOwnedTiles",
        "outputs": [{"internalType": "uint256[]", "name": "", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class Ledger(Protocol):
    """Read interface the reconciliation engine depends on."""

    async def fetch_scan_window(self) -> tuple[int, int]: ...

    async def fetch_creation_events(self, from_block: int, to_block: int) -> list[CreationEvent]: ...

    async def fetch_tile(self, identity: int) -> LedgerTileRecord: ...

    async def fetch_existence(self, identity: int) -> bool: ...

    async def fetch_total_tiles(self) -> int: ...

    async def fetch_user_tiles(self, owner: str) -> list[int]: ...


def build_web3(rpc_url: str) -> AsyncWeb3:
    return AsyncWeb3(AsyncHTTPProvider(rpc_url))


def _event_to_creation(log: Any) -> CreationEvent:
    args = log["args"]
    return CreationEvent(
        identity=int(args["tileId"]),
        owner=str(args["owner"]),
        metadata_ref=args.get("metadataUri") or None,
        is_native_payment=bool(args.get("isNativePayment", False)),
        block_number=int(log.get("blockNumber") or 0),
        log_index=int(log.get("logIndex") or 0),
    )


class LedgerReader:
    """Reads tile creation events and tile state from the TileCore contract."""

    def __init__(
        self,
        w3: AsyncWeb3,
        tile_core_address: str,
        scan_window: int = settings.SCAN_WINDOW_BLOCKS,
        chunk_blocks: int = settings.LOG_CHUNK_BLOCKS,
    ):
        self.w3 = w3
        self.contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(tile_core_address),
            abi=TILE_CORE_ABI,
        )
        self.scan_window = max(int(scan_window), 0)
        self.chunk_blocks = max(int(chunk_blocks), 0)

    async def _call(self, operation_name: str, operation: Callable[[], Awaitable[_T]]) -> _T:
        try:
            return await run_with_retry(operation_name, lambda: with_timeout(operation()))
        except UpstreamUnavailable:
            raise
        except Exception as e:
            raise UpstreamUnavailable("ledger", f"{operation_name}: {e}") from e

    # ── Range queries ──

    async def fetch_scan_window(self) -> tuple[int, int]:
        latest = int(await self._call("block_number", lambda: self.w3.eth.block_number))
        return max(0, latest - self.scan_window), latest

    async def fetch_creation_events(self, from_block: int, to_block: int) -> list[CreationEvent]:
        """
        All `TileCreated` events in ``[from_block, to_block]``.

        :raises UpstreamUnavailable: When any chunk of the range fails; partial windows are never returned
        """
        step = self.chunk_blocks or (to_block - from_block + 1)
        events: list[CreationEvent] = []
        start = from_block
        while start <= to_block:
            end = min(start + step - 1, to_block)
            logs = await self._call(
                "get_logs",
                lambda s=start, e=end: self.contract.events.TileCreated.get_logs(from_block=s, to_block=e),
            )
            events.extend(_event_to_creation(log) for log in logs)
            start = end + 1

        logger.info(f"Fetched {len(events)} TileCreated events in blocks {from_block}..{to_block}")
        return events

    # ── Point lookups ──

    async def fetch_existence(self, identity: int) -> bool:
        return bool(await self._call(
            "checkTileExists",
            lambda: self.contract.functions.checkTileExists(identity).call(),
        ))

    async def fetch_tile(self, identity: int) -> LedgerTileRecord:
        if not await self.fetch_existence(identity):
            return LedgerTileRecord(identity=identity, exists=False)

        owner, metadata_uri, is_native_payment = await self._call(
            "getTile",
            lambda: self.contract.functions.getTile(identity).call(),
        )
        if normalize_address(owner) is None:
            return LedgerTileRecord(identity=identity, exists=False)
        return LedgerTileRecord(
            identity=identity,
            owner=str(owner),
            metadata_ref=metadata_uri or None,
            is_native_payment=bool(is_native_payment),
            exists=True,
        )

    async def fetch_total_tiles(self) -> int:
        return int(await self._call(
            "totalTilesCount",
            lambda: self.contract.functions.totalTilesCount().call(),
        ))

    async def fetch_user_tiles(self, owner: str) -> list[int]:
        """
        Identities the contract currently attributes to ``owner``.

        Covers tiles minted before the scan window, which a cycle never sees.
        """
        tile_ids = await self._call(
            "getUserOwnedTiles",
            lambda: self.contract.functions.getUserOwnedTiles(
                AsyncWeb3.to_checksum_address(owner)
            ).call(),
        )
        return sorted({int(tile_id) for tile_id in tile_ids})
