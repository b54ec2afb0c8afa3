"""
Enum definitions for the tile state API.
"""
from enum import Enum


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class LedgerSource(str, Enum):
    """How a tile's ledger fields were obtained."""
    STATE = "state"
    EVENT = "event"
    NONE = "none"


class MetadataSource(str, Enum):
    """Which path produced a tile's metadata document."""
    CORPUS = "corpus"
    LEDGER_REF = "ledger_ref"
    PLACEHOLDER = "placeholder"


class CycleStatus(str, Enum):
    """Outcome of one reconciliation cycle."""
    COMPLETE = "complete"
    DEGRADED = "degraded"


def normalize_address(address: str | None) -> str | None:
    """
    Normalize a ledger address for comparison.

    - Strip whitespace
    - Lowercase
    - Map empty and zero addresses to None

    Examples:
        "0xAbC..." -> "0xabc..."
        "0x000...0" -> None
    """
    if not address:
        return None
    value = address.strip().lower()
    if not value or value == ZERO_ADDRESS:
        return None
    return value
