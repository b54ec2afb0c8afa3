"""
Tile identifier normalization.

Tiles have been addressed three ways over the marketplace's history: plain
numeric ids, legacy ``"x-y"`` grid coordinates (1-based, row-major on a fixed
width grid), and content references pointing at their metadata. Everything
here is pure.
"""

import re
from typing import Any

from tilemarket.errors import InvalidIdentity, OffGridCoordinate

DEFAULT_ROW_WIDTH = 40

_DIGITS_RE = re.compile(r"^[0-9]+$")
_COORDINATE_RE = re.compile(r"^([0-9]+)-([0-9]+)$")
_CID_RE = re.compile(r"^(Qm[1-9A-HJ-NP-Za-km-z]{44}|b[a-z2-7]{20,})$")


def normalize(raw: Any, row_width: int = DEFAULT_ROW_WIDTH) -> int:
    """
    Canonicalize a raw tile identifier.

    - Non-negative integers (and strings of decimal digits) are returned as is
    - ``"x-y"`` becomes ``x + (y - 1) * row_width`` for 1 <= x <= row_width, y >= 1
    - Coordinates outside the grid raise OffGridCoordinate
    - Anything else raises InvalidIdentity

    Examples:
        45 -> 45
        "45" -> 45
        "5-2" -> 45
        " 5-2 " -> 45
    """
    if isinstance(raw, bool):
        raise InvalidIdentity(raw)

    if isinstance(raw, int):
        if raw < 0:
            raise InvalidIdentity(raw)
        return raw

    if not isinstance(raw, str):
        raise InvalidIdentity(raw)

    value = raw.strip()
    if _DIGITS_RE.match(value):
        return int(value)

    match = _COORDINATE_RE.match(value)
    if match:
        x, y = int(match.group(1)), int(match.group(2))
        if 1 <= x <= row_width and y >= 1:
            return x + (y - 1) * row_width
        raise OffGridCoordinate(raw, row_width)

    raise InvalidIdentity(raw)


def to_coordinates(identity: int, row_width: int = DEFAULT_ROW_WIDTH) -> str:
    """Inverse of the legacy coordinate encoding; defined for identity >= 1."""
    if isinstance(identity, bool) or not isinstance(identity, int) or identity < 1:
        raise InvalidIdentity(identity)
    y = (identity - 1) // row_width + 1
    x = identity - (y - 1) * row_width
    return f"{x}-{y}"


def parse_content_ref(ref: Any) -> str | None:
    """
    Extract a content identifier from a metadata reference.

    Accepts ``ipfs://<cid>``, gateway URLs ending in ``/ipfs/<cid>`` and bare
    CIDs. Returns None for anything else, including empty references.
    """
    if not isinstance(ref, str):
        return None
    value = ref.strip()
    if not value:
        return None

    if value.startswith("ipfs://"):
        value = value[len("ipfs://"):]
        if value.startswith("ipfs/"):
            value = value[len("ipfs/"):]
    elif "/ipfs/" in value:
        value = value.split("/ipfs/", 1)[1]
    elif not _CID_RE.match(value):
        return None

    cid = value.split("/", 1)[0].split("?", 1)[0]
    return cid or None
