"""
Error kinds raised by the reconciliation services.

Per-tile and per-object failures are absorbed by the services that raise them;
only whole-upstream and configuration failures reach the HTTP layer.
"""

from typing import Any, Iterable


class TileStateError(Exception):
    """Base class for tile state reconciliation errors."""


class UpstreamUnavailable(TileStateError):
    """The ledger or the object store could not be reached (or timed out)."""

    def __init__(self, source: str, detail: str = ""):
        self.source = source
        self.detail = detail
        message = f"{source} unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidIdentity(TileStateError):
    """A raw tile identifier matches none of the known encodings."""

    def __init__(self, raw: Any, message: str | None = None):
        self.raw = raw
        super().__init__(message or f"Unrecognized tile identifier: {raw!r}")


class MalformedMetadata(TileStateError):
    """A fetched store object is not a usable tile metadata document."""

    def __init__(self, cid: str, reason: str):
        self.cid = cid
        self.reason = reason
        super().__init__(f"Malformed metadata object {cid}: {reason}")


class ConfigurationMissing(TileStateError):
    """Required settings (addresses, URLs, keys) are absent."""

    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        super().__init__(
            "Missing required configuration: " + ", ".join(self.names)
        )


class OffGridCoordinate(InvalidIdentity):
    """A well-formed legacy ``"x-y"`` coordinate that falls outside the grid."""

    def __init__(self, raw: Any, row_width: int):
        self.row_width = row_width
        super().__init__(raw, f"Tile coordinate {raw!r} is outside the {row_width}-column grid")
