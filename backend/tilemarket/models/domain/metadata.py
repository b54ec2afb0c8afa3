"""Content-store domain models: listing handles and metadata documents."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional


class ObjectHandle(BaseModel):
    """One entry of the store's upload listing."""
    model_config = ConfigDict(frozen=True)

    id: str
    cid: str
    file_name: str = ""
    mime_type: Optional[str] = None
    created_at: Optional[int] = None
    size_bytes: Optional[int] = None


class ListingPage(BaseModel):
    """
    One page of the upload listing.

    ``row_count`` and ``last_key`` describe the raw page as the store returned
    it; ``handles`` holds only the rows that carry a CID. Pagination must be
    driven by the raw values.
    """
    model_config = ConfigDict(frozen=True)

    handles: list[ObjectHandle] = Field(default_factory=list)
    row_count: int = 0
    last_key: Optional[str] = None


class MetadataDocument(BaseModel):
    """
    A tile metadata document as uploaded to the content store.

    Known fields are lifted out; every other key of the uploaded JSON is kept
    verbatim in ``raw_fields`` for pass-through to consumers.
    """
    model_config = ConfigDict(frozen=True)

    identity: Optional[Any] = Field(
        default=None,
        description="The document's self-declared `tile` value, before normalization.",
    )
    cid: Optional[str] = None
    name: Optional[str] = None
    image_ref: Optional[str] = None
    socials: Optional[Any] = None
    website: Optional[str] = None
    external_address: Optional[str] = None
    raw_fields: dict[str, Any] = Field(default_factory=dict)
    uploaded_at: Optional[int] = None
    is_placeholder: bool = False

    @classmethod
    def placeholder(cls, identity: int) -> "MetadataDocument":
        return cls(name=f"Tile #{identity}", is_placeholder=True)
