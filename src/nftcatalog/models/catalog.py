"""MetadataRecord, Listing, CatalogItem, OwnedItem - catalog entities."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MetadataRecord(BaseModel):
    """Off-chain token metadata with the image reference already resolved to a gateway URL."""

    model_config = ConfigDict(frozen=True)

    image_url: str = Field(..., min_length=1)
    image_reference: str = ""  # as found in the document, before gateway rewrite
    name: str | None = None
    description: str | None = None
    attributes: list[dict[str, Any]] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)


class Listing(BaseModel):
    """Marketplace listing. Price is in wei (18 fractional digits)."""

    token_id: int = Field(..., ge=0)
    price: int = Field(..., ge=0)
    seller: str | None = None


class CatalogItem(BaseModel):
    """Listed-for-sale item. price None means still resolving (or unresolved)."""

    model_config = ConfigDict(frozen=True)

    token_id: int = Field(..., ge=0)
    image_url: str = Field(..., min_length=1)
    price: str | None = None  # decimal ether string, e.g. "1.5"
    name: str | None = None


class OwnedItem(BaseModel):
    """Item owned by the current identity. Ownership does not imply a listing."""

    model_config = ConfigDict(frozen=True)

    token_id: int = Field(..., ge=0)
    image_url: str = Field(..., min_length=1)
    name: str | None = None


class ItemFailure(BaseModel):
    """Per-item (or per-batch when token_id is None) resolution failure."""

    model_config = ConfigDict(frozen=True)

    token_id: int | None = None
    stage: str  # token_uri | metadata | price | enumerate
    message: str


class CatalogSnapshot(BaseModel):
    """One published catalog: items from a single sync pass, replaced as a whole."""

    model_config = ConfigDict(frozen=True)

    generation: int = 0
    items: tuple[CatalogItem | OwnedItem, ...] = ()
    failures: tuple[ItemFailure, ...] = ()
    synced_at: int | None = None  # ms epoch
