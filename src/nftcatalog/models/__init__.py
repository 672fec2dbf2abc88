"""Catalog schema (Pydantic) - metadata, listings, catalog items."""

from nftcatalog.models.catalog import (
    CatalogItem,
    CatalogSnapshot,
    ItemFailure,
    Listing,
    MetadataRecord,
    OwnedItem,
)

__all__ = [
    "MetadataRecord",
    "Listing",
    "CatalogItem",
    "OwnedItem",
    "ItemFailure",
    "CatalogSnapshot",
]
