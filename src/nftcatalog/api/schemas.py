"""Pydantic schemas for API request/response consistency and OpenAPI docs."""

from __future__ import annotations

from pydantic import BaseModel, Field

from nftcatalog.models import CatalogItem, ItemFailure, OwnedItem


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. not_ready, purchase_failed")


# --- Catalogs ---
class ListedCatalogResponse(BaseModel):
    items: list[CatalogItem]
    total: int
    generation: int
    synced_at: int | None = None


class OwnedCatalogResponse(BaseModel):
    items: list[OwnedItem]
    total: int
    generation: int
    synced_at: int | None = None


# --- Diagnostics ---
class DiagnosticsResponse(BaseModel):
    state: str
    generation: int
    identity: str | None = None
    last_error: str | None = None
    failures: list[ItemFailure] = Field(default_factory=list)


class SyncResponse(BaseModel):
    generation: int
    listed: int
    owned: int
    last_error: str | None = None


# --- Purchase ---
class BuyRequest(BaseModel):
    token_id: int = Field(..., ge=0)
    price: str = Field(..., description="Decimal ether amount, e.g. '0.05'")


class BuyResponse(BaseModel):
    token_id: int
    tx_hash: str
    value: str = Field(..., description="Amount transferred, in wei")
