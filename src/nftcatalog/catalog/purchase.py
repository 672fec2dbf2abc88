"""Purchase executor - submit buyToken with the listing value and await confirmation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping

import structlog

from nftcatalog.catalog.diagnostics import DiagnosticSink, Diagnostics
from nftcatalog.catalog.pricing import parse_units
from nftcatalog.chain.base import MarketplaceRegistry
from nftcatalog.errors import PurchaseError

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PurchaseReceipt:
    """A confirmed purchase."""

    token_id: int
    value: int  # wei
    tx_hash: str
    receipt: Mapping[str, Any]


class PurchaseExecutor:
    """Buys a single listing. Does not touch catalogs; the caller decides whether to re-sync."""

    def __init__(
        self,
        marketplace: MarketplaceRegistry,
        diagnostics: DiagnosticSink | None = None,
        confirmation_timeout_sec: float = 120.0,
    ) -> None:
        self.marketplace = marketplace
        self.diagnostics = diagnostics or Diagnostics()
        self.confirmation_timeout_sec = confirmation_timeout_sec

    async def purchase(self, token_id: int, price: str | None) -> PurchaseReceipt:
        """Submit and confirm the purchase. Raises PurchaseError on any failure."""
        try:
            return await self._purchase(token_id, price)
        except PurchaseError as e:
            log.warning("purchase_failed", token_id=token_id, error=e.reason)
            self.diagnostics.record(f"Error during purchase: {e.reason}")
            raise

    async def _purchase(self, token_id: int, price: str | None) -> PurchaseReceipt:
        if price is None:
            raise PurchaseError(token_id, "price not resolved")
        try:
            value = parse_units(price)
        except ValueError as e:
            raise PurchaseError(token_id, str(e)) from e
        if value < 0:
            raise PurchaseError(token_id, f"negative price: {price}")

        try:
            handle = await self.marketplace.buy_token(token_id, value)
        except Exception as e:
            raise PurchaseError(token_id, f"transaction rejected: {e}") from e
        log.info("purchase_submitted", token_id=token_id, value=value, tx_hash=handle.tx_hash)

        try:
            receipt = await asyncio.wait_for(handle.wait(), timeout=self.confirmation_timeout_sec)
        except asyncio.TimeoutError as e:
            raise PurchaseError(
                token_id, f"confirmation timed out after {self.confirmation_timeout_sec}s"
            ) from e
        except Exception as e:
            raise PurchaseError(token_id, f"confirmation failed: {e}") from e
        if receipt.get("status", 1) == 0:
            raise PurchaseError(token_id, f"transaction reverted: {handle.tx_hash}")

        log.info("purchase_confirmed", token_id=token_id, tx_hash=handle.tx_hash)
        return PurchaseReceipt(token_id=token_id, value=value, tx_hash=handle.tx_hash, receipt=receipt)
