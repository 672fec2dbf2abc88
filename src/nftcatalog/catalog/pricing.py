"""Listing price lookup and 18-decimal fixed-point conversion."""

from __future__ import annotations

import re

import structlog

from nftcatalog.catalog.diagnostics import DiagnosticSink, Diagnostics
from nftcatalog.chain.base import MarketplaceRegistry
from nftcatalog.errors import ContractReadError
from nftcatalog.retry import with_retries

log = structlog.get_logger(__name__)

ETHER_DECIMALS = 18

_DECIMAL_RE = re.compile(r"^(-)?(\d*)(?:\.(\d*))?$")


def format_units(amount: int, decimals: int = ETHER_DECIMALS) -> str:
    """Fixed-point integer -> decimal string, exact. 10**18 -> "1.0", 0 -> "0.0", 15 * 10**17 -> "1.5"."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    frac_str = str(frac).rjust(decimals, "0").rstrip("0") or "0"
    return f"{sign}{whole}.{frac_str}"


def parse_units(value: str | int, decimals: int = ETHER_DECIMALS) -> int:
    """Decimal string -> fixed-point integer, exact. Raises ValueError on junk or excess precision."""
    if isinstance(value, int):
        return value * 10**decimals
    text = value.strip()
    match = _DECIMAL_RE.match(text)
    if not text or match is None or not (match.group(2) or match.group(3)):
        raise ValueError(f"invalid decimal amount: {value!r}")
    negative, whole, frac = match.group(1), match.group(2) or "0", match.group(3) or ""
    if len(frac) > decimals:
        if frac[decimals:].strip("0"):
            raise ValueError(f"fractional component exceeds {decimals} decimals: {value!r}")
        frac = frac[:decimals]
    amount = int(whole) * 10**decimals + int(frac.ljust(decimals, "0"))
    return -amount if negative else amount


class PriceResolver:
    """Cross-references token ids against the marketplace registry for a display price."""

    def __init__(
        self,
        marketplace: MarketplaceRegistry,
        diagnostics: DiagnosticSink | None = None,
        max_retries: int = 0,
        retry_base_delay_sec: float = 0.5,
    ) -> None:
        self.marketplace = marketplace
        self.diagnostics = diagnostics or Diagnostics()
        self.max_retries = max_retries
        self.retry_base_delay_sec = retry_base_delay_sec

    async def price_of(self, token_id: int) -> str:
        """Return the listing price as a decimal ether string. Raises ContractReadError."""
        try:
            listing = await with_retries(
                lambda: self.marketplace.listing(token_id),
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay_sec,
                what="listing_read",
            )
        except Exception as e:
            raise ContractReadError("listings", str(e)) from e
        return format_units(listing.price)

    async def try_price_of(self, token_id: int) -> str | None:
        """price_of() that reports failure to diagnostics and returns None instead of raising."""
        try:
            return await self.price_of(token_id)
        except ContractReadError as e:
            message = f"Error fetching token prices: {e.reason}"
            log.warning("price_fetch_failed", token_id=token_id, error=e.reason)
            self.diagnostics.record(message)
            return None
