"""Error taxonomy: connection, contract read, metadata fetch, purchase."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for nftcatalog errors."""


class ProviderConnectionError(CatalogError):
    """Provider, identity or registry binding failed. Fatal to reaching Ready."""


class ContractReadError(CatalogError):
    """A registry read call failed (enumeration or listing lookup)."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


class FetchError(CatalogError):
    """Metadata could not be fetched or decoded. Per-item; never aborts a batch."""


class HttpError(FetchError):
    def __init__(self, status: int, url: str = "") -> None:
        self.status = status
        self.url = url
        super().__init__(f"HTTP error! Status: {status}")


class ContentTypeError(FetchError):
    """Response was not JSON; body kept because it is usually a gateway error page."""

    def __init__(self, actual: str | None, body: str) -> None:
        self.actual = actual
        self.body = body
        super().__init__(f"Expected JSON, got: {actual}\nResponse: {body}")


class DecodeError(FetchError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid metadata document: {reason}")


class PurchaseError(CatalogError):
    """Purchase was rejected, reverted, declined or not confirmed in time."""

    def __init__(self, token_id: int, reason: str) -> None:
        self.token_id = token_id
        self.reason = reason
        super().__init__(reason)
