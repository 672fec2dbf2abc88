"""Registry protocols (asset + marketplace) and the binding that ties them to an identity."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

from nftcatalog.models import Listing


class TransactionHandle(Protocol):
    """A submitted transaction; wait() resolves with the receipt once confirmed."""

    tx_hash: str

    async def wait(self) -> Mapping[str, Any]: ...


class AssetRegistry(Protocol):
    """Token ownership registry (ERC-721 style)."""

    address: str

    async def token_uri(self, token_id: int) -> str: ...
    async def tokens_of_owner(self, owner: str) -> Sequence[int]: ...


class MarketplaceRegistry(Protocol):
    """Marketplace listing registry."""

    address: str

    async def get_listed_token_ids(self) -> Sequence[int]: ...
    async def listing(self, token_id: int) -> Listing: ...
    async def buy_token(self, token_id: int, value: int) -> TransactionHandle: ...


@dataclass(frozen=True)
class RegistryBinding:
    """Identity plus the two bound registries. A change of trigger_key means a fresh sync."""

    identity: str
    assets: AssetRegistry
    marketplace: MarketplaceRegistry

    @property
    def trigger_key(self) -> tuple[str, str, str]:
        return (self.assets.address.lower(), self.marketplace.address.lower(), self.identity.lower())
