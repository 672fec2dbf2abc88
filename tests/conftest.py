"""Shared fakes: in-memory registries and a mock gateway transport."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import httpx
import pytest

from nftcatalog.chain.base import RegistryBinding
from nftcatalog.gateway import GatewayResolver, MetadataFetcher
from nftcatalog.models import Listing

GATEWAY = "https://gw.test/ipfs/"
ETHER = 10**18


def gateway_handler(docs: dict[str, Any], calls: list[str] | None = None) -> Callable[[httpx.Request], httpx.Response]:
    """Serve docs keyed by last path segment.

    A dict value is served as JSON; a (status, text, content_type) tuple is served raw;
    a callable is invoked with the request.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        key = request.url.path.rsplit("/", 1)[-1]
        if calls is not None:
            calls.append(key)
        entry = docs.get(key)
        if entry is None:
            return httpx.Response(404, text="not found")
        if callable(entry):
            return entry(request)
        if isinstance(entry, tuple):
            status, text, content_type = entry
            return httpx.Response(status, text=text, headers={"content-type": content_type})
        return httpx.Response(200, json=entry)

    return handler


def make_fetcher(docs: dict[str, Any], calls: list[str] | None = None, **kwargs: Any) -> MetadataFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(gateway_handler(docs, calls)))
    return MetadataFetcher(GatewayResolver(GATEWAY), client=client, **kwargs)


def doc(token_id: int) -> dict[str, Any]:
    return {"name": f"Token {token_id}", "image": f"ipfs://img-{token_id}"}


class FakeAssetRegistry:
    def __init__(
        self,
        uris: dict[int, str],
        owned: dict[str, list[int]] | None = None,
        address: str = "0xAssets",
        delay: float = 0.0,
    ) -> None:
        self.address = address
        self.uris = uris
        self.owned = owned or {}
        self.delay = delay
        self.fail_owner = False

    async def token_uri(self, token_id: int) -> str:
        await asyncio.sleep(self.delay)
        if token_id not in self.uris:
            raise RuntimeError(f"execution reverted: nonexistent token {token_id}")
        return self.uris[token_id]

    async def tokens_of_owner(self, owner: str) -> list[int]:
        await asyncio.sleep(self.delay)
        if self.fail_owner:
            raise RuntimeError("call reverted")
        return list(self.owned.get(owner, []))


class FakeTx:
    def __init__(self, tx_hash: str, status: int = 1, delay: float = 0.0, error: Exception | None = None) -> None:
        self.tx_hash = tx_hash
        self.status = status
        self.delay = delay
        self.error = error

    async def wait(self) -> dict[str, Any]:
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"status": self.status, "transactionHash": self.tx_hash}


class FakeMarketplace:
    def __init__(
        self,
        listed: list[int],
        prices: dict[int, int] | None = None,
        address: str = "0xMarket",
        delay: float = 0.0,
    ) -> None:
        self.address = address
        self.listed = listed
        self.prices = prices or {}
        self.delay = delay
        self.fail_enumeration = False
        self.listing_failures: dict[int, int] = {}  # token_id -> remaining failures
        self.buy_error: Exception | None = None
        self.next_tx: FakeTx | None = None
        self.purchases: list[tuple[int, int]] = []

    async def get_listed_token_ids(self) -> list[int]:
        await asyncio.sleep(self.delay)
        if self.fail_enumeration:
            raise RuntimeError("getListedTokenIds reverted")
        return list(self.listed)

    async def listing(self, token_id: int) -> Listing:
        await asyncio.sleep(0)
        remaining = self.listing_failures.get(token_id, 0)
        if remaining:
            self.listing_failures[token_id] = remaining - 1
            raise RuntimeError("listings call failed")
        return Listing(token_id=token_id, price=self.prices.get(token_id, 0))

    async def buy_token(self, token_id: int, value: int) -> FakeTx:
        if self.buy_error is not None:
            raise self.buy_error
        self.purchases.append((token_id, value))
        return self.next_tx or FakeTx(f"0xtx{token_id}")


def make_binding(
    identity: str = "0xAlice",
    listed: list[int] | None = None,
    owned: list[int] | None = None,
    prices: dict[int, int] | None = None,
    uris: dict[int, str] | None = None,
    suffix: str = "",
    delay: float = 0.0,
) -> RegistryBinding:
    listed = [1, 2] if listed is None else listed
    owned = [] if owned is None else owned
    all_ids = set(listed) | set(owned)
    uris = uris if uris is not None else {i: f"meta-{i}" for i in all_ids}
    return RegistryBinding(
        identity=identity,
        assets=FakeAssetRegistry(uris, {identity: owned}, address="0xAssets" + suffix, delay=delay),
        marketplace=FakeMarketplace(listed, prices, address="0xMarket" + suffix, delay=delay),
    )


@pytest.fixture
def docs() -> dict[str, Any]:
    return {f"meta-{i}": doc(i) for i in range(1, 6)}
