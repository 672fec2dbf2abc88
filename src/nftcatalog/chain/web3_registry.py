"""web3.py adapters for the asset and marketplace registries, plus the provider connector."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import structlog
from web3 import AsyncHTTPProvider, AsyncWeb3

from nftcatalog.chain.base import RegistryBinding
from nftcatalog.errors import ProviderConnectionError
from nftcatalog.models import Listing

log = structlog.get_logger(__name__)

# Only the functions this package calls.
ASSET_REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "name": "tokenURI",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "tokensOfOwner",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256[]"}],
    },
]

MARKETPLACE_REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "name": "getListedTokenIds",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256[]"}],
    },
    {
        "name": "listings",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [
            {"name": "seller", "type": "address"},
            {"name": "price", "type": "uint256"},
        ],
    },
    {
        "name": "buyToken",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [],
    },
]


class Web3Transaction:
    """Submitted transaction; wait() blocks (async) for the receipt."""

    def __init__(self, w3: AsyncWeb3, tx_hash: Any, timeout: float = 120.0) -> None:
        self._w3 = w3
        self._raw_hash = tx_hash
        self.tx_hash = AsyncWeb3.to_hex(tx_hash)
        self.timeout = timeout

    async def wait(self) -> Mapping[str, Any]:
        receipt = await self._w3.eth.wait_for_transaction_receipt(self._raw_hash, timeout=self.timeout)
        return dict(receipt)


class Web3AssetRegistry:
    def __init__(self, w3: AsyncWeb3, address: str) -> None:
        self.address = AsyncWeb3.to_checksum_address(address)
        self._contract = w3.eth.contract(address=self.address, abi=ASSET_REGISTRY_ABI)

    async def token_uri(self, token_id: int) -> str:
        return await self._contract.functions.tokenURI(token_id).call()

    async def tokens_of_owner(self, owner: str) -> Sequence[int]:
        ids = await self._contract.functions.tokensOfOwner(AsyncWeb3.to_checksum_address(owner)).call()
        return [int(i) for i in ids]


class Web3MarketplaceRegistry:
    """Marketplace reads and the payable buyToken call.

    With a private key, transactions are signed locally; otherwise the node must
    hold the account unlocked (e.g. a local dev chain).
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        address: str,
        account: str,
        private_key: str | None = None,
        confirmation_timeout_sec: float = 120.0,
    ) -> None:
        self._w3 = w3
        self.address = AsyncWeb3.to_checksum_address(address)
        self.account = AsyncWeb3.to_checksum_address(account)
        self._private_key = private_key
        self.confirmation_timeout_sec = confirmation_timeout_sec
        self._contract = w3.eth.contract(address=self.address, abi=MARKETPLACE_REGISTRY_ABI)

    async def get_listed_token_ids(self) -> Sequence[int]:
        ids = await self._contract.functions.getListedTokenIds().call()
        return [int(i) for i in ids]

    async def listing(self, token_id: int) -> Listing:
        seller, price = await self._contract.functions.listings(token_id).call()
        return Listing(token_id=token_id, price=int(price), seller=seller)

    async def buy_token(self, token_id: int, value: int) -> Web3Transaction:
        call = self._contract.functions.buyToken(token_id)
        if self._private_key:
            nonce = await self._w3.eth.get_transaction_count(self.account)
            tx = await call.build_transaction({"from": self.account, "value": value, "nonce": nonce})
            signed = self._w3.eth.account.sign_transaction(tx, self._private_key)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        else:
            tx_hash = await call.transact({"from": self.account, "value": value})
        return Web3Transaction(self._w3, tx_hash, timeout=self.confirmation_timeout_sec)


async def connect_web3(settings, w3: AsyncWeb3 | None = None) -> RegistryBinding:
    """Connect to the configured JSON-RPC provider and bind both registries. Raises ProviderConnectionError."""
    if w3 is None:
        w3 = AsyncWeb3(AsyncHTTPProvider(settings.rpc_url))
    try:
        connected = await w3.is_connected()
    except Exception as e:
        raise ProviderConnectionError(f"provider unreachable at {settings.rpc_url}: {e}") from e
    if not connected:
        raise ProviderConnectionError(f"provider unreachable at {settings.rpc_url}")
    if not settings.asset_registry_address or not settings.marketplace_registry_address:
        raise ProviderConnectionError("registry addresses are not configured")

    private_key = settings.private_key
    account = settings.account
    if not account and private_key:
        try:
            account = w3.eth.account.from_key(private_key).address
        except Exception as e:
            raise ProviderConnectionError(f"invalid private key: {e}") from e
    if not account:
        accounts = await w3.eth.accounts
        if not accounts:
            raise ProviderConnectionError("no account available from provider")
        account = accounts[0]

    try:
        binding = RegistryBinding(
            identity=AsyncWeb3.to_checksum_address(account),
            assets=Web3AssetRegistry(w3, settings.asset_registry_address),
            marketplace=Web3MarketplaceRegistry(
                w3,
                settings.marketplace_registry_address,
                account,
                private_key=private_key,
                confirmation_timeout_sec=settings.confirmation_timeout_sec,
            ),
        )
    except (TypeError, ValueError) as e:
        raise ProviderConnectionError(f"invalid address: {e}") from e
    log.info("provider_bound", rpc_url=settings.rpc_url, identity=binding.identity)
    return binding
