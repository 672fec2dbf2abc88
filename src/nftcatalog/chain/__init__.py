"""On-chain registries: protocols and the web3 adapter."""

from nftcatalog.chain.base import AssetRegistry, MarketplaceRegistry, RegistryBinding, TransactionHandle

__all__ = ["AssetRegistry", "MarketplaceRegistry", "RegistryBinding", "TransactionHandle"]
