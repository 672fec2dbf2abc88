"""NFT catalog sync - on-chain listings and ownership, IPFS metadata, purchases."""

__version__ = "0.1.0"
