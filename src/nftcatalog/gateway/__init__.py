"""Content-addressed gateway: reference resolution and metadata fetch."""

from nftcatalog.gateway.fetcher import FetchResult, MetadataFetcher, parse_metadata
from nftcatalog.gateway.resolver import GatewayResolver

__all__ = ["GatewayResolver", "MetadataFetcher", "FetchResult", "parse_metadata"]
