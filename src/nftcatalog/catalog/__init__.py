"""Catalog pipeline: aggregation, pricing, purchase, diagnostics."""

from nftcatalog.catalog.aggregator import AggregateResult, CatalogAggregator, ResolvedToken
from nftcatalog.catalog.diagnostics import DiagnosticSink, Diagnostics, PassDiagnostics
from nftcatalog.catalog.pricing import PriceResolver, format_units, parse_units
from nftcatalog.catalog.purchase import PurchaseExecutor, PurchaseReceipt

__all__ = [
    "CatalogAggregator",
    "AggregateResult",
    "ResolvedToken",
    "Diagnostics",
    "DiagnosticSink",
    "PassDiagnostics",
    "PriceResolver",
    "format_units",
    "parse_units",
    "PurchaseExecutor",
    "PurchaseReceipt",
]
