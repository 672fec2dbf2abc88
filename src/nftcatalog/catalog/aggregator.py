"""Catalog aggregator - concurrent per-token metadata resolution with an all-settled join."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

import structlog

from nftcatalog.catalog.diagnostics import DiagnosticSink, Diagnostics
from nftcatalog.gateway.fetcher import MetadataFetcher
from nftcatalog.gateway.resolver import GatewayResolver
from nftcatalog.models import ItemFailure, MetadataRecord

log = structlog.get_logger(__name__)

TokenUriLookup = Callable[[int], Awaitable[str]]
Enricher = Callable[[int], Awaitable[Any]]


@dataclass(frozen=True)
class ResolvedToken:
    """A token whose metadata resolved end to end, plus the enrichment value (None if none/failed)."""

    token_id: int
    metadata: MetadataRecord
    extra: Any = None


@dataclass
class AggregateResult:
    """Successes in input order, and every failure of the batch."""

    resolved: list[ResolvedToken] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)


@dataclass(frozen=True)
class _Outcome:
    token_id: int
    resolved: ResolvedToken | None = None
    failure: ItemFailure | None = None


def _token_id(raw: Any) -> int:
    """Registry ids arrive as ints (or int-like big numbers); ids are non-negative."""
    token_id = int(raw)
    if token_id < 0:
        raise ValueError(f"negative token id: {raw!r}")
    return token_id


class CatalogAggregator:
    """Resolves token ids to metadata records concurrently. One bad token never fails the batch."""

    def __init__(
        self,
        fetcher: MetadataFetcher,
        resolver: GatewayResolver | None = None,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.resolver = resolver or fetcher.resolver
        self.diagnostics = diagnostics or Diagnostics()

    async def aggregate(
        self,
        token_ids: Sequence[Any],
        token_uri_of: TokenUriLookup,
        enrich: Enricher | None = None,
    ) -> AggregateResult:
        """Fan out one pipeline per id (unbounded), join when all settle, keep input order."""
        ids = list(token_ids)
        settled = await asyncio.gather(
            *(self._resolve_one(raw, token_uri_of, enrich) for raw in ids),
            return_exceptions=True,
        )
        result = AggregateResult()
        for raw, outcome in zip(ids, settled):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                # _resolve_one converts item errors; anything here is unexpected but still per-item
                failure = self._fail(raw, "metadata", str(outcome))
                result.failures.append(failure)
            elif outcome.resolved is not None:
                result.resolved.append(outcome.resolved)
            elif outcome.failure is not None:
                result.failures.append(outcome.failure)
        log.info(
            "aggregate_done",
            requested=len(ids),
            resolved=len(result.resolved),
            failed=len(result.failures),
        )
        return result

    async def _resolve_one(
        self,
        raw_id: Any,
        token_uri_of: TokenUriLookup,
        enrich: Enricher | None,
    ) -> _Outcome:
        try:
            token_id = _token_id(raw_id)
        except (TypeError, ValueError) as e:
            return _Outcome(token_id=-1, failure=self._fail(raw_id, "token_uri", str(e)))

        try:
            ref = await token_uri_of(token_id)
        except Exception as e:
            return _Outcome(token_id=token_id, failure=self._fail(token_id, "token_uri", str(e)))

        fetched = await self.fetcher.fetch(self.resolver.resolve(ref))
        if not fetched.ok:
            return _Outcome(token_id=token_id, failure=self._fail(token_id, "metadata", str(fetched.error)))

        extra = None
        if enrich is not None:
            try:
                extra = await enrich(token_id)
            except Exception as e:
                # enrichment is its own failure domain; the item stays, unenriched
                log.warning("enrich_failed", token_id=token_id, error=str(e))
                self.diagnostics.record(f"Error enriching token ID {token_id}: {e}")
        return _Outcome(
            token_id=token_id,
            resolved=ResolvedToken(token_id=token_id, metadata=fetched.record, extra=extra),
        )

    def _fail(self, raw_id: Any, stage: str, reason: str) -> ItemFailure:
        message = f"Error fetching metadata for token ID {raw_id}: {reason}"
        log.warning("token_resolution_failed", token_id=raw_id, stage=stage, error=reason)
        self.diagnostics.record(message)
        token_id = raw_id if isinstance(raw_id, int) and raw_id >= 0 else None
        return ItemFailure(token_id=token_id, stage=stage, message=message)
