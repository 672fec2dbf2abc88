"""Sync controller - binds registries + identity, re-syncs both catalogs on every trigger change."""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable

import structlog

from nftcatalog.catalog.aggregator import CatalogAggregator
from nftcatalog.catalog.diagnostics import Diagnostics
from nftcatalog.catalog.pricing import PriceResolver
from nftcatalog.catalog.purchase import PurchaseExecutor, PurchaseReceipt
from nftcatalog.chain.base import RegistryBinding
from nftcatalog.errors import ProviderConnectionError, PurchaseError
from nftcatalog.gateway.fetcher import MetadataFetcher
from nftcatalog.gateway.resolver import GatewayResolver
from nftcatalog.models import CatalogItem, CatalogSnapshot, ItemFailure, OwnedItem

log = structlog.get_logger(__name__)

NOT_INITIALIZED = "Contract instance not initialized."

Connector = Callable[[], Awaitable[RegistryBinding]]


class SyncState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    SYNCING = "syncing"
    FAILED = "failed"


class SyncController:
    """Owns the listed and owned catalogs as derived state, recomputed from scratch per pass.

    Every pass carries a generation number; only the newest started pass may publish,
    so rapid re-binds never leave a mix of two passes' items in a catalog.
    """

    def __init__(
        self,
        fetcher: MetadataFetcher,
        *,
        diagnostics: Diagnostics | None = None,
        price_max_retries: int = 0,
        retry_base_delay_sec: float = 0.5,
        confirmation_timeout_sec: float = 120.0,
    ) -> None:
        self.fetcher = fetcher
        self.diagnostics = diagnostics or Diagnostics()
        self.price_max_retries = price_max_retries
        self.retry_base_delay_sec = retry_base_delay_sec
        self.confirmation_timeout_sec = confirmation_timeout_sec
        self.state = SyncState.UNINITIALIZED
        self.binding: RegistryBinding | None = None
        self.generation = 0
        self._in_flight = 0
        self._listed = CatalogSnapshot()
        self._owned = CatalogSnapshot()

    @classmethod
    def from_settings(cls, settings) -> SyncController:
        resolver = GatewayResolver(settings.gateway_base_url, settings.native_scheme)
        fetcher = MetadataFetcher(
            resolver,
            timeout=settings.gateway_timeout_sec,
            max_retries=settings.gateway_max_retries,
            retry_base_delay_sec=settings.retry_base_delay_sec,
        )
        return cls(
            fetcher,
            price_max_retries=settings.price_max_retries,
            retry_base_delay_sec=settings.retry_base_delay_sec,
            confirmation_timeout_sec=settings.confirmation_timeout_sec,
        )

    # --- caller-facing accessors ---
    def listed_catalog(self) -> tuple[CatalogItem, ...]:
        return self._listed.items  # type: ignore[return-value]

    def owned_catalog(self) -> tuple[OwnedItem, ...]:
        return self._owned.items  # type: ignore[return-value]

    def listed_snapshot(self) -> CatalogSnapshot:
        return self._listed

    def owned_snapshot(self) -> CatalogSnapshot:
        return self._owned

    def last_error(self) -> str | None:
        return self.diagnostics.last_error

    # --- lifecycle ---
    async def connect(self, connector: Connector) -> None:
        """Uninitialized -> Connecting -> Ready (then first sync) | Failed."""
        self.state = SyncState.CONNECTING
        try:
            binding = await connector()
        except Exception as e:
            self.state = SyncState.FAILED
            message = f"Error connecting to Ethereum provider: {e}"
            log.error("connect_failed", error=str(e))
            self.diagnostics.record(message)
            if isinstance(e, ProviderConnectionError):
                raise
            raise ProviderConnectionError(message) from e
        log.info("connected", identity=binding.identity)
        self.state = SyncState.READY
        await self.bind(binding)

    async def bind(self, binding: RegistryBinding) -> bool:
        """Adopt a new (registries, identity) triple. Syncs only when the trigger key changed."""
        if self.state is SyncState.FAILED:
            raise ProviderConnectionError("controller failed to connect; reconnect first")
        if self.binding is not None and self.binding.trigger_key == binding.trigger_key:
            log.debug("bind_unchanged", identity=binding.identity)
            return False
        self.binding = binding
        if self.state is SyncState.UNINITIALIZED:
            self.state = SyncState.READY
        await self.sync()
        return True

    async def sync(self) -> int:
        """Run one full pass against the current binding. Returns the pass generation."""
        binding = self.binding
        if binding is None:
            self.diagnostics.record(NOT_INITIALIZED)
            log.warning("sync_without_binding")
            return self.generation
        self.generation += 1
        generation = self.generation
        self._in_flight += 1
        self.state = SyncState.SYNCING
        self.diagnostics.clear(generation)
        log.info("sync_started", generation=generation, identity=binding.identity)
        try:
            await asyncio.gather(
                self._sync_listed(binding, generation),
                self._sync_owned(binding, generation),
            )
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self.state = SyncState.READY
        return generation

    async def buy(self, token_id: int, price: str | None) -> PurchaseReceipt:
        """Purchase one listing. Catalogs are left as they are; call sync() to refresh."""
        binding = self.binding
        if binding is None:
            self.diagnostics.record(NOT_INITIALIZED)
            raise PurchaseError(token_id, NOT_INITIALIZED)
        executor = PurchaseExecutor(
            binding.marketplace,
            diagnostics=self.diagnostics,
            confirmation_timeout_sec=self.confirmation_timeout_sec,
        )
        return await executor.purchase(token_id, price)

    async def aclose(self) -> None:
        await self.fetcher.aclose()

    # --- passes ---
    async def _sync_listed(self, binding: RegistryBinding, generation: int) -> None:
        try:
            token_ids = await binding.marketplace.get_listed_token_ids()
        except Exception as e:
            self._batch_failed("getListedTokenIds", f"Error fetching token URIs: {e}", generation)
            return
        pricing = PriceResolver(
            binding.marketplace,
            diagnostics=self.diagnostics.for_generation(generation),
            max_retries=self.price_max_retries,
            retry_base_delay_sec=self.retry_base_delay_sec,
        )
        result = await self._aggregator(generation).aggregate(
            token_ids, binding.assets.token_uri, enrich=pricing.try_price_of
        )
        items = tuple(
            CatalogItem(
                token_id=r.token_id,
                image_url=r.metadata.image_url,
                price=r.extra,
                name=r.metadata.name,
            )
            for r in result.resolved
        )
        self._publish("listed", generation, items, result.failures)

    async def _sync_owned(self, binding: RegistryBinding, generation: int) -> None:
        try:
            token_ids = await binding.assets.tokens_of_owner(binding.identity)
        except Exception as e:
            self._batch_failed("tokensOfOwner", f"Error fetching asset URIs: {e}", generation)
            return
        result = await self._aggregator(generation).aggregate(token_ids, binding.assets.token_uri)
        items = tuple(
            OwnedItem(token_id=r.token_id, image_url=r.metadata.image_url, name=r.metadata.name)
            for r in result.resolved
        )
        self._publish("owned", generation, items, result.failures)

    def _batch_failed(self, operation: str, message: str, generation: int) -> None:
        # previous catalog is left in place
        log.warning("catalog_read_failed", operation=operation, generation=generation, error=message)
        self.diagnostics.record(message, generation)

    def _aggregator(self, generation: int) -> CatalogAggregator:
        # failures of a superseded pass must not reach the shared last-error surface
        return CatalogAggregator(self.fetcher, diagnostics=self.diagnostics.for_generation(generation))

    def _publish(
        self,
        which: str,
        generation: int,
        items: tuple[CatalogItem, ...] | tuple[OwnedItem, ...],
        failures: list[ItemFailure],
    ) -> None:
        if generation != self.generation:
            log.info("stale_pass_dropped", catalog=which, generation=generation, latest=self.generation)
            return
        snapshot = CatalogSnapshot(
            generation=generation,
            items=items,
            failures=tuple(failures),
            synced_at=int(time.time() * 1000),
        )
        if which == "listed":
            self._listed = snapshot
        else:
            self._owned = snapshot
        log.info("catalog_published", catalog=which, generation=generation, items=len(items))
