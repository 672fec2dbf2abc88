"""Sync controller: state machine, publish semantics, end-to-end scenarios."""

import asyncio

import pytest

from conftest import ETHER, GATEWAY, make_binding, make_fetcher
from nftcatalog.errors import ProviderConnectionError, PurchaseError
from nftcatalog.models import CatalogItem
from nftcatalog.sync import SyncController, SyncState


def _controller(docs, **kwargs):
    return SyncController(make_fetcher(docs), **kwargs)


def _connect(controller, binding):
    async def connector():
        return binding

    asyncio.run(controller.connect(connector))


def test_end_to_end_listed_with_gateway_500(docs):
    docs["meta-2"] = (500, "Internal Server Error", "text/plain")
    controller = _controller(docs)
    binding = make_binding(listed=[1, 2], owned=[1], prices={1: ETHER, 2: 2 * ETHER})
    _connect(controller, binding)

    assert controller.state is SyncState.READY
    assert controller.listed_catalog() == (
        CatalogItem(token_id=1, image_url=GATEWAY + "img-1", price="1.0", name="Token 1"),
    )
    assert [i.token_id for i in controller.owned_catalog()] == [1]
    assert "token ID 2" in controller.last_error()
    failures = controller.listed_snapshot().failures
    assert [f.token_id for f in failures] == [2]


def test_owned_items_carry_no_price(docs):
    controller = _controller(docs)
    _connect(controller, make_binding(listed=[], owned=[3, 4]))
    owned = controller.owned_catalog()
    assert [i.token_id for i in owned] == [3, 4]
    assert not hasattr(owned[0], "price")
    assert controller.listed_catalog() == ()
    assert controller.last_error() is None


def test_price_failure_leaves_item_unpriced(docs):
    binding = make_binding(listed=[1, 2], prices={1: ETHER, 2: ETHER})
    binding.marketplace.listing_failures[2] = 1
    controller = _controller(docs)
    _connect(controller, binding)
    assert [(i.token_id, i.price) for i in controller.listed_catalog()] == [(1, "1.0"), (2, None)]
    assert controller.last_error().startswith("Error fetching token prices:")


def test_enumeration_failure_keeps_previous_catalog(docs):
    binding = make_binding(listed=[1, 2], owned=[3], prices={1: ETHER, 2: ETHER})
    controller = _controller(docs)
    _connect(controller, binding)
    before = controller.listed_snapshot()
    assert len(before.items) == 2

    binding.marketplace.fail_enumeration = True
    binding.assets.fail_owner = True
    generation = asyncio.run(controller.sync())

    assert generation == 2
    assert controller.state is SyncState.READY
    assert controller.listed_snapshot() is before
    assert [i.token_id for i in controller.owned_catalog()] == [3]
    assert controller.last_error().startswith(("Error fetching token URIs:", "Error fetching asset URIs:"))


def test_bind_same_key_does_not_resync(docs):
    calls = []
    controller = SyncController(make_fetcher(docs, calls=calls))
    binding = make_binding(listed=[1])
    _connect(controller, binding)
    assert controller.generation == 1
    assert asyncio.run(controller.bind(binding)) is False
    assert controller.generation == 1
    assert calls == ["meta-1"]


def test_identity_change_triggers_fresh_sync(docs):
    controller = _controller(docs)
    _connect(controller, make_binding(identity="0xAlice", listed=[], owned=[1]))
    assert [i.token_id for i in controller.owned_catalog()] == [1]
    assert asyncio.run(controller.bind(make_binding(identity="0xBob", listed=[], owned=[2, 3]))) is True
    assert controller.generation == 2
    assert [i.token_id for i in controller.owned_catalog()] == [2, 3]


def test_rapid_rebind_publishes_only_latest_pass(docs):
    controller = _controller(docs)
    slow = make_binding(identity="0xAlice", listed=[1, 2], owned=[1], suffix="A", delay=0.05)
    fast = make_binding(identity="0xBob", listed=[3], owned=[4, 5], suffix="B")
    controller.state = SyncState.READY

    async def both():
        await asyncio.gather(controller.bind(slow), controller.bind(fast))

    asyncio.run(both())
    assert controller.generation == 2
    assert [i.token_id for i in controller.listed_catalog()] == [3]
    assert [i.token_id for i in controller.owned_catalog()] == [4, 5]
    assert controller.listed_snapshot().generation == 2
    assert controller.owned_snapshot().generation == 2
    assert controller.state is SyncState.READY


def test_connect_failure_is_terminal(docs):
    controller = _controller(docs)

    async def connector():
        raise ProviderConnectionError("MetaMask is not installed")

    with pytest.raises(ProviderConnectionError):
        asyncio.run(controller.connect(connector))
    assert controller.state is SyncState.FAILED
    assert "MetaMask is not installed" in controller.last_error()
    with pytest.raises(ProviderConnectionError):
        asyncio.run(controller.bind(make_binding()))


def test_connect_wraps_unexpected_errors(docs):
    controller = _controller(docs)

    async def connector():
        raise OSError("connection refused")

    with pytest.raises(ProviderConnectionError):
        asyncio.run(controller.connect(connector))
    assert controller.state is SyncState.FAILED


def test_sync_before_binding_reports_not_initialized(docs):
    controller = _controller(docs)
    assert asyncio.run(controller.sync()) == 0
    assert controller.last_error() == "Contract instance not initialized."
    with pytest.raises(PurchaseError):
        asyncio.run(controller.buy(1, "1.0"))


def test_buy_does_not_touch_catalogs(docs):
    binding = make_binding(listed=[1], prices={1: ETHER})
    controller = _controller(docs)
    _connect(controller, binding)
    listed = controller.listed_snapshot()
    receipt = asyncio.run(controller.buy(1, controller.listed_catalog()[0].price))
    assert receipt.value == ETHER
    assert binding.marketplace.purchases == [(1, ETHER)]
    assert controller.listed_snapshot() is listed
    assert controller.generation == 1


def test_failed_buy_reports_and_raises(docs):
    binding = make_binding(listed=[1], prices={1: ETHER})
    binding.marketplace.buy_error = RuntimeError("insufficient funds")
    controller = _controller(docs)
    _connect(controller, binding)
    with pytest.raises(PurchaseError):
        asyncio.run(controller.buy(1, "1.0"))
    assert controller.last_error() == "Error during purchase: transaction rejected: insufficient funds"
    assert len(controller.listed_catalog()) == 1


def test_clean_resync_clears_last_error(docs):
    docs["meta-2"] = (500, "boom", "text/plain")
    controller = _controller(docs)
    _connect(controller, make_binding(listed=[1, 2], prices={1: ETHER, 2: ETHER}))
    assert "token ID 2" in controller.last_error()

    docs["meta-2"] = {"image": "ipfs://img-2"}
    asyncio.run(controller.sync())
    assert controller.last_error() is None
    assert [i.token_id for i in controller.listed_catalog()] == [1, 2]
    assert controller.listed_snapshot().failures == ()


def test_superseded_pass_failures_do_not_reach_last_error(docs):
    controller = _controller(docs)
    # the slow pass's only token points at a document the gateway does not have
    slow = make_binding(identity="0xAlice", listed=[1], uris={1: "gone-1"}, suffix="A", delay=0.05)
    fast = make_binding(identity="0xBob", listed=[3], prices={3: ETHER}, suffix="B")
    controller.state = SyncState.READY

    async def both():
        await asyncio.gather(controller.bind(slow), controller.bind(fast))

    asyncio.run(both())
    assert [i.token_id for i in controller.listed_catalog()] == [3]
    assert controller.last_error() is None


def test_diagnostics_ignore_older_generations():
    from nftcatalog.catalog import Diagnostics

    diagnostics = Diagnostics()
    diagnostics.clear(2)
    diagnostics.for_generation(1).record("stale")
    assert diagnostics.last_error is None
    diagnostics.for_generation(2).record("current")
    assert diagnostics.last_error == "current"
    diagnostics.record("untagged")
    assert diagnostics.last_error == "untagged"
