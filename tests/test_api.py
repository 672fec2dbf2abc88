"""HTTP API over a connected controller."""

import asyncio

from fastapi.testclient import TestClient

from conftest import ETHER, make_binding, make_fetcher
from nftcatalog.api.main import create_app
from nftcatalog.sync import SyncController


def _client(docs, binding=None):
    controller = SyncController(make_fetcher(docs))
    if binding is not None:
        async def connector():
            return binding

        asyncio.run(controller.connect(connector))
    return TestClient(create_app(controller)), controller


def test_health(docs):
    client, _ = _client(docs)
    assert client.get("/health").json() == {"status": "ok"}


def test_catalog_endpoints(docs):
    docs["meta-2"] = (500, "boom", "text/plain")
    client, _ = _client(docs, make_binding(listed=[1, 2], owned=[3], prices={1: ETHER}))
    with client:
        listed = client.get("/catalog/listed").json()
        assert listed["total"] == 1
        assert listed["items"][0]["token_id"] == 1
        assert listed["items"][0]["price"] == "1.0"
        owned = client.get("/catalog/owned").json()
        assert [i["token_id"] for i in owned["items"]] == [3]
        diag = client.get("/diagnostics").json()
        assert diag["state"] == "ready"
        assert diag["identity"] == "0xAlice"
        assert "token ID 2" in diag["last_error"]
        assert [f["token_id"] for f in diag["failures"]] == [2]


def test_sync_and_buy(docs):
    binding = make_binding(listed=[1], prices={1: 2 * ETHER})
    client, controller = _client(docs, binding)
    with client:
        resp = client.post("/sync")
        assert resp.status_code == 200
        assert resp.json()["generation"] == 2
        resp = client.post("/buy", json={"token_id": 1, "price": "2.0"})
        assert resp.status_code == 200
        assert resp.json()["value"] == str(2 * ETHER)
    assert binding.marketplace.purchases == [(1, 2 * ETHER)]


def test_buy_failure_is_409(docs):
    binding = make_binding(listed=[1], prices={1: ETHER})
    binding.marketplace.buy_error = RuntimeError("user denied transaction signature")
    client, _ = _client(docs, binding)
    with client:
        resp = client.post("/buy", json={"token_id": 1, "price": "1.0"})
    assert resp.status_code == 409
    assert resp.json()["code"] == "purchase_failed"


def test_not_ready_is_503(docs):
    client, _ = _client(docs)
    with client:
        assert client.post("/sync").status_code == 503
        assert client.post("/buy", json={"token_id": 1, "price": "1.0"}).json()["code"] == "not_ready"


def test_run_api_hands_config_dir_to_lifespan(tmp_path, monkeypatch):
    import uvicorn

    from nftcatalog.api import main as api_main

    monkeypatch.setattr(api_main, "_config_profile", None)
    monkeypatch.setattr(api_main, "_config_dir", None)
    served = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: served.append(kwargs))
    api_main.run_api(host="0.0.0.0", port=9001, profile="dev", config_dir=tmp_path)
    assert api_main._config_profile == "dev"
    assert api_main._config_dir == tmp_path
    assert served[0]["port"] == 9001


def test_lifespan_loads_settings_from_config_dir(tmp_path, monkeypatch):
    from nftcatalog.api import main as api_main
    from nftcatalog.chain import web3_registry
    from nftcatalog.errors import ProviderConnectionError

    (tmp_path / "default.toml").write_text('[chain]\nrpc_url = "http://node.test:9545"\n[logging]\nlevel = "WARNING"\n')
    monkeypatch.setattr(api_main, "_config_profile", None)
    monkeypatch.setattr(api_main, "_config_dir", tmp_path)
    seen = []

    async def refuse(settings, w3=None):
        seen.append(settings)
        raise ProviderConnectionError(f"provider unreachable at {settings.rpc_url}")

    monkeypatch.setattr(web3_registry, "connect_web3", refuse)
    with TestClient(create_app()) as client:
        diag = client.get("/diagnostics").json()
    assert seen[0].rpc_url == "http://node.test:9545"
    assert diag["state"] == "failed"
    assert "node.test:9545" in diag["last_error"]
