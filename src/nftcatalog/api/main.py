"""FastAPI surface over the sync controller: catalogs, diagnostics, sync, buy."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nftcatalog.api.schemas import (
    BuyRequest,
    BuyResponse,
    DiagnosticsResponse,
    ErrorResponse,
    HealthResponse,
    ListedCatalogResponse,
    OwnedCatalogResponse,
    SyncResponse,
)
from nftcatalog.config import get_settings
from nftcatalog.errors import PurchaseError
from nftcatalog.sync.controller import SyncController, SyncState

# Set by run_api() so the lifespan loads the same config as the CLI.
_config_profile: str | None = None
_config_dir: Path | None = None


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": code},
    )


def get_controller(request: Request) -> SyncController:
    return request.app.state.controller


def create_app(controller: SyncController | None = None) -> FastAPI:
    """Build the app. Without a controller, the lifespan connects one from config via web3."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if app.state.controller is None:
            from nftcatalog.chain.web3_registry import connect_web3
            from nftcatalog.errors import ProviderConnectionError

            settings = get_settings(_config_profile, _config_dir)
            owned = SyncController.from_settings(settings)
            app.state.controller = owned
            try:
                await owned.connect(lambda: connect_web3(settings))
            except ProviderConnectionError:
                # stays FAILED; /diagnostics reports why
                pass
        yield
        if owned is not None:
            await owned.aclose()

    app = FastAPI(title="NFT Catalog API", version="0.1.0", lifespan=lifespan)
    app.state.controller = controller
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/catalog/listed", response_model=ListedCatalogResponse)
    def listed(ctl: SyncController = Depends(get_controller)) -> ListedCatalogResponse:
        snap = ctl.listed_snapshot()
        return ListedCatalogResponse(
            items=list(snap.items), total=len(snap.items), generation=snap.generation, synced_at=snap.synced_at
        )

    @app.get("/catalog/owned", response_model=OwnedCatalogResponse)
    def owned(ctl: SyncController = Depends(get_controller)) -> OwnedCatalogResponse:
        snap = ctl.owned_snapshot()
        return OwnedCatalogResponse(
            items=list(snap.items), total=len(snap.items), generation=snap.generation, synced_at=snap.synced_at
        )

    @app.get("/diagnostics", response_model=DiagnosticsResponse)
    def diagnostics(ctl: SyncController = Depends(get_controller)) -> DiagnosticsResponse:
        failures = list(ctl.listed_snapshot().failures) + list(ctl.owned_snapshot().failures)
        return DiagnosticsResponse(
            state=ctl.state.value,
            generation=ctl.generation,
            identity=ctl.binding.identity if ctl.binding else None,
            last_error=ctl.last_error(),
            failures=failures,
        )

    @app.post(
        "/sync",
        response_model=SyncResponse,
        responses={503: {"description": "Controller not connected", "model": ErrorResponse}},
    )
    async def sync(ctl: SyncController = Depends(get_controller)):
        if ctl.binding is None or ctl.state is SyncState.FAILED:
            return _error_json("not_ready", ctl.last_error() or "Controller not connected", 503)
        generation = await ctl.sync()
        return SyncResponse(
            generation=generation,
            listed=len(ctl.listed_catalog()),
            owned=len(ctl.owned_catalog()),
            last_error=ctl.last_error(),
        )

    @app.post(
        "/buy",
        response_model=BuyResponse,
        responses={
            409: {"description": "Purchase failed", "model": ErrorResponse},
            503: {"description": "Controller not connected", "model": ErrorResponse},
        },
    )
    async def buy(body: BuyRequest, ctl: SyncController = Depends(get_controller)):
        if ctl.binding is None or ctl.state is SyncState.FAILED:
            return _error_json("not_ready", ctl.last_error() or "Controller not connected", 503)
        try:
            receipt = await ctl.buy(body.token_id, body.price)
        except PurchaseError as e:
            return _error_json("purchase_failed", f"Error during purchase: {e.reason}", 409)
        return BuyResponse(token_id=receipt.token_id, tx_hash=receipt.tx_hash, value=str(receipt.value))

    return app


app = create_app()


def run_api(
    host: str = "127.0.0.1",
    port: int = 8000,
    profile: str | None = None,
    config_dir: Path | None = None,
) -> None:
    global _config_profile, _config_dir
    _config_profile = profile
    _config_dir = config_dir
    import uvicorn
    uvicorn.run("nftcatalog.api.main:app", host=host, port=port, reload=False)
