"""Catalog subcommand: show, buy."""

from __future__ import annotations

import asyncio
import json

import typer

from nftcatalog.catalog.purchase import PurchaseExecutor, PurchaseReceipt
from nftcatalog.chain.web3_registry import connect_web3
from nftcatalog.errors import ProviderConnectionError, PurchaseError
from nftcatalog.sync.controller import SyncController

app = typer.Typer(help="Sync and show catalogs, buy listings")


async def _show(settings) -> SyncController:
    controller = SyncController.from_settings(settings)
    try:
        await controller.connect(lambda: connect_web3(settings))
    finally:
        await controller.aclose()
    return controller


@app.command("show")
def show(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print catalogs as JSON"),
) -> None:
    """Connect, run one sync pass, print listed and owned catalogs."""
    settings = ctx.obj["settings"]
    try:
        controller = asyncio.run(_show(settings))
    except ProviderConnectionError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)
    listed = controller.listed_catalog()
    owned = controller.owned_catalog()
    if as_json:
        payload = {
            "listed": [i.model_dump() for i in listed],
            "owned": [i.model_dump() for i in owned],
            "last_error": controller.last_error(),
        }
        typer.echo(json.dumps(payload, indent=2))
        return
    typer.echo("NFT MARKETPLACE")
    for item in listed:
        price = f"{item.price} ETH" if item.price else "Loading..."
        typer.echo(f"  #{item.token_id}  {price}  {item.image_url}")
    typer.echo(f"Listed: {len(listed)}")
    typer.echo("MY NFTs")
    for item in owned:
        typer.echo(f"  #{item.token_id}  {item.image_url}")
    typer.echo(f"Owned: {len(owned)}")
    if controller.last_error():
        typer.echo(f"Last error: {controller.last_error()}", err=True)


async def _buy(settings, token_id: int, price: str) -> PurchaseReceipt:
    binding = await connect_web3(settings)
    executor = PurchaseExecutor(
        binding.marketplace,
        confirmation_timeout_sec=settings.confirmation_timeout_sec,
    )
    return await executor.purchase(token_id, price)


@app.command("buy")
def buy(
    ctx: typer.Context,
    token_id: int = typer.Argument(..., min=0, help="Listed token ID"),
    price: str = typer.Argument(..., help="Listing price in ETH, e.g. 0.05"),
) -> None:
    """Buy a listed token, sending exactly the given price."""
    settings = ctx.obj["settings"]
    try:
        receipt = asyncio.run(_buy(settings, token_id, price))
    except ProviderConnectionError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)
    except PurchaseError as e:
        typer.echo(f"Error during purchase: {e.reason}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Purchase successful! tx={receipt.tx_hash}")
