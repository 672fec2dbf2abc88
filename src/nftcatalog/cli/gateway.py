"""Gateway subcommand: resolve, metadata."""

from __future__ import annotations

import asyncio
import json

import typer

from nftcatalog.gateway import GatewayResolver, MetadataFetcher

app = typer.Typer(help="Resolve content references and fetch metadata through the gateway")


def _resolver(settings) -> GatewayResolver:
    return GatewayResolver(settings.gateway_base_url, settings.native_scheme)


def _fetcher(settings, resolver: GatewayResolver) -> MetadataFetcher:
    return MetadataFetcher(
        resolver,
        timeout=settings.gateway_timeout_sec,
        max_retries=settings.gateway_max_retries,
        retry_base_delay_sec=settings.retry_base_delay_sec,
    )


@app.command("resolve")
def resolve(ctx: typer.Context, ref: str = typer.Argument(..., help="ipfs://<cid> or bare <cid>")) -> None:
    """Print the gateway URL for a content reference."""
    typer.echo(_resolver(ctx.obj["settings"]).resolve(ref))


@app.command("metadata")
def metadata(ctx: typer.Context, ref: str = typer.Argument(..., help="Metadata document reference")) -> None:
    """Fetch a metadata document and print the decoded record."""
    settings = ctx.obj["settings"]
    resolver = _resolver(settings)

    async def _fetch():
        async with _fetcher(settings, resolver) as fetcher:
            return await fetcher.fetch(resolver.resolve(ref))

    result = asyncio.run(_fetch())
    if not result.ok:
        typer.echo(f"Error fetching metadata: {result.error}", err=True)
        raise typer.Exit(1)
    typer.echo(json.dumps(result.record.model_dump(), indent=2))
