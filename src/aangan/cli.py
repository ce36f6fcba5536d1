"""Typer CLI definition for aangan."""

import asyncio
import logging
from typing import NoReturn

import typer

from .config import AanganConfig, load_config
from .core import WhisperCore
from .errors import AanganError, CacheInstallError

app = typer.Typer(help="Whisper storage, semantic search and offline cache tools")


def configure_logging(debug: bool) -> None:
    """Enable verbose logging to stderr when --debug is passed."""
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )


def open_core(config: AanganConfig) -> WhisperCore:
    """Open the whisper database without loading the embedding model."""
    return WhisperCore(
        config.storage.path,
        dimension=config.embeddings.dimension,
        allowed_emojis=config.reactions.allowed,
    )


def fail(message: str, error: Exception, debug: bool) -> NoReturn:
    """Report an error the way every command does and exit with status 1."""
    if debug:
        typer.echo(f"Debug - {message}: {error!r}", err=True)
    else:
        typer.echo(f"Error: {message}: {error}", err=True)
    raise typer.Exit(1) from None


@app.command("init-db")
def init_db(
    debug: bool = typer.Option(False, "--debug", help="Show verbose logging"),
) -> None:
    """Create the whisper database and schema if missing."""
    configure_logging(debug)
    config = load_config()
    try:
        core = open_core(config)
    except AanganError as e:
        fail("Failed to initialize database", e, debug)
    typer.echo(f"Database ready at {core.database.db_path}")


@app.command()
def serve(
    host: str | None = typer.Option(
        None, "--host", help="Bind address (from config if omitted)"
    ),
    port: int | None = typer.Option(
        None, "-p", "--port", help="Port (from config if omitted)"
    ),
    no_embeddings: bool = typer.Option(
        False, "--no-embeddings", help="Do not generate embeddings for new whispers"
    ),
    debug: bool = typer.Option(False, "--debug", help="Show verbose logging"),
) -> None:
    """Run the HTTP API."""
    configure_logging(debug)
    config = load_config()

    # Imported here so the other commands start without the web stack
    import uvicorn

    from .server import create_app

    try:
        if no_embeddings:
            core = open_core(config)
        else:
            core = WhisperCore.from_config(config)
    except AanganError as e:
        fail("Failed to open database", e, debug)

    uvicorn.run(
        create_app(core),
        host=host or config.http.host,
        port=port or config.http.port,
        log_level="debug" if debug else "info",
    )


@app.command()
def purge(
    debug: bool = typer.Option(False, "--debug", help="Show verbose logging"),
) -> None:
    """Physically delete whispers whose expiry has passed."""
    configure_logging(debug)
    config = load_config()
    try:
        purged = open_core(config).whispers.purge_expired()
    except AanganError as e:
        fail("Failed to purge expired whispers", e, debug)
    typer.echo(f"Purged {purged} expired whispers")


@app.command()
def stats(
    debug: bool = typer.Option(False, "--debug", help="Show verbose logging"),
) -> None:
    """Show whisper and embedding counts."""
    configure_logging(debug)
    config = load_config()
    try:
        data = open_core(config).stats()
    except AanganError as e:
        fail("Failed to read stats", e, debug)

    typer.echo("=== Whisper Store ===")
    typer.echo(f"Database: {config.storage.path}")
    typer.echo(f"Active whispers: {data['active_whispers']}")
    typer.echo(f"Embeddings: {data['embeddings']}")
    typer.echo(f"Dimension: {data['dimension']}")


async def sync_offline_cache(config: AanganConfig) -> str:
    """Install the configured manifest and make it the active generation."""
    from .offline import CacheManifest, GenerationStorage, OfflineCacheCoordinator
    from .offline.network import HttpFetcher

    manifest = CacheManifest(
        name=config.offline.name,
        version=config.offline.version,
        resources=config.offline.resources,
    )
    fetcher = HttpFetcher(config.offline.base_url)
    coordinator = OfflineCacheCoordinator(
        GenerationStorage(config.offline.path), fetcher
    )
    try:
        await coordinator.install(manifest)
        return await coordinator.activate()
    finally:
        await fetcher.aclose()


@app.command("cache-sync")
def cache_sync(
    debug: bool = typer.Option(False, "--debug", help="Show verbose logging"),
) -> None:
    """Pre-cache the configured offline resources and activate them."""
    configure_logging(debug)
    config = load_config()
    try:
        generation = asyncio.run(sync_offline_cache(config))
    except CacheInstallError as e:
        fail(f"Install of {e.generation} failed", e, debug)
    except (AanganError, ValueError) as e:
        fail("Failed to sync offline cache", e, debug)
    typer.echo(f"Active cache generation: {generation}")
