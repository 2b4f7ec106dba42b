# manage.py

# Load .env before settings are read
from dotenv import load_dotenv
load_dotenv()

import asyncio
import json
from typing import Optional

import typer
import uvicorn
from typing_extensions import Annotated

# Typer CLI for database setup, the dev server and one-off sync jobs
cli = typer.Typer(
    help="Management CLI for the Prokip bridge."
)


def _echo_result(result) -> None:
    typer.echo(json.dumps(result, indent=2, default=str))


async def _with_registry(job):
    """Run `job(registry)` inside a fresh database session."""
    from prokip_bridge.config import settings
    from prokip_bridge.database import AsyncSessionLocal
    from prokip_bridge.services import create_service_registry

    async with AsyncSessionLocal() as session:
        registry = create_service_registry(session, settings.model_dump())
        return await job(registry)


def _run_job(job, every: int = 0) -> None:
    """Run a job once, or every `every` seconds until interrupted."""
    from prokip_bridge import setup_logging
    from prokip_bridge.services.exceptions import BridgeException

    async def main():
        while True:
            _echo_result(await _with_registry(job))
            if every <= 0:
                return
            await asyncio.sleep(every)

    setup_logging()
    try:
        asyncio.run(main())
    except BridgeException as e:
        typer.secho(f"Failed: {e.message}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


# --- Database Commands ---

@cli.command()
def init_db():
    """
    Create all tables from the SQLAlchemy models.
    """
    from prokip_bridge.database import Base, async_engine
    from prokip_bridge import models  # noqa: F401  registers the tables on Base.metadata

    async def create_tables():
        async with async_engine.begin() as conn:
            typer.echo("Creating tables...")
            await conn.run_sync(Base.metadata.create_all)
        typer.secho("Database initialised.", fg=typer.colors.GREEN)

    asyncio.run(create_tables())


# --- Sync Commands ---

@cli.command()
def sync(
    user_id: Annotated[int, typer.Option(help="Owner of the connections to sync.")] = 1,
    connection_id: Annotated[Optional[int], typer.Option(help="Sync a single connection.")] = None,
    lookback_days: Annotated[Optional[int], typer.Option(help="Override SYNC_LOOKBACK_DAYS.")] = None
):
    """
    Run the bidirectional WooCommerce <-> Prokip order sync.
    """
    async def job(registry):
        return await registry.order_sync_service.sync_woocommerce(
            user_id, connection_id=connection_id, lookback_days=lookback_days
        )

    _run_job(job)


@cli.command()
def poll_stock(
    user_id: Annotated[int, typer.Option(help="Owner of the connections to update.")] = 1,
    every: Annotated[int, typer.Option(help="Repeat every N seconds; 0 runs once.")] = 0
):
    """
    Push Prokip stock changes to the connected stores.
    """
    async def job(registry):
        return await registry.inventory_sync_service.poll_prokip_stock(user_id)

    _run_job(job, every=every)


@cli.command()
def recover_errors(
    user_id: Annotated[Optional[int], typer.Option(help="Only this user's errors.")] = None,
    error_id: Annotated[Optional[int], typer.Option(help="Recover a single error.")] = None
):
    """
    Retry unresolved sync errors.
    """
    async def job(registry):
        return await registry.error_recovery_service.recover(user_id, error_id)

    _run_job(job)


# --- Server Commands ---

@cli.command()
def run(
    host: str = "127.0.0.1",
    port: int = 8000,
    reload: bool = True
):
    """
    Start the Uvicorn development server.
    """
    typer.echo(f"Serving on http://{host}:{port}")
    uvicorn.run("main:app", host=host, port=port, reload=reload, factory=True)


if __name__ == "__main__":
    cli()
