"""CLI for the stock fetch pipeline."""
from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from .catalogue import CatalogueStore
from .config import Settings
from .errors import FetchPipelineError
from .providers import PROVIDERS
from .resources import ResourceStore
from .runner import FetchOptions, RunResult
from .service import FetchService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ],
)

LOGGER = logging.getLogger(__name__)


@click.group()
def cli():
    """Stock fetch CLI."""
    pass


@cli.command("init-db")
def init_db() -> None:
    """Create the stocks and resources tables."""
    dsn = Settings.from_env().require_dsn()
    CatalogueStore(dsn).ensure_schema()
    ResourceStore(dsn).ensure_schema()
    click.echo("✓ Database schema ready")


@cli.command()
@click.argument("provider", type=click.Choice(sorted(PROVIDERS), case_sensitive=False))
@click.option("--ticker", default=None, help="Fetch only this stock")
@click.option("--no-skip", is_flag=True, help="Fetch stocks even if they were fetched recently")
@click.option("--clear", is_flag=True, help="Clear fields that cannot be extracted")
@click.option("--concurrency", default=1, type=int, help="Number of parallel browser sessions")
def fetch(provider: str, ticker: Optional[str], no_skip: bool, clear: bool, concurrency: int) -> None:
    """Fetch data for all stocks (or one) from PROVIDER."""
    service = FetchService.from_settings()
    options = FetchOptions(
        ticker=ticker,
        no_skip=True if no_skip else None,
        clear=clear,
        concurrency=concurrency,
    )
    try:
        result = service.fetch(provider, options)
    except FetchPipelineError as exc:
        click.echo(f"✗ {exc}", err=True)
        sys.exit(1)
    _print_result(result)


@cli.command()
def cycle() -> None:
    """Run all providers once, in dependency order."""
    service = FetchService.from_settings()
    results = service.scheduler().run_cycle()
    for name, outcome in results.items():
        if isinstance(outcome, RunResult):
            _print_result(outcome)
        else:
            click.echo(f"✗ {name}: {outcome}")


@cli.command()
@click.option("--cron", default=None, help="Cron expression (default: AUTO_FETCH_SCHEDULE)")
def schedule(cron: Optional[str]) -> None:
    """Serve the fetch cycle on a cron schedule."""
    from .flows import serve_schedule

    serve_schedule(cron)


@cli.command("purge-resources")
def purge_resources() -> None:
    """Delete expired screenshots."""
    purged = FetchService.from_settings().purge_resources()
    click.echo(f"Purged {purged} expired resources")


@cli.command()
def providers() -> None:
    """List the available data providers."""
    for provider in PROVIDERS.values():
        click.echo(
            f"{provider.name:<15} {provider.display_name:<15} id={provider.id_field:<18} "
            f"staleness={provider.staleness}"
        )


@cli.command()
@click.option("--host", default="0.0.0.0")
@click.option("--port", default=8000, type=int)
def serve(host: str, port: int) -> None:
    """Run the HTTP trigger API."""
    import uvicorn

    uvicorn.run("stockfetch.api.main:app", host=host, port=port)


def _print_result(result: RunResult) -> None:
    click.echo(result.summary())
    for stock in result.failed:
        click.echo(f"  ✗ {stock.ticker}")
    for error in result.errors:
        click.echo(f"  ! {error}")


if __name__ == "__main__":
    cli()
