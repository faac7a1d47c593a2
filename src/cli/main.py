"""CLI entry point for the similar products service.

Runs the HTTP API or resolves a single product from the command line.
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from src.cli.output import JSONOutputFormatter
from src.models.config import ConfigManager, ServiceConfig
from src.models.data_models import ProductDetail
from src.service.factory import build_service, create_http_client


console = Console()


def _load_config(
    config: Path,
    request_timeout: Optional[float],
    parallelism_factor: Optional[int],
    filter_unavailable: Optional[bool],
    log_level: Optional[str],
) -> ServiceConfig:
    cli_overrides = {
        "request_timeout": request_timeout,
        "parallelism_factor": parallelism_factor,
        "filter_unavailable": filter_unavailable,
        "log_level": log_level.upper() if log_level else None,
    }
    return ConfigManager(config).load_config(cli_overrides)


config_option = click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    default="config/config.yaml",
    help="Path to configuration YAML file",
)
timeout_option = click.option(
    "--timeout",
    "-t",
    "request_timeout",
    type=float,
    help="Per-call upstream deadline in seconds (overrides config)",
)
parallelism_option = click.option(
    "--parallelism",
    "-p",
    "parallelism_factor",
    type=int,
    help="Concurrent detail lookups per CPU (overrides config)",
)
filter_option = click.option(
    "--only-available/--include-unavailable",
    "filter_unavailable",
    default=None,
    help="Drop products whose availability is false (overrides config)",
)
log_level_option = click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (overrides config)",
)


@click.group()
@click.version_option(version="1.0.0", prog_name="similar-products")
def main() -> None:
    """
    Similar Products - resilient aggregation over the product upstreams.

    Examples:

        # Serve the API on the configured port
        $ python -m src.cli.main serve

        # Resolve similar products for product 1
        $ python -m src.cli.main similar 1 --json
    """


@main.command()
@config_option
@timeout_option
@parallelism_option
@filter_option
@log_level_option
@click.option("--host", type=str, help="Bind address (overrides config)")
@click.option("--port", type=int, help="Bind port (overrides config)")
def serve(
    config: Path,
    request_timeout: Optional[float],
    parallelism_factor: Optional[int],
    filter_unavailable: Optional[bool],
    log_level: Optional[str],
    host: Optional[str],
    port: Optional[int],
) -> None:
    """Run the HTTP API under uvicorn."""
    import uvicorn

    from src.api.app import create_app

    try:
        service_config = _load_config(
            config, request_timeout, parallelism_factor, filter_unavailable, log_level
        )
    except ValueError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(2)

    uvicorn.run(
        create_app(service_config),
        host=host or service_config.host,
        port=port or service_config.port,
        log_level=service_config.log_level.lower(),
    )


@main.command()
@click.argument("product_id")
@config_option
@timeout_option
@parallelism_option
@filter_option
@log_level_option
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON array")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Also save the JSON array to this file",
)
def similar(
    product_id: str,
    config: Path,
    request_timeout: Optional[float],
    parallelism_factor: Optional[int],
    filter_unavailable: Optional[bool],
    log_level: Optional[str],
    as_json: bool,
    output: Optional[Path],
) -> None:
    """Resolve the products similar to PRODUCT_ID."""
    try:
        service_config = _load_config(
            config, request_timeout, parallelism_factor, filter_unavailable, log_level
        )
        products = asyncio.run(_resolve(service_config, product_id))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)  # Standard exit code for SIGINT
    except ValueError as e:
        # Invalid configuration or product id
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(2)

    formatter = JSONOutputFormatter()
    if output:
        formatter.save(products, str(output))

    if as_json:
        click.echo(formatter.dumps(products))
    else:
        _display_products(product_id, products)


async def _resolve(config: ServiceConfig, product_id: str) -> List[ProductDetail]:
    async with create_http_client(config) as http_client:
        components = build_service(config, http_client)
        return await components.service.get_similar_products(product_id)


def _display_products(product_id: str, products: List[ProductDetail]) -> None:
    """Display products as a rich table."""
    if not products:
        console.print(f"No similar products found for [bold]{product_id}[/bold]")
        return

    table = Table(title=f"Products similar to {product_id}")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Price", justify="right", style="magenta")
    table.add_column("Available", justify="center", style="yellow")

    for product in products:
        price = f"{product.price:.2f}" if product.price is not None else "N/A"
        table.add_row(product.id, product.name, price, "yes" if product.availability else "no")

    console.print(table)


if __name__ == "__main__":
    main()
