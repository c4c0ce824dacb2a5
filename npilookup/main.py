"""Main entry point for the npilookup application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Annotated, Any, Awaitable, Callable, Dict, List, Optional

import typer

# --- Core Layer ---
from npilookup.core.client import NpiRegistryClient
from npilookup.core.command_handler import CommandHandler

# --- Domain Layer ---
from npilookup.domain.models.provider import SearchOptions

# --- Infrastructure Layer ---
# Config
from npilookup.infrastructure.config.settings import build_client_config, get_config, load_configuration
# UI
from npilookup.infrastructure.cli.display import ConsoleDisplay
# Monitoring
from npilookup.infrastructure.monitoring.logger_setup import DEFAULT_LOG_FORMAT, parse_log_level, setup_logging

logger = logging.getLogger(__name__)

# --- Dependency Injection Container (Manual) ---

def create_dependencies(
    cache: Optional[bool] = None,
    retries: Optional[int] = None,
    verbose: bool = False,
) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root. CLI flags override loaded settings.
    """
    dependencies: Dict[str, Any] = {}

    # 1. Load Configuration First, then logging based on it
    load_configuration()
    if verbose:
        log_level = logging.DEBUG
    else:
        log_level = parse_log_level(get_config('logging.level', 'WARNING'), default=logging.WARNING)
    setup_logging(
        log_level=log_level,
        log_file=get_config('logging.file'),
        log_format=get_config('logging.format', DEFAULT_LOG_FORMAT),
    )
    logger.info("Configuration and logging initialized.")

    # 2. Instantiate UI first so initialization errors can be shown
    dependencies['ui'] = ConsoleDisplay()

    # 3. Client configuration
    try:
        config = build_client_config(cache_enabled=cache)
        if retries is not None:
            config = replace(config, retry=replace(config.retry, max_retries=retries))
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        dependencies['ui'].display_error(f"Invalid configuration: {e}")
        raise typer.Exit(code=1)

    # 4. Client and command handler
    dependencies['client'] = NpiRegistryClient(config)
    dependencies['command_handler'] = CommandHandler(
        client=dependencies['client'],
        ui=dependencies['ui'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


def _get_dependencies(ctx: typer.Context) -> Dict[str, Any]:
    options = ctx.obj or {}
    if 'dependencies' not in options:
        options['dependencies'] = create_dependencies(
            cache=options.get('cache'),
            retries=options.get('retries'),
            verbose=options.get('verbose', False),
        )
        ctx.obj = options
    return options['dependencies']

# --- Typer App Definition ---
app = typer.Typer(
    name="npilookup",
    help="npilookup: look up healthcare providers in the CMS NPI Registry.",
    add_completion=False,
)

# --- Helper for Running Async Commands ---
def run_command(dependencies: Dict[str, Any], command: Callable[[CommandHandler], Awaitable[bool]]) -> None:
    """Runs one async handler inside the client's lifecycle and sets the exit code."""
    client: NpiRegistryClient = dependencies['client']
    handler: CommandHandler = dependencies['command_handler']

    async def _run() -> bool:
        async with client:
            return await command(handler)

    try:
        succeeded = asyncio.run(_run())
    except Exception as e:
        logger.error(f"Error executing command: {e}", exc_info=True)
        dependencies['ui'].display_error(f"Command execution failed: {e}")
        raise typer.Exit(code=1)
    if not succeeded:
        raise typer.Exit(code=1)

# --- CLI Commands ---

@app.command()
def lookup(
    ctx: typer.Context,
    npi: Annotated[str, typer.Argument(help="10-digit NPI number to look up.")],
):
    """Look up a single provider by NPI number."""
    dependencies = _get_dependencies(ctx)
    run_command(dependencies, lambda handler: handler.handle_lookup(npi))


@app.command()
def search(
    ctx: typer.Context,
    number: Annotated[str, typer.Option("--number", help="Exact NPI number.")] = "",
    first_name: Annotated[str, typer.Option("--first-name", help="Individual's first name.")] = "",
    last_name: Annotated[str, typer.Option("--last-name", help="Individual's last name.")] = "",
    organization_name: Annotated[str, typer.Option("--organization-name", help="Organization name.")] = "",
    taxonomy: Annotated[str, typer.Option("--taxonomy", help="Taxonomy (specialty) description.")] = "",
    enumeration_type: Annotated[str, typer.Option("--enumeration-type", help="NPI-1 (individual) or NPI-2 (organization).")] = "",
    address_purpose: Annotated[str, typer.Option("--address-purpose", help="LOCATION or MAILING.")] = "",
    city: Annotated[str, typer.Option("--city", help="City name.")] = "",
    state: Annotated[str, typer.Option("--state", help="Two-letter state code.")] = "",
    postal_code: Annotated[str, typer.Option("--postal-code", help="5 or 9 digit ZIP code.")] = "",
    country_code: Annotated[str, typer.Option("--country-code", help="Two-letter country code.")] = "",
    limit: Annotated[int, typer.Option("--limit", min=0, help="Max results (default 10, max 200).")] = 0,
    skip: Annotated[int, typer.Option("--skip", min=0, help="Results to skip, for paging.")] = 0,
):
    """Search providers by name, specialty and location."""
    options = SearchOptions(
        number=number,
        enumeration_type=enumeration_type,
        first_name=first_name,
        last_name=last_name,
        organization_name=organization_name,
        taxonomy_description=taxonomy,
        address_purpose=address_purpose,
        city=city,
        state=state.upper(),
        postal_code=postal_code,
        country_code=country_code.upper(),
        limit=limit,
        skip=skip,
    )
    dependencies = _get_dependencies(ctx)
    run_command(dependencies, lambda handler: handler.handle_search(options))


@app.command()
def batch(
    ctx: typer.Context,
    npis: Annotated[List[str], typer.Argument(help="NPI numbers to fetch concurrently.")],
):
    """Fetch several providers concurrently, reporting partial failures."""
    dependencies = _get_dependencies(ctx)
    run_command(dependencies, lambda handler: handler.handle_batch(npis))


@app.callback()
def main_callback(
    ctx: typer.Context,
    cache: Annotated[
        Optional[bool],
        typer.Option("--cache/--no-cache", help="Enable the in-memory TTL cache (overrides config).")
    ] = None,
    retries: Annotated[
        Optional[int],
        typer.Option("--retries", min=0, help="Maximum retries for transient failures (overrides config).")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """Global options shared by every command."""
    ctx.obj = {'cache': cache, 'retries': retries, 'verbose': verbose}

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()

if __name__ == "__main__":
    cli_entry_point()
