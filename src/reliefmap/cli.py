import logging
from pathlib import Path
from typing import Annotated

import typer

from reliefmap.api import ReliefMap
from reliefmap.config import (
    DEFAULT_PORT,
    ReliefMapConfig,
    load_env_file,
    logger,
    setup_logging,
)
from reliefmap.console import (
    console,
    info,
    print_command,
    print_coordinates,
    print_entities_table,
    print_error_panel,
    print_logo,
    success,
    warning,
)
from reliefmap.core.exceptions import (
    InvalidInputError,
    ReliefMapError,
    ResolutionNotFound,
)
from reliefmap.core.models import EntityKind

app = typer.Typer(
    name="reliefmap",
    help="ReliefMap CLI: resolve places, search nearby resources and run the API.",
    add_completion=False,
    rich_markup_mode="markdown",
)


def version_callback(value: bool):
    if value:
        print_logo(show_tagline=True, show_version=True)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show CLI version.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-V",
            help="Enable DEBUG level logging for reliefmap components.",
        ),
    ] = False,
):
    """
    Main callback for the ReliefMap CLI. Sets logging level.
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO)
    if verbose:
        logger.debug("Verbose mode enabled via CLI flag.")


def _core() -> ReliefMap:
    return ReliefMap.from_config(ReliefMapConfig.from_env())


def _fail(exc: ReliefMapError) -> None:
    if isinstance(exc, ResolutionNotFound):
        hint = "Check the spelling or add a city / country to the name."
    elif isinstance(exc, InvalidInputError):
        hint = "Coordinates are given as 'lat,lng', radius in kilometers."
    else:
        hint = None
    print_error_panel(type(exc).__name__, str(exc), hint=hint)
    raise typer.Exit(code=1)


@app.command("geocode")
def geocode_cmd(
    location_name: Annotated[
        str,
        typer.Argument(help="Place name to resolve, e.g. 'Manhattan, NYC'."),
    ],
):
    """Resolve a place name through the provider chain."""
    core = _core()
    try:
        coords = core.geocode(location_name)
    except ReliefMapError as e:
        _fail(e)
    print_coordinates(location_name, coords)


@app.command("near")
def near_cmd(
    location: Annotated[
        str,
        typer.Argument(
            help="Search center: a place name or 'lat,lng' (e.g. '40.71,-74.00').",
            metavar="LOCATION",
        ),
    ],
    radius_km: Annotated[
        float | None,
        typer.Option("--radius", "-r", help="Search radius in kilometers."),
    ] = None,
    type_filter: Annotated[
        str | None,
        typer.Option("--type", "-t", help="Only entities of this exact type."),
    ] = None,
    disasters: Annotated[
        bool,
        typer.Option("--disasters", help="Search disasters instead of resources."),
    ] = False,
):
    """List resources (or disasters) near a location, nearest first."""
    core = _core()
    kind = EntityKind.DISASTER if disasters else EntityKind.RESOURCE
    try:
        center, results = core.find_near_location(
            location, radius_km=radius_km, type_filter=type_filter, kind=kind
        )
    except ReliefMapError as e:
        _fail(e)

    radius = core.config.default_radius_km if radius_km is None else radius_km
    if not results:
        warning(f"No {kind.value}s within {radius:g} km of {center.point}")
        return
    print_entities_table(
        results, title=f"{len(results)} {kind.value}(s) within {radius:g} km"
    )


@app.command("sweep-cache")
def sweep_cache_cmd():
    """Delete expired geocoding cache entries."""
    core = _core()
    try:
        deleted = core.sweep_cache()
    except ReliefMapError as e:
        _fail(e)
    success(f"Removed {deleted} expired cache entr{'y' if deleted == 1 else 'ies'}")


@app.command("serve")
def serve_cmd(
    host: Annotated[
        str,
        typer.Option("--host", help="Interface to bind."),
    ] = "127.0.0.1",
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help=f"Port to bind (default {DEFAULT_PORT})."),
    ] = None,
    env_file: Annotated[
        Path | None,
        typer.Option("--env-file", help="Load variables from this .env first."),
    ] = None,
):
    """Run the HTTP API (search, CRUD and the live event stream)."""
    import uvicorn

    if env_file is not None and not env_file.is_file():
        warning(f"Env file {env_file} not found, using the current environment")
    env_file = env_file or Path(".env")
    loaded = load_env_file(env_file)
    if loaded:
        info(f"Loaded {loaded} variable(s) from {env_file}")

    config = ReliefMapConfig.from_env()
    port = port or config.port

    console.print(f"\n[brand]ReliefMap API[/brand] on http://{host}:{port}")
    print_command(f"curl http://{host}:{port}/api/health")
    console.print()

    uvicorn.run(
        "reliefmap.server:create_app",
        factory=True,
        host=host,
        port=port,
        log_level="info",
    )


if __name__ == "__main__":
    app()
