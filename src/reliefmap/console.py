"""
Rich-based console utilities for the ReliefMap CLI.

Provides consistent terminal output with:
- ReliefMap logo/branding
- Styled messages (info, success, warning, error)
- Error panels
- Geocoding and proximity search tables
"""

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from reliefmap.core.models import Coordinates, GeoEntity

# Custom theme for ReliefMap
RELIEFMAP_THEME = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "red bold",
        "highlight": "magenta",
        "muted": "dim",
        "brand": "bold red",
        "path": "cyan underline",
        "command": "bold green",
    }
)

console = Console(theme=RELIEFMAP_THEME)

RELIEFMAP_LOGO = r"""
    ____       ___      ____  ___
   / __ \___  / (_)__  / __/ /   |  ____ ___  ____ _____
  / /_/ / _ \/ / / _ \/ /_  / /| | / __ `__ \/ __ `/ __ \
 / _, _/  __/ / /  __/ __/ / ___ |/ / / / / / /_/ / /_/ /
/_/ |_|\___/_/_/\___/_/   /_/  |_/_/ /_/ /_/\__,_/ .___/
                                                /_/
"""

RELIEFMAP_TAGLINE = "Locating help where it is needed"


def print_logo(show_tagline: bool = True, show_version: bool = True) -> None:
    """
    Print the ReliefMap logo with optional tagline and version.

    Used by ``reliefmap --version``.
    """
    from reliefmap import __version__

    logo_text = Text(RELIEFMAP_LOGO, style="bold red")

    if show_tagline:
        logo_text.append(Text(f"\n  {RELIEFMAP_TAGLINE}", style="italic cyan"))

    if show_version:
        logo_text.append(Text(f"\n  v{__version__}", style="dim"))

    console.print(logo_text)


def info(message: str, prefix: str = "info") -> None:
    """Print an info message."""
    console.print(f"[info]{prefix}:[/info] {message}")


def success(message: str, prefix: str = "done") -> None:
    """Print a success message."""
    console.print(f"[success]{prefix}:[/success] {message}")


def warning(message: str, prefix: str = "warning") -> None:
    """Print a warning message."""
    console.print(f"[warning]{prefix}:[/warning] {message}")


def print_key_value(key: str, value: Any, indent: int = 2) -> None:
    spaces = " " * indent
    console.print(f"{spaces}[muted]{key}:[/muted] {value}")


def print_command(command: str) -> None:
    """Print a command that the user can run."""
    console.print(f"  [command]$ {command}[/command]")


def print_error_panel(title: str, message: str, hint: str | None = None) -> None:
    """Print an error in a styled panel."""
    content = f"[error]{message}[/error]"
    if hint:
        content += f"\n\n[dim]Hint: {hint}[/dim]"
    console.print(Panel(content, title=f"[error]{title}[/error]", padding=(1, 2)))


def print_coordinates(location_name: str, coords: Coordinates) -> None:
    """Print a resolved location."""
    console.print(f"\n[brand]{location_name}[/brand]")
    print_key_value("Latitude", coords.lat)
    print_key_value("Longitude", coords.lng)
    print_key_value("Display name", coords.display_name or "[muted]-[/muted]")
    print_key_value("Point", f"[highlight]{coords.point}[/highlight]")


def print_entities_table(
    results: list[tuple[GeoEntity, float]],
    title: str | None = None,
) -> None:
    """
    Print proximity search results.

    Args:
        results: (entity, distance in meters) pairs, already ordered
        title: Optional table title
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold",
        border_style="dim",
        padding=(0, 1),
    )

    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Location")
    table.add_column("Distance", justify="right")
    table.add_column("ID", style="muted")

    for entity, distance_m in results:
        if distance_m >= 1000:
            dist_str = f"{distance_m / 1000:.2f} km"
        else:
            dist_str = f"{distance_m:.0f} m"
        table.add_row(
            entity.name, entity.type, entity.location_name, dist_str, entity.id
        )

    console.print(table)
