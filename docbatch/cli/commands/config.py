"""Config command for configuration management."""

import typer
from rich.console import Console
from rich.table import Table

from docbatch.config import get_settings
from docbatch.config.constants import get_config_locations

# Create config sub-app
config_app = typer.Typer(help="Configuration management.")
console = Console()


@config_app.command("show")
def show() -> None:
    """Show current configuration."""
    settings = get_settings()

    console.print("\n[bold blue]Current Configuration[/bold blue]\n")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    # Global settings
    table.add_row("Log Level", settings.log_level)
    table.add_row("Log Directory", settings.log_dir)

    # Batch settings
    table.add_row("Concurrency Limit", str(settings.batch.concurrency_limit))
    table.add_row("Resource Ceiling (MB)", f"{settings.batch.resource_ceiling_mb:g}")

    # Recovery settings
    table.add_row("Max Attempts", str(settings.recovery.max_attempts))
    table.add_row("Retry Base Delay (s)", f"{settings.recovery.retry_base_delay:g}")

    # Processing defaults
    table.add_row("Output Format", settings.processing.output_format)
    table.add_row("Cleanup Level", settings.processing.cleanup_level)
    table.add_row("Preserve Images", str(settings.processing.preserve_images))
    table.add_row("Include Metadata", str(settings.processing.include_metadata))

    console.print(table)
    console.print()


@config_app.command("locations")
def locations() -> None:
    """Show configuration file search locations."""
    console.print("\n[bold blue]Configuration File Locations[/bold blue]\n")

    for i, loc in enumerate(get_config_locations(), 1):
        exists = "[green]exists[/green]" if loc.exists() else "[dim]not found[/dim]"
        console.print(f"  {i}. {loc} ({exists})")

    console.print()
    console.print("[dim]Environment variables with DOCBATCH_ prefix are also supported.[/dim]")
    console.print()
