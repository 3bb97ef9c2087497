"""Main CLI application using Typer."""

from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console

from docbatch import __version__
from docbatch.cli.commands.config import config_app
from docbatch.cli.commands.run import run

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="docbatch",
    help="Concurrent document conversion batches with failure recovery.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

# Register commands
app.command(name="run", help="Convert a batch of documents.")(run)
app.add_typer(config_app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]docbatch[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """docbatch - concurrent document conversion batches.

    Runs parse and clean stages supplied by a pipeline over many documents,
    with bounded concurrency, automatic recovery, and progress reporting.
    """
    pass


if __name__ == "__main__":
    app()
