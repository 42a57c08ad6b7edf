#!/usr/bin/env python3
"""
pipeshell CLI Main Application

Typer-based command-line interface: glob expansion, pipeline execution and
configuration management.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from pipeshell.cli import __version__
from pipeshell.cli.commands import config
from pipeshell.cli.commands.expand import expand_command
from pipeshell.cli.commands.run import run_command

console = Console()

# Create main Typer application
app = typer.Typer(
    name="pipeshell",
    help="Shell-style pipelines of stream filters",
    context_settings={"help_option_names": ["-h", "--help"]},
    rich_markup_mode="rich",
    no_args_is_help=True,
)

app.command("expand")(expand_command)
app.command("run")(run_command)
app.add_typer(config.app, name="config", help="Inspect and create configuration files")


def version_callback(value: bool):
    """Show version information."""
    if value:
        console.print(f"[bold cyan]pipeshell[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def app_callback(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version information and exit"
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file path"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """
    pipeshell - compose stream filters like shell pipes

    [bold]Quick Start:[/bold]

    • Expand a glob: [cyan]pipeshell expand 'src/**'[/cyan]
    • Run a pipeline: [cyan]echo Hallo | pipeshell run 'sed (.) $1$1'[/cyan]
    • Show configuration: [cyan]pipeshell config show[/cyan]
    """
    ctx.obj = {
        "config_file": str(config_file) if config_file else None,
        "verbose": verbose or None,
        "debug": debug or None,
    }


def main():
    """Entry point for the pipeshell console script."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
