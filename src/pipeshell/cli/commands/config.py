"""
Config Command

Shows the effective configuration and writes example configuration files.
"""

from pathlib import Path
from typing import Annotated

import typer

from pipeshell.cli.utils import console, global_options, load_config_from_cli, print_config_summary
from pipeshell.core.config import ConfigManager

app = typer.Typer(
    name="config",
    help="Inspect and create configuration files",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

PROFILES = ("default", "utf8", "debug")


@app.command("show")
def show_config(ctx: typer.Context):
    """Show the configuration after merging files, environment and options."""
    options = global_options(ctx)
    app_config = load_config_from_cli(options.get("config_file"), options)
    print_config_summary(app_config)


@app.command("init")
def init_config(
    path: Annotated[Path, typer.Argument(help="Configuration file to create")],
    profile: Annotated[str, typer.Option("--profile", "-p", help="Profile: default, utf8 or debug")] = "default",
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite an existing file")] = False,
):
    """Write an example configuration file."""
    if profile not in PROFILES:
        raise typer.BadParameter(f"Unknown profile '{profile}'. Choose from: {', '.join(PROFILES)}")
    if path.exists() and not force:
        console.print(f"[red]{path} already exists; use --force to overwrite it[/red]")
        raise typer.Exit(1)

    ConfigManager().create_example_config(path, profile)
    console.print(f"[green]Created {profile} configuration at {path}[/green]")
