"""
CLI Utilities

Helpers shared by the pipeshell commands.
"""

import logging
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table

from pipeshell.cli.error_handling import handle_error
from pipeshell.core.config import AppConfig, ConfigManager
from pipeshell.core.exceptions import ConfigurationError

console = Console()
err_console = Console(stderr=True)


def global_options(ctx: Optional[typer.Context]) -> Dict[str, Any]:
    """Options given to the top-level ``pipeshell`` command."""
    if ctx is None:
        return {}
    root = ctx.find_root()
    return dict(root.obj or {})


def load_config_from_cli(
    config_file: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None
) -> AppConfig:
    """
    Build the effective configuration for a command.

    Option values in ``cli_args`` win over the file at ``config_file`` (or the
    discovered one). Warnings go to standard error; a ConfigurationError is
    rendered by handle_error, which exits with status 1.
    """
    config_manager = ConfigManager(config_file=config_file)
    try:
        app_config = config_manager.load_config(cli_args=cli_args or {})
    except ConfigurationError as e:
        handle_error(e)

    warnings = config_manager.validate_config(app_config)
    if warnings:
        err_console.print("[yellow]Configuration warnings:[/yellow]")
        for warning in warnings:
            err_console.print(f"  • {warning}")

    return app_config


def setup_logging(config: AppConfig) -> None:
    """Configure the root logger from the logging section of ``config``."""
    logging.basicConfig(
        level=config.get_log_level(),
        format=config.logging.format,
        datefmt=config.logging.date_format,
        force=True
    )


def print_config_summary(config: AppConfig) -> None:
    """Print a formatted summary of the current configuration."""
    table = Table(title="Configuration Summary", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="dim", width=24)
    table.add_column("Value", style="white", width=40)

    pipeline = config.pipeline
    table.add_row("Connector capacity", str(pipeline.connector_capacity))
    table.add_row("Chunk size", str(pipeline.chunk_size))
    table.add_row("Input encoding", pipeline.input_encoding or "platform default")
    table.add_row("Output encoding", pipeline.output_encoding or "platform default")
    table.add_row("Close source", "✓ Yes" if pipeline.close_source else "✗ No")
    table.add_row("Close sink", "✓ Yes" if pipeline.close_sink else "✗ No")
    table.add_row("Stage threads", f"{pipeline.thread_name_prefix}-* "
                                   f"({'daemon' if pipeline.daemon_threads else 'non-daemon'})")
    table.add_row("Working directory", str(config.working_directory or "current directory"))
    table.add_row("Log level", logging.getLevelName(config.get_log_level()))

    console.print(table)
