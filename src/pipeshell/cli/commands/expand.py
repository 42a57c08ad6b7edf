"""
Expand Command

Prints the paths a glob matches, one per line, in traversal order.
"""

from pathlib import Path
from typing import Annotated, Optional

import typer

from pipeshell.cli.error_handling import handle_error
from pipeshell.cli.utils import global_options, load_config_from_cli, setup_logging
from pipeshell.core.context import ShellContext
from pipeshell.core.exceptions import PipeShellError
from pipeshell.glob import GlobExpander


def expand_command(
    ctx: typer.Context,
    glob: Annotated[str, typer.Argument(help="Wildcard path expression, e.g. 'src/**'")],
    cwd: Annotated[Optional[Path], typer.Option("--cwd", "-C", help="Directory relative patterns start in")] = None,
):
    """
    Expand a glob against the filesystem.

    [bold]Examples:[/bold]

    • [cyan]pipeshell expand 'src/*'[/cyan]
    • [cyan]pipeshell expand '**' --cwd docs[/cyan]
    """
    options = global_options(ctx)
    app_config = load_config_from_cli(options.get("config_file"), {**options, "cwd": cwd})
    setup_logging(app_config)

    try:
        context = ShellContext.from_config(app_config)
        paths = GlobExpander(context).expand(glob)
    except PipeShellError as e:
        handle_error(e)

    for path in paths:
        typer.echo(str(path))
