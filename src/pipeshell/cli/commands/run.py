"""
Run Command

Composes the given stage specifications into a byte pipeline and runs it
from standard input (or a file) to standard output (or a file).
"""

import sys
from pathlib import Path
from typing import Annotated, List, Optional

import typer

from pipeshell.cli.error_handling import handle_error
from pipeshell.cli.utils import err_console, global_options, load_config_from_cli, setup_logging
from pipeshell.commands.factory import CommandFactory
from pipeshell.core.concurrency import StageScope
from pipeshell.core.context import ShellContext
from pipeshell.core.exceptions import PipeShellError
from pipeshell.core.pipeline import BytePipeline


def run_command(
    ctx: typer.Context,
    stages: Annotated[List[str], typer.Argument(help="Stage specifications, e.g. 'sed [aeiou] i' 'wc -l'")],
    reverse: Annotated[bool, typer.Option("--reverse", help="Run the first stage synchronously instead of the last")] = False,
    input_file: Annotated[Optional[Path], typer.Option("--input", "-i", help="Read from FILE instead of standard input")] = None,
    output_file: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write to FILE instead of standard output")] = None,
    encoding: Annotated[Optional[str], typer.Option("--encoding", "-e", help="Text encoding for character stages")] = None,
    cwd: Annotated[Optional[Path], typer.Option("--cwd", "-C", help="Working directory for the stages")] = None,
):
    """
    Run stages as a pipeline.

    Each STAGE is one command line: cat, echo, sed, wc, ls, pwd or exec.

    [bold]Examples:[/bold]

    • [cyan]echo 'Drei Chinesen' | pipeshell run 'sed [aeiou] i' 'wc -l'[/cyan]
    • [cyan]pipeshell run --input notes.txt 'sed -1 foo bar' --output out.txt[/cyan]
    """
    options = global_options(ctx)
    app_config = load_config_from_cli(
        options.get("config_file"),
        {**options, "cwd": cwd, "encoding": encoding}
    )
    setup_logging(app_config)

    try:
        context = ShellContext.from_config(app_config)
        factory = CommandFactory(context, app_config.pipeline)
        pipeline = BytePipeline.from_app_config(
            factory.create_stages(stages),
            app_config,
            reverse=reverse,
            close_source=input_file is not None,
            close_sink=output_file is not None
        )

        source = open(context.resolve(input_file), 'rb') if input_file else sys.stdin.buffer
        try:
            sink = open(context.resolve(output_file), 'wb') if output_file else sys.stdout.buffer
        except OSError:
            if input_file:
                source.close()
            raise

        with StageScope() as scope:
            result = pipeline.execute(source, sink, scope=scope)
        if not output_file:
            sink.flush()
    except PipeShellError as e:
        handle_error(e)
    except OSError as e:
        err_console.print(f"[red]I/O error: {e}[/red]")
        raise typer.Exit(1)

    if result is False:
        raise typer.Exit(1)
