"""
CLI Error Rendering

Turns PipeShellError instances into a rich panel on standard error and ends
the command with exit status 1.
"""

import typer
from rich.console import Console
from rich.padding import Padding
from rich.panel import Panel
from rich.text import Text

from pipeshell.core.exceptions import ErrorCode, PipeShellError

console = Console(stderr=True)


def _details(err: PipeShellError) -> Text:
    text = Text(err.message)
    context = err.context
    if context.path:
        text.append(f"\nPath: {context.path}", style="dim")
    if context.command:
        text.append(f"\nCommand: {' '.join(context.command)}", style="dim")
    if context.stage_index is not None:
        text.append(f"\nStage: {context.stage_index}", style="dim")
    if err.error_code is not ErrorCode.UNKNOWN_ERROR:
        text.append(f"\nCode: {err.error_code.value} {err.error_code.name}", style="dim")
    return text


def handle_error(err: PipeShellError):
    """Print ``err`` with its recovery suggestions and exit with status 1."""
    console.print()
    console.print(Panel(
        _details(err),
        title=f"[bold red]{type(err).__name__}[/bold red]",
        border_style="red",
        expand=False
    ))

    for number, suggestion in enumerate(err.suggestions, 1):
        line = Text(f"{number}. {suggestion.action}: {suggestion.description}")
        if suggestion.command:
            line.append("\n   Run: ", style="bold")
            line.append(suggestion.command, style="cyan")
        console.print(Padding(line, (0, 1)))

    console.print(Padding(f"Trace ID: [yellow]{err.context.correlation_id}[/yellow]", (1, 0, 0, 0)))
    raise typer.Exit(code=1)
