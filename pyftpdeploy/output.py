"""Console output formatting for the CLI."""

import json
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormatter:
    """Writes human-readable or JSON output through Rich consoles.

    Status messages go to stdout, errors to stderr. In quiet mode only
    errors and explicit JSON/table output are shown.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def print(self, message: str = "") -> None:
        if not self.quiet and not self.json_output:
            self.console.print(escape(message), highlight=False)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(escape(message), highlight=False)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(f"[green]{escape(message)}[/green]", highlight=False)

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}", highlight=False)

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)

    def print_json(self, data: Any) -> None:
        # Plain print: JSON must not be wrapped or styled
        self.console.print(json.dumps(data, indent=2), markup=False, highlight=False, soft_wrap=True)

    def print_table(
        self,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        title: Optional[str] = None,
    ) -> None:
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(str(cell) for cell in row))
        self.console.print(table)
