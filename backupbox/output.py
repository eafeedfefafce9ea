"""Console output formatting for the BackupBox CLI."""

import json
from typing import Any

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Writes human or JSON output, honouring quiet mode."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine readable JSON instead of text
            quiet: Suppress non-essential output
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console()
        self.err_console = Console(stderr=True)

    def print(self, message: str = "") -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        if not self.json_output:
            self.err_console.print(f"[yellow]{message}[/yellow]")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]{message}[/red]")

    def output_json(self, data: Any) -> None:
        """Print data as JSON regardless of quiet mode."""
        self.console.print_json(json.dumps(data))

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two column summary table.

        Args:
            title: Table title
            items: (label, value) rows
        """
        if self.quiet or self.json_output:
            return
        table = Table(title=title, show_header=False)
        table.add_column("Item", style="bold")
        table.add_column("Value")
        for label, value in items:
            table.add_row(label, value)
        self.console.print(table)
