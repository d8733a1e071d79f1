import logging
from typing import Dict, List, Optional
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from svtree.core.models import CurrentState
from svtree.runtime.controller import ActionOutcome

# Create a stderr console for logging
error_console = Console(stderr=True)
data_console = Console()


def configure_logging(level: str = "INFO") -> None:
    """Route svtree loggers to the stderr console."""
    handler = RichHandler(console=error_console, show_path=False, markup=False)
    root = logging.getLogger("svtree")
    root.handlers = [handler]
    root.setLevel(level.upper())
    root.propagate = False


class OutputFormatter:
    """
    Handles output formatting for the CLI.
    System messages go to stderr, data (status tables) to stdout.
    """

    @staticmethod
    def log(message: str, severity: str = "info") -> None:
        """
        Print system messages to stderr with color coding.
        """
        style = "white"
        prefix = "[SVTREE]"

        if severity == "warning":
            style = "yellow"
        elif severity == "error":
            style = "red"
        elif severity == "critical":
            style = "bold red"
        elif severity == "success":
            style = "green"

        error_console.print(f"[{style}]{escape(prefix)} {escape(message)}[/{style}]", highlight=False)

    @staticmethod
    def print_outcome(service: str, outcome: ActionOutcome) -> None:
        if outcome.skipped_reason:
            OutputFormatter.log(f"{service}: {outcome.action} skipped ({outcome.skipped_reason})", severity="info")
            return

        detail = "updated" if outcome.updated else "up to date"
        if outcome.commands:
            detail += f"; sent {', '.join(outcome.commands)}"
        OutputFormatter.log(f"{service}: {outcome.action} {detail}", severity="success")

    @staticmethod
    def print_status(states: Dict[str, Optional[CurrentState]], errors: Dict[str, str]) -> None:
        """
        Prints a table of run-state and enablement per service.
        """
        table = Table(title="Supervised Services", header_style="bold")
        table.add_column("Service", style="bold")
        table.add_column("Running")
        table.add_column("Enabled")
        table.add_column("Env")

        for name, state in states.items():
            if state is None:
                table.add_row(escape(name), "[red]error[/red]", "-", escape(errors.get(name, "")))
                continue
            table.add_row(
                escape(name),
                "[green]yes[/green]" if state.running else "[yellow]no[/yellow]",
                "yes" if state.enabled else "no",
                escape(", ".join(sorted(state.env))) or "-",
            )

        data_console.print(table)

    @staticmethod
    def print_names(names: List[str]) -> None:
        for name in names:
            data_console.print(name, highlight=False)
