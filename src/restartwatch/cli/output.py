"""Rich output formatting for the restartwatch CLI."""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.table import Table

from restartwatch.daemon.types import RestartCycle

# Command modules print through this console.
console = Console()


def format_duration(seconds: float | None) -> str:
    """Format a duration as "5.2s", "3m 12s" or "1h 30m"."""
    if seconds is None:
        return "N/A"
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"


def create_cycles_table(cycles: Sequence[RestartCycle]) -> Table:
    """Table with one row per completed restart cycle."""
    table = Table(title="Restart Cycles")
    table.add_column("Host", style="cyan", no_wrap=True)
    table.add_column("Daemon", style="bold")
    table.add_column("Port", style="dim")
    table.add_column("Baseline", style="green")
    table.add_column("Recovery", style="green")
    for cycle in cycles:
        table.add_row(
            cycle.target.host,
            cycle.target.daemon,
            str(cycle.target.health_port),
            format_duration(cycle.baseline_seconds),
            format_duration(cycle.recovery_seconds),
        )
    return table


def output_error(
    message: str,
    *,
    hints: list[str] | None = None,
) -> None:
    """Print an error in Rich markup, followed by any hints."""
    console.print(f"[red]Error:[/red] {message}")
    if hints:
        console.print()
        console.print("[dim]Hints:[/dim]")
        for hint in hints:
            console.print(f"  - {hint}")
