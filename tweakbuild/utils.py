"""Shared utility functions for tweakbuild.

Provides a writable-directory probe, duration formatting and Rich-based
console output, including a renderer that prints build and install log
entries as they are produced.
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tweakbuild.models import LogEntry, LogLevel

console = Console()

# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def is_writable_dir(path: Path) -> bool:
    """Create *path* if needed and prove it is writable with a probe file."""
    probe = path / ".permcheck"
    try:
        path.mkdir(parents=True, exist_ok=True)
        probe.write_text("ok", encoding="utf-8")
        probe.unlink()
    except OSError:
        return False
    return True


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
        format_duration(3661.0) -> "1h 1m 1s"
    """
    if seconds < 0:
        return "0.0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    if hours > 0 or minutes > 0:
        parts.append(f"{int(secs)}s")
    else:
        parts.append(f"{secs:.1f}s")

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


LEVEL_STYLES: dict[LogLevel, str] = {
    LogLevel.INFO: "blue",
    LogLevel.OUTPUT: "default",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "red",
    LogLevel.SUCCESS: "green",
}

LEVEL_PREFIXES: dict[LogLevel, str] = {
    LogLevel.INFO: "i",
    LogLevel.OUTPUT: ">",
    LogLevel.WARNING: "!",
    LogLevel.ERROR: "x",
    LogLevel.SUCCESS: "+",
}


class ConsoleLogRenderer:
    """Log listener that prints each entry to a Rich console.

    Subscribe an instance to a :class:`~tweakbuild.builder.log.BuildLog`::

        log.subscribe(ConsoleLogRenderer())
    """

    def __init__(self, target: Console | None = None, timestamps: bool = False) -> None:
        self.console = target or console
        self.timestamps = timestamps

    def __call__(self, entry: LogEntry) -> None:
        style = LEVEL_STYLES.get(entry.level, "default")
        prefix = LEVEL_PREFIXES.get(entry.level, " ")
        stamp = ""
        if self.timestamps:
            stamp = f"[dim]{entry.timestamp.strftime('%H:%M:%S')}[/dim] "
        self.console.print(f"{stamp}[{style}]{prefix} {escape(entry.message)}[/{style}]")


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")
