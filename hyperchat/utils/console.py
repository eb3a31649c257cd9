"""
Rich console utilities for dual-mode CLI output.

Provides readable terminal output for humans and structured JSON for
scripts. All output functions adapt to the global output_mode setting.

This module provides:
- OutputMode: Class to manage output format (text/json) and quiet mode
- Context manager: spinner()
- Output functions: success(), error(), warning(), info()
- Display functions: print_banner(), print_service_table(),
  print_session_table()

Human Mode (--format text):
    - Rich spinner and colored tables
    - ANSI colors and Unicode symbols

Agent Mode (--format json):
    - Structured JSON output to stdout
    - No ANSI codes or spinners

Examples:
    >>> from hyperchat.utils.console import output_mode, spinner, success
    >>> with spinner("Warming up sessions..."):
    ...     await orchestrator.wait_until_ready()
    >>> success("All sessions ready")
"""

from __future__ import annotations

import json
import sys
from collections.abc import Mapping, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from hyperchat.config.schema import ServiceDescriptor
    from hyperchat.favicons import Favicon


class OutputMode:
    """
    Output mode configuration for dual-mode CLI.

    Attributes:
        format: Output format, "text" (human) or "json" (agent)
        quiet: If True, suppress non-essential output
    """

    def __init__(self, format_type: str = "text", quiet: bool = False):
        """
        Initialize output mode.

        Raises:
            ValueError: If format_type is not "text" or "json"
        """
        if format_type not in ["text", "json"]:
            raise ValueError(f"Invalid format: {format_type}. Must be 'text' or 'json'")

        self.format = format_type
        self.quiet = quiet
        self._json_buffer: dict[str, Any] = {}

    def is_human(self) -> bool:
        return self.format == "text"

    def is_agent(self) -> bool:
        return self.format == "json"

    def add_json(self, key: str, value: Any) -> None:
        """Add a key-value pair to the JSON buffer (agent mode)."""
        self._json_buffer[key] = value

    def flush_json(self) -> None:
        """
        Output buffered JSON to stdout and clear the buffer.

        No-op in human mode.
        """
        if self.is_agent() and self._json_buffer:
            json.dump(self._json_buffer, sys.stdout, indent=2, default=str)
            sys.stdout.write("\n")
            sys.stdout.flush()
            self._json_buffer.clear()


# Global output mode instance (set by CLI flags)
output_mode = OutputMode()

# Global Rich console instances for human mode
console = Console()  # stdout
console_err = Console(stderr=True)  # stderr

STATE_STYLES = {
    "ready": "[green]ready[/green]",
    "initializing": "[yellow]initializing[/yellow]",
    "failed": "[red]failed[/red]",
}


@contextmanager
def spinner(message: str):
    """
    Show a spinner while the block runs (human mode only).

    Examples:
        >>> with spinner("Launching browser..."):
        ...     await pool.start()
    """
    if output_mode.is_human() and not output_mode.quiet:
        with console.status(f"[bold blue]{message}", spinner="dots") as status:
            yield status
    else:
        yield None


def success(message: str) -> None:
    if output_mode.is_human():
        console.print(f"[green]✓[/green] {message}")
    elif output_mode.is_agent():
        output_mode.add_json("status", "success")
        output_mode.add_json("message", message)


def error(message: str) -> None:
    """Print an error to stderr (human) or buffer it (agent)."""
    if output_mode.is_human():
        console_err.print(f"[red]✗[/red] {message}", style="red")
    elif output_mode.is_agent():
        output_mode.add_json("status", "error")
        output_mode.add_json("error", message)


def warning(message: str) -> None:
    if output_mode.is_human():
        console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")
    elif output_mode.is_agent():
        output_mode.add_json("warning", message)


def info(message: str) -> None:
    """Print an informational line; silent for agents and in quiet mode."""
    if output_mode.is_human() and not output_mode.quiet:
        console.print(f"[blue]ℹ[/blue] {message}")


def print_banner(version: str) -> None:
    if not output_mode.is_human() or output_mode.quiet:
        return
    console.print(
        Panel.fit(
            f"[bold cyan]Hyperchat[/bold cyan] [dim]v{version}[/dim]\n"
            "One prompt, every assistant, side by side",
            border_style="cyan",
        )
    )


def print_service_table(
    services: Sequence[ServiceDescriptor],
    favicons: Mapping[str, Favicon | None] | None = None,
) -> None:
    """
    Print configured services in column order.

    Human mode: Rich table (with a favicon column when favicons were fetched)
    Agent mode: Buffer the service list as JSON
    Quiet mode: One tab-separated line per service

    Args:
        services: Service descriptors
        favicons: Optional mapping of service id to fetched favicon
    """
    rows = []
    for service in services:
        row = {
            "id": service.id,
            "name": service.name,
            "order": service.order,
            "strategy": service.strategy,
            "enabled": service.enabled,
            "home_url": service.home_url,
        }
        if favicons is not None:
            favicon = favicons.get(service.id)
            row["favicon"] = favicon.url if favicon else None
        rows.append(row)

    if output_mode.is_agent():
        output_mode.add_json("services", rows)
        return

    if output_mode.quiet:
        for row in rows:
            print(f"{row['order']}\t{row['id']}\t{row['strategy']}\t{row['enabled']}")
        return

    table = Table(title="Services", box=box.ROUNDED)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Service", style="cyan", no_wrap=True)
    table.add_column("Strategy", style="magenta")
    table.add_column("Enabled", justify="center")
    table.add_column("Home", style="dim")
    if favicons is not None:
        table.add_column("Favicon", style="dim")

    for row in rows:
        cells = [
            str(row["order"]),
            f"{row['name']} ({row['id']})",
            row["strategy"],
            "[green]✓[/green]" if row["enabled"] else "[dim]-[/dim]",
            row["home_url"],
        ]
        if favicons is not None:
            cells.append(row["favicon"] or "[red]none[/red]")
        table.add_row(*cells)

    console.print(table)


def print_session_table(statuses: Sequence[dict[str, Any]]) -> None:
    """
    Print per-session status after a dispatch.

    Expected dict keys (Session.status()): service_id, name, state,
    strategy, submitted, error.
    """
    if output_mode.is_agent():
        output_mode.add_json("sessions", list(statuses))
        return

    if output_mode.quiet:
        for status in statuses:
            print(f"{status['service_id']}\t{status['state']}\t{status['submitted']}")
        return

    table = Table(title="Sessions", box=box.ROUNDED)
    table.add_column("Service", style="cyan", no_wrap=True)
    table.add_column("Strategy", style="magenta")
    table.add_column("State", justify="center")
    table.add_column("Submitted", justify="center")
    table.add_column("Error", style="red")

    for status in statuses:
        submitted = status.get("submitted")
        if submitted is None:
            submitted_cell = "[dim]-[/dim]"
        elif submitted:
            submitted_cell = "[green]✓[/green]"
        else:
            submitted_cell = "[red]✗[/red]"

        table.add_row(
            status.get("name") or status["service_id"],
            status.get("strategy", ""),
            STATE_STYLES.get(status["state"], status["state"]),
            submitted_cell,
            status.get("error") or "",
        )

    console.print(table)
