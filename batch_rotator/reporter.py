from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from batch_rotator.config import Settings
from batch_rotator.domain.models import RotationReport


def print_report(report: RotationReport, console: Optional[Console] = None) -> None:
    """
    Render a committed rotation as a rich table of active holders.

    An empty active set is shown as a notice rather than an empty table.
    """
    console = console or Console()

    summary = (
        f"normalized={report.normalized_count} "
        f"activated={report.activated_count} "
        f"deactivated={report.deactivated_count} "
        f"in {report.duration_seconds:.3f}s"
    )

    if report.is_empty:
        console.print(
            f"[yellow]Batch {report.target_batch} committed but no active tokens found.[/yellow]"
        )
        console.print(f"[dim]{summary}[/dim]")
        return

    table = Table(
        title=f"Active Tokens - Batch {report.target_batch}",
        box=box.ROUNDED,
        caption=summary,
    )
    table.add_column("#", justify="right", style="blue")
    table.add_column("Username", style="cyan", no_wrap=True)

    for index, username in enumerate(report.active_holders, start=1):
        table.add_row(str(index), username)

    console.print(table)


def print_settings(settings: Settings, console: Optional[Console] = None) -> None:
    """Show effective configuration with the connection string masked."""
    console = console or Console()

    table = Table(title="Batch Rotator Configuration", box=box.ROUNDED)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")

    uri = settings.masked_database_uri if settings.database_uri_configured else settings.database_uri
    rows = [
        ("DATABASE_URI", uri),
        ("DATABASE_NAME", settings.database_name),
        ("TOKENS_COLLECTION", settings.collection_name),
        ("ROTATION_INTERVAL_SECONDS", f"{settings.rotation_interval_seconds:g}"),
        ("ROTATION_CYCLE_SIZE", str(settings.rotation_cycle_size)),
        ("ROTATION_START_BATCH", str(settings.rotation_start_batch or "unset")),
        ("ROTATION_RETRY_ATTEMPTS", str(settings.rotation_retry_attempts)),
        ("LOG_LEVEL", settings.log_level),
    ]
    for name, value in rows:
        table.add_row(name, value)

    console.print(table)


__all__ = ["print_report", "print_settings"]
