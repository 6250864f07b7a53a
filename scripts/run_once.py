"""Run a single settlement cycle and print what changed."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.table import Table

from config import get_settings
from main import build_client
from toto.api import Credentials
from toto.utils import setup_logging
from toto.worker import SettlementWorker

console = Console()


async def run_once() -> int:
    """Authenticate, run lock -> result -> points once."""
    settings = get_settings()
    setup_logging(settings.log_level)

    missing = settings.missing()
    if missing:
        console.print(f"[red]Error: {', '.join(missing)} not set in .env[/red]")
        return 1

    client = build_client(settings)
    worker = SettlementWorker(
        service=client,
        credentials=Credentials(settings.service_user, settings.service_password),
        interval_s=settings.poll_interval_s,
    )

    try:
        report = await worker.run_cycle()
    finally:
        await client.close()

    if report is None or report.skipped:
        reason = report.skip_reason if report else "another cycle is running"
        console.print(f"[yellow]Cycle skipped: {reason}[/yellow]")
        return 0

    table = Table(title="Settlement Cycle")
    table.add_column("Stage", style="cyan")
    table.add_column("Examined", style="white")
    table.add_column("Updated", style="green")
    table.add_column("Skipped", style="yellow")
    table.add_column("Failed", style="red")
    table.add_column("Time", style="dim")

    for stage in report.stages:
        name = f"{stage.stage} [red](aborted)[/red]" if stage.aborted else stage.stage
        table.add_row(
            name,
            str(stage.examined),
            str(stage.updated),
            str(stage.skipped),
            str(stage.failed),
            f"{stage.elapsed_ms:.0f}ms",
        )

    console.print(table)
    console.print(f"\n[bold]Total updates:[/bold] {report.updated} | [dim]{report.elapsed_ms:.0f}ms[/dim]")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(run_once()))
