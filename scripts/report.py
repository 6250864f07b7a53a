"""Print standings and match statistics from the data service."""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from main import build_client
from toto.api import Credentials, DataServiceError, MatchFilter
from toto.models import MatchStatus
from toto.stats import bets_by_match, compute_standings, compute_summary
from toto.utils import Clock

console = Console()

STATUS_COLORS = {
    MatchStatus.UPCOMING: "green",
    MatchStatus.LIVE: "yellow",
    MatchStatus.COMPLETED: "white",
    MatchStatus.CANCELLED: "red",
}


async def generate_report() -> int:
    """Fetch everything once and display tables."""
    settings = get_settings()
    missing = settings.missing()
    if missing:
        console.print(f"[red]Error: {', '.join(missing)} not set in .env[/red]")
        return 1

    clock = Clock(timedelta(hours=settings.display_utc_offset_hours))
    client = build_client(settings)
    try:
        await client.authenticate(Credentials(settings.service_user, settings.service_password))
        matches = await client.list_matches(MatchFilter(order_by_start=True))
        bets = await client.list_bets()
    except DataServiceError as e:
        console.print(f"[red]Data service error: {e}[/red]")
        return 1
    finally:
        await client.close()

    summary = compute_summary(matches, bets)
    rate_color = "green" if summary.success_rate >= 50 else "red"
    console.print(Panel.fit(
        f"[bold]Matches:[/bold] {summary.matches} ({summary.live_matches} live)\n"
        f"[bold]Bets:[/bold] {summary.total_bets} ({summary.settled_bets} settled)\n"
        f"[bold]Correct:[/bold] {summary.correct_bets}\n"
        f"[bold]Success Rate:[/bold] [{rate_color}]{summary.success_rate}%[/{rate_color}]",
        title="Overview",
        border_style="blue",
    ))

    standings = compute_standings(bets)
    if standings:
        table = Table(title="Standings")
        table.add_column("#", style="dim")
        table.add_column("User", style="cyan")
        table.add_column("Points", style="green")
        table.add_column("Guessed", style="white")
        table.add_column("Settled", style="white")
        table.add_column("All Bets", style="white")
        table.add_column("Success", style="yellow")

        for place, row in enumerate(standings, start=1):
            table.add_row(
                str(place),
                row.user_id,
                str(row.points),
                str(row.guessed),
                str(row.settled),
                str(row.total),
                f"{row.success_rate}%",
            )

        console.print()
        console.print(table)

    if matches:
        grouped = bets_by_match(bets)
        match_table = Table(title=f"Matches (UTC{settings.display_utc_offset_hours:+d})")
        match_table.add_column("Kickoff", style="dim")
        match_table.add_column("League", style="blue")
        match_table.add_column("Tour", style="dim")
        match_table.add_column("Match", style="cyan")
        match_table.add_column("Score", style="white")
        match_table.add_column("Result", style="magenta")
        match_table.add_column("Status", style="white")
        match_table.add_column("Bets", style="white")

        for match in matches:
            color = STATUS_COLORS.get(match.status, "white")
            score = f"{match.home_score}-{match.away_score}" if match.has_scores else "-"
            match_table.add_row(
                clock.format(match.starts_at),
                match.league,
                str(match.tour or ""),
                f"{match.home_team} - {match.away_team}",
                score,
                match.result.value if match.result else "-",
                f"[{color}]{match.status.value.upper()}[/{color}]",
                str(len(grouped.get(match.id, []))),
            )

        console.print()
        console.print(match_table)

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(generate_report()))
