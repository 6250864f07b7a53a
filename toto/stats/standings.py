"""Leaderboard and summary statistics over settled bets."""

from collections import defaultdict
from dataclasses import dataclass

from toto.models.schemas import Bet, Match, MatchStatus
from toto.settlement.scoring import POINTS_CORRECT, POINTS_INCORRECT

SETTLED_POINTS = (POINTS_CORRECT, POINTS_INCORRECT)


def success_rate(guessed: int, settled: int) -> int:
    """Rounded percentage of correct picks among settled ones."""
    # Halves round up
    return int(guessed * 100 / settled + 0.5) if settled > 0 else 0


@dataclass
class Standing:
    """One user's line in the leaderboard."""
    user_id: str
    points: int = 0    # only correct picks count towards the table
    guessed: int = 0
    settled: int = 0
    total: int = 0

    @property
    def success_rate(self) -> int:
        return success_rate(self.guessed, self.settled)


@dataclass
class Summary:
    """Totals for the report header."""
    matches: int = 0
    live_matches: int = 0
    total_bets: int = 0
    settled_bets: int = 0
    correct_bets: int = 0

    @property
    def success_rate(self) -> int:
        return success_rate(self.correct_bets, self.settled_bets)


def compute_standings(bets: list[Bet]) -> list[Standing]:
    """Aggregate bets per user, best first. Ties keep first-seen order."""
    table: dict[str, Standing] = {}
    for bet in bets:
        row = table.setdefault(bet.user_id, Standing(user_id=bet.user_id))
        row.total += 1
        if bet.points in SETTLED_POINTS:
            row.settled += 1
        if bet.points == POINTS_CORRECT:
            row.guessed += 1
            row.points += bet.points

    return sorted(table.values(), key=lambda s: s.points, reverse=True)


def compute_summary(matches: list[Match], bets: list[Bet]) -> Summary:
    settled = [b for b in bets if b.points in SETTLED_POINTS]
    return Summary(
        matches=len(matches),
        live_matches=sum(1 for m in matches if m.status == MatchStatus.LIVE),
        total_bets=len(bets),
        settled_bets=len(settled),
        correct_bets=sum(1 for b in settled if b.points == POINTS_CORRECT),
    )


def bets_by_match(bets: list[Bet]) -> dict[str, list[Bet]]:
    grouped: dict[str, list[Bet]] = defaultdict(list)
    for bet in bets:
        grouped[bet.match_id].append(bet)
    return dict(grouped)
