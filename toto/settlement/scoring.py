"""Outcome and points rules."""

from toto.models.schemas import Outcome

# Product policy, not a technical constraint
POINTS_CORRECT = 3
POINTS_INCORRECT = 1


def derive_result(home_score: int, away_score: int) -> Outcome:
    """H if the home side scored more, A if the away side did, D otherwise."""
    if home_score > away_score:
        return Outcome.HOME
    if home_score < away_score:
        return Outcome.AWAY
    return Outcome.DRAW


def compute_points(pick: Outcome, result: Outcome) -> int:
    return POINTS_CORRECT if pick == result else POINTS_INCORRECT
