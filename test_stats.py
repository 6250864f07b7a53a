"""Tests for models, the clock and leaderboard statistics."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from toto.models import Bet, Match, MatchStatus, Outcome
from toto.stats import bets_by_match, compute_standings, compute_summary, success_rate
from toto.utils import Clock


def bet(bet_id, user_id, points=None, match_id="m1", pick="H"):
    return Bet(id=bet_id, match_id=match_id, user_id=user_id, pick=pick, points=points)


def test_match_parsing():
    print("\n=== Testing Match Parsing ===")
    match = Match.model_validate({
        "id": "m1",
        "league": "RPL",
        "tour": 0,
        "home_team": "CSKA",
        "away_team": "Dynamo",
        "starts_at": "2025-08-16 17:00:00.000Z",
        "status": "live",
        "home_score": "",
        "away_score": 0,
        "result": "",
        "odd_home": 0,
        "odd_draw": 3.1,
    })
    assert match.tour is None
    assert match.odd_home is None and match.odd_draw == 3.1
    assert match.starts_at == datetime(2025, 8, 16, 17, 0, tzinfo=timezone.utc)
    assert match.home_score is None and match.away_score == 0
    assert not match.has_scores
    assert match.result is None
    assert match.label == "CSKA - Dynamo"
    print("[OK] Match parsing PASSED")


def test_naive_kickoff_is_utc():
    match = Match(id="m1", status=MatchStatus.UPCOMING, starts_at=datetime(2025, 8, 16, 17, 0))
    assert match.starts_at.tzinfo == timezone.utc
    assert match.starts_at.hour == 17


def test_match_rejects_bad_values():
    for record in (
        {"id": "", "status": "upcoming"},
        {"id": "m1", "status": "postponed"},
        {"id": "m1", "status": "live", "home_score": -1},
        {"id": "m1", "status": "live", "result": "X"},
    ):
        with pytest.raises(ValidationError):
            Match.model_validate(record)


def test_bet_points_parsing():
    assert bet("b1", "u1", points=0).points is None
    assert bet("b1", "u1", points="").points is None
    assert not bet("b1", "u1").is_settled
    assert bet("b1", "u1", points=1).is_settled
    assert bet("b1", "u1", pick="A").pick == Outcome.AWAY
    with pytest.raises(ValidationError):
        Bet(id="b1", match_id="", user_id="u1", pick="H")


def test_clock_offsets():
    print("\n=== Testing Clock ===")
    fixed = datetime(2025, 8, 16, 22, 30, tzinfo=timezone.utc)
    clock = Clock(timedelta(hours=3), source=lambda: fixed)

    assert clock.now().utcoffset() == timedelta(hours=3)
    assert clock.now() == fixed
    assert clock.format(fixed) == "17.08 01:30"
    assert clock.format(datetime(2025, 8, 16, 22, 30)) == "17.08 01:30"
    assert clock.format(None) == ""
    assert Clock().format(fixed) == "16.08 22:30"
    print("[OK] Clock PASSED")


def test_success_rate():
    assert success_rate(0, 0) == 0
    assert success_rate(1, 3) == 33
    assert success_rate(2, 3) == 67
    assert success_rate(3, 3) == 100
    assert success_rate(1, 8) == 13
    assert success_rate(5, 8) == 63
    assert success_rate(1, 200) == 1


def test_standings():
    print("\n=== Testing Standings ===")
    bets = [
        bet("b1", "anna", points=3),
        bet("b2", "anna", points=1),
        bet("b3", "anna"),
        bet("b4", "boris", points=1),
        bet("b5", "boris", points=1),
        bet("b6", "vera", points=3),
        bet("b7", "vera", points=3),
    ]
    table = compute_standings(bets)

    assert [s.user_id for s in table] == ["vera", "anna", "boris"]
    vera, anna, boris = table
    assert (vera.points, vera.guessed, vera.settled, vera.total) == (6, 2, 2, 2)
    assert (anna.points, anna.guessed, anna.settled, anna.total) == (3, 1, 2, 3)
    assert anna.success_rate == 50
    # Incorrect picks count as settled but earn nothing in the table
    assert (boris.points, boris.settled, boris.success_rate) == (0, 2, 0)
    print("[OK] Standings PASSED")


def test_standings_ties_keep_first_seen_order():
    table = compute_standings([bet("b1", "zoe", points=3), bet("b2", "adam", points=3), bet("b3", "eve")])
    assert [s.user_id for s in table] == ["zoe", "adam", "eve"]


def test_standings_ignore_unexpected_points():
    table = compute_standings([bet("b1", "u1", points=2), bet("b2", "u1", points=3)])
    assert (table[0].points, table[0].settled, table[0].total) == (3, 1, 2)


def test_summary():
    matches = [
        Match(id="m1", status=MatchStatus.LIVE),
        Match(id="m2", status=MatchStatus.COMPLETED),
        Match(id="m3", status=MatchStatus.LIVE),
    ]
    bets = [bet("b1", "u1", points=3), bet("b2", "u2", points=1), bet("b3", "u3", points=3), bet("b4", "u4")]
    summary = compute_summary(matches, bets)

    assert (summary.matches, summary.live_matches) == (3, 2)
    assert (summary.total_bets, summary.settled_bets, summary.correct_bets) == (4, 3, 2)
    assert summary.success_rate == 67
    assert compute_summary([], []).success_rate == 0


def test_bets_by_match():
    grouped = bets_by_match([bet("b1", "u1", match_id="m1"), bet("b2", "u2", match_id="m2"), bet("b3", "u3", match_id="m1")])
    assert [b.id for b in grouped["m1"]] == ["b1", "b3"]
    assert [b.id for b in grouped["m2"]] == ["b2"]


if __name__ == "__main__":
    print("=" * 50)
    print("Stats Test Suite")
    print("=" * 50)

    test_match_parsing()
    test_clock_offsets()
    test_standings()

    print("\n" + "=" * 50)
    print("All tests PASSED!")
    print("=" * 50)
