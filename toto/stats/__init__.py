"""Standings and statistics."""

from .standings import Standing, Summary, bets_by_match, compute_standings, compute_summary, success_rate

__all__ = ["Standing", "Summary", "bets_by_match", "compute_standings", "compute_summary", "success_rate"]
