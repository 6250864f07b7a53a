"""Toto settlement worker: locks started matches, derives results and scores bets."""

__version__ = "1.0.0"
