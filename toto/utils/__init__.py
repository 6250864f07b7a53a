"""Utility functions."""

from .clock import Clock, utc_now
from .log import setup_logging

__all__ = ["Clock", "utc_now", "setup_logging"]
