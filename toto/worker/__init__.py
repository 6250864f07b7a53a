"""Settlement worker loop."""

from .runner import CycleReport, SettlementWorker

__all__ = ["CycleReport", "SettlementWorker"]
