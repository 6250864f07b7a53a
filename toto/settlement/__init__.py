"""Settlement rules and stages."""

from .scoring import POINTS_CORRECT, POINTS_INCORRECT, compute_points, derive_result
from .stages import StageResult, run_lock_stage, run_points_stage, run_result_stage

__all__ = [
    "POINTS_CORRECT",
    "POINTS_INCORRECT",
    "compute_points",
    "derive_result",
    "StageResult",
    "run_lock_stage",
    "run_points_stage",
    "run_result_stage",
]
