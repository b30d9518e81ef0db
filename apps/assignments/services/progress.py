"""
Progress Tracking - monotonic percent and derived time estimates
"""

from typing import Sequence

from ..exceptions import ProgressDecreaseNotAllowed
from .types import AssignmentStatus, NextAction, TimeEstimate

# Matches the decimal_places of the progress columns
PERCENT_PLACES = 2


class ProgressTracker:

    @staticmethod
    def round_percent(percent) -> float:
        return round(float(percent), PERCENT_PLACES)

    @staticmethod
    def ensure_monotonic(current_percent: float, new_percent: float) -> None:
        if new_percent < current_percent:
            raise ProgressDecreaseNotAllowed(current_percent, new_percent)

    @staticmethod
    def compute_time_estimate(estimated_minutes: float, previous_percent: float, new_percent: float) -> TimeEstimate:
        """
        Elapsed time scales with percent complete and is capped at the
        estimate; remaining never goes below zero. Decreases are rejected
        before this runs, so elapsed never shrinks between calls.
        """
        estimated = estimated_minutes or 0
        elapsed = min(estimated, (new_percent / 100) * estimated)
        remaining = max(0, estimated - elapsed)
        return TimeEstimate(
            estimated_minutes=estimated,
            elapsed_minutes=round(elapsed, 2),
            remaining_minutes=round(remaining, 2),
        )

    @staticmethod
    def next_action(status: str, issues_encountered: Sequence[str] = ()) -> str:
        if status == AssignmentStatus.COMPLETED:
            return NextAction.TASK_COMPLETED
        if issues_encountered:
            return NextAction.RESOLVE_ISSUES
        return NextAction.CONTINUE_WORK
