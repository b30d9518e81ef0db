"""
Sequence Gate - a worker's tasks on a project run in assigned order
"""

from typing import List, Sequence, Tuple

from .store import AssignmentStore
from .types import AssignmentState, AssignmentStatus, BlockingAssignment, SequenceCheck


class SequenceGate:

    def __init__(self, store: AssignmentStore):
        self.store = store

    def validate_sequence(self, assignment: AssignmentState) -> SequenceCheck:
        if assignment.sequence is None:
            return SequenceCheck(can_start=True)

        siblings = self.store.find_siblings(
            assignment.worker_id, assignment.project_id, assignment.date
        )
        blocking = tuple(
            BlockingAssignment(
                id=s.id,
                sequence=s.sequence,
                status=s.status,
                progress_percent=s.progress_percent,
            )
            for s in siblings
            if s.id != assignment.id
            and s.sequence is not None
            and s.sequence < assignment.sequence
            and s.status != AssignmentStatus.COMPLETED
        )
        return SequenceCheck(can_start=not blocking, blocking=blocking)

    @staticmethod
    def resequence(queued: Sequence[AssignmentState], after: int = 0) -> List[Tuple[AssignmentState, int]]:
        """
        Number ``queued`` after+1..after+N in their current order, where
        ``after`` is the highest sequence already held by a started sibling.
        Returns only the assignments whose number changes.
        """
        ordered = sorted(queued, key=lambda s: (s.sequence is None, s.sequence or 0))
        return [
            (state, position)
            for position, state in enumerate(ordered, start=after + 1)
            if state.sequence != position
        ]
