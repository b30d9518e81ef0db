"""
Dependency Resolution - every prerequisite assignment must be completed
"""

from typing import Iterable

from .store import AssignmentStore
from .types import AssignmentStatus, DependencyCheck, IncompleteDependency


class DependencyResolver:

    def __init__(self, store: AssignmentStore):
        self.store = store

    def check_dependencies(self, assignment_ids: Iterable[str]) -> DependencyCheck:
        """
        Report missing and unfinished prerequisites.

        Blank ids are ignored and duplicates collapse; an empty list passes.
        Missing ids are reported in the order they were listed.
        """
        ids = []
        for assignment_id in assignment_ids or ():
            assignment_id = str(assignment_id).strip() if assignment_id is not None else ''
            if assignment_id and assignment_id not in ids:
                ids.append(assignment_id)

        if not ids:
            return DependencyCheck(can_start=True)

        found = {state.id: state for state in self.store.find_many(ids)}
        missing = tuple(i for i in ids if i not in found)
        incomplete = tuple(
            IncompleteDependency(
                id=found[i].id,
                status=found[i].status,
                progress_percent=found[i].progress_percent,
            )
            for i in ids
            if i in found and found[i].status != AssignmentStatus.COMPLETED
        )

        return DependencyCheck(
            can_start=not missing and not incomplete,
            missing_ids=missing,
            incomplete=incomplete,
        )
