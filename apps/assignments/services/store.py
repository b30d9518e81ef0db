"""
Persistence seams for the assignment engine.

The controller only talks to these interfaces. ``DjangoAssignmentStore``
(``django_store``) backs them with the ORM; ``InMemoryAssignmentStore``
(``memory``) backs them with dicts for tests and offline tooling.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, ContextManager, Dict, Iterable, List, Optional, Set

from .types import (
    AssignmentState,
    AssignmentStatus,
    GeofenceRegion,
    IssueTicket,
    LocationLogEntry,
    PhotoUpload,
    ProgressRecord,
    StoredPhoto,
    TaskInfo,
)


class AssignmentStore(ABC):
    """Assignment persistence with optimistic version checks."""

    @abstractmethod
    def find_by_id(self, assignment_id: str) -> Optional[AssignmentState]:
        ...

    @abstractmethod
    def find_many(self, assignment_ids: Iterable[str]) -> List[AssignmentState]:
        ...

    @abstractmethod
    def find_by_worker_and_date(self, worker_id: str, day: date) -> List[AssignmentState]:
        """All of a worker's assignments for one day, ordered by sequence."""

    @abstractmethod
    def find_siblings(self, worker_id: str, project_id: str, day: date) -> List[AssignmentState]:
        """Assignments sharing worker, project and day, ordered by sequence."""

    @abstractmethod
    def existing_task_ids(self, worker_id: str, task_ids: Iterable[str], day: date) -> Set[str]:
        ...

    @abstractmethod
    def insert(self, state: AssignmentState) -> AssignmentState:
        ...

    @abstractmethod
    def update_with_version_check(self, state: AssignmentState, expected_version: int) -> AssignmentState:
        """
        Persist ``state`` only if the stored version still equals
        ``expected_version``. Returns the state with its bumped version;
        raises ``ConcurrencyConflict`` on a stale write.
        """

    @abstractmethod
    def delete(self, assignment_id: str, expected_version: int) -> None:
        ...

    @abstractmethod
    def next_sequence_for(self, worker_id: str, project_id: str, day: date) -> int:
        ...

    @abstractmethod
    def next_id(self) -> str:
        ...

    @abstractmethod
    def append_progress(self, record: ProgressRecord) -> ProgressRecord:
        ...

    @abstractmethod
    def atomic(self) -> ContextManager:
        """Unit of work; every write inside commits or rolls back together."""

    @abstractmethod
    def lock_worker_day(self, worker_id: str, day: date) -> ContextManager:
        """Single-writer section per (worker, day). Only valid inside ``atomic()``."""

    @abstractmethod
    def on_commit(self, callback: Callable[[], None]) -> None:
        ...

    def exists_for(self, worker_id: str, task_id: str, day: date) -> bool:
        return bool(self.existing_task_ids(worker_id, [task_id], day))

    def find_active(self, worker_id: str, day: date) -> Optional[AssignmentState]:
        for state in self.find_by_worker_and_date(worker_id, day):
            if state.status == AssignmentStatus.IN_PROGRESS:
                return state
        return None


class ProjectCatalog(ABC):
    """Read-only view of projects (geofence) and their tasks."""

    @abstractmethod
    def get_region(self, project_id: str) -> Optional[GeofenceRegion]:
        ...

    @abstractmethod
    def find_tasks(self, task_ids: Iterable[str]) -> Dict[str, TaskInfo]:
        ...


class IssueTracker(ABC):
    """Ticket persistence for reported issues."""

    @abstractmethod
    def open_ticket(self, ticket: IssueTicket) -> IssueTicket:
        ...


class PhotoStore(ABC):
    """Photo persistence; the engine only enforces the ceiling and file rules."""

    @abstractmethod
    def count_for(self, assignment_id: str) -> int:
        ...

    @abstractmethod
    def save(self, assignment: AssignmentState, file_name: str, upload: PhotoUpload) -> StoredPhoto:
        ...


class LocationLog(ABC):
    """Append-only audit of worker locations."""

    @abstractmethod
    def record(self, entry: LocationLogEntry) -> None:
        ...
