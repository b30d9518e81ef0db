"""
In-memory implementations of the engine's persistence seams.

One re-entrant lock serialises every ``atomic()`` block, and a rollback
restores the snapshot taken on entry.
"""

import itertools
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, List

from ..exceptions import ConcurrencyConflict, ConcurrentActiveTask, NotFoundError
from .store import AssignmentStore, IssueTracker, LocationLog, PhotoStore, ProjectCatalog
from .types import AssignmentStatus, StoredPhoto


class InMemoryAssignmentStore(AssignmentStore):

    def __init__(self):
        self._assignments = {}
        self._progress = []
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._guard = threading.Lock()
        self._day_locks = defaultdict(threading.Lock)
        self._depth = 0
        self._pending = []

    # -- reads ---------------------------------------------------------------

    def find_by_id(self, assignment_id):
        return self._assignments.get(str(assignment_id))

    def find_many(self, assignment_ids):
        found = []
        for assignment_id in assignment_ids:
            state = self._assignments.get(str(assignment_id))
            if state is not None:
                found.append(state)
        return found

    def find_by_worker_and_date(self, worker_id, day):
        return self._sorted(
            s for s in self._assignments.values()
            if s.worker_id == worker_id and s.date == day
        )

    def find_siblings(self, worker_id, project_id, day):
        return self._sorted(
            s for s in self._assignments.values()
            if s.worker_id == worker_id and s.project_id == project_id and s.date == day
        )

    def existing_task_ids(self, worker_id, task_ids, day):
        wanted = set(task_ids)
        return {
            s.task_id for s in self._assignments.values()
            if s.worker_id == worker_id and s.date == day and s.task_id in wanted
        }

    def progress_for(self, assignment_id) -> List:
        return [r for r in self._progress if r.assignment_id == assignment_id]

    # -- writes --------------------------------------------------------------

    def insert(self, state):
        with self._lock:
            if state.id in self._assignments:
                raise ValueError(f"Assignment {state.id} already exists")
            self._assignments[state.id] = state
            return state

    def update_with_version_check(self, state, expected_version):
        with self._lock:
            current = self._assignments.get(state.id)
            if current is None:
                raise NotFoundError('Assignment', state.id)
            if current.version != expected_version:
                raise ConcurrencyConflict(state.id, expected_version, current.version)
            if state.status == AssignmentStatus.IN_PROGRESS:
                # Mirrors the partial unique index on (worker, date) in the database
                for other in self._assignments.values():
                    if (other.id != state.id and other.worker_id == state.worker_id
                            and other.date == state.date
                            and other.status == AssignmentStatus.IN_PROGRESS):
                        raise ConcurrentActiveTask(state.worker_id, state.date, other.id)
            stored = state.evolve(version=expected_version + 1)
            self._assignments[state.id] = stored
            return stored

    def delete(self, assignment_id, expected_version):
        with self._lock:
            current = self._assignments.get(assignment_id)
            if current is None:
                raise NotFoundError('Assignment', assignment_id)
            if current.version != expected_version:
                raise ConcurrencyConflict(assignment_id, expected_version, current.version)
            del self._assignments[assignment_id]

    def next_sequence_for(self, worker_id, project_id, day):
        sequences = [
            s.sequence for s in self.find_siblings(worker_id, project_id, day)
            if s.sequence is not None
        ]
        return max(sequences, default=0) + 1

    def next_id(self):
        return str(next(self._ids))

    def append_progress(self, record):
        with self._lock:
            self._progress.append(record)
            return record

    # -- transactions ----------------------------------------------------------

    @contextmanager
    def atomic(self):
        with self._lock:
            saved = (dict(self._assignments), list(self._progress))
            mark = len(self._pending)
            self._depth += 1
            try:
                yield
            except Exception:
                self._assignments, self._progress = saved
                del self._pending[mark:]
                raise
            finally:
                self._depth -= 1
            if self._depth == 0:
                callbacks, self._pending = self._pending, []
                for callback in callbacks:
                    callback()

    @contextmanager
    def lock_worker_day(self, worker_id, day):
        with self._guard:
            lock = self._day_locks[(worker_id, day)]
        with lock:
            yield

    def on_commit(self, callback):
        if self._depth:
            self._pending.append(callback)
        else:
            callback()

    @staticmethod
    def _sorted(states):
        return sorted(states, key=lambda s: (s.sequence is None, s.sequence or 0, s.id))


class InMemoryProjectCatalog(ProjectCatalog):

    def __init__(self, regions=None, tasks=None):
        self.regions = dict(regions or {})
        self.tasks = {t.id: t for t in (tasks or [])}

    def add_project(self, project_id, region):
        self.regions[project_id] = region

    def add_task(self, task):
        self.tasks[task.id] = task

    def get_region(self, project_id):
        return self.regions.get(project_id)

    def find_tasks(self, task_ids):
        return {t: self.tasks[t] for t in task_ids if t in self.tasks}


class InMemoryIssueTracker(IssueTracker):

    def __init__(self):
        self.tickets = []

    def open_ticket(self, ticket):
        self.tickets.append(ticket)
        return ticket


class InMemoryPhotoStore(PhotoStore):

    def __init__(self):
        self.photos: Dict[str, List[StoredPhoto]] = defaultdict(list)
        self._ids = itertools.count(1)

    def count_for(self, assignment_id):
        return len(self.photos[assignment_id])

    def save(self, assignment, file_name, upload):
        photo = StoredPhoto(
            id=str(next(self._ids)),
            assignment_id=assignment.id,
            file_name=file_name,
            content_type=upload.content_type,
            size=upload.size,
            url=f"memory://{file_name}",
            caption=upload.caption,
        )
        self.photos[assignment.id].append(photo)
        return photo


class InMemoryLocationLog(LocationLog):

    def __init__(self):
        self.entries = []

    def record(self, entry):
        self.entries.append(entry)
