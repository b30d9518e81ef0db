"""
Assignment Lifecycle Controller - queued → in_progress → completed / blocked

The only entry point callers use. Each operation loads state through the
store, runs its gates, then commits a new immutable state with a version
check inside one unit of work.
"""

import logging
import os
from datetime import timedelta
from typing import Callable, Optional

from django.utils import timezone

from ..exceptions import (
    ConcurrencyConflict,
    ConcurrentActiveTask,
    DependencyUnmet,
    DuplicateAssignment,
    GeofenceViolation,
    InvalidTask,
    NotFoundError,
    ProgressDecreaseNotAllowed,
    ResourceLimitExceeded,
    SequenceViolation,
    StateConflict,
    ValidationError,
)
from ..signals import assignment_status_changed
from .dependencies import DependencyResolver
from .geofence import GeofenceValidator
from .progress import ProgressTracker
from .sequence import SequenceGate
from .store import AssignmentStore, IssueTracker, LocationLog, PhotoStore, ProjectCatalog
from .types import (
    AssignmentState,
    AssignmentStatus,
    AssignTasksCommand,
    AssignTasksResult,
    AuthContext,
    CompleteAssignmentCommand,
    DailyTarget,
    DayPlan,
    DaySummary,
    GeofenceResult,
    GeofenceSnapshot,
    IssueResult,
    IssueTicket,
    Location,
    LocationLogEntry,
    PhotoResult,
    Priority,
    ProgressRecord,
    ProgressResult,
    RecordPhotosCommand,
    RemoveQueuedAssignmentCommand,
    ReportIssueCommand,
    StartAssignmentCommand,
    StartResult,
    SubmitProgressCommand,
    TimeEstimate,
    ValidateLocationCommand,
)

logger = logging.getLogger(__name__)

MAX_PHOTOS_PER_ASSIGNMENT = 5
MAX_PHOTO_BYTES = 10 * 1024 * 1024
ALLOWED_PHOTO_TYPES = {
    'image/jpeg': '.jpg',
    'image/jpg': '.jpg',
    'image/png': '.png',
}


class LocationLogType:
    GEOFENCE_VALIDATION = 'GEOFENCE_VALIDATION'
    TASK_START = 'TASK_START'
    TASK_PROGRESS = 'TASK_PROGRESS'
    TASK_COMPLETE = 'TASK_COMPLETE'
    CHECK_IN = 'CHECK_IN'
    CHECK_OUT = 'CHECK_OUT'

    CHOICES = [
        (GEOFENCE_VALIDATION, 'Geofence Validation'),
        (TASK_START, 'Task Start'),
        (TASK_PROGRESS, 'Task Progress'),
        (TASK_COMPLETE, 'Task Complete'),
        (CHECK_IN, 'Check In'),
        (CHECK_OUT, 'Check Out'),
    ]


def ticket_number(ticket_id: str, reported_at) -> str:
    return f"ISSUE_{int(reported_at.timestamp() * 1000)}_{ticket_id}"


class LifecycleController:
    """Orchestrates assignment transitions and enforces their invariants."""

    def __init__(
        self,
        store: AssignmentStore,
        catalog: ProjectCatalog,
        issue_tracker: Optional[IssueTracker] = None,
        photo_store: Optional[PhotoStore] = None,
        location_log: Optional[LocationLog] = None,
        clock: Optional[Callable] = None,
        max_photos: int = MAX_PHOTOS_PER_ASSIGNMENT,
        max_photo_bytes: int = MAX_PHOTO_BYTES,
    ):
        self.store = store
        self.catalog = catalog
        self.issue_tracker = issue_tracker
        self.photo_store = photo_store
        self.location_log = location_log
        self.clock = clock or timezone.now
        self.max_photos = max_photos
        self.max_photo_bytes = max_photo_bytes
        self.dependencies = DependencyResolver(store)
        self.sequence = SequenceGate(store)

    # ------------------------------------------------------------------
    # Supervisor actions
    # ------------------------------------------------------------------

    def assign_tasks(self, auth: AuthContext, command: AssignTasksCommand) -> AssignTasksResult:
        """
        Queue ``command.task_ids`` for a worker on one day, numbered after the
        worker's existing sequence for that project. All or nothing.
        """
        if self.catalog.get_region(command.project_id) is None:
            raise NotFoundError('Project', command.project_id)

        tasks = self.catalog.find_tasks(command.task_ids)
        invalid = [
            task_id for task_id in command.task_ids
            if task_id not in tasks or str(tasks[task_id].project_id) != str(command.project_id)
        ]
        if invalid:
            raise self._rejected(InvalidTask(command.project_id, invalid))

        now = self.clock()
        created = []
        with self.store.atomic():
            with self.store.lock_worker_day(command.worker_id, command.date):
                duplicates = self.store.existing_task_ids(command.worker_id, command.task_ids, command.date)
                if duplicates:
                    ordered = [t for t in command.task_ids if t in duplicates]
                    raise self._rejected(DuplicateAssignment(command.worker_id, ordered, command.date))

                first_sequence = self.store.next_sequence_for(
                    command.worker_id, command.project_id, command.date
                )
                for offset, task_id in enumerate(command.task_ids):
                    task = tasks[task_id]
                    estimated = (
                        command.estimated_minutes
                        if command.estimated_minutes is not None
                        else task.estimated_minutes or 0
                    )
                    state = AssignmentState(
                        id=self.store.next_id(),
                        worker_id=command.worker_id,
                        project_id=command.project_id,
                        task_id=task_id,
                        date=command.date,
                        status=AssignmentStatus.QUEUED,
                        sequence=first_sequence + offset,
                        priority=command.priority,
                        dependencies=command.dependencies,
                        daily_target=command.daily_target or DailyTarget(
                            description=task.description or task.name,
                            quantity=task.target_quantity,
                            unit=task.unit,
                        ),
                        time_estimate=TimeEstimate(
                            estimated_minutes=estimated,
                            elapsed_minutes=0,
                            remaining_minutes=estimated,
                        ),
                        assigned_at=now,
                        supervisor_id=auth.employee_id if auth.is_supervisor else None,
                        work_area=task.work_area,
                        floor=task.floor,
                        zone=task.zone,
                    )
                    created.append(self.store.insert(state))

            for state in created:
                self._emit(auth, None, state)

        logger.info(
            "assignments_queued worker=%s project=%s date=%s count=%s first_sequence=%s",
            command.worker_id, command.project_id, command.date, len(created), first_sequence,
        )
        return AssignTasksResult(created=len(created), assignments=tuple(created))

    def remove_queued_assignment(self, auth: AuthContext, command: RemoveQueuedAssignmentCommand):
        """
        Delete a queued assignment and renumber its queued siblings so they
        follow any sibling that has already left the queue.
        """
        with self.store.atomic():
            state = self._load(auth, command.assignment_id)
            self._require_status(state, (AssignmentStatus.QUEUED,), 'remove')

            with self.store.lock_worker_day(state.worker_id, state.date):
                state = self._reload(state, (AssignmentStatus.QUEUED,), 'remove')
                self.store.delete(state.id, state.version)

                siblings = self.store.find_siblings(state.worker_id, state.project_id, state.date)
                queued = [s for s in siblings if s.status == AssignmentStatus.QUEUED]
                started = [
                    s.sequence for s in siblings
                    if s.status != AssignmentStatus.QUEUED and s.sequence is not None
                ]
                renumbered = {}
                for sibling, position in SequenceGate.resequence(queued, after=max(started, default=0)):
                    renumbered[sibling.id] = self.store.update_with_version_check(
                        sibling.evolve(sequence=position), sibling.version
                    )

        logger.info(
            "assignment_removed id=%s worker=%s date=%s resequenced=%s",
            state.id, state.worker_id, state.date, len(renumbered),
        )
        return [renumbered.get(s.id, s) for s in queued]

    # ------------------------------------------------------------------
    # Worker actions
    # ------------------------------------------------------------------

    def start_assignment(self, auth: AuthContext, command: StartAssignmentCommand) -> StartResult:
        """
        Move a queued assignment to in_progress. Gates run in a fixed order
        and the first failure wins: status, dependencies, sequence, single
        active task, geofence.
        """
        with self.store.atomic():
            state = self._load(auth, command.assignment_id)
            self._require_status(state, (AssignmentStatus.QUEUED,), 'start')

            with self.store.lock_worker_day(state.worker_id, state.date):
                state = self._reload(state, (AssignmentStatus.QUEUED,), 'start')

                dependency_check = self.dependencies.check_dependencies(state.dependencies)
                if not dependency_check.can_start:
                    raise self._rejected(DependencyUnmet(dependency_check), state)

                sequence_check = self.sequence.validate_sequence(state)
                if not sequence_check.can_start:
                    raise self._rejected(SequenceViolation(sequence_check), state)

                active = self.store.find_active(state.worker_id, state.date)
                if active is not None and active.id != state.id:
                    raise self._rejected(ConcurrentActiveTask(state.worker_id, state.date, active.id), state)

                geofence = GeofenceValidator.validate_location(command.location, self._region(state.project_id))
                if not geofence.is_valid:
                    raise self._rejected(GeofenceViolation(geofence), state)

                now = self.clock()
                started = self.store.update_with_version_check(
                    state.evolve(
                        status=AssignmentStatus.IN_PROGRESS,
                        start_time=now,
                        geofence_snapshot=GeofenceSnapshot(
                            last_validated_at=now,
                            location=command.location,
                            distance_meters=geofence.distance_meters,
                            inside_geofence=geofence.inside_geofence,
                        ),
                    ),
                    state.version,
                )

            self._log_location(started, command.location, geofence.inside_geofence, LocationLogType.TASK_START, now)
            self._emit(auth, state, started)

        remaining = started.time_estimate.remaining_minutes
        estimated_end = now + timedelta(minutes=remaining) if remaining else None
        if geofence.accuracy_warning:
            logger.warning("assignment_start_low_accuracy id=%s accuracy=%s", started.id, geofence.accuracy_meters)
        logger.info(
            "assignment_started id=%s worker=%s distance_m=%.1f",
            started.id, started.worker_id, geofence.distance_meters,
        )
        return StartResult(assignment=started, geofence=geofence, estimated_end_time=estimated_end)

    def submit_progress(self, auth: AuthContext, command: SubmitProgressCommand) -> ProgressResult:
        """
        Record a progress update. Percent may never go down; 100% completes
        the assignment. A stale write fails with ``ConcurrencyConflict``.
        """
        if not command.description or not command.description.strip():
            raise ValidationError("description is required", field='description')

        with self.store.atomic():
            state = self._load(auth, command.assignment_id)
            self._require_status(state, (AssignmentStatus.IN_PROGRESS,), 'submit progress for')

            if command.expected_version is not None and command.expected_version != state.version:
                raise self._rejected(
                    ConcurrencyConflict(state.id, command.expected_version, state.version), state
                )

            percent = ProgressTracker.round_percent(command.percent)
            previous = state.progress_percent
            try:
                ProgressTracker.ensure_monotonic(previous, percent)
            except ProgressDecreaseNotAllowed as exc:
                raise self._rejected(exc, state)

            now = self.clock()
            estimate = ProgressTracker.compute_time_estimate(
                state.time_estimate.estimated_minutes, previous, percent
            )
            changes = {'progress_percent': percent, 'time_estimate': estimate}
            if percent >= 100:
                changes.update(status=AssignmentStatus.COMPLETED, completed_at=now, end_time=now)

            saved = self.store.update_with_version_check(state.evolve(**changes), state.version)
            record = self.store.append_progress(ProgressRecord(
                id=self.store.next_id(),
                assignment_id=state.id,
                worker_id=state.worker_id,
                percent=percent,
                description=command.description,
                submitted_at=now,
                location=command.location,
                notes=command.notes,
                completed_quantity=command.completed_quantity,
                issues_encountered=command.issues_encountered,
            ))

            if command.location is not None:
                geofence = GeofenceValidator.validate_location(command.location, self._region(state.project_id))
                log_type = (
                    LocationLogType.TASK_COMPLETE
                    if saved.status == AssignmentStatus.COMPLETED
                    else LocationLogType.TASK_PROGRESS
                )
                self._log_location(saved, command.location, geofence.inside_geofence, log_type, now)

            if saved.status != state.status:
                self._emit(auth, state, saved)

        logger.info(
            "progress_submitted id=%s previous=%s new=%s status=%s",
            saved.id, previous, percent, saved.status,
        )
        return ProgressResult(
            progress_id=record.id,
            previous_percent=previous,
            new_percent=percent,
            progress_delta=ProgressTracker.round_percent(percent - previous),
            status=saved.status,
            time_estimate=estimate,
            next_action=ProgressTracker.next_action(saved.status, command.issues_encountered),
            assignment=saved,
        )

    def complete_assignment(self, auth: AuthContext, command: CompleteAssignmentCommand) -> AssignmentState:
        with self.store.atomic():
            state = self._load(auth, command.assignment_id)
            self._require_status(state, (AssignmentStatus.IN_PROGRESS,), 'complete')
            now = self.clock()
            completed = self.store.update_with_version_check(
                state.evolve(status=AssignmentStatus.COMPLETED, end_time=now, completed_at=now),
                state.version,
            )
            self._emit(auth, state, completed)

        logger.info("assignment_completed id=%s worker=%s", completed.id, completed.worker_id)
        return completed

    def report_issue(self, auth: AuthContext, command: ReportIssueCommand) -> IssueResult:
        """
        Open an issue ticket. High and critical issues also block the
        assignment so it cannot progress until a supervisor steps in.
        """
        if self.issue_tracker is None:
            raise RuntimeError("LifecycleController has no issue tracker configured")

        with self.store.atomic():
            state = self._load(auth, command.assignment_id)
            self._require_status(
                state,
                (AssignmentStatus.QUEUED, AssignmentStatus.IN_PROGRESS, AssignmentStatus.BLOCKED),
                'report an issue on',
            )

            now = self.clock()
            ticket_id = self.store.next_id()
            ticket = self.issue_tracker.open_ticket(IssueTicket(
                id=ticket_id,
                ticket_number=ticket_number(ticket_id, now),
                assignment_id=state.id,
                worker_id=state.worker_id,
                issue_type=command.issue_type,
                priority=command.priority,
                description=command.description,
                reported_at=now,
                location=command.location,
                work_area=command.work_area or state.work_area,
            ))

            blocks = command.priority in Priority.BLOCKING and state.status != AssignmentStatus.BLOCKED
            result_state = state
            if blocks:
                result_state = self.store.update_with_version_check(
                    state.evolve(status=AssignmentStatus.BLOCKED), state.version
                )
                self._emit(auth, state, result_state)

        logger.info(
            "issue_reported id=%s ticket=%s type=%s priority=%s blocked=%s",
            state.id, ticket.ticket_number, command.issue_type, command.priority, blocks,
        )
        return IssueResult(ticket=ticket, assignment=result_state, blocked=blocks)

    def record_photos(self, auth: AuthContext, command: RecordPhotosCommand) -> PhotoResult:
        """Check type, size and the per-assignment ceiling, then hand photos to storage."""
        if self.photo_store is None:
            raise RuntimeError("LifecycleController has no photo store configured")
        if not command.photos:
            raise ValidationError("At least one photo is required", field='photos')

        for upload in command.photos:
            if upload.content_type not in ALLOWED_PHOTO_TYPES:
                raise ValidationError(
                    "Invalid file type. Only JPEG and PNG files are allowed",
                    field='photos',
                    details={'file': upload.name, 'content_type': upload.content_type},
                )
            if upload.size > self.max_photo_bytes:
                raise ValidationError(
                    f"File size too large. Maximum {self.max_photo_bytes // (1024 * 1024)}MB per file",
                    field='photos',
                    details={'file': upload.name, 'size': upload.size},
                )

        with self.store.atomic():
            state = self._load(auth, command.assignment_id)

            with self.store.lock_worker_day(state.worker_id, state.date):
                current = self.photo_store.count_for(state.id)
                if current + len(command.photos) > self.max_photos:
                    raise self._rejected(
                        ResourceLimitExceeded('photos', current, len(command.photos), self.max_photos), state
                    )

                stamp = int(self.clock().timestamp() * 1000)
                stored = []
                for index, upload in enumerate(command.photos, start=1):
                    extension = os.path.splitext(upload.name)[1].lower() or ALLOWED_PHOTO_TYPES[upload.content_type]
                    file_name = f"task_{state.id}_{stamp}_{index}{extension}"
                    stored.append(self.photo_store.save(state, file_name, upload))

        total = current + len(stored)
        logger.info("photos_recorded id=%s added=%s total=%s", state.id, len(stored), total)
        return PhotoResult(
            photos=tuple(stored),
            total_photos=total,
            remaining_slots=max(0, self.max_photos - total),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def tasks_for_day(self, auth: AuthContext, worker_id: str, day) -> DayPlan:
        if not auth.is_supervisor and str(worker_id) != str(auth.employee_id):
            raise NotFoundError('Worker', worker_id)

        assignments = tuple(self.store.find_by_worker_and_date(worker_id, day))
        counts = {status: 0 for status, _ in AssignmentStatus.CHOICES}
        for state in assignments:
            counts[state.status] = counts.get(state.status, 0) + 1
        overall = (
            round(sum(s.progress_percent for s in assignments) / len(assignments), 2)
            if assignments else 0
        )
        return DayPlan(
            worker_id=worker_id,
            date=day,
            assignments=assignments,
            summary=DaySummary(
                total=len(assignments),
                queued=counts[AssignmentStatus.QUEUED],
                in_progress=counts[AssignmentStatus.IN_PROGRESS],
                completed=counts[AssignmentStatus.COMPLETED],
                blocked=counts[AssignmentStatus.BLOCKED],
                overall_progress=overall,
            ),
        )

    def validate_worker_location(self, auth: AuthContext, command: ValidateLocationCommand) -> GeofenceResult:
        """Check a location against the assignment's site without changing state."""
        state = self._load(auth, command.assignment_id)
        result = GeofenceValidator.validate_location(command.location, self._region(state.project_id))
        self._log_location(
            state, command.location, result.inside_geofence, LocationLogType.GEOFENCE_VALIDATION, self.clock()
        )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, auth: AuthContext, assignment_id: str) -> AssignmentState:
        state = self.store.find_by_id(assignment_id)
        if state is None:
            raise self._rejected(NotFoundError('Assignment', assignment_id))
        # Workers only see their own assignments
        if not auth.is_supervisor and str(state.worker_id) != str(auth.employee_id):
            raise self._rejected(NotFoundError('Assignment', assignment_id))
        return state

    def _reload(self, state: AssignmentState, allowed, action) -> AssignmentState:
        fresh = self.store.find_by_id(state.id)
        if fresh is None:
            raise self._rejected(NotFoundError('Assignment', state.id))
        self._require_status(fresh, allowed, action)
        return fresh

    def _require_status(self, state: AssignmentState, allowed, action) -> None:
        if state.status not in allowed:
            raise self._rejected(StateConflict(state.id, state.status, allowed, action), state)

    def _region(self, project_id):
        region = self.catalog.get_region(project_id)
        if region is None:
            raise NotFoundError('Project', project_id)
        return region

    def _log_location(self, state: AssignmentState, location: Location, inside: bool, log_type: str, at) -> None:
        if self.location_log is None:
            return
        self.location_log.record(LocationLogEntry(
            worker_id=state.worker_id,
            project_id=state.project_id,
            location=location,
            inside_geofence=inside,
            log_type=log_type,
            assignment_id=state.id,
            logged_at=at,
        ))

    def _emit(self, auth: AuthContext, before: Optional[AssignmentState], after: AssignmentState) -> None:
        previous_status = before.status if before is not None else None

        def send():
            assignment_status_changed.send(
                sender=self.__class__,
                assignment=after,
                assignment_id=after.id,
                worker_id=after.worker_id,
                previous_status=previous_status,
                new_status=after.status,
                actor_id=auth.employee_id,
                organization_id=auth.organization_id,
            )

        self.store.on_commit(send)

    @staticmethod
    def _rejected(exc, state: Optional[AssignmentState] = None):
        log = logger.warning if isinstance(exc, (ConcurrencyConflict, ConcurrentActiveTask)) else logger.info
        log(
            "assignment_rejected code=%s id=%s message=%s",
            getattr(exc, 'code', exc.__class__.__name__),
            state.id if state is not None else None,
            getattr(exc, 'message', str(exc)),
        )
        return exc
