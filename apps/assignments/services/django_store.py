"""
ORM-backed implementations of the engine's persistence seams.

Version checks are conditional ``UPDATE ... WHERE version = %s`` statements;
the per-(worker, day) critical section is a ``SELECT ... FOR UPDATE`` on
the worker's employee row.
"""

import uuid
from contextlib import contextmanager
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Max
from django.utils import timezone

from apps.employees.models import Employee
from apps.projects.models import Project, Task

from ..exceptions import ConcurrencyConflict, ConcurrentActiveTask, NotFoundError
from ..models import TaskAssignment, TaskIssue, TaskPhoto, TaskProgress
from .lifecycle import LifecycleController
from .store import AssignmentStore, IssueTracker, LocationLog, PhotoStore, ProjectCatalog
from .types import (
    AssignmentState,
    AssignmentStatus,
    DailyTarget,
    GeofenceRegion,
    GeofenceSnapshot,
    Location,
    StoredPhoto,
    TaskInfo,
    TimeEstimate,
)


def _uuid(value):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def _dec(value, places=2):
    if value is None:
        return None
    return Decimal(str(round(float(value), places)))


def _float(value):
    return float(value) if value is not None else None


def _organization_for(assignment_id):
    return (
        TaskAssignment.objects
        .filter(pk=assignment_id)
        .values_list('organization_id', flat=True)
        .get()
    )


def _to_state(row: TaskAssignment) -> AssignmentState:
    snapshot = None
    if row.last_validated_at is not None:
        snapshot = GeofenceSnapshot(
            last_validated_at=row.last_validated_at,
            location=Location(
                latitude=_float(row.last_latitude),
                longitude=_float(row.last_longitude),
                accuracy=_float(row.last_accuracy),
            ),
            distance_meters=_float(row.last_distance_meters),
            inside_geofence=row.last_inside_geofence,
        )

    return AssignmentState(
        id=str(row.id),
        worker_id=str(row.worker_id),
        project_id=str(row.project_id),
        task_id=str(row.task_id),
        date=row.date,
        status=row.status,
        sequence=row.sequence,
        priority=row.priority,
        dependencies=tuple(str(d) for d in (row.dependencies or [])),
        daily_target=DailyTarget(
            description=row.target_description,
            quantity=_float(row.target_quantity),
            unit=row.target_unit,
            target_completion_percent=float(row.target_completion_percent),
        ),
        time_estimate=TimeEstimate(
            estimated_minutes=float(row.estimated_minutes),
            elapsed_minutes=float(row.elapsed_minutes),
            remaining_minutes=float(row.remaining_minutes),
        ),
        progress_percent=float(row.progress_percent),
        geofence_snapshot=snapshot,
        start_time=row.start_time,
        end_time=row.end_time,
        completed_at=row.completed_at,
        assigned_at=row.assigned_at,
        supervisor_id=str(row.supervisor_id) if row.supervisor_id else None,
        work_area=row.work_area,
        floor=row.floor,
        zone=row.zone,
        version=row.version,
    )


def _columns(state: AssignmentState) -> dict:
    """Mutable columns of ``state``; identity columns never change after insert."""
    snapshot = state.geofence_snapshot
    location = snapshot.location if snapshot else None
    return {
        'status': state.status,
        'sequence': state.sequence,
        'priority': state.priority,
        'dependencies': list(state.dependencies),
        'target_description': state.daily_target.description,
        'target_quantity': _dec(state.daily_target.quantity),
        'target_unit': state.daily_target.unit,
        'target_completion_percent': _dec(state.daily_target.target_completion_percent),
        'estimated_minutes': _dec(state.time_estimate.estimated_minutes),
        'elapsed_minutes': _dec(state.time_estimate.elapsed_minutes),
        'remaining_minutes': _dec(state.time_estimate.remaining_minutes),
        'progress_percent': _dec(state.progress_percent),
        'last_validated_at': snapshot.last_validated_at if snapshot else None,
        'last_latitude': _dec(location.latitude, 8) if location else None,
        'last_longitude': _dec(location.longitude, 8) if location else None,
        'last_accuracy': _dec(location.accuracy) if location else None,
        'last_distance_meters': _dec(snapshot.distance_meters) if snapshot else None,
        'last_inside_geofence': snapshot.inside_geofence if snapshot else None,
        'start_time': state.start_time,
        'end_time': state.end_time,
        'completed_at': state.completed_at,
        'work_area': state.work_area,
        'floor': state.floor,
        'zone': state.zone,
    }


class DjangoAssignmentStore(AssignmentStore):
    """``TaskAssignment`` rows, optionally scoped to one organization."""

    def __init__(self, organization_id=None):
        self.organization_id = organization_id

    def _queryset(self):
        queryset = TaskAssignment.objects.all()
        if self.organization_id:
            queryset = queryset.filter(organization_id=self.organization_id)
        return queryset

    def _ordered(self, queryset):
        return [
            _to_state(row)
            for row in queryset.order_by(F('sequence').asc(nulls_last=True), 'created_at')
        ]

    # -- reads ---------------------------------------------------------------

    def find_by_id(self, assignment_id):
        pk = _uuid(assignment_id)
        if pk is None:
            return None
        row = self._queryset().filter(pk=pk).first()
        return _to_state(row) if row else None

    def find_many(self, assignment_ids):
        pks = [pk for pk in (_uuid(i) for i in assignment_ids) if pk is not None]
        if not pks:
            return []
        return [_to_state(row) for row in self._queryset().filter(pk__in=pks)]

    def find_by_worker_and_date(self, worker_id, day):
        return self._ordered(self._queryset().filter(worker_id=worker_id, date=day))

    def find_siblings(self, worker_id, project_id, day):
        return self._ordered(
            self._queryset().filter(worker_id=worker_id, project_id=project_id, date=day)
        )

    def existing_task_ids(self, worker_id, task_ids, day):
        wanted = {pk for pk in (_uuid(t) for t in task_ids) if pk is not None}
        if not wanted:
            return set()
        found = set(
            str(t) for t in self._queryset()
            .filter(worker_id=worker_id, date=day, task_id__in=wanted)
            .values_list('task_id', flat=True)
        )
        return {t for t in task_ids if str(_uuid(t)) in found}

    # -- writes --------------------------------------------------------------

    def insert(self, state):
        organization_id = (
            self.organization_id
            or Project.objects.filter(pk=state.project_id).values_list('organization_id', flat=True).get()
        )
        TaskAssignment.objects.create(
            id=state.id,
            organization_id=organization_id,
            worker_id=state.worker_id,
            project_id=state.project_id,
            task_id=state.task_id,
            supervisor_id=state.supervisor_id,
            date=state.date,
            assigned_at=state.assigned_at,
            version=state.version,
            **_columns(state),
        )
        return state

    def update_with_version_check(self, state, expected_version):
        try:
            with transaction.atomic():
                updated = self._queryset().filter(pk=state.id, version=expected_version).update(
                    version=F('version') + 1,
                    updated_at=timezone.now(),
                    **_columns(state),
                )
        except IntegrityError:
            if state.status != AssignmentStatus.IN_PROGRESS:
                raise
            raise ConcurrentActiveTask(state.worker_id, state.date) from None

        if not updated:
            current = self._queryset().filter(pk=state.id).values_list('version', flat=True).first()
            if current is None:
                raise NotFoundError('Assignment', state.id)
            raise ConcurrencyConflict(state.id, expected_version, current)
        return state.evolve(version=expected_version + 1)

    def delete(self, assignment_id, expected_version):
        deleted, _ = self._queryset().filter(pk=assignment_id, version=expected_version).delete()
        if not deleted:
            current = self._queryset().filter(pk=assignment_id).values_list('version', flat=True).first()
            if current is None:
                raise NotFoundError('Assignment', assignment_id)
            raise ConcurrencyConflict(assignment_id, expected_version, current)

    def next_sequence_for(self, worker_id, project_id, day):
        highest = (
            self._queryset()
            .filter(worker_id=worker_id, project_id=project_id, date=day)
            .aggregate(highest=Max('sequence'))['highest']
        )
        return (highest or 0) + 1

    def next_id(self):
        return str(uuid.uuid4())

    def append_progress(self, record):
        location = record.location
        TaskProgress.objects.create(
            id=record.id,
            organization_id=self.organization_id or _organization_for(record.assignment_id),
            assignment_id=record.assignment_id,
            worker_id=record.worker_id,
            percent=_dec(record.percent),
            description=record.description,
            notes=record.notes,
            completed_quantity=_dec(record.completed_quantity),
            issues_encountered=list(record.issues_encountered),
            latitude=_dec(location.latitude, 8) if location else None,
            longitude=_dec(location.longitude, 8) if location else None,
            accuracy=_dec(location.accuracy) if location else None,
            submitted_at=record.submitted_at,
        )
        return record

    # -- transactions ----------------------------------------------------------

    def atomic(self):
        return transaction.atomic()

    @contextmanager
    def lock_worker_day(self, worker_id, day):
        # Row lock on the worker serialises every (worker, day) writer
        list(Employee.objects.select_for_update().filter(pk=worker_id).values_list('pk', flat=True))
        yield

    def on_commit(self, callback):
        transaction.on_commit(callback)


class DjangoProjectCatalog(ProjectCatalog):

    def __init__(self, organization_id=None):
        self.organization_id = organization_id

    def get_region(self, project_id):
        pk = _uuid(project_id)
        if pk is None:
            return None
        queryset = Project.objects.filter(pk=pk, is_active=True)
        if self.organization_id:
            queryset = queryset.filter(organization_id=self.organization_id)
        project = queryset.first()
        if project is None:
            return None
        return GeofenceRegion(
            center_latitude=float(project.center_latitude),
            center_longitude=float(project.center_longitude),
            radius_meters=project.radius_meters,
            strict_mode=project.strict_mode,
            allowed_variance_meters=project.allowed_variance_meters,
        )

    def find_tasks(self, task_ids):
        requested = {t: _uuid(t) for t in task_ids}
        queryset = Task.objects.filter(
            pk__in=[pk for pk in requested.values() if pk is not None],
            is_active=True,
        )
        if self.organization_id:
            queryset = queryset.filter(organization_id=self.organization_id)
        rows = {row.id: row for row in queryset}

        found = {}
        for task_id, pk in requested.items():
            row = rows.get(pk)
            if row is None:
                continue
            found[task_id] = TaskInfo(
                id=str(row.id),
                project_id=str(row.project_id),
                name=row.name,
                description=row.description,
                estimated_minutes=row.estimated_minutes,
                target_quantity=_float(row.target_quantity),
                unit=row.unit,
                work_area=row.work_area,
                floor=row.floor,
                zone=row.zone,
            )
        return found


class DjangoIssueTracker(IssueTracker):

    def open_ticket(self, ticket):
        location = ticket.location
        TaskIssue.objects.create(
            id=ticket.id,
            organization_id=_organization_for(ticket.assignment_id),
            assignment_id=ticket.assignment_id,
            worker_id=ticket.worker_id,
            ticket_number=ticket.ticket_number,
            issue_type=ticket.issue_type,
            priority=ticket.priority,
            description=ticket.description,
            status=ticket.status,
            latitude=_dec(location.latitude, 8) if location else None,
            longitude=_dec(location.longitude, 8) if location else None,
            work_area=ticket.work_area,
            reported_at=ticket.reported_at,
        )
        return ticket


class DjangoPhotoStore(PhotoStore):
    """Writes through ``TaskPhoto.image`` to the configured default storage."""

    def count_for(self, assignment_id):
        return TaskPhoto.objects.filter(assignment_id=assignment_id).count()

    def save(self, assignment, file_name, upload):
        photo = TaskPhoto(
            organization_id=_organization_for(assignment.id),
            assignment_id=assignment.id,
            worker_id=assignment.worker_id,
            file_name=file_name,
            content_type=upload.content_type,
            size=upload.size,
            caption=upload.caption,
        )
        photo.image.save(file_name, upload.content, save=False)
        photo.save()
        return StoredPhoto(
            id=str(photo.id),
            assignment_id=str(assignment.id),
            file_name=file_name,
            content_type=upload.content_type,
            size=upload.size,
            url=photo.image.url,
            caption=upload.caption,
        )


class DjangoLocationLog(LocationLog):

    def record(self, entry):
        from apps.attendance.models import LocationLog as LocationLogModel

        location = entry.location
        LocationLogModel.objects.create(
            organization_id=Project.objects.filter(pk=entry.project_id).values_list('organization_id', flat=True).get(),
            employee_id=entry.worker_id,
            project_id=entry.project_id,
            assignment_id=entry.assignment_id,
            latitude=_dec(location.latitude, 8),
            longitude=_dec(location.longitude, 8),
            accuracy=_dec(location.accuracy),
            inside_geofence=entry.inside_geofence,
            log_type=entry.log_type,
            logged_at=entry.logged_at or timezone.now(),
        )


def build_lifecycle_controller(organization_id=None) -> LifecycleController:
    """Controller wired to the ORM, scoped to ``organization_id`` when given."""
    return LifecycleController(
        store=DjangoAssignmentStore(organization_id),
        catalog=DjangoProjectCatalog(organization_id),
        issue_tracker=DjangoIssueTracker(),
        photo_store=DjangoPhotoStore(),
        location_log=DjangoLocationLog(),
        max_photos=getattr(settings, 'ASSIGNMENTS_MAX_PHOTOS', 5),
        max_photo_bytes=getattr(settings, 'ASSIGNMENTS_MAX_PHOTO_BYTES', 10 * 1024 * 1024),
    )
