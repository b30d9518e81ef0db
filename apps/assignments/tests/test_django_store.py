import shutil
import tempfile
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings

from apps.assignments.exceptions import (
    ConcurrencyConflict,
    ConcurrentActiveTask,
    SequenceViolation,
)
from apps.assignments.models import TaskAssignment, TaskIssue, TaskPhoto, TaskProgress
from apps.assignments.services import normalize
from apps.assignments.services.django_store import DjangoAssignmentStore, build_lifecycle_controller
from apps.assignments.services.types import (
    AssignmentStatus,
    AssignTasksCommand,
    AuthContext,
    RemoveQueuedAssignmentCommand,
    ReportIssueCommand,
    StartAssignmentCommand,
    SubmitProgressCommand,
)
from apps.attendance.models import LocationLog
from apps.core.models import AuditLog
from tests.factories import (
    EmployeeFactory,
    OrganizationFactory,
    ProjectFactory,
    SupervisorFactory,
    TaskFactory,
)

from .helpers import DAY, ON_SITE, point_north


class DjangoStoreTestCase(TestCase):

    def setUp(self):
        self.org = OrganizationFactory()
        self.project = ProjectFactory(organization=self.org)
        self.worker = EmployeeFactory(organization=self.org)
        self.supervisor = SupervisorFactory(organization=self.org)
        self.tasks = [TaskFactory(project=self.project) for _ in range(3)]

        self.controller = build_lifecycle_controller(self.org.id)
        self.store = self.controller.store
        self.supervisor_auth = AuthContext(str(self.supervisor.id), 'supervisor', str(self.org.id))
        self.worker_auth = AuthContext(str(self.worker.id), 'worker', str(self.org.id))

    def assign(self, tasks=None):
        command = AssignTasksCommand(
            worker_id=str(self.worker.id),
            project_id=str(self.project.id),
            task_ids=tuple(str(t.id) for t in (tasks or self.tasks)),
            date=DAY,
        )
        return self.controller.assign_tasks(self.supervisor_auth, command).assignments

    def start(self, state, location=ON_SITE):
        return self.controller.start_assignment(self.worker_auth, StartAssignmentCommand(state.id, location))


class AssignmentPersistenceTests(DjangoStoreTestCase):

    def test_assign_persists_rows(self):
        states = self.assign()

        rows = list(TaskAssignment.objects.filter(worker=self.worker).order_by('sequence'))
        self.assertEqual([r.sequence for r in rows], [1, 2, 3])
        self.assertEqual([str(r.id) for r in rows], [s.id for s in states])
        self.assertEqual(rows[0].organization_id, self.org.id)
        self.assertEqual(rows[0].supervisor_id, self.supervisor.id)
        self.assertEqual(rows[0].estimated_minutes, Decimal('120.00'))
        self.assertEqual(rows[0].status, AssignmentStatus.QUEUED)
        self.assertEqual(rows[0].version, 1)

    def test_round_trip_after_start(self):
        first, *_ = self.assign()
        self.start(first)

        state = self.store.find_by_id(first.id)
        self.assertEqual(state.status, AssignmentStatus.IN_PROGRESS)
        self.assertEqual(state.version, 2)
        self.assertTrue(state.geofence_snapshot.inside_geofence)
        self.assertAlmostEqual(state.geofence_snapshot.location.latitude, ON_SITE.latitude, places=6)
        self.assertAlmostEqual(state.geofence_snapshot.distance_meters, 10, places=0)

        log = LocationLog.objects.get(assignment_id=first.id)
        self.assertEqual(log.log_type, LocationLog.TYPE_TASK_START)
        self.assertTrue(log.inside_geofence)

    def test_gate_failure_writes_nothing(self):
        _, second, _ = self.assign()
        with self.assertRaises(SequenceViolation):
            self.start(second)

        row = TaskAssignment.objects.get(pk=second.id)
        self.assertEqual(row.status, AssignmentStatus.QUEUED)
        self.assertEqual(row.version, 1)
        self.assertFalse(LocationLog.objects.exists())

    def test_stale_version_is_rejected(self):
        first, *_ = self.assign()
        self.store.update_with_version_check(first.evolve(priority='high'), first.version)

        with self.assertRaises(ConcurrencyConflict) as ctx:
            self.store.update_with_version_check(first.evolve(priority='low'), first.version)
        self.assertEqual(ctx.exception.details['actual_version'], 2)
        self.assertEqual(TaskAssignment.objects.get(pk=first.id).priority, 'high')

    def test_partial_unique_index_admits_one_active(self):
        first, second, _ = self.assign()
        self.store.update_with_version_check(first.evolve(status=AssignmentStatus.IN_PROGRESS), first.version)

        with self.assertRaises(ConcurrentActiveTask):
            self.store.update_with_version_check(
                second.evolve(status=AssignmentStatus.IN_PROGRESS), second.version
            )
        self.assertEqual(TaskAssignment.objects.get(pk=second.id).status, AssignmentStatus.QUEUED)
        self.assertEqual(
            TaskAssignment.objects.filter(worker=self.worker, status=AssignmentStatus.IN_PROGRESS).count(), 1
        )

    def test_store_is_scoped_to_organization(self):
        first, *_ = self.assign()
        other = DjangoAssignmentStore(OrganizationFactory().id)
        self.assertIsNone(other.find_by_id(first.id))
        self.assertIsNone(other.find_by_id('not-a-uuid'))

    def test_remove_resequences_rows(self):
        first, second, third = self.assign()
        self.controller.remove_queued_assignment(self.supervisor_auth, RemoveQueuedAssignmentCommand(first.id))

        self.assertFalse(TaskAssignment.objects.filter(pk=first.id).exists())
        self.assertEqual(TaskAssignment.objects.get(pk=second.id).sequence, 1)
        self.assertEqual(TaskAssignment.objects.get(pk=third.id).sequence, 2)

    def test_remove_keeps_queue_behind_blocked_task(self):
        first, second, third = self.assign()
        self.start(first)
        self.controller.report_issue(self.worker_auth, ReportIssueCommand(
            assignment_id=first.id,
            issue_type='equipment_failure',
            priority='critical',
            description='Mixer motor burnt out',
        ))

        self.controller.remove_queued_assignment(self.supervisor_auth, RemoveQueuedAssignmentCommand(second.id))

        self.assertEqual(TaskAssignment.objects.get(pk=first.id).sequence, 1)
        self.assertEqual(TaskAssignment.objects.get(pk=third.id).sequence, 2)
        with self.assertRaises(SequenceViolation):
            self.start(third)
        self.assertEqual(TaskAssignment.objects.get(pk=third.id).status, AssignmentStatus.QUEUED)


class ProgressPersistenceTests(DjangoStoreTestCase):

    def test_progress_rows_are_append_only(self):
        first, *_ = self.assign()
        self.start(first)
        self.controller.submit_progress(
            self.worker_auth,
            SubmitProgressCommand(first.id, 40, 'First coat', location=point_north(20)),
        )

        progress = TaskProgress.objects.get(assignment_id=first.id)
        self.assertEqual(progress.percent, Decimal('40.00'))
        row = TaskAssignment.objects.get(pk=first.id)
        self.assertEqual(row.progress_percent, Decimal('40.00'))
        self.assertEqual(row.remaining_minutes, Decimal('72.00'))
        self.assertTrue(LocationLog.objects.filter(log_type=LocationLog.TYPE_TASK_PROGRESS).exists())

        progress.notes = 'edited'
        with self.assertRaises(DjangoValidationError):
            progress.save()

    def test_completion_from_progress(self):
        first, *_ = self.assign()
        self.start(first)
        self.controller.submit_progress(self.worker_auth, SubmitProgressCommand(first.id, 100, 'Done'))

        row = TaskAssignment.objects.get(pk=first.id)
        self.assertEqual(row.status, AssignmentStatus.COMPLETED)
        self.assertIsNotNone(row.completed_at)

    def test_fractional_percent_matches_stored_value(self):
        first, *_ = self.assign()
        self.start(first)

        result = self.controller.submit_progress(self.worker_auth, SubmitProgressCommand(first.id, 33.333, 'Primer'))
        again = self.controller.submit_progress(self.worker_auth, SubmitProgressCommand(first.id, 33.333, 'Primer'))
        self.assertEqual(result.new_percent, 33.33)
        self.assertEqual(again.progress_delta, 0)

        done = self.controller.submit_progress(self.worker_auth, SubmitProgressCommand(first.id, 99.999, 'Topcoat'))
        self.assertEqual(done.new_percent, 100)
        self.assertEqual(done.status, AssignmentStatus.COMPLETED)

        row = TaskAssignment.objects.get(pk=first.id)
        self.assertEqual(row.progress_percent, Decimal('100.00'))
        self.assertEqual(row.status, AssignmentStatus.COMPLETED)
        self.assertEqual(
            list(TaskProgress.objects.filter(assignment_id=first.id).order_by('submitted_at', 'percent')
                 .values_list('percent', flat=True)),
            [Decimal('33.33'), Decimal('33.33'), Decimal('100.00')],
        )


class IssueAndPhotoPersistenceTests(DjangoStoreTestCase):

    def setUp(self):
        super().setUp()
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        override = override_settings(MEDIA_ROOT=media_root)
        override.enable()
        self.addCleanup(override.disable)

    def test_critical_issue_blocks_row(self):
        first, *_ = self.assign()
        self.start(first)
        result = self.controller.report_issue(self.worker_auth, ReportIssueCommand(
            assignment_id=first.id,
            issue_type='safety_concern',
            priority='critical',
            description='Scaffold is unstable on level 3',
        ))

        issue = TaskIssue.objects.get(assignment_id=first.id)
        self.assertEqual(issue.ticket_number, result.ticket.ticket_number)
        self.assertEqual(issue.organization_id, self.org.id)
        self.assertEqual(TaskAssignment.objects.get(pk=first.id).status, AssignmentStatus.BLOCKED)

    def test_photos_are_stored(self):
        first, *_ = self.assign()
        files = [
            SimpleUploadedFile('wall.jpg', b'\xff\xd8\xff\xe0', content_type='image/jpeg'),
            SimpleUploadedFile('floor.png', b'\x89PNG\r\n', content_type='image/png'),
        ]
        result = self.controller.record_photos(self.worker_auth, normalize.photos_command(first.id, files))

        self.assertEqual(result.total_photos, 2)
        self.assertEqual(result.remaining_slots, 3)
        photos = TaskPhoto.objects.filter(assignment_id=first.id)
        self.assertEqual(photos.count(), 2)
        self.assertTrue(all(p.file_name.startswith(f'task_{first.id}_') for p in photos))
        self.assertTrue(all(p.image.name for p in photos))


class AuditTrailTests(DjangoStoreTestCase):

    def test_transitions_are_audited_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            first, *_ = self.assign()
        self.assertEqual(
            AuditLog.objects.filter(resource_type='task_assignment', action='create').count(), 3
        )

        with self.captureOnCommitCallbacks(execute=True):
            self.start(first)
        entry = AuditLog.objects.get(resource_id=first.id, action='status_change')
        self.assertEqual(entry.organization_id, self.org.id)
        self.assertEqual(entry.old_values, {'status': 'queued'})
        self.assertEqual(entry.new_values, {'status': 'in_progress'})
        self.assertEqual(entry.actor_id, str(self.worker.id))

    def test_rejected_transition_is_not_audited(self):
        _, second, _ = self.assign()
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(SequenceViolation):
                self.start(second)
        self.assertEqual(callbacks, [])
