import threading
from datetime import timedelta

from django.test import SimpleTestCase

from apps.assignments.exceptions import (
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
from apps.assignments.services.lifecycle import LocationLogType
from apps.assignments.services.memory import InMemoryPhotoStore
from apps.assignments.services.types import (
    AssignmentStatus,
    AssignTasksCommand,
    AuthContext,
    CompleteAssignmentCommand,
    NextAction,
    PhotoUpload,
    RecordPhotosCommand,
    RemoveQueuedAssignmentCommand,
    ReportIssueCommand,
    StartAssignmentCommand,
    SubmitProgressCommand,
    ValidateLocationCommand,
)
from apps.assignments.signals import assignment_status_changed

from .helpers import DAY, NOW, ON_SITE, SUPERVISOR, WORKER, build_engine, point_north


class LockAwarePhotoStore(InMemoryPhotoStore):
    """Notes whether the worker-day lock is held on every call."""

    def __init__(self, store):
        super().__init__()
        self.store = store
        self.lock_held = []

    def _note(self, state):
        self.lock_held.append(self.store._day_locks[(state.worker_id, state.date)].locked())

    def count_for(self, assignment_id):
        self._note(self.store.find_by_id(assignment_id))
        return super().count_for(assignment_id)

    def save(self, assignment, file_name, upload):
        self._note(assignment)
        return super().save(assignment, file_name, upload)


class LifecycleTestCase(SimpleTestCase):

    def setUp(self):
        self.engine = build_engine()
        self.store = self.engine.store

    def assign(self, task_ids=('p-1-t1', 'p-1-t2'), worker_id='w-1', project_id='p-1', **kwargs):
        command = AssignTasksCommand(
            worker_id=worker_id, project_id=project_id, task_ids=tuple(task_ids), date=DAY, **kwargs
        )
        return self.engine.assign_tasks(SUPERVISOR, command).assignments

    def start(self, assignment_id, location=ON_SITE, auth=WORKER):
        return self.engine.start_assignment(auth, StartAssignmentCommand(assignment_id, location))

    def progress(self, assignment_id, percent, auth=WORKER, **kwargs):
        kwargs.setdefault('description', 'Laid blocks')
        return self.engine.submit_progress(auth, SubmitProgressCommand(assignment_id, percent, **kwargs))


class AssignTasksTests(LifecycleTestCase):

    def test_assigns_sequences_in_task_order(self):
        first, second = self.assign()
        self.assertEqual((first.sequence, second.sequence), (1, 2))
        self.assertEqual(first.status, AssignmentStatus.QUEUED)
        self.assertEqual(first.time_estimate.estimated_minutes, 120)
        self.assertEqual(first.time_estimate.remaining_minutes, 120)
        self.assertEqual(first.work_area, 'Block A')
        self.assertEqual(first.supervisor_id, 'sup-1')
        self.assertEqual(first.assigned_at, NOW)

    def test_continues_after_existing_sequence(self):
        self.assign(['p-1-t1', 'p-1-t2'])
        (third,) = self.assign(['p-1-t3'])
        self.assertEqual(third.sequence, 3)

    def test_rejects_task_from_other_project(self):
        engine = build_engine(projects=('p-1', 'p-2'))
        command = AssignTasksCommand(
            worker_id='w-1', project_id='p-1', task_ids=('p-1-t1', 'p-2-t1', 'nope'), date=DAY
        )
        with self.assertRaises(InvalidTask) as ctx:
            engine.assign_tasks(SUPERVISOR, command)
        self.assertEqual(ctx.exception.details['invalid_task_ids'], ['p-2-t1', 'nope'])
        self.assertEqual(engine.store.find_by_worker_and_date('w-1', DAY), [])

    def test_duplicate_is_all_or_nothing(self):
        self.assign(['p-1-t1'])
        with self.assertRaises(DuplicateAssignment) as ctx:
            self.assign(['p-1-t2', 'p-1-t1'])
        self.assertEqual(ctx.exception.details['task_ids'], ['p-1-t1'])
        self.assertEqual(len(self.store.find_by_worker_and_date('w-1', DAY)), 1)
        self.assertTrue(self.store.exists_for('w-1', 'p-1-t1', DAY))
        self.assertFalse(self.store.exists_for('w-1', 'p-1-t2', DAY))

    def test_unknown_project(self):
        with self.assertRaises(NotFoundError):
            self.assign(['p-1-t1'], project_id='p-404')

    def test_estimate_override(self):
        (state,) = self.assign(['p-1-t1'], estimated_minutes=45)
        self.assertEqual(state.time_estimate.estimated_minutes, 45)

    def test_creation_emits_signal(self):
        received = []

        def listener(sender, **kwargs):
            received.append((kwargs['assignment_id'], kwargs['previous_status'], kwargs['new_status']))

        assignment_status_changed.connect(listener)
        self.addCleanup(assignment_status_changed.disconnect, listener)

        first, second = self.assign()
        self.assertEqual(received, [(first.id, None, 'queued'), (second.id, None, 'queued')])


class StartAssignmentTests(LifecycleTestCase):

    def test_start_records_snapshot_and_estimate(self):
        (state,) = self.assign(['p-1-t1'])
        result = self.start(state.id)

        started = result.assignment
        self.assertEqual(started.status, AssignmentStatus.IN_PROGRESS)
        self.assertEqual(started.start_time, NOW)
        self.assertEqual(started.version, state.version + 1)
        self.assertEqual(started.geofence_snapshot.location, ON_SITE)
        self.assertTrue(started.geofence_snapshot.inside_geofence)
        self.assertEqual(result.estimated_end_time, NOW + timedelta(minutes=120))
        self.assertTrue(result.geofence.is_valid)

        (entry,) = self.engine.location_log.entries
        self.assertEqual(entry.log_type, LocationLogType.TASK_START)
        self.assertEqual(entry.assignment_id, state.id)

    def test_no_estimate_means_no_end_time(self):
        engine = build_engine(estimated_minutes=0)
        (state,) = engine.assign_tasks(
            SUPERVISOR, AssignTasksCommand('w-1', 'p-1', ('p-1-t1',), DAY)
        ).assignments
        result = engine.start_assignment(WORKER, StartAssignmentCommand(state.id, ON_SITE))
        self.assertIsNone(result.estimated_end_time)

    def test_unknown_assignment(self):
        with self.assertRaises(NotFoundError):
            self.start('does-not-exist')

    def test_other_workers_assignment_is_invisible(self):
        (state,) = self.assign(['p-1-t1'])
        intruder = AuthContext(employee_id='w-2', role='worker')
        with self.assertRaises(NotFoundError):
            self.start(state.id, auth=intruder)

    def test_start_twice_is_state_conflict(self):
        (state,) = self.assign(['p-1-t1'])
        self.start(state.id)
        with self.assertRaises(StateConflict) as ctx:
            self.start(state.id)
        self.assertEqual(ctx.exception.details['current_status'], 'in_progress')

    def test_sequence_scenario(self):
        t1, t2 = self.assign()

        with self.assertRaises(SequenceViolation) as ctx:
            self.start(t2.id)
        self.assertEqual(ctx.exception.details['blocking_ids'], [t1.id])
        self.assertEqual(self.store.find_by_id(t2.id).status, AssignmentStatus.QUEUED)

        self.start(t1.id)
        self.progress(t1.id, 100, description='done')
        self.assertEqual(self.store.find_by_id(t1.id).status, AssignmentStatus.COMPLETED)

        result = self.start(t2.id)
        self.assertEqual(result.assignment.status, AssignmentStatus.IN_PROGRESS)

    def test_dependencies_checked_before_sequence(self):
        (t1,) = self.assign(['p-1-t1'])
        t2, = self.assign(['p-1-t2'], dependencies=(t1.id, 'ghost'))

        with self.assertRaises(DependencyUnmet) as ctx:
            self.start(t2.id)
        details = ctx.exception.details
        self.assertEqual(details['missing_ids'], ['ghost'])
        self.assertEqual(details['incomplete'], [{'id': t1.id, 'status': 'queued', 'progress_percent': 0}])

    def test_single_active_task_per_day(self):
        engine = build_engine(projects=('p-1', 'p-2'))
        a = engine.assign_tasks(SUPERVISOR, AssignTasksCommand('w-1', 'p-1', ('p-1-t1',), DAY)).assignments[0]
        b = engine.assign_tasks(SUPERVISOR, AssignTasksCommand('w-1', 'p-2', ('p-2-t1',), DAY)).assignments[0]

        engine.start_assignment(WORKER, StartAssignmentCommand(a.id, ON_SITE))
        with self.assertRaises(ConcurrentActiveTask) as ctx:
            engine.start_assignment(WORKER, StartAssignmentCommand(b.id, ON_SITE))
        self.assertEqual(ctx.exception.details['active_assignment_id'], a.id)

    def test_outside_geofence_leaves_state_unchanged(self):
        (state,) = self.assign(['p-1-t1'])
        with self.assertRaises(GeofenceViolation) as ctx:
            self.start(state.id, location=point_north(400))
        self.assertEqual(ctx.exception.status_code, 422)
        self.assertAlmostEqual(ctx.exception.details['distance_meters'], 400, places=0)
        self.assertEqual(self.store.find_by_id(state.id), state)
        self.assertEqual(self.engine.location_log.entries, [])

    def test_concurrent_starts_admit_one(self):
        engine = build_engine(projects=('p-1', 'p-2', 'p-3', 'p-4'))
        ids = [
            engine.assign_tasks(
                SUPERVISOR, AssignTasksCommand('w-1', project, (f'{project}-t1',), DAY)
            ).assignments[0].id
            for project in ('p-1', 'p-2', 'p-3', 'p-4')
        ]
        barrier = threading.Barrier(len(ids))
        outcomes = []
        lock = threading.Lock()

        def attempt(assignment_id):
            barrier.wait()
            try:
                engine.start_assignment(WORKER, StartAssignmentCommand(assignment_id, ON_SITE))
                outcome = 'started'
            except ConcurrentActiveTask:
                outcome = 'rejected'
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=attempt, args=(i,)) for i in ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(outcomes.count('started'), 1)
        self.assertEqual(outcomes.count('rejected'), 3)
        active = [s for s in engine.store.find_by_worker_and_date('w-1', DAY) if s.status == 'in_progress']
        self.assertEqual(len(active), 1)


class SubmitProgressTests(LifecycleTestCase):

    def setUp(self):
        super().setUp()
        (self.assignment,) = self.assign(['p-1-t1'])
        self.start(self.assignment.id)

    def test_progress_updates_estimate(self):
        result = self.progress(self.assignment.id, 25, issues_encountered=('sand delayed',))
        self.assertEqual(result.previous_percent, 0)
        self.assertEqual(result.new_percent, 25)
        self.assertEqual(result.progress_delta, 25)
        self.assertEqual(result.status, AssignmentStatus.IN_PROGRESS)
        self.assertEqual(result.time_estimate.elapsed_minutes, 30)
        self.assertEqual(result.time_estimate.remaining_minutes, 90)
        self.assertEqual(result.next_action, NextAction.RESOLVE_ISSUES)
        self.assertEqual(len(self.store.progress_for(self.assignment.id)), 1)

    def test_progress_is_monotonic(self):
        self.progress(self.assignment.id, 60)
        before = self.store.find_by_id(self.assignment.id)

        with self.assertRaises(ProgressDecreaseNotAllowed) as ctx:
            self.progress(self.assignment.id, 40)
        self.assertEqual(ctx.exception.details, {'current': 60, 'attempted': 40})
        self.assertEqual(self.store.find_by_id(self.assignment.id), before)
        self.assertEqual(len(self.store.progress_for(self.assignment.id)), 1)

    def test_equal_percent_is_accepted(self):
        self.progress(self.assignment.id, 50)
        result = self.progress(self.assignment.id, 50)
        self.assertEqual(result.progress_delta, 0)
        self.assertEqual(result.next_action, NextAction.CONTINUE_WORK)

    def test_hundred_percent_completes(self):
        result = self.progress(self.assignment.id, 100, location=ON_SITE)
        self.assertEqual(result.status, AssignmentStatus.COMPLETED)
        self.assertEqual(result.next_action, NextAction.TASK_COMPLETED)
        completed = self.store.find_by_id(self.assignment.id)
        self.assertEqual(completed.completed_at, NOW)
        self.assertEqual(completed.end_time, NOW)
        self.assertEqual(completed.time_estimate.remaining_minutes, 0)
        self.assertEqual(self.engine.location_log.entries[-1].log_type, LocationLogType.TASK_COMPLETE)

    def test_progress_after_completion_is_state_conflict(self):
        self.progress(self.assignment.id, 100)
        with self.assertRaises(StateConflict):
            self.progress(self.assignment.id, 100)

    def test_queued_assignment_must_be_started_first(self):
        (queued,) = self.assign(['p-1-t2'])
        with self.assertRaises(StateConflict):
            self.progress(queued.id, 10)

    def test_stale_version_is_concurrency_conflict(self):
        current = self.store.find_by_id(self.assignment.id)
        self.progress(self.assignment.id, 30, expected_version=current.version)

        with self.assertRaises(ConcurrencyConflict) as ctx:
            self.progress(self.assignment.id, 35, expected_version=current.version)
        self.assertEqual(ctx.exception.details['actual_version'], current.version + 1)
        self.assertEqual(self.store.find_by_id(self.assignment.id).progress_percent, 30)

    def test_blank_description_rejected(self):
        with self.assertRaises(ValidationError):
            self.progress(self.assignment.id, 10, description='  ')

    def test_progress_location_is_logged(self):
        self.progress(self.assignment.id, 10, location=point_north(30))
        entry = self.engine.location_log.entries[-1]
        self.assertEqual(entry.log_type, LocationLogType.TASK_PROGRESS)
        self.assertTrue(entry.inside_geofence)

    def test_fractional_percent_is_rounded_before_checks(self):
        result = self.progress(self.assignment.id, 33.333)
        self.assertEqual(result.new_percent, 33.33)
        self.assertEqual(self.store.progress_for(self.assignment.id)[0].percent, 33.33)

        again = self.progress(self.assignment.id, 33.334)
        self.assertEqual(again.progress_delta, 0)

        done = self.progress(self.assignment.id, 99.999)
        self.assertEqual(done.new_percent, 100)
        self.assertEqual(done.status, AssignmentStatus.COMPLETED)


class CompleteAssignmentTests(LifecycleTestCase):

    def test_complete_keeps_percent(self):
        (state,) = self.assign(['p-1-t1'])
        self.start(state.id)
        self.progress(state.id, 70)

        completed = self.engine.complete_assignment(SUPERVISOR, CompleteAssignmentCommand(state.id))
        self.assertEqual(completed.status, AssignmentStatus.COMPLETED)
        self.assertEqual(completed.progress_percent, 70)
        self.assertEqual(completed.completed_at, NOW)

    def test_complete_requires_in_progress(self):
        (state,) = self.assign(['p-1-t1'])
        with self.assertRaises(StateConflict):
            self.engine.complete_assignment(SUPERVISOR, CompleteAssignmentCommand(state.id))


class RemoveQueuedAssignmentTests(LifecycleTestCase):

    def test_remove_renumbers_queue(self):
        a, b, c, d = self.assign(['p-1-t1', 'p-1-t2', 'p-1-t3', 'p-1-t4'])

        remaining = self.engine.remove_queued_assignment(SUPERVISOR, RemoveQueuedAssignmentCommand(b.id))

        self.assertEqual([(s.id, s.sequence) for s in remaining], [(a.id, 1), (c.id, 2), (d.id, 3)])
        self.assertIsNone(self.store.find_by_id(b.id))
        self.assertEqual(self.store.find_by_id(c.id).sequence, 2)
        self.assertEqual(self.store.find_by_id(a.id).version, a.version)

    def test_cannot_remove_started_assignment(self):
        (state,) = self.assign(['p-1-t1'])
        self.start(state.id)
        with self.assertRaises(StateConflict):
            self.engine.remove_queued_assignment(SUPERVISOR, RemoveQueuedAssignmentCommand(state.id))
        self.assertIsNotNone(self.store.find_by_id(state.id))

    def test_renumbered_queue_follows_started_task(self):
        a, b, c = self.assign(['p-1-t1', 'p-1-t2', 'p-1-t3'])
        self.start(a.id)

        remaining = self.engine.remove_queued_assignment(SUPERVISOR, RemoveQueuedAssignmentCommand(b.id))

        self.assertEqual([(s.id, s.sequence) for s in remaining], [(c.id, 2)])
        with self.assertRaises(SequenceViolation):
            self.start(c.id)

    def test_blocked_task_still_gates_renumbered_queue(self):
        a, b, c = self.assign(['p-1-t1', 'p-1-t2', 'p-1-t3'])
        self.start(a.id)
        self.engine.report_issue(WORKER, ReportIssueCommand(
            assignment_id=a.id,
            issue_type='safety_concern',
            priority='critical',
            description='Scaffold is unstable',
        ))

        self.engine.remove_queued_assignment(SUPERVISOR, RemoveQueuedAssignmentCommand(b.id))

        self.assertEqual(self.store.find_by_id(c.id).sequence, 2)
        with self.assertRaises(SequenceViolation) as ctx:
            self.start(c.id)
        self.assertEqual(ctx.exception.details['blocking'][0]['id'], a.id)
        self.assertEqual(self.store.find_by_id(c.id).status, AssignmentStatus.QUEUED)


class ReportIssueTests(LifecycleTestCase):

    def report(self, assignment_id, priority):
        return self.engine.report_issue(WORKER, ReportIssueCommand(
            assignment_id=assignment_id,
            issue_type='material_shortage',
            priority=priority,
            description='Cement delivery has not arrived',
        ))

    def test_medium_issue_does_not_block(self):
        (state,) = self.assign(['p-1-t1'])
        result = self.report(state.id, 'medium')
        self.assertFalse(result.blocked)
        self.assertEqual(result.assignment.status, AssignmentStatus.QUEUED)
        self.assertEqual(result.ticket.status, 'reported')
        self.assertTrue(result.ticket.ticket_number.startswith(f"ISSUE_{int(NOW.timestamp() * 1000)}_"))
        self.assertEqual(result.ticket.work_area, 'Block A')

    def test_critical_issue_blocks(self):
        (state,) = self.assign(['p-1-t1'])
        self.start(state.id)
        result = self.report(state.id, 'critical')
        self.assertTrue(result.blocked)
        self.assertEqual(self.store.find_by_id(state.id).status, AssignmentStatus.BLOCKED)
        with self.assertRaises(StateConflict):
            self.progress(state.id, 50)

    def test_no_issues_on_completed(self):
        (state,) = self.assign(['p-1-t1'])
        self.start(state.id)
        self.progress(state.id, 100)
        with self.assertRaises(StateConflict):
            self.report(state.id, 'low')
        self.assertEqual(self.engine.issue_tracker.tickets, [])


class RecordPhotosTests(LifecycleTestCase):

    def photos(self, count, content_type='image/jpeg', size=1024, name='site.jpg'):
        return tuple(PhotoUpload(name=name, content_type=content_type, size=size) for _ in range(count))

    def test_photos_are_named_and_counted(self):
        (state,) = self.assign(['p-1-t1'])
        result = self.engine.record_photos(WORKER, RecordPhotosCommand(state.id, self.photos(2)))
        stamp = int(NOW.timestamp() * 1000)
        self.assertEqual(
            [p.file_name for p in result.photos],
            [f'task_{state.id}_{stamp}_1.jpg', f'task_{state.id}_{stamp}_2.jpg'],
        )
        self.assertEqual(result.total_photos, 2)
        self.assertEqual(result.remaining_slots, 3)

    def test_ceiling_is_enforced_before_storing(self):
        (state,) = self.assign(['p-1-t1'])
        self.engine.record_photos(WORKER, RecordPhotosCommand(state.id, self.photos(4)))
        with self.assertRaises(ResourceLimitExceeded) as ctx:
            self.engine.record_photos(WORKER, RecordPhotosCommand(state.id, self.photos(2)))
        self.assertEqual(ctx.exception.details, {'resource': 'photos', 'current': 4, 'attempted': 2, 'limit': 5})
        self.assertEqual(self.engine.photo_store.count_for(state.id), 4)

    def test_rejects_wrong_type_and_size(self):
        (state,) = self.assign(['p-1-t1'])
        with self.assertRaises(ValidationError):
            self.engine.record_photos(WORKER, RecordPhotosCommand(state.id, self.photos(1, content_type='image/gif')))
        with self.assertRaises(ValidationError):
            self.engine.record_photos(WORKER, RecordPhotosCommand(state.id, self.photos(1, size=11 * 1024 * 1024)))
        self.assertEqual(self.engine.photo_store.count_for(state.id), 0)

    def test_count_and_save_hold_the_worker_day_lock(self):
        (state,) = self.assign(['p-1-t1'])
        photo_store = LockAwarePhotoStore(self.store)
        self.engine.photo_store = photo_store

        self.engine.record_photos(WORKER, RecordPhotosCommand(state.id, self.photos(2)))

        self.assertEqual(photo_store.lock_held, [True, True, True])


class TasksForDayTests(LifecycleTestCase):

    def test_summary(self):
        a, b, c = self.assign(['p-1-t1', 'p-1-t2', 'p-1-t3'])
        self.start(a.id)
        self.progress(a.id, 100)
        self.start(b.id)
        self.progress(b.id, 50)

        plan = self.engine.tasks_for_day(WORKER, 'w-1', DAY)
        self.assertEqual([s.id for s in plan.assignments], [a.id, b.id, c.id])
        self.assertEqual(plan.summary.total, 3)
        self.assertEqual(plan.summary.completed, 1)
        self.assertEqual(plan.summary.in_progress, 1)
        self.assertEqual(plan.summary.queued, 1)
        self.assertEqual(plan.summary.overall_progress, 50)

    def test_worker_cannot_read_another_workers_day(self):
        with self.assertRaises(NotFoundError):
            self.engine.tasks_for_day(WORKER, 'w-2', DAY)


class ValidateWorkerLocationTests(LifecycleTestCase):

    def test_check_does_not_change_state(self):
        (state,) = self.assign(['p-1-t1'])
        result = self.engine.validate_worker_location(WORKER, ValidateLocationCommand(state.id, point_north(300)))
        self.assertFalse(result.is_valid)
        self.assertEqual(self.store.find_by_id(state.id), state)
        (entry,) = self.engine.location_log.entries
        self.assertEqual(entry.log_type, LocationLogType.GEOFENCE_VALIDATION)
        self.assertFalse(entry.inside_geofence)
