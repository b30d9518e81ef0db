"""
Assignment Engine Errors

Every gate failure is raised before anything is written, so persisted
state is unchanged when one of these propagates. ``details`` carries the
structured reason callers render back to the worker.
"""

from rest_framework import status

from apps.core.exceptions import (
    APIException,
    ConflictException,
    ResourceNotFoundException,
    ValidationException,
)


class ValidationError(ValidationException):
    """Malformed or out-of-range input."""


class NotFoundError(ResourceNotFoundException):
    """Assignment, task or project missing (or not visible to the caller)."""


class InvalidTask(APIException):
    code = 'invalid_task'

    def __init__(self, project_id, task_ids):
        task_ids = [str(t) for t in task_ids]
        super().__init__(
            f"Tasks do not belong to project {project_id}: {', '.join(task_ids)}",
            details={'project_id': str(project_id), 'invalid_task_ids': task_ids},
        )


class DuplicateAssignment(ConflictException):
    code = 'duplicate_assignment'

    def __init__(self, worker_id, task_ids, date):
        task_ids = [str(t) for t in task_ids]
        super().__init__(
            f"Tasks already assigned to worker {worker_id} on {date}: {', '.join(task_ids)}",
            details={'worker_id': str(worker_id), 'task_ids': task_ids, 'date': str(date)},
        )


class StateConflict(ConflictException):
    code = 'state_conflict'

    def __init__(self, assignment_id, current_status, allowed, action):
        allowed = list(allowed)
        super().__init__(
            f"Cannot {action} assignment {assignment_id} in status '{current_status}'",
            details={
                'assignment_id': str(assignment_id),
                'current_status': current_status,
                'allowed_statuses': allowed,
                'action': action,
            },
        )
        self.current_status = current_status


class ConcurrencyConflict(ConflictException):
    code = 'concurrency_conflict'

    def __init__(self, assignment_id, expected_version, actual_version=None):
        super().__init__(
            f"Assignment {assignment_id} was modified concurrently; reload and retry",
            details={
                'assignment_id': str(assignment_id),
                'expected_version': expected_version,
                'actual_version': actual_version,
            },
        )


class DependencyUnmet(ConflictException):
    code = 'dependency_unmet'

    def __init__(self, check):
        super().__init__(
            "Dependent tasks must be completed before starting this task",
            details={
                'missing_ids': list(check.missing_ids),
                'incomplete': [
                    {'id': d.id, 'status': d.status, 'progress_percent': d.progress_percent}
                    for d in check.incomplete
                ],
            },
        )
        self.check = check


class SequenceViolation(ConflictException):
    code = 'sequence_violation'

    def __init__(self, check):
        super().__init__(
            "Earlier tasks in the sequence must be completed first",
            details={
                'blocking_ids': list(check.blocking_ids),
                'blocking': [
                    {
                        'id': b.id,
                        'sequence': b.sequence,
                        'status': b.status,
                        'progress_percent': b.progress_percent,
                    }
                    for b in check.blocking
                ],
            },
        )
        self.check = check


class ConcurrentActiveTask(ConflictException):
    code = 'concurrent_active_task'

    def __init__(self, worker_id, date, active_id=None):
        super().__init__(
            "Worker already has a task in progress for this day",
            details={
                'worker_id': str(worker_id),
                'date': str(date),
                'active_assignment_id': str(active_id) if active_id else None,
            },
        )


class GeofenceViolation(APIException):
    code = 'outside_geofence'
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, result):
        super().__init__(result.message, details=result.as_dict())
        self.result = result


OutsideGeofence = GeofenceViolation


class ResourceLimitExceeded(APIException):
    code = 'resource_limit_exceeded'
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, resource, current, attempted, limit):
        super().__init__(
            f"Maximum {limit} {resource} allowed; {current} already recorded, {attempted} submitted",
            details={
                'resource': resource,
                'current': current,
                'attempted': attempted,
                'limit': limit,
            },
        )


class ProgressDecreaseNotAllowed(APIException):
    code = 'progress_decrease_not_allowed'

    def __init__(self, current_percent, attempted_percent):
        super().__init__(
            f"Progress cannot decrease from {current_percent}% to {attempted_percent}%",
            details={'current': current_percent, 'attempted': attempted_percent},
        )


class AttendanceRequired(APIException):
    code = 'attendance_required'
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, worker_id, project_id):
        super().__init__(
            "Check in at the project site before starting tasks",
            details={'worker_id': str(worker_id), 'project_id': str(project_id)},
        )
