"""
Assignment Engine Types - immutable state, commands and results

Every transition builds a new ``AssignmentState`` with ``evolve()`` and hands
it to the store; nothing in the engine mutates state in place.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Optional, Tuple


class AssignmentStatus:
    QUEUED = 'queued'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    BLOCKED = 'blocked'

    CHOICES = [
        (QUEUED, 'Queued'),
        (IN_PROGRESS, 'In Progress'),
        (COMPLETED, 'Completed'),
        (BLOCKED, 'Blocked'),
    ]

    NON_TERMINAL = (QUEUED, IN_PROGRESS)


class Priority:
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'

    CHOICES = [
        (LOW, 'Low'),
        (MEDIUM, 'Medium'),
        (HIGH, 'High'),
        (CRITICAL, 'Critical'),
    ]

    VALUES = (LOW, MEDIUM, HIGH, CRITICAL)
    BLOCKING = (HIGH, CRITICAL)


class NextAction:
    CONTINUE_WORK = 'continue_work'
    TASK_COMPLETED = 'task_completed'
    RESOLVE_ISSUES = 'resolve_issues'


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    timestamp: Optional[datetime] = None

    def as_dict(self):
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'accuracy': self.accuracy,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass(frozen=True)
class GeofenceRegion:
    center_latitude: float
    center_longitude: float
    radius_meters: float = 100
    strict_mode: bool = True
    allowed_variance_meters: float = 10


@dataclass(frozen=True)
class GeofenceResult:
    inside_geofence: bool
    distance_meters: float
    is_valid: bool
    message: str
    allowed_radius_meters: float
    strict_validation: bool
    accuracy_meters: Optional[float] = None
    accuracy_warning: Optional[str] = None
    accuracy_adjusted: bool = False

    def as_dict(self):
        return {
            'inside_geofence': self.inside_geofence,
            'distance_meters': round(self.distance_meters, 2),
            'is_valid': self.is_valid,
            'message': self.message,
            'allowed_radius_meters': self.allowed_radius_meters,
            'strict_validation': self.strict_validation,
            'accuracy_meters': self.accuracy_meters,
            'accuracy_warning': self.accuracy_warning,
            'accuracy_adjusted': self.accuracy_adjusted,
        }


@dataclass(frozen=True)
class DailyTarget:
    description: str = ''
    quantity: Optional[float] = None
    unit: str = ''
    target_completion_percent: float = 100


@dataclass(frozen=True)
class TimeEstimate:
    estimated_minutes: float = 0
    elapsed_minutes: float = 0
    remaining_minutes: float = 0


@dataclass(frozen=True)
class GeofenceSnapshot:
    last_validated_at: datetime
    location: Location
    distance_meters: Optional[float] = None
    inside_geofence: Optional[bool] = None


@dataclass(frozen=True)
class AssignmentState:
    id: str
    worker_id: str
    project_id: str
    task_id: str
    date: date
    status: str = AssignmentStatus.QUEUED
    sequence: Optional[int] = None
    priority: str = Priority.MEDIUM
    dependencies: Tuple[str, ...] = ()
    daily_target: DailyTarget = field(default_factory=DailyTarget)
    time_estimate: TimeEstimate = field(default_factory=TimeEstimate)
    progress_percent: float = 0
    geofence_snapshot: Optional[GeofenceSnapshot] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    supervisor_id: Optional[str] = None
    work_area: str = ''
    floor: str = ''
    zone: str = ''
    version: int = 1

    def evolve(self, **changes):
        return replace(self, **changes)

    @property
    def is_terminal(self):
        return self.status not in AssignmentStatus.NON_TERMINAL


@dataclass(frozen=True)
class ProgressRecord:
    id: str
    assignment_id: str
    worker_id: str
    percent: float
    description: str
    submitted_at: datetime
    location: Optional[Location] = None
    notes: str = ''
    completed_quantity: Optional[float] = None
    issues_encountered: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskInfo:
    """Catalog view of a project task, used to seed new assignments."""
    id: str
    project_id: str
    name: str = ''
    description: str = ''
    estimated_minutes: float = 0
    target_quantity: Optional[float] = None
    unit: str = ''
    work_area: str = ''
    floor: str = ''
    zone: str = ''


@dataclass(frozen=True)
class AuthContext:
    """Who is acting. Built once by the caller, passed into every operation."""
    employee_id: str
    role: str = 'worker'
    organization_id: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def is_supervisor(self):
        return self.role == 'supervisor'


# ---------------------------------------------------------------------------
# Commands (fully normalized input)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AssignTasksCommand:
    worker_id: str
    project_id: str
    task_ids: Tuple[str, ...]
    date: date
    priority: str = Priority.MEDIUM
    dependencies: Tuple[str, ...] = ()
    daily_target: Optional[DailyTarget] = None
    estimated_minutes: Optional[float] = None


@dataclass(frozen=True)
class StartAssignmentCommand:
    assignment_id: str
    location: Location


@dataclass(frozen=True)
class SubmitProgressCommand:
    assignment_id: str
    percent: float
    description: str
    location: Optional[Location] = None
    notes: str = ''
    completed_quantity: Optional[float] = None
    issues_encountered: Tuple[str, ...] = ()
    expected_version: Optional[int] = None


@dataclass(frozen=True)
class CompleteAssignmentCommand:
    assignment_id: str


@dataclass(frozen=True)
class RemoveQueuedAssignmentCommand:
    assignment_id: str


@dataclass(frozen=True)
class ReportIssueCommand:
    assignment_id: str
    issue_type: str
    priority: str
    description: str
    location: Optional[Location] = None
    work_area: str = ''


@dataclass(frozen=True)
class PhotoUpload:
    name: str
    content_type: str
    size: int
    content: object = None
    caption: str = ''


@dataclass(frozen=True)
class RecordPhotosCommand:
    assignment_id: str
    photos: Tuple[PhotoUpload, ...]


@dataclass(frozen=True)
class ValidateLocationCommand:
    assignment_id: str
    location: Location


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IncompleteDependency:
    id: str
    status: str
    progress_percent: float = 0


@dataclass(frozen=True)
class DependencyCheck:
    can_start: bool
    missing_ids: Tuple[str, ...] = ()
    incomplete: Tuple[IncompleteDependency, ...] = ()


@dataclass(frozen=True)
class BlockingAssignment:
    id: str
    sequence: Optional[int]
    status: str
    progress_percent: float = 0


@dataclass(frozen=True)
class SequenceCheck:
    can_start: bool
    blocking: Tuple[BlockingAssignment, ...] = ()

    @property
    def blocking_ids(self):
        return tuple(b.id for b in self.blocking)


@dataclass(frozen=True)
class AssignTasksResult:
    created: int
    assignments: Tuple[AssignmentState, ...]


@dataclass(frozen=True)
class StartResult:
    assignment: AssignmentState
    geofence: GeofenceResult
    estimated_end_time: Optional[datetime] = None


@dataclass(frozen=True)
class ProgressResult:
    progress_id: str
    previous_percent: float
    new_percent: float
    progress_delta: float
    status: str
    time_estimate: TimeEstimate
    next_action: str
    assignment: AssignmentState


@dataclass(frozen=True)
class IssueTicket:
    id: str
    ticket_number: str
    assignment_id: str
    worker_id: str
    issue_type: str
    priority: str
    description: str
    reported_at: datetime
    status: str = 'reported'
    location: Optional[Location] = None
    work_area: str = ''


@dataclass(frozen=True)
class IssueResult:
    ticket: IssueTicket
    assignment: AssignmentState
    blocked: bool


@dataclass(frozen=True)
class StoredPhoto:
    id: str
    assignment_id: str
    file_name: str
    content_type: str
    size: int
    url: str = ''
    caption: str = ''


@dataclass(frozen=True)
class PhotoResult:
    photos: Tuple[StoredPhoto, ...]
    total_photos: int
    remaining_slots: int


@dataclass(frozen=True)
class DaySummary:
    total: int
    queued: int
    in_progress: int
    completed: int
    blocked: int
    overall_progress: float


@dataclass(frozen=True)
class DayPlan:
    worker_id: str
    date: date
    assignments: Tuple[AssignmentState, ...]
    summary: DaySummary


@dataclass(frozen=True)
class LocationLogEntry:
    worker_id: str
    project_id: str
    location: Location
    inside_geofence: bool
    log_type: str
    assignment_id: Optional[str] = None
    logged_at: Optional[datetime] = None
