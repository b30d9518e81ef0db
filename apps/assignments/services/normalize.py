"""
Input normalization at the engine boundary.

Raw request payloads (dicts, QueryDicts) become fully populated command
dataclasses here, before any gate runs. Anything malformed raises
``ValidationError`` naming the offending field.
"""

import math
from datetime import date, datetime

from django.utils.dateparse import parse_date, parse_datetime

from ..exceptions import ValidationError
from .progress import ProgressTracker
from .types import (
    AssignTasksCommand,
    CompleteAssignmentCommand,
    DailyTarget,
    Location,
    PhotoUpload,
    Priority,
    RecordPhotosCommand,
    RemoveQueuedAssignmentCommand,
    ReportIssueCommand,
    StartAssignmentCommand,
    SubmitProgressCommand,
    ValidateLocationCommand,
)

ISSUE_TYPES = (
    'material_shortage',
    'tool_malfunction',
    'safety_concern',
    'quality_issue',
    'weather_delay',
    'technical_problem',
    'other',
)

DESCRIPTION_MAX_LENGTH = 1000
NOTES_MAX_LENGTH = 500
ISSUE_DESCRIPTION_MIN_LENGTH = 10
MAX_ISSUES_ENCOUNTERED = 10
ISSUE_ENTRY_MAX_LENGTH = 200
MAX_GPS_ACCURACY_M = 1000


def _get(data, *keys, default=None):
    for key in keys:
        if data is not None and key in data and data[key] not in (None, ''):
            return data[key]
    return default


def _number(value, field, minimum=None, maximum=None):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field=field) from None
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{field} must be a finite number", field=field)
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", field=field)
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be at most {maximum}", field=field)
    return number


def _identifier(value, field):
    if value is None or str(value).strip() == '':
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


def _text(value, field, required=False, min_length=0, max_length=None):
    text = '' if value is None else str(value).strip()
    if required and not text:
        raise ValidationError(f"{field} is required", field=field)
    if text and len(text) < min_length:
        raise ValidationError(f"{field} must be at least {min_length} characters", field=field)
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field=field)
    return text


def _list(value, field):
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        return [part.strip() for part in value.split(',') if part.strip()]
    raise ValidationError(f"{field} must be a list", field=field)


def normalize_date(value, field='date'):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_date(str(value)) if value else None
    if parsed is None:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format", field=field)
    return parsed


def normalize_location(data, field='location', required=True):
    """
    Accepts ``{"latitude", "longitude", "accuracy"?, "timestamp"?}`` (or the
    ``lat``/``lng`` short forms), either nested under ``field`` or flat.
    """
    source = data.get(field) if data is not None and isinstance(data.get(field), dict) else data
    latitude = _get(source, 'latitude', 'lat')
    longitude = _get(source, 'longitude', 'lng')

    if latitude is None and longitude is None:
        if required:
            raise ValidationError("Location is required", field=field)
        return None
    if latitude is None or longitude is None:
        raise ValidationError("Both latitude and longitude are required", field=field)

    accuracy = _get(source, 'accuracy')
    timestamp = _get(source, 'timestamp')
    if timestamp is not None and not isinstance(timestamp, datetime):
        timestamp = parse_datetime(str(timestamp))

    return Location(
        latitude=_number(latitude, 'latitude', -90, 90),
        longitude=_number(longitude, 'longitude', -180, 180),
        accuracy=_number(accuracy, 'accuracy', 0, MAX_GPS_ACCURACY_M) if accuracy is not None else None,
        timestamp=timestamp,
    )


def _priority(value):
    priority = str(value or Priority.MEDIUM).strip().lower()
    if priority not in Priority.VALUES:
        raise ValidationError(
            f"priority must be one of: {', '.join(Priority.VALUES)}", field='priority'
        )
    return priority


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def assign_tasks_command(data) -> AssignTasksCommand:
    task_ids = [_identifier(t, 'task_ids') for t in _list(_get(data, 'task_ids'), 'task_ids')]
    if not task_ids:
        raise ValidationError("At least one task is required", field='task_ids')
    if len(set(task_ids)) != len(task_ids):
        raise ValidationError("task_ids must not contain duplicates", field='task_ids')

    target = _get(data, 'daily_target')
    daily_target = None
    if isinstance(target, dict):
        quantity = target.get('quantity')
        daily_target = DailyTarget(
            description=_text(target.get('description'), 'daily_target.description', max_length=500),
            quantity=_number(quantity, 'daily_target.quantity', 0) if quantity not in (None, '') else None,
            unit=_text(target.get('unit'), 'daily_target.unit', max_length=30),
            target_completion_percent=_number(
                target.get('target_completion_percent', 100), 'daily_target.target_completion_percent', 0, 100
            ),
        )

    estimated = _get(data, 'estimated_minutes')
    dependencies = [_identifier(d, 'dependencies') for d in _list(_get(data, 'dependencies'), 'dependencies')]

    return AssignTasksCommand(
        worker_id=_identifier(_get(data, 'worker_id', 'worker'), 'worker_id'),
        project_id=_identifier(_get(data, 'project_id', 'project'), 'project_id'),
        task_ids=tuple(task_ids),
        date=normalize_date(_get(data, 'date')),
        priority=_priority(_get(data, 'priority')),
        dependencies=tuple(dependencies),
        daily_target=daily_target,
        estimated_minutes=_number(estimated, 'estimated_minutes', 0) if estimated is not None else None,
    )


def start_command(assignment_id, data) -> StartAssignmentCommand:
    return StartAssignmentCommand(
        assignment_id=_identifier(assignment_id, 'assignment_id'),
        location=normalize_location(data),
    )


def progress_command(assignment_id, data) -> SubmitProgressCommand:
    percent = _get(data, 'percent', 'progress_percent')
    if percent is None:
        raise ValidationError("percent is required", field='percent')

    issues = [
        _text(issue, 'issues_encountered', max_length=ISSUE_ENTRY_MAX_LENGTH)
        for issue in _list(_get(data, 'issues_encountered'), 'issues_encountered')
    ]
    issues = [issue for issue in issues if issue]
    if len(issues) > MAX_ISSUES_ENCOUNTERED:
        raise ValidationError(
            f"At most {MAX_ISSUES_ENCOUNTERED} issues may be listed", field='issues_encountered'
        )

    quantity = _get(data, 'completed_quantity')
    version = _get(data, 'expected_version', 'version')

    return SubmitProgressCommand(
        assignment_id=_identifier(assignment_id, 'assignment_id'),
        percent=ProgressTracker.round_percent(_number(percent, 'percent', 0, 100)),
        description=_text(_get(data, 'description'), 'description', required=True, max_length=DESCRIPTION_MAX_LENGTH),
        location=normalize_location(data, required=False),
        notes=_text(_get(data, 'notes'), 'notes', max_length=NOTES_MAX_LENGTH),
        completed_quantity=_number(quantity, 'completed_quantity', 0) if quantity is not None else None,
        issues_encountered=tuple(issues),
        expected_version=int(_number(version, 'expected_version', 1)) if version is not None else None,
    )


def complete_command(assignment_id) -> CompleteAssignmentCommand:
    return CompleteAssignmentCommand(assignment_id=_identifier(assignment_id, 'assignment_id'))


def remove_command(assignment_id) -> RemoveQueuedAssignmentCommand:
    return RemoveQueuedAssignmentCommand(assignment_id=_identifier(assignment_id, 'assignment_id'))


def issue_command(assignment_id, data) -> ReportIssueCommand:
    issue_type = str(_get(data, 'issue_type', default='')).strip().lower()
    if issue_type not in ISSUE_TYPES:
        raise ValidationError(
            f"issue_type must be one of: {', '.join(ISSUE_TYPES)}", field='issue_type'
        )
    return ReportIssueCommand(
        assignment_id=_identifier(assignment_id, 'assignment_id'),
        issue_type=issue_type,
        priority=_priority(_get(data, 'priority')),
        description=_text(
            _get(data, 'description'), 'description', required=True,
            min_length=ISSUE_DESCRIPTION_MIN_LENGTH, max_length=DESCRIPTION_MAX_LENGTH,
        ),
        location=normalize_location(data, required=False),
        work_area=_text(_get(data, 'work_area'), 'work_area', max_length=100),
    )


def photos_command(assignment_id, files, captions=()) -> RecordPhotosCommand:
    """``files`` are Django ``UploadedFile`` objects (or anything with name/size/content_type)."""
    files = list(files or ())
    if not files:
        raise ValidationError("At least one photo is required", field='photos')
    captions = list(captions or ())
    uploads = tuple(
        PhotoUpload(
            name=getattr(f, 'name', '') or '',
            content_type=(getattr(f, 'content_type', '') or '').lower(),
            size=int(getattr(f, 'size', 0) or 0),
            content=f,
            caption=_text(captions[i] if i < len(captions) else '', 'captions', max_length=255),
        )
        for i, f in enumerate(files)
    )
    return RecordPhotosCommand(
        assignment_id=_identifier(assignment_id, 'assignment_id'),
        photos=uploads,
    )


def validate_location_command(assignment_id, data) -> ValidateLocationCommand:
    return ValidateLocationCommand(
        assignment_id=_identifier(assignment_id, 'assignment_id'),
        location=normalize_location(data),
    )
