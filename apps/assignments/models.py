"""
Assignment Models - Daily task assignments, progress, issues and photos
"""

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from apps.core.models import OrganizationEntity

from .services.normalize import ISSUE_TYPES
from .services.types import AssignmentStatus, Priority


def _ensure_same_org(instance, related, field_name):
    if related is None:
        return
    if instance.organization_id and related.organization_id != instance.organization_id:
        raise ValidationError({field_name: 'Must belong to the same organization.'})


def photo_upload_path(instance, filename):
    return f"assignments/{instance.organization_id}/{instance.assignment_id}/{filename}"


class TaskAssignment(OrganizationEntity):
    """
    One task handed to one worker for one day.

    Rows are written only through ``DjangoAssignmentStore``; every update
    bumps ``version`` and is conditional on the version the writer read.
    """

    worker = models.ForeignKey(
        'employees.Employee',
        on_delete=models.CASCADE,
        related_name='assignments'
    )
    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.CASCADE,
        related_name='assignments'
    )
    task = models.ForeignKey(
        'projects.Task',
        on_delete=models.CASCADE,
        related_name='assignments'
    )
    supervisor = models.ForeignKey(
        'employees.Employee',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_tasks'
    )

    date = models.DateField(db_index=True)
    status = models.CharField(
        max_length=20,
        choices=AssignmentStatus.CHOICES,
        default=AssignmentStatus.QUEUED,
        db_index=True
    )
    sequence = models.PositiveIntegerField(null=True, blank=True)
    priority = models.CharField(max_length=10, choices=Priority.CHOICES, default=Priority.MEDIUM)
    dependencies = models.JSONField(default=list, blank=True)

    # Daily target
    target_description = models.CharField(max_length=500, blank=True)
    target_quantity = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    target_unit = models.CharField(max_length=30, blank=True)
    target_completion_percent = models.DecimalField(max_digits=5, decimal_places=2, default=100)

    # Time estimate
    estimated_minutes = models.DecimalField(max_digits=8, decimal_places=2, default=0)
    elapsed_minutes = models.DecimalField(max_digits=8, decimal_places=2, default=0)
    remaining_minutes = models.DecimalField(max_digits=8, decimal_places=2, default=0)

    progress_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )

    # Last accepted geofence check
    last_validated_at = models.DateTimeField(null=True, blank=True)
    last_latitude = models.DecimalField(max_digits=10, decimal_places=8, null=True, blank=True)
    last_longitude = models.DecimalField(max_digits=11, decimal_places=8, null=True, blank=True)
    last_accuracy = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    last_distance_meters = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    last_inside_geofence = models.BooleanField(null=True, blank=True)

    start_time = models.DateTimeField(null=True, blank=True)
    end_time = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    assigned_at = models.DateTimeField(null=True, blank=True)

    work_area = models.CharField(max_length=100, blank=True)
    floor = models.CharField(max_length=50, blank=True)
    zone = models.CharField(max_length=50, blank=True)

    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ['date', 'worker', 'sequence']
        constraints = [
            models.UniqueConstraint(
                fields=['worker', 'task', 'date'],
                name='unique_task_per_worker_day',
            ),
            models.UniqueConstraint(
                fields=['worker', 'date'],
                condition=Q(status=AssignmentStatus.IN_PROGRESS),
                name='single_active_assignment_per_worker_day',
            ),
        ]
        indexes = [
            models.Index(fields=['worker', 'date', 'status'], name='assignment_worker_day_idx'),
            models.Index(fields=['worker', 'project', 'date'], name='assignment_siblings_idx'),
        ]

    def __str__(self):
        return f"{self.worker_id} - {self.task_id} ({self.date})"

    def clean(self):
        super().clean()
        _ensure_same_org(self, self.worker, 'worker')
        _ensure_same_org(self, self.project, 'project')
        if self.task_id and self.project_id and self.task.project_id != self.project_id:
            raise ValidationError({'task': 'Task does not belong to the project.'})


class TaskProgress(OrganizationEntity):
    """Progress submission. Append-only."""

    assignment = models.ForeignKey(
        TaskAssignment,
        on_delete=models.CASCADE,
        related_name='progress_updates'
    )
    worker = models.ForeignKey(
        'employees.Employee',
        on_delete=models.CASCADE,
        related_name='progress_updates'
    )
    percent = models.DecimalField(
        max_digits=5, decimal_places=2,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    description = models.TextField(max_length=1000)
    notes = models.TextField(max_length=500, blank=True)
    completed_quantity = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    issues_encountered = models.JSONField(default=list, blank=True)

    latitude = models.DecimalField(max_digits=10, decimal_places=8, null=True, blank=True)
    longitude = models.DecimalField(max_digits=11, decimal_places=8, null=True, blank=True)
    accuracy = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)

    submitted_at = models.DateTimeField(db_index=True)

    class Meta:
        ordering = ['assignment', 'submitted_at']
        verbose_name_plural = 'Task progress'

    def __str__(self):
        return f"{self.assignment_id} @ {self.percent}%"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Progress records cannot be modified")
        return super().save(*args, **kwargs)


class TaskIssue(OrganizationEntity):
    """Issue ticket raised by a worker against an assignment."""

    ISSUE_TYPE_CHOICES = [(t, t.replace('_', ' ').title()) for t in ISSUE_TYPES]

    STATUS_REPORTED = 'reported'
    STATUS_ACKNOWLEDGED = 'acknowledged'
    STATUS_RESOLVED = 'resolved'

    STATUS_CHOICES = [
        (STATUS_REPORTED, 'Reported'),
        (STATUS_ACKNOWLEDGED, 'Acknowledged'),
        (STATUS_RESOLVED, 'Resolved'),
    ]

    assignment = models.ForeignKey(
        TaskAssignment,
        on_delete=models.CASCADE,
        related_name='issues'
    )
    worker = models.ForeignKey(
        'employees.Employee',
        on_delete=models.CASCADE,
        related_name='reported_issues'
    )
    ticket_number = models.CharField(max_length=64, unique=True)
    issue_type = models.CharField(max_length=30, choices=ISSUE_TYPE_CHOICES)
    priority = models.CharField(max_length=10, choices=Priority.CHOICES, default=Priority.MEDIUM)
    description = models.TextField(max_length=1000)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_REPORTED, db_index=True)

    latitude = models.DecimalField(max_digits=10, decimal_places=8, null=True, blank=True)
    longitude = models.DecimalField(max_digits=11, decimal_places=8, null=True, blank=True)
    work_area = models.CharField(max_length=100, blank=True)

    reported_at = models.DateTimeField(db_index=True)

    class Meta:
        ordering = ['-reported_at']

    def __str__(self):
        return self.ticket_number


class TaskPhoto(OrganizationEntity):
    """Photo evidence attached to an assignment."""

    assignment = models.ForeignKey(
        TaskAssignment,
        on_delete=models.CASCADE,
        related_name='photos'
    )
    worker = models.ForeignKey(
        'employees.Employee',
        on_delete=models.CASCADE,
        related_name='task_photos'
    )
    image = models.FileField(upload_to=photo_upload_path)
    file_name = models.CharField(max_length=255)
    content_type = models.CharField(max_length=50)
    size = models.PositiveIntegerField()
    caption = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ['assignment', 'created_at']

    def __str__(self):
        return self.file_name
