"""
Attendance Models - Site check-in / check-out and the location audit trail
"""

from django.core.exceptions import ValidationError
from django.db import models

from apps.core.models import OrganizationEntity


def _ensure_same_org(instance, related_obj, field_name):
    """Ensure related_obj belongs to the same organization as instance."""
    if related_obj is None:
        return

    related_org_id = getattr(related_obj, 'organization_id', None)
    if instance.organization_id and related_org_id:
        if related_org_id != instance.organization_id:
            raise ValidationError({field_name: 'Must belong to the same organization.'})

    if not instance.organization_id and related_org_id:
        instance.organization_id = related_org_id


class AttendanceRecord(OrganizationEntity):
    """Daily attendance of one worker at one project site"""

    STATUS_PRESENT = 'present'
    STATUS_ABSENT = 'absent'

    STATUS_CHOICES = [
        (STATUS_PRESENT, 'Present'),
        (STATUS_ABSENT, 'Absent'),
    ]

    employee = models.ForeignKey(
        'employees.Employee',
        on_delete=models.CASCADE,
        related_name='attendance_records'
    )
    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.CASCADE,
        related_name='attendance_records'
    )
    date = models.DateField(db_index=True)

    # Check in/out
    check_in = models.DateTimeField(null=True, blank=True)
    check_out = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ABSENT)
    total_hours = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    # Location data
    check_in_latitude = models.DecimalField(max_digits=10, decimal_places=8, null=True, blank=True)
    check_in_longitude = models.DecimalField(max_digits=11, decimal_places=8, null=True, blank=True)
    check_in_accuracy = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    check_out_latitude = models.DecimalField(max_digits=10, decimal_places=8, null=True, blank=True)
    check_out_longitude = models.DecimalField(max_digits=11, decimal_places=8, null=True, blank=True)

    inside_geofence_at_checkin = models.BooleanField(default=False)
    check_in_distance_meters = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    class Meta:
        ordering = ['-date', 'employee']
        constraints = [
            models.UniqueConstraint(
                fields=['employee', 'project', 'date'],
                name='unique_attendance_per_employee_project_day',
            ),
        ]

    def __str__(self):
        return f"{self.employee_id} @ {self.project_id} - {self.date}"

    def clean(self):
        super().clean()
        _ensure_same_org(self, self.employee, 'employee')
        _ensure_same_org(self, self.project, 'project')

    def save(self, *args, **kwargs):
        if self.employee_id and not self.organization_id:
            self.organization_id = self.employee.organization_id
        self.full_clean()
        return super().save(*args, **kwargs)

    def calculate_hours(self):
        """Calculate hours between check-in and check-out"""
        if not (self.check_in and self.check_out):
            return
        delta = self.check_out - self.check_in
        self.total_hours = round(delta.total_seconds() / 3600, 2)


class LocationLog(OrganizationEntity):
    """Append-only record of a worker location fix and how it was used"""

    TYPE_GEOFENCE_VALIDATION = 'GEOFENCE_VALIDATION'
    TYPE_TASK_START = 'TASK_START'
    TYPE_TASK_PROGRESS = 'TASK_PROGRESS'
    TYPE_TASK_COMPLETE = 'TASK_COMPLETE'
    TYPE_CHECK_IN = 'CHECK_IN'
    TYPE_CHECK_OUT = 'CHECK_OUT'

    TYPE_CHOICES = [
        (TYPE_GEOFENCE_VALIDATION, 'Geofence Validation'),
        (TYPE_TASK_START, 'Task Start'),
        (TYPE_TASK_PROGRESS, 'Task Progress'),
        (TYPE_TASK_COMPLETE, 'Task Complete'),
        (TYPE_CHECK_IN, 'Check In'),
        (TYPE_CHECK_OUT, 'Check Out'),
    ]

    employee = models.ForeignKey(
        'employees.Employee',
        on_delete=models.CASCADE,
        related_name='location_logs'
    )
    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.CASCADE,
        related_name='location_logs'
    )
    assignment = models.ForeignKey(
        'assignments.TaskAssignment',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='location_logs'
    )
    latitude = models.DecimalField(max_digits=10, decimal_places=8)
    longitude = models.DecimalField(max_digits=11, decimal_places=8)
    accuracy = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    inside_geofence = models.BooleanField(default=False)
    log_type = models.CharField(max_length=30, choices=TYPE_CHOICES, db_index=True)
    logged_at = models.DateTimeField(db_index=True)

    class Meta:
        ordering = ['-logged_at']
        indexes = [
            models.Index(fields=['employee', 'logged_at'], name='locationlog_employee_ts_idx'),
        ]

    def __str__(self):
        return f"{self.log_type} {self.employee_id} @ {self.logged_at}"
