"""
Project Models - Sites, their geofence, and the task catalog
"""

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from apps.core.models import OrganizationEntity


def _ensure_same_org(instance, related, field_name):
    if related is None:
        return
    if related.organization_id != instance.organization_id:
        raise ValidationError({field_name: 'Must belong to the same organization.'})


class Project(OrganizationEntity):
    """
    Construction site.

    The centre point, radius, strict mode and variance together form the
    geofence region that gates task start and attendance check-in.
    """

    STATUS_PLANNED = 'planned'
    STATUS_ACTIVE = 'active'
    STATUS_ON_HOLD = 'on_hold'
    STATUS_COMPLETED = 'completed'

    STATUS_CHOICES = [
        (STATUS_PLANNED, 'Planned'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_ON_HOLD, 'On Hold'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50, db_index=True)
    address = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    supervisor = models.ForeignKey(
        'employees.Employee',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='supervised_projects'
    )

    # Geofence
    center_latitude = models.DecimalField(
        max_digits=10, decimal_places=8,
        validators=[MinValueValidator(-90), MaxValueValidator(90)],
    )
    center_longitude = models.DecimalField(
        max_digits=11, decimal_places=8,
        validators=[MinValueValidator(-180), MaxValueValidator(180)],
    )
    radius_meters = models.PositiveIntegerField(
        default=100,
        validators=[MinValueValidator(1), MaxValueValidator(10000)],
    )
    strict_mode = models.BooleanField(default=True)
    allowed_variance_meters = models.PositiveIntegerField(
        default=10,
        validators=[MaxValueValidator(1000)],
    )

    class Meta:
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'code'],
                name='unique_project_code_per_org',
            ),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def clean(self):
        super().clean()
        _ensure_same_org(self, self.supervisor, 'supervisor')

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class Task(OrganizationEntity):
    """Unit of work defined on a project; assigned to workers per day."""

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='tasks'
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    # Defaults copied onto each assignment
    estimated_minutes = models.PositiveIntegerField(default=0)
    target_quantity = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    unit = models.CharField(max_length=30, blank=True)
    work_area = models.CharField(max_length=100, blank=True)
    floor = models.CharField(max_length=50, blank=True)
    zone = models.CharField(max_length=50, blank=True)

    class Meta:
        ordering = ['project', 'name']
        indexes = [
            models.Index(fields=['project', 'is_active'], name='task_project_active_idx'),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        _ensure_same_org(self, self.project, 'project')

    def save(self, *args, **kwargs):
        if self.project_id and not self.organization_id:
            self.organization = self.project.organization
        self.full_clean()
        return super().save(*args, **kwargs)
