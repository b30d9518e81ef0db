"""
Employee Models - Workers and supervisors on site
"""

from django.db import models
from django.conf import settings

from apps.core.models import OrganizationEntity


class Employee(OrganizationEntity):
    """
    Field employee record.
    Links to User for authentication; the role decides which assignment
    actions the employee may perform.
    """

    ROLE_WORKER = 'worker'
    ROLE_SUPERVISOR = 'supervisor'

    ROLE_CHOICES = [
        (ROLE_WORKER, 'Worker'),
        (ROLE_SUPERVISOR, 'Supervisor'),
    ]

    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
    ]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='employee'
    )
    employee_id = models.CharField(max_length=50, db_index=True)
    full_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=20, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_WORKER, db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    supervisor = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='crew'
    )

    class Meta:
        ordering = ['employee_id']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'employee_id'],
                name='unique_employee_id_per_org',
            ),
        ]

    def __str__(self):
        return f"{self.employee_id} - {self.full_name}"

    @property
    def is_supervisor(self):
        return self.role == self.ROLE_SUPERVISOR
