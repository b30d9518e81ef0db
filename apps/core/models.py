"""
Core Models - Base classes for all field work models
Organization-scoped: Organization → Project → Assignment
"""

import uuid
from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError


class TimeStampedModel(models.Model):
    """Abstract base model with timestamps"""

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================================
# ORGANIZATION MODEL
# ============================================================================

class Organization(models.Model):
    """Contractor company that owns projects, workers and assignments."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )
    name = models.CharField(max_length=255, db_index=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    timezone = models.CharField(max_length=100, default='UTC')
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'organizations'
        ordering = ['name']

    def __str__(self):
        return self.name

    def clean(self):
        if not self.name or not self.name.strip():
            raise ValidationError("Organization name is required")


class AuditModel(models.Model):
    """Abstract model with audit fields"""

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='%(class)s_created'
    )

    class Meta:
        abstract = True


class OrganizationEntity(TimeStampedModel, AuditModel):
    """
    Organization-scoped base model.

    Provides UUID PK, timestamps, audit field, and the
    ``organization`` FK every query is scoped by.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    is_active = models.BooleanField(default=True, db_index=True)
    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        db_index=True,
        related_name='%(app_label)s_%(class)s_set',
    )

    class Meta:
        abstract = True


class AuditLog(OrganizationEntity):
    """Audit trail of state changes recorded by background tasks"""

    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    # Actor
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    actor_id = models.CharField(max_length=100, null=True, blank=True)

    # Action info
    action = models.CharField(max_length=50, db_index=True)
    resource_type = models.CharField(max_length=100, db_index=True)
    resource_id = models.CharField(max_length=100, db_index=True)

    # Change data
    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)

    request_id = models.CharField(max_length=100, null=True, blank=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['organization', 'timestamp'], name='auditlog_org_ts_idx'),
            models.Index(fields=['resource_type', 'resource_id'], name='auditlog_resource_idx'),
        ]

    def __str__(self):
        return f"{self.action} {self.resource_type} {self.resource_id}"
