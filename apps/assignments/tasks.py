"""Assignment Celery tasks."""

import logging

from celery import shared_task

from apps.core.models import AuditLog

logger = logging.getLogger(__name__)


@shared_task(bind=True, name="assignments.record_status_change")
def record_status_change(self, organization_id: str, assignment_id: str, previous_status,
                         new_status: str, actor_id=None, request_id=None):
    """Persist one assignment status transition to the audit trail."""
    action = 'create' if previous_status is None else 'status_change'
    entry = AuditLog.objects.create(
        organization_id=organization_id,
        actor_id=actor_id,
        action=action,
        resource_type='task_assignment',
        resource_id=assignment_id,
        old_values={'status': previous_status} if previous_status else None,
        new_values={'status': new_status},
        request_id=request_id,
    )
    logger.info(
        "audit_recorded assignment=%s action=%s %s->%s",
        assignment_id, action, previous_status, new_status,
    )
    return str(entry.id)
