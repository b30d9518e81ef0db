"""
Assignment Signals

``assignment_status_changed`` fires after commit for every created
assignment (``previous_status=None``) and every status transition.
"""

from django.dispatch import Signal, receiver

from apps.core.logging import get_correlation_id

assignment_status_changed = Signal()


@receiver(assignment_status_changed)
def queue_audit_entry(sender, assignment, previous_status, new_status, actor_id=None,
                      organization_id=None, **kwargs):
    """Record the transition in the audit log off the request path."""
    if not organization_id:
        return

    from .tasks import record_status_change

    record_status_change.delay(
        organization_id=str(organization_id),
        assignment_id=str(assignment.id),
        previous_status=previous_status,
        new_status=new_status,
        actor_id=str(actor_id) if actor_id else None,
        request_id=get_correlation_id(),
    )
