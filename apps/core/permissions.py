"""
Permission Classes - role checks for field employees
"""

from rest_framework.permissions import BasePermission


def get_request_employee(request):
    """Active ``Employee`` linked to the authenticated user, or None."""
    user = getattr(request, 'user', None)
    if not user or not user.is_authenticated:
        return None
    employee = getattr(user, 'employee', None)
    if employee is None or not employee.is_active or employee.status != employee.STATUS_ACTIVE:
        return None
    return employee


class HasEmployeeProfile(BasePermission):
    """Caller must be an active employee of an organization."""

    message = 'No active employee profile found'

    def has_permission(self, request, view):
        return get_request_employee(request) is not None


class IsSupervisor(BasePermission):
    """
    DRF permission class restricting some view actions to supervisors.

    Usage in ViewSet:
        permission_classes = [HasEmployeeProfile, IsSupervisor]
        supervisor_actions = {'assign', 'destroy'}
    """

    message = 'Supervisor role required'

    def has_permission(self, request, view):
        action = getattr(view, 'action', None)
        if action not in getattr(view, 'supervisor_actions', ()):
            return True

        employee = get_request_employee(request)
        return employee is not None and employee.is_supervisor
