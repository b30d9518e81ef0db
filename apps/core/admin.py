"""
Core Admin - Organization-scoped base classes
"""

from django.contrib import admin
from .models import AuditLog, Organization


class OrganizationScopedAdmin(admin.ModelAdmin):
    """
    Base admin that limits staff users to their own organization.
    Superusers see everything.
    """

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if request.user.is_superuser:
            return qs
        employee = getattr(request.user, 'employee', None)
        if employee is None:
            return qs.none()
        return qs.filter(organization_id=employee.organization_id)


class ReadOnlyOrganizationScopedAdmin(OrganizationScopedAdmin):
    """Audit-style admin: records are written by the system only."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return request.user.is_superuser


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'timezone', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name', 'email']
    readonly_fields = ['id', 'created_at', 'updated_at']
    fieldsets = (
        ('Basic Information', {'fields': ('id', 'name', 'email', 'phone')}),
        ('Settings', {'fields': ('timezone', 'is_active')}),
        ('Timestamps', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )
    ordering = ['-created_at']


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyOrganizationScopedAdmin):
    list_display = ['timestamp', 'organization', 'actor_id', 'action', 'resource_type', 'resource_id']
    list_filter = ['action', 'resource_type', 'timestamp', 'organization']
    search_fields = ['resource_id', 'actor_id', 'organization__name']
    readonly_fields = [
        'id', 'timestamp', 'organization', 'user', 'actor_id', 'action',
        'resource_type', 'resource_id', 'old_values', 'new_values', 'request_id',
    ]
    ordering = ['-timestamp']
