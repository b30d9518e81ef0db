from django.contrib import admin

from apps.core.admin import OrganizationScopedAdmin
from .models import Project, Task


class TaskInline(admin.TabularInline):
    model = Task
    extra = 0
    fields = ['name', 'estimated_minutes', 'target_quantity', 'unit', 'work_area', 'is_active']


@admin.register(Project)
class ProjectAdmin(OrganizationScopedAdmin):
    list_display = ['code', 'name', 'status', 'supervisor', 'radius_meters', 'strict_mode', 'organization']
    list_filter = ['status', 'strict_mode', 'organization']
    search_fields = ['code', 'name']
    raw_id_fields = ['supervisor']
    fieldsets = (
        ('Project', {'fields': ('organization', 'code', 'name', 'address', 'status', 'supervisor')}),
        ('Geofence', {'fields': (
            'center_latitude', 'center_longitude', 'radius_meters',
            'strict_mode', 'allowed_variance_meters',
        )}),
    )
    inlines = [TaskInline]


@admin.register(Task)
class TaskAdmin(OrganizationScopedAdmin):
    list_display = ['name', 'project', 'estimated_minutes', 'unit', 'is_active']
    list_filter = ['project', 'is_active']
    search_fields = ['name', 'project__name']
