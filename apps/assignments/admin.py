from django.contrib import admin

from apps.core.admin import OrganizationScopedAdmin, ReadOnlyOrganizationScopedAdmin
from .models import TaskAssignment, TaskIssue, TaskPhoto, TaskProgress


class TaskProgressInline(admin.TabularInline):
    model = TaskProgress
    extra = 0
    can_delete = False
    fields = ['percent', 'description', 'completed_quantity', 'submitted_at']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(TaskAssignment)
class TaskAssignmentAdmin(ReadOnlyOrganizationScopedAdmin):
    list_display = ['worker', 'task', 'project', 'date', 'sequence', 'status', 'progress_percent', 'priority']
    list_filter = ['status', 'priority', 'date']
    search_fields = ['worker__employee_id', 'worker__full_name', 'task__name', 'project__code']
    raw_id_fields = ['worker', 'project', 'task', 'supervisor']
    date_hierarchy = 'date'
    inlines = [TaskProgressInline]


@admin.register(TaskIssue)
class TaskIssueAdmin(OrganizationScopedAdmin):
    list_display = ['ticket_number', 'issue_type', 'priority', 'status', 'worker', 'reported_at']
    list_filter = ['issue_type', 'priority', 'status']
    search_fields = ['ticket_number', 'description']
    raw_id_fields = ['assignment', 'worker']
    readonly_fields = ['ticket_number', 'assignment', 'worker', 'reported_at']


@admin.register(TaskPhoto)
class TaskPhotoAdmin(ReadOnlyOrganizationScopedAdmin):
    list_display = ['file_name', 'assignment', 'worker', 'size', 'created_at']
    search_fields = ['file_name']
    raw_id_fields = ['assignment', 'worker']
