"""
Attendance Admin
"""

from django.contrib import admin

from apps.core.admin import OrganizationScopedAdmin, ReadOnlyOrganizationScopedAdmin
from .models import AttendanceRecord, LocationLog


@admin.register(AttendanceRecord)
class AttendanceRecordAdmin(OrganizationScopedAdmin):
    list_display = ['employee', 'project', 'date', 'status', 'check_in', 'check_out', 'inside_geofence_at_checkin']
    list_filter = ['status', 'inside_geofence_at_checkin', 'date']
    search_fields = ['employee__employee_id', 'employee__full_name', 'project__code']
    raw_id_fields = ['employee', 'project']
    date_hierarchy = 'date'


@admin.register(LocationLog)
class LocationLogAdmin(ReadOnlyOrganizationScopedAdmin):
    list_display = ['employee', 'project', 'log_type', 'inside_geofence', 'accuracy', 'logged_at']
    list_filter = ['log_type', 'inside_geofence']
    search_fields = ['employee__employee_id', 'employee__full_name']
    raw_id_fields = ['employee', 'project', 'assignment']
    date_hierarchy = 'logged_at'
