from django.contrib import admin

from apps.core.admin import OrganizationScopedAdmin
from .models import Employee


@admin.register(Employee)
class EmployeeAdmin(OrganizationScopedAdmin):
    list_display = ['employee_id', 'full_name', 'role', 'status', 'supervisor', 'organization']
    list_filter = ['role', 'status', 'organization']
    search_fields = ['employee_id', 'full_name', 'user__username']
    raw_id_fields = ['user', 'supervisor']
