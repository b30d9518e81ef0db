"""Attendance app filters."""
import django_filters

from .models import AttendanceRecord


class AttendanceRecordFilter(django_filters.FilterSet):
    employee = django_filters.UUIDFilter()
    project = django_filters.UUIDFilter()
    status = django_filters.ChoiceFilter(choices=AttendanceRecord.STATUS_CHOICES)
    date = django_filters.DateFilter()
    date_from = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='date', lookup_expr='lte')

    class Meta:
        model = AttendanceRecord
        fields = ['employee', 'project', 'status', 'date']
