"""Assignment filters."""
import django_filters

from .models import TaskAssignment
from .services.types import AssignmentStatus, Priority


class TaskAssignmentFilter(django_filters.FilterSet):
    worker = django_filters.UUIDFilter()
    project = django_filters.UUIDFilter()
    task = django_filters.UUIDFilter()
    status = django_filters.ChoiceFilter(choices=AssignmentStatus.CHOICES)
    priority = django_filters.ChoiceFilter(choices=Priority.CHOICES)
    date = django_filters.DateFilter()
    date_from = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='date', lookup_expr='lte')

    class Meta:
        model = TaskAssignment
        fields = ['worker', 'project', 'task', 'status', 'priority', 'date']
