"""
Attendance Views - Site check-in / check-out
"""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.exceptions import ResourceNotFoundException
from apps.core.permissions import HasEmployeeProfile, get_request_employee
from apps.projects.models import Project

from .filters import AttendanceRecordFilter
from .models import AttendanceRecord
from .serializers import (
    AttendanceRecordSerializer,
    AttendanceResultSerializer,
    CheckInSerializer,
    CheckOutSerializer,
)
from .services import AttendanceService


class AttendanceViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    Attendance records of the caller (supervisors see their organization).
    """

    serializer_class = AttendanceRecordSerializer
    permission_classes = [HasEmployeeProfile]
    filterset_class = AttendanceRecordFilter

    def get_queryset(self):
        employee = get_request_employee(self.request)
        queryset = AttendanceRecord.objects.filter(
            organization_id=employee.organization_id
        ).select_related('employee', 'project')
        if not employee.is_supervisor:
            queryset = queryset.filter(employee=employee)
        return queryset

    def _get_project(self, employee, project_id):
        project = Project.objects.filter(
            pk=project_id,
            organization_id=employee.organization_id,
            is_active=True,
        ).first()
        if project is None:
            raise ResourceNotFoundException('Project', project_id)
        return project

    def _respond(self, result, success_status):
        return Response(
            AttendanceResultSerializer(result).data,
            status=success_status if result['success'] else status.HTTP_400_BAD_REQUEST,
        )

    @action(detail=False, methods=['post'], url_path='check-in')
    def check_in(self, request):
        serializer = CheckInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        employee = get_request_employee(request)
        project = self._get_project(employee, serializer.validated_data['project'])
        result = AttendanceService.check_in(employee, project, serializer.to_location())
        return self._respond(result, status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='check-out')
    def check_out(self, request):
        serializer = CheckOutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        employee = get_request_employee(request)
        project = self._get_project(employee, serializer.validated_data['project'])
        result = AttendanceService.check_out(employee, project, serializer.to_location())
        return self._respond(result, status.HTTP_200_OK)
