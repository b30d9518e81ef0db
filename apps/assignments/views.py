"""
Assignment Views - thin HTTP adapter over the lifecycle controller
"""

from django.conf import settings
from django.utils import timezone
from rest_framework import mixins, viewsets
from rest_framework.decorators import action

from apps.attendance.services import AttendanceService
from apps.core.permissions import HasEmployeeProfile, IsSupervisor, get_request_employee
from apps.core.response import created_response, success_response
from apps.employees.models import Employee

from .exceptions import AttendanceRequired, NotFoundError
from .filters import TaskAssignmentFilter
from .models import TaskAssignment
from .serializers import (
    AssignmentStateSerializer,
    AssignTasksResultSerializer,
    DayPlanSerializer,
    IssueResultSerializer,
    PhotoResultSerializer,
    ProgressResultSerializer,
    StartResultSerializer,
    TaskAssignmentDetailSerializer,
    TaskAssignmentSerializer,
)
from .services import normalize
from .services.django_store import build_lifecycle_controller
from .services.types import AuthContext


class TaskAssignmentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    Daily task assignments.

    Reads go straight to the ORM; every write goes through
    ``LifecycleController`` so its gates and version checks apply.
    """

    permission_classes = [HasEmployeeProfile, IsSupervisor]
    supervisor_actions = {'assign', 'destroy', 'complete'}
    filterset_class = TaskAssignmentFilter
    ordering_fields = ['date', 'sequence', 'created_at', 'priority']
    ordering = ['date', 'sequence']

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return TaskAssignmentDetailSerializer
        return TaskAssignmentSerializer

    def get_queryset(self):
        employee = get_request_employee(self.request)
        queryset = TaskAssignment.objects.filter(
            organization_id=employee.organization_id
        ).select_related('worker', 'project', 'task')
        if not employee.is_supervisor:
            queryset = queryset.filter(worker=employee)
        return queryset

    # -- helpers ---------------------------------------------------------------

    def get_auth(self) -> AuthContext:
        employee = get_request_employee(self.request)
        return AuthContext(
            employee_id=str(employee.id),
            role=employee.role,
            organization_id=str(employee.organization_id),
            user_id=str(self.request.user.id),
        )

    def get_controller(self):
        employee = get_request_employee(self.request)
        return build_lifecycle_controller(employee.organization_id)

    def _require_worker(self, worker_id):
        employee = get_request_employee(self.request)
        exists = Employee.objects.filter(
            pk=worker_id,
            organization_id=employee.organization_id,
            status=Employee.STATUS_ACTIVE,
            is_active=True,
        ).exists()
        if not exists:
            raise NotFoundError('Worker', worker_id)

    # -- supervisor actions ----------------------------------------------------

    @action(detail=False, methods=['post'])
    def assign(self, request):
        """Queue tasks for a worker on one day."""
        command = normalize.assign_tasks_command(request.data)
        self._require_worker(command.worker_id)
        result = self.get_controller().assign_tasks(self.get_auth(), command)
        return created_response(
            AssignTasksResultSerializer(result).data,
            message=f"{result.created} task(s) assigned",
        )

    def destroy(self, request, *args, **kwargs):
        """Remove a queued assignment; the remaining queue is renumbered."""
        command = normalize.remove_command(kwargs.get(self.lookup_field))
        remaining = self.get_controller().remove_queued_assignment(self.get_auth(), command)
        return success_response(
            {'remaining': AssignmentStateSerializer(remaining, many=True).data},
            message='Assignment removed',
        )

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        state = self.get_controller().complete_assignment(self.get_auth(), normalize.complete_command(pk))
        return success_response(AssignmentStateSerializer(state).data, message='Assignment completed')

    # -- worker actions --------------------------------------------------------

    @action(detail=False, methods=['get'])
    def today(self, request):
        """Tasks for a day (``?date=``, default today); supervisors may pass ``?worker=``."""
        employee = get_request_employee(request)
        day = normalize.normalize_date(request.query_params.get('date') or timezone.localdate())
        worker_id = request.query_params.get('worker') or str(employee.id)
        plan = self.get_controller().tasks_for_day(self.get_auth(), worker_id, day)
        return success_response(DayPlanSerializer(plan).data)

    @action(detail=True, methods=['post'])
    def start(self, request, pk=None):
        command = normalize.start_command(pk, request.data)
        if getattr(settings, 'ASSIGNMENTS_REQUIRE_ATTENDANCE', False):
            assignment = self.get_object()
            if not AttendanceService.is_checked_in_inside_geofence(assignment.worker_id, assignment.project_id):
                raise AttendanceRequired(assignment.worker_id, assignment.project_id)

        result = self.get_controller().start_assignment(self.get_auth(), command)
        return success_response(StartResultSerializer(result).data, message='Task started successfully')

    @action(detail=True, methods=['post'])
    def progress(self, request, pk=None):
        command = normalize.progress_command(pk, request.data)
        result = self.get_controller().submit_progress(self.get_auth(), command)
        return success_response(ProgressResultSerializer(result).data, message='Progress updated successfully')

    @action(detail=True, methods=['post'])
    def issues(self, request, pk=None):
        command = normalize.issue_command(pk, request.data)
        result = self.get_controller().report_issue(self.get_auth(), command)
        return created_response(IssueResultSerializer(result).data, message='Issue reported successfully')

    @action(detail=True, methods=['post'])
    def photos(self, request, pk=None):
        captions = request.data.getlist('captions') if hasattr(request.data, 'getlist') else request.data.get('captions')
        command = normalize.photos_command(pk, request.FILES.getlist('photos'), captions)
        result = self.get_controller().record_photos(self.get_auth(), command)
        return created_response(PhotoResultSerializer(result).data, message='Photos uploaded successfully')

    @action(detail=True, methods=['post'], url_path='validate-location')
    def validate_location(self, request, pk=None):
        command = normalize.validate_location_command(pk, request.data)
        result = self.get_controller().validate_worker_location(self.get_auth(), command)
        return success_response(result.as_dict(), message=result.message)
