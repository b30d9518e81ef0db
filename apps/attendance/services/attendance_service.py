"""
Attendance Services - Site check-in / check-out against the project geofence
"""

import logging
from typing import Dict

from django.db import transaction
from django.utils import timezone

from apps.assignments.services.django_store import DjangoLocationLog, DjangoProjectCatalog
from apps.assignments.services.geofence import GeofenceValidator
from apps.assignments.services.lifecycle import LocationLogType
from apps.assignments.services.types import Location, LocationLogEntry

logger = logging.getLogger(__name__)


class AttendanceService:
    """
    Core attendance service for check-in / check-out.

    Check-in always records the day; whether the worker was inside the
    site geofence is stored on the record and later read by
    ``is_checked_in_inside_geofence``.
    """

    @staticmethod
    def _build_failure(message: str, attendance=None, warnings=None) -> Dict:
        return {
            'success': False,
            'message': message,
            'attendance': attendance,
            'geofence': None,
            'warnings': warnings or [],
        }

    @staticmethod
    def _validate_tenant(employee, project) -> bool:
        return employee.organization_id == project.organization_id

    @staticmethod
    def _log(employee, project, location: Location, inside: bool, log_type: str, at):
        DjangoLocationLog().record(LocationLogEntry(
            worker_id=str(employee.id),
            project_id=str(project.id),
            location=location,
            inside_geofence=inside,
            log_type=log_type,
            logged_at=at,
        ))

    @classmethod
    def check_in(cls, employee, project, location: Location) -> Dict:
        """
        Process check-in request.

        Returns:
            {
                'success': bool,
                'message': str,
                'attendance': AttendanceRecord or None,
                'geofence': GeofenceResult or None,
                'warnings': list,
            }
        """
        from apps.attendance.models import AttendanceRecord

        if not cls._validate_tenant(employee, project):
            return cls._build_failure('Cross-organization check-in blocked.')

        region = DjangoProjectCatalog(project.organization_id).get_region(project.id)
        if region is None:
            return cls._build_failure('Project is not active.')

        now = timezone.now()
        today = timezone.localdate()
        geofence = GeofenceValidator.validate_location(location, region)
        warnings = []
        if geofence.accuracy_warning:
            warnings.append(geofence.accuracy_warning)
        if not geofence.is_valid:
            warnings.append(geofence.message)

        with transaction.atomic():
            attendance, _ = AttendanceRecord.objects.select_for_update().get_or_create(
                employee=employee,
                project=project,
                date=today,
                defaults={'organization_id': employee.organization_id},
            )
            if attendance.check_in and not attendance.check_out:
                return cls._build_failure('Already checked in for today.', attendance, ['Already checked in'])

            attendance.check_in = now
            attendance.check_out = None
            attendance.total_hours = None
            attendance.status = AttendanceRecord.STATUS_PRESENT
            attendance.check_in_latitude = round(location.latitude, 8)
            attendance.check_in_longitude = round(location.longitude, 8)
            attendance.check_in_accuracy = round(location.accuracy, 2) if location.accuracy is not None else None
            attendance.inside_geofence_at_checkin = geofence.is_valid
            attendance.check_in_distance_meters = round(geofence.distance_meters, 2)
            attendance.save()

            cls._log(employee, project, location, geofence.inside_geofence, LocationLogType.CHECK_IN, now)

        logger.info(
            "attendance_check_in employee=%s project=%s inside=%s distance_m=%.1f",
            employee.id, project.id, geofence.is_valid, geofence.distance_meters,
        )
        return {
            'success': True,
            'message': 'Checked in successfully',
            'attendance': attendance,
            'geofence': geofence,
            'warnings': warnings,
        }

    @classmethod
    def check_out(cls, employee, project, location: Location = None) -> Dict:
        """Process check-out request"""
        from apps.attendance.models import AttendanceRecord

        if not cls._validate_tenant(employee, project):
            return cls._build_failure('Cross-organization check-out blocked.')

        today = timezone.localdate()
        with transaction.atomic():
            attendance = (
                AttendanceRecord.objects.select_for_update()
                .filter(employee=employee, project=project, date=today)
                .first()
            )
            if attendance is None or not attendance.check_in:
                return cls._build_failure('No check-in found for today. Please check in first.',
                                          attendance, ['No check-in record'])
            if attendance.check_out:
                return cls._build_failure('Already checked out for today.', attendance, ['Already checked out'])

            now = timezone.now()
            attendance.check_out = now
            if location is not None:
                attendance.check_out_latitude = round(location.latitude, 8)
                attendance.check_out_longitude = round(location.longitude, 8)
            attendance.calculate_hours()
            attendance.save()

            geofence = None
            if location is not None:
                region = DjangoProjectCatalog(project.organization_id).get_region(project.id)
                if region is not None:
                    geofence = GeofenceValidator.validate_location(location, region)
                    cls._log(employee, project, location, geofence.inside_geofence, LocationLogType.CHECK_OUT, now)

        logger.info("attendance_check_out employee=%s project=%s hours=%s",
                    employee.id, project.id, attendance.total_hours)
        return {
            'success': True,
            'message': 'Checked out successfully',
            'attendance': attendance,
            'geofence': geofence,
            'warnings': [],
        }

    @staticmethod
    def is_checked_in_inside_geofence(employee_id, project_id) -> bool:
        """True when today's record is open and the check-in was on site."""
        from apps.attendance.models import AttendanceRecord

        return AttendanceRecord.objects.filter(
            employee_id=employee_id,
            project_id=project_id,
            date=timezone.localdate(),
            check_in__isnull=False,
            check_out__isnull=True,
            inside_geofence_at_checkin=True,
        ).exists()
