"""Attendance service package."""

from .attendance_service import AttendanceService

__all__ = [
    'AttendanceService',
]
