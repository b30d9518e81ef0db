from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from apps.assignments.tests.helpers import ON_SITE, point_north
from apps.attendance.models import AttendanceRecord, LocationLog
from apps.attendance.services import AttendanceService
from tests.factories import EmployeeFactory, OrganizationFactory, ProjectFactory, UserFactory


class AttendanceServiceTests(TestCase):

    def setUp(self):
        self.org = OrganizationFactory()
        self.project = ProjectFactory(organization=self.org)
        self.employee = EmployeeFactory(organization=self.org)

    def test_check_in_on_site(self):
        result = AttendanceService.check_in(self.employee, self.project, ON_SITE)

        self.assertTrue(result['success'])
        self.assertEqual(result['warnings'], [])
        record = result['attendance']
        self.assertTrue(record.inside_geofence_at_checkin)
        self.assertEqual(record.status, AttendanceRecord.STATUS_PRESENT)
        self.assertTrue(AttendanceService.is_checked_in_inside_geofence(self.employee.id, self.project.id))
        self.assertEqual(LocationLog.objects.get().log_type, LocationLog.TYPE_CHECK_IN)

    def test_check_in_off_site_is_recorded_with_warning(self):
        result = AttendanceService.check_in(self.employee, self.project, point_north(600))

        self.assertTrue(result['success'])
        self.assertEqual(len(result['warnings']), 1)
        self.assertFalse(result['attendance'].inside_geofence_at_checkin)
        self.assertFalse(AttendanceService.is_checked_in_inside_geofence(self.employee.id, self.project.id))

    def test_double_check_in(self):
        AttendanceService.check_in(self.employee, self.project, ON_SITE)
        result = AttendanceService.check_in(self.employee, self.project, ON_SITE)
        self.assertFalse(result['success'])
        self.assertEqual(result['message'], 'Already checked in for today.')

    def test_check_out_closes_the_day(self):
        AttendanceService.check_in(self.employee, self.project, ON_SITE)
        result = AttendanceService.check_out(self.employee, self.project, ON_SITE)

        self.assertTrue(result['success'])
        self.assertIsNotNone(result['attendance'].total_hours)
        self.assertFalse(AttendanceService.is_checked_in_inside_geofence(self.employee.id, self.project.id))

        again = AttendanceService.check_out(self.employee, self.project)
        self.assertFalse(again['success'])

    def test_check_out_without_check_in(self):
        result = AttendanceService.check_out(self.employee, self.project)
        self.assertFalse(result['success'])

    def test_cross_organization_blocked(self):
        other_project = ProjectFactory()
        result = AttendanceService.check_in(self.employee, other_project, ON_SITE)
        self.assertFalse(result['success'])
        self.assertFalse(AttendanceRecord.objects.exists())


class AttendanceAPITests(APITestCase):

    def setUp(self):
        self.org = OrganizationFactory()
        self.project = ProjectFactory(organization=self.org)
        self.employee = EmployeeFactory(organization=self.org)
        self.client = APIClient()
        self.client.force_authenticate(user=self.employee.user)

    def test_check_in_endpoint(self):
        response = self.client.post(reverse('attendance-check-in'), {
            'project': str(self.project.id),
            'latitude': ON_SITE.latitude,
            'longitude': ON_SITE.longitude,
            'accuracy': 12,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertTrue(response.data['geofence']['is_valid'])

        response = self.client.get(reverse('attendance-list'))
        self.assertEqual(response.data['pagination']['count'], 1)

    def test_unknown_project(self):
        response = self.client.post(reverse('attendance-check-in'), {
            'project': str(ProjectFactory().id),
            'latitude': ON_SITE.latitude,
            'longitude': ON_SITE.longitude,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_check_out_requires_both_coordinates(self):
        response = self.client.post(reverse('attendance-check-out'), {
            'project': str(self.project.id),
            'latitude': ON_SITE.latitude,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_requires_employee_profile(self):
        client = APIClient()
        client.force_authenticate(user=UserFactory())
        response = client.get(reverse('attendance-list'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
