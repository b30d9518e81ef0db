import logging

from django.test import SimpleTestCase, TestCase
from django.urls import reverse

from apps.core.exceptions import ConflictException, ValidationException, custom_exception_handler
from apps.core.logging import CorrelationIdFilter, get_correlation_id, set_correlation_id


class HealthProbeTests(TestCase):

    def test_health(self):
        response = self.client.get(reverse('health-check'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'status': 'ok'})

    def test_readiness(self):
        response = self.client.get(reverse('readiness-check'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'ready')

    def test_request_id_is_echoed(self):
        response = self.client.get(reverse('health-check'), HTTP_X_REQUEST_ID='req-42')
        self.assertEqual(response['X-Request-ID'], 'req-42')
        self.assertIsNone(get_correlation_id())

    def test_request_id_is_generated(self):
        response = self.client.get(reverse('health-check'))
        self.assertEqual(len(response['X-Request-ID']), 32)


class CorrelationIdFilterTests(SimpleTestCase):

    def test_stamps_record(self):
        record = logging.LogRecord('apps', logging.INFO, __file__, 1, 'hello', (), None)
        set_correlation_id('abc')
        self.addCleanup(set_correlation_id, None)
        self.assertTrue(CorrelationIdFilter().filter(record))
        self.assertEqual(record.correlation_id, 'abc')


class ExceptionHandlerTests(SimpleTestCase):

    def test_domain_error_envelope(self):
        response = custom_exception_handler(ValidationException('bad date', field='date'), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {
            'success': False,
            'error': {'code': 'validation_error', 'message': 'bad date', 'details': {'field': 'date'}},
        })

    def test_conflict_status(self):
        response = custom_exception_handler(ConflictException('stale'), {})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error']['code'], 'conflict')
