import logging
from unittest.mock import patch

from django.test import SimpleTestCase, TestCase
from rest_framework import status
from rest_framework.test import APITestCase, APIClient

from .logging_filters import HealthEndpointFilter


class HealthCheckTest(TestCase):

    def test_healthz(self):
        response = self.client.get('/healthz')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'status': 'ok'})

    def test_readyz(self):
        response = self.client.get('/readyz')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['database'], 'ok')


class HealthEndpointFilterTest(SimpleTestCase):

    def _record(self, message):
        return logging.LogRecord('django.server', logging.INFO, __file__, 1, message, None, None)

    def test_hides_successful_health_checks(self):
        log_filter = HealthEndpointFilter()

        self.assertFalse(log_filter.filter(self._record('"GET /healthz HTTP/1.1" 200 15')))
        self.assertTrue(log_filter.filter(self._record('"GET /readyz HTTP/1.1" 503 40')))
        self.assertTrue(log_filter.filter(self._record('"POST /api/vote/ HTTP/1.1" 200 40')))


class ExceptionHandlerTest(APITestCase):
    """Unexpected failures are reported as JSON, never as a crash"""

    def setUp(self):
        self.client = APIClient()

    def test_unexpected_error_becomes_500(self):
        with patch('elections.services.get_current_election', side_effect=RuntimeError('boom')):
            with self.assertLogs('ballotbox.errors', level='ERROR'):
                response = self.client.get('/api/current-election/')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.json(), {'error': 'Internal server error'})

    def test_method_not_allowed_uses_error_body(self):
        response = self.client.get('/api/vote/')

        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
        self.assertIn('error', response.json())
