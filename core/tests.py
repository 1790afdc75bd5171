"""
Tests for the shared HTTP plumbing: error envelope, health check, rate
limiting and app loading.
"""
import os
import subprocess
import sys
from unittest.mock import MagicMock, patch

import redis
from django.conf import settings
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import User


class EnvelopeTestCase(TestCase):

    def setUp(self):
        self.client = APIClient()

    def test_not_found_envelope(self):
        response = self.client.get('/api/products/00000000-0000-0000-0000-000000000000/')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {'success': False, 'error': 'Product not found'})

    def test_permission_message_is_kept(self):
        customer = User.objects.create_user(
            email='customer@example.com',
            password='password123',
            first_name='Cara',
            last_name='Customer',
        )
        self.client.force_authenticate(user=customer)

        response = self.client.get('/api/products/vendor/my-products/')

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error'], 'This endpoint is only for vendors')

    def test_health_check(self):
        response = self.client.get('/health/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['database'], 'up')


@override_settings(RATE_LIMIT_ENABLED=True)
class RateLimitTestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.payload = {'email': 'nobody@example.com', 'password': 'whatever'}

    @patch('core.rate_limiting.get_redis_client')
    def test_over_limit_returns_429(self, mock_client):
        mock_client.return_value.incr.return_value = 11
        mock_client.return_value.ttl.return_value = 42

        response = self.client.post('/api/auth/login/', self.payload, format='json')

        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.data['retry_after'], 42)
        self.assertEqual(response['Retry-After'], '42')

    @patch('core.rate_limiting.get_redis_client')
    def test_under_limit_sets_headers(self, mock_client):
        mock_client.return_value.incr.return_value = 3
        mock_client.return_value.ttl.return_value = 50
        User.objects.create_user(
            email='nobody@example.com',
            password='whatever1',
            first_name='No',
            last_name='Body',
        )

        response = self.client.post(
            '/api/auth/login/',
            {'email': 'nobody@example.com', 'password': 'whatever1'},
            format='json',
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['X-RateLimit-Remaining'], '7')
        self.assertEqual(response['X-RateLimit-Limit'], '10')

    @patch('core.rate_limiting.get_redis_client')
    def test_redis_down_fails_open(self, mock_client):
        client = MagicMock()
        client.incr.side_effect = redis.ConnectionError('down')
        mock_client.return_value = client

        response = self.client.post('/api/auth/login/', self.payload, format='json')

        self.assertEqual(response.status_code, 401)


class AppLoadingTestCase(SimpleTestCase):
    """App registry must load from a cold interpreter, as manage.py and WSGI do."""

    def test_wsgi_application_loads_with_production_settings(self):
        env = dict(os.environ, DJANGO_SETTINGS_MODULE='config.settings')
        env.pop('POSTGRES_DB', None)
        result = subprocess.run(
            [
                sys.executable, '-c',
                'import config.wsgi; '
                'from django.apps import apps; '
                'from rest_framework.views import APIView; '
                'print(apps.get_model("accounts", "User").__name__)',
            ],
            cwd=str(settings.BASE_DIR),
            env=env,
            capture_output=True,
            text=True,
            timeout=60,
        )

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertEqual(result.stdout.strip(), 'User')
