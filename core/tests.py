"""
Tests for the error envelope, domain event dispatch and rate limiting.
"""
from unittest.mock import MagicMock, patch

import redis
from django.db import DatabaseError
from django.dispatch import Signal
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import exceptions as drf_exceptions
from rest_framework.test import APIClient

from accounts.models import User
from . import events
from .exceptions import (
    AlreadyReturnedError,
    InsufficientStockError,
    NotFoundError,
    PermissionDeniedError,
    api_exception_handler,
)


class ExceptionHandlerTestCase(SimpleTestCase):

    def _handle(self, exc):
        return api_exception_handler(exc, {'view': None})

    def test_domain_errors(self):
        cases = [
            (NotFoundError('Item 9 not found'), 404),
            (PermissionDeniedError(), 403),
            (AlreadyReturnedError(), 400),
            (InsufficientStockError([{'name': 'Cable', 'requested': 6, 'available': 4}]), 400),
        ]
        for exc, status_code in cases:
            response = self._handle(exc)
            self.assertEqual(response.status_code, status_code)
            self.assertEqual(response.data['success'], False)
            self.assertEqual(response.data['message'], exc.message)
            self.assertNotIn('error', response.data)

    def test_insufficient_stock_message(self):
        exc = InsufficientStockError([{'name': 'Cable', 'requested': 6, 'available': 4}])

        self.assertEqual(exc.message, 'Insufficient stock: Cable: requested 6, available 4')

    @override_settings(EXPOSE_ERROR_DETAILS=True)
    def test_details_exposed_when_enabled(self):
        response = self._handle(NotFoundError('gone', detail={'id': 9}))

        self.assertEqual(response.data['error'], {'id': 9})

    def test_drf_errors(self):
        response = self._handle(drf_exceptions.ValidationError({'name': ['This field is required.']}))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'name: This field is required.')

        response = self._handle(drf_exceptions.Throttled(wait=30))
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response['Retry-After'], '30')

    def test_unexpected_errors(self):
        with self.assertLogs('core.exceptions', level='ERROR'):
            response = self._handle(DatabaseError('disk I/O error'))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data['message'], 'Database error')

        with self.assertLogs('core.exceptions', level='ERROR'):
            response = self._handle(KeyError('boom'))
        self.assertEqual(response.status_code, 500)
        self.assertNotIn('boom', response.data['message'])


class EventDispatchTestCase(SimpleTestCase):

    def test_failing_receiver_is_isolated(self):
        signal = Signal()
        received = []

        def broken(sender, **kwargs):
            raise RuntimeError('receiver bug')

        def working(sender, **kwargs):
            received.append(kwargs['request_id'])

        signal.connect(broken, weak=False)
        signal.connect(working, weak=False)

        with self.assertLogs('core.events', level='ERROR'):
            events.dispatch(signal, sender=None, request_id='r-1')

        self.assertEqual(received, ['r-1'])


@override_settings(RATE_LIMIT_ENABLED=True)
class RateLimitTestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        User.objects.create_user(email='user@example.com', password='secret123')
        self.redis = MagicMock()
        self.redis.ttl.return_value = 30

    def _login(self):
        return self.client.post(
            '/api/auth/login', {'email': 'user@example.com', 'password': 'secret123'}, format='json'
        )

    def test_login_within_limit(self):
        self.redis.incr.return_value = 1

        with patch('core.rate_limiting.get_redis_client', return_value=self.redis):
            response = self._login()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['X-RateLimit-Remaining'], '9')
        self.redis.expire.assert_called_once()

    def test_login_over_limit(self):
        self.redis.incr.return_value = 11

        with patch('core.rate_limiting.get_redis_client', return_value=self.redis):
            response = self._login()

        self.assertEqual(response.status_code, 429)
        self.assertEqual(response['Retry-After'], '30')
        self.assertFalse(response.json()['success'])

    def test_bulk_endpoint_over_limit(self):
        self.redis.incr.return_value = 11

        with patch('core.rate_limiting.get_redis_client', return_value=self.redis):
            response = self.client.post('/api/items/bulk', [{'name': 'Rope'}], format='json')

        self.assertEqual(response.status_code, 429)
        self.assertEqual(response['Retry-After'], '30')

    def test_fails_open_when_redis_errors(self):
        self.redis.incr.side_effect = redis.ConnectionError('down')

        with patch('core.rate_limiting.get_redis_client', return_value=self.redis):
            response = self._login()

        self.assertEqual(response.status_code, 200)
