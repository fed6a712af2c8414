"""
Tests for authentication, user management and approver checks.
"""
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from core.exceptions import (
    AuthenticationError,
    ConflictError,
    PermissionDeniedError,
    ValidationError,
)
from requisitions.models import Request
from . import services
from .models import User


class UserServiceTestCase(TestCase):

    def setUp(self):
        self.manager = User.objects.create_user(
            email='manager@example.com', password='secret123', name='Manager', role=User.Role.MANAGER
        )
        self.user = User.objects.create_user(email='user@example.com', password='secret123', name='User')

    def test_password_is_hashed(self):
        user = services.create_user({'email': 'new@example.com', 'password': 'plain-text', 'name': 'New'})

        self.assertNotEqual(user.password, 'plain-text')
        self.assertTrue(user.check_password('plain-text'))
        self.assertEqual(user.role, User.Role.USER)

    def test_duplicate_email(self):
        with self.assertRaises(ValidationError):
            services.create_user({'email': 'USER@example.com', 'password': 'secret123'})

    def test_authenticate(self):
        self.assertEqual(services.authenticate_user('user@example.com', 'secret123'), self.user)

        with self.assertRaises(AuthenticationError):
            services.authenticate_user('user@example.com', 'wrong')
        with self.assertRaises(ValidationError):
            services.authenticate_user('user@example.com', '')

    def test_inactive_user_cannot_log_in(self):
        services.update_user(self.user.id, {'is_active': False})

        with self.assertRaises(AuthenticationError):
            services.authenticate_user('user@example.com', 'secret123')

    def test_get_approver(self):
        self.assertEqual(services.get_approver(self.manager.id), self.manager)

        for actor_id in (self.user.id, None, '', 424242):
            with self.assertRaises(PermissionDeniedError):
                services.get_approver(actor_id)

        services.update_user(self.manager.id, {'is_active': False})
        with self.assertRaises(PermissionDeniedError):
            services.get_approver(self.manager.id)

    def test_update_password(self):
        services.update_user(self.user.id, {'password': 'changed123', 'department': 'IT'})

        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('changed123'))
        self.assertEqual(self.user.department, 'IT')

    def test_delete_user_with_requests(self):
        Request.objects.create(project_name='Audit', requester=self.user)

        with self.assertRaises(ConflictError):
            services.delete_user(self.user.id)
        self.assertTrue(User.objects.filter(pk=self.user.pk).exists())

        services.delete_user(self.manager.id)
        self.assertFalse(User.objects.filter(pk=self.manager.pk).exists())


@override_settings(RATE_LIMIT_ENABLED=False)
class AccountAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(
            email='user@example.com', password='secret123', name='Dewi', department='Finance'
        )

    def test_login(self):
        response = self.client.post(
            '/api/auth/login', {'email': 'user@example.com', 'password': 'secret123'}, format='json'
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['user']['email'], 'user@example.com')
        self.assertEqual(body['user']['username'], 'Dewi')
        self.assertNotIn('password', body['user'])

    def test_login_failures(self):
        response = self.client.post(
            '/api/auth/login', {'email': 'user@example.com', 'password': 'nope'}, format='json'
        )
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.json()['success'])

        response = self.client.post('/api/auth/login', {'email': 'user@example.com'}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_user_crud(self):
        response = self.client.post('/api/users', {
            'email': 'new@example.com', 'password': 'secret123', 'name': 'New', 'role': 'manager',
        }, format='json')
        self.assertEqual(response.status_code, 201)
        user_id = response.json()['id']
        self.assertNotIn('password', response.json())

        response = self.client.get('/api/users')
        self.assertEqual(len(response.json()), 2)

        response = self.client.put(f'/api/users/{user_id}', {'department': 'Ops'}, format='json')
        self.assertEqual(response.json()['department'], 'Ops')

        response = self.client.delete(f'/api/users/{user_id}')
        self.assertEqual(response.status_code, 200)

        response = self.client.get(f'/api/users/{user_id}')
        self.assertEqual(response.status_code, 404)

    def test_duplicate_email(self):
        response = self.client.post('/api/users', {
            'email': 'user@example.com', 'password': 'secret123',
        }, format='json')

        self.assertEqual(response.status_code, 400)
