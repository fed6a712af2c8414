"""
Tests for notification services, tasks and endpoints.
"""
import uuid

from django.test import TestCase
from rest_framework.test import APIClient

from accounts.models import User
from core.exceptions import NotFoundError
from inventory.models import Item
from requisitions.models import Request, RequestLine
from . import services, tasks
from .models import Notification


class NotificationServiceTestCase(TestCase):

    def setUp(self):
        self.admin = User.objects.create_user(
            email='admin@example.com', password='secret123', name='Admin', role=User.Role.ADMIN
        )
        self.manager = User.objects.create_user(
            email='manager@example.com', password='secret123', name='Manager', role=User.Role.MANAGER
        )
        self.retired = User.objects.create_user(
            email='retired@example.com', password='secret123', role=User.Role.MANAGER, is_active=False
        )
        self.user = User.objects.create_user(email='user@example.com', password='secret123', name='User')

    def test_notify_staff_targets_active_admins_and_managers(self):
        notifications = services.notify_staff(
            Notification.Type.LOAN_SUBMITTED, 'New Loan Request', 'User requested a camera', related_id='abc'
        )

        self.assertEqual(
            {n.user_id for n in notifications},
            {self.admin.id, self.manager.id},
        )

    def test_notify_staff_excludes_actor(self):
        notifications = services.notify_staff(
            Notification.Type.ITEM_RETURNED, 'Item Returned', 'Returned', exclude_user_id=self.admin.id
        )

        self.assertEqual([n.user_id for n in notifications], [self.manager.id])

    def test_read_state(self):
        first = services.notify_user(self.user.id, Notification.Type.LOAN_DUE, 'Due', 'Soon')
        services.notify_user(self.user.id, Notification.Type.LOAN_DUE, 'Due', 'Later')

        self.assertEqual(services.unread_count(self.user.id), 2)

        services.mark_read(first.id)
        self.assertEqual(services.unread_count(self.user.id), 1)

        self.assertEqual(services.mark_all_read(self.user.id), 1)
        self.assertEqual(services.unread_count(self.user.id), 0)

    def test_missing_notification(self):
        with self.assertRaises(NotFoundError):
            services.mark_read(uuid.uuid4())
        with self.assertRaises(NotFoundError):
            services.delete_notification(uuid.uuid4())


class NotificationTaskTestCase(TestCase):

    def setUp(self):
        self.admin = User.objects.create_user(
            email='admin@example.com', password='secret123', name='Admin', role=User.Role.ADMIN
        )
        self.requester = User.objects.create_user(
            email='requester@example.com', password='secret123', name='Requester'
        )
        item = Item.objects.create(name='Whiteboard', quantity=2)
        self.request = Request.objects.create(project_name='Training', requester=self.requester)
        RequestLine.objects.create(request=self.request, item=item, quantity=1)

    def test_request_submitted_message(self):
        result = tasks.notify_request_submitted(str(self.request.id))

        self.assertEqual(result['staff_notified'], 1)
        staff_note = Notification.objects.get(user=self.admin)
        self.assertIn('1x Whiteboard', staff_note.message)
        self.assertIn('Training', staff_note.message)

    def test_request_status_message(self):
        tasks.notify_request_status(str(self.request.id), 'out_of_stock')

        notification = Notification.objects.get(user=self.requester)
        self.assertEqual(notification.type, Notification.Type.REQUEST_REJECTED)
        self.assertIn('out of stock', notification.message)

    def test_unknown_status_is_skipped(self):
        result = tasks.notify_request_status(str(self.request.id), 'pending')

        self.assertEqual(result['status'], 'skipped')
        self.assertFalse(Notification.objects.exists())

    def test_missing_request(self):
        result = tasks.notify_request_status(str(uuid.uuid4()), 'approved')

        self.assertEqual(result['status'], 'error')


class NotificationAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email='user@example.com', password='secret123', name='User')

    def _create(self, title='Hello'):
        return self.client.post('/api/notifications', {
            'user_id': self.user.id,
            'type': 'loan_due',
            'title': title,
            'message': 'Return the camera tomorrow',
        }, format='json')

    def test_create_list_and_read(self):
        response = self._create()
        self.assertEqual(response.status_code, 201)
        notification_id = response.json()['id']
        self._create(title='Second')

        response = self.client.get(f'/api/notifications/user/{self.user.id}')
        self.assertEqual(sorted(row['title'] for row in response.json()), ['Hello', 'Second'])

        response = self.client.get(f'/api/notifications/user/{self.user.id}/unread-count')
        self.assertEqual(response.json(), {'count': 2})

        response = self.client.patch(f'/api/notifications/{notification_id}/read')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['is_read'])

        response = self.client.patch(f'/api/notifications/user/{self.user.id}/mark-all-read')
        self.assertEqual(response.json()['count'], 1)

        response = self.client.delete(f'/api/notifications/{notification_id}')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Notification.objects.count(), 1)

    def test_create_validation(self):
        response = self.client.post('/api/notifications', {
            'user_id': 999999, 'type': 'loan_due', 'title': 'x', 'message': 'y',
        }, format='json')
        self.assertEqual(response.status_code, 400)

        response = self.client.post('/api/notifications', {
            'user_id': self.user.id, 'type': 'party', 'title': 'x', 'message': 'y',
        }, format='json')
        self.assertEqual(response.status_code, 400)

    def test_missing_notification(self):
        response = self.client.patch(f'/api/notifications/{uuid.uuid4()}/read')
        self.assertEqual(response.status_code, 404)
