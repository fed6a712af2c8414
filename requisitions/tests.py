"""
Tests for the request approval workflow.

Test Cases:
1. Request round trip with its lines
2. Approval deducts stock for every line
3. Atomic rollback when a referenced item disappeared
4. Terminal states accept no further transition
5. Two approvals competing for the same stock
6. Notifications are written after commit and never fail a transition
7. Request lines are read-only in the admin
"""
import random
import threading
import time
import uuid
from unittest.mock import patch

from django.contrib import admin
from django.db import OperationalError, connection
from django.test import RequestFactory, TestCase, TransactionTestCase
from rest_framework.test import APIClient

from accounts.models import User
from core.exceptions import (
    ConflictError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from inventory import ledger
from inventory.models import Item
from notifications.models import Notification
from .admin import RequestLineInline
from .models import Request, RequestLine
from .services import create_request, delete_request, get_request, transition_request


class RequestWorkflowTestCase(TestCase):
    """Test cases for request creation and transitions."""

    def setUp(self):
        self.admin = User.objects.create_user(
            email='admin@example.com', password='secret123', name='Admin', role=User.Role.ADMIN
        )
        self.manager = User.objects.create_user(
            email='manager@example.com', password='secret123', name='Manager', role=User.Role.MANAGER
        )
        self.requester = User.objects.create_user(
            email='requester@example.com', password='secret123', name='Requester'
        )
        self.paper = Item.objects.create(name='Paper A4', quantity=20, min_quantity=5)
        self.toner = Item.objects.create(name='Toner', quantity=3, min_quantity=1)

    def _create(self, lines):
        return create_request(self.requester.id, 'Quarterly report', lines)

    def test_request_round_trip(self):
        """
        Given: an active item
        When: creating a request with [{item_id, quantity: 3}]
        Then: reading it back yields the same line and status pending
        """
        request = self._create([{'item_id': self.paper.id, 'quantity': 3}])

        fetched = get_request(request.id)
        self.assertEqual(fetched.status, Request.Status.PENDING)
        self.assertEqual(
            [(line.item_id, line.quantity) for line in fetched.lines.all()],
            [(self.paper.id, 3)],
        )
        self.assertEqual(fetched.priority, Request.Priority.MEDIUM)

        # Creating a request never moves stock
        self.paper.refresh_from_db()
        self.assertEqual(self.paper.quantity, 20)

    def test_create_validation(self):
        with self.assertRaises(ValidationError):
            self._create([])
        with self.assertRaises(ValidationError):
            self._create([{'item_id': self.paper.id, 'quantity': 0}])
        with self.assertRaises(ValidationError):
            self._create([
                {'item_id': self.paper.id, 'quantity': 1},
                {'item_id': self.paper.id, 'quantity': 2},
            ])
        with self.assertRaises(ValidationError):
            self._create([{'item_id': 999999, 'quantity': 1}])
        with self.assertRaises(ValidationError) as context:
            create_request(999999, 'Ghost', [{'item_id': self.paper.id, 'quantity': 1}])
        self.assertIn('Invalid users', context.exception.message)

        self.assertFalse(Request.objects.exists())

    def test_approval_deducts_stock(self):
        request = self._create([
            {'item_id': self.paper.id, 'quantity': 15},
            {'item_id': self.toner.id, 'quantity': 3},
        ])

        approved = transition_request(request.id, Request.Status.APPROVED, self.manager.id)

        self.assertEqual(approved.status, Request.Status.APPROVED)
        self.assertEqual(approved.approved_by, self.manager)
        self.assertIsNotNone(approved.approved_at)

        self.paper.refresh_from_db()
        self.toner.refresh_from_db()
        self.assertEqual((self.paper.quantity, self.paper.status), (5, ledger.LOW_STOCK))
        self.assertEqual((self.toner.quantity, self.toner.status), (0, ledger.OUT_OF_STOCK))

    def test_non_stock_transitions_leave_stock_alone(self):
        for target in (Request.Status.DENIED, Request.Status.FULFILLED, Request.Status.OUT_OF_STOCK):
            request = self._create([{'item_id': self.paper.id, 'quantity': 4}])
            updated = transition_request(request.id, target, self.admin.id)
            self.assertEqual(updated.status, target)

        self.paper.refresh_from_db()
        self.assertEqual(self.paper.quantity, 20)

    def test_approval_atomic_when_item_deleted(self):
        """
        Given: a request for paper and toner; toner deactivated afterwards
        When: approving
        Then: NotFoundError, paper stock unchanged, request still pending
        """
        request = self._create([
            {'item_id': self.paper.id, 'quantity': 2},
            {'item_id': self.toner.id, 'quantity': 1},
        ])
        Item.objects.filter(pk=self.toner.pk).update(is_active=False)

        with self.assertRaises(NotFoundError):
            transition_request(request.id, Request.Status.APPROVED, self.admin.id)

        self.paper.refresh_from_db()
        self.assertEqual(self.paper.quantity, 20)
        self.assertEqual(get_request(request.id).status, Request.Status.PENDING)

    def test_insufficient_stock_keeps_request_pending(self):
        request = self._create([
            {'item_id': self.paper.id, 'quantity': 2},
            {'item_id': self.toner.id, 'quantity': 4},
        ])

        with self.assertRaises(InsufficientStockError) as context:
            transition_request(request.id, Request.Status.APPROVED, self.admin.id)

        self.assertIn('Toner', context.exception.message)
        self.paper.refresh_from_db()
        self.assertEqual(self.paper.quantity, 20)
        self.assertEqual(get_request(request.id).status, Request.Status.PENDING)

    def test_terminal_state_is_immutable(self):
        """
        Given: a denied request
        When: approving it
        Then: InvalidTransitionError, status stays denied, no stock moves
        """
        request = self._create([{'item_id': self.paper.id, 'quantity': 2}])
        transition_request(request.id, Request.Status.DENIED, self.admin.id)

        with self.assertRaises(InvalidTransitionError) as context:
            transition_request(request.id, Request.Status.APPROVED, self.admin.id)

        self.assertEqual(context.exception.message, 'Request is already denied')
        self.assertEqual(get_request(request.id).status, Request.Status.DENIED)
        self.paper.refresh_from_db()
        self.assertEqual(self.paper.quantity, 20)

    def test_unknown_target_status(self):
        request = self._create([{'item_id': self.paper.id, 'quantity': 2}])

        for target in ('shipped', Request.Status.PENDING):
            with self.assertRaises(InvalidTransitionError):
                transition_request(request.id, target, self.admin.id)

    def test_only_staff_may_transition(self):
        request = self._create([{'item_id': self.paper.id, 'quantity': 2}])

        for actor_id in (self.requester.id, None, 999999):
            with self.assertRaises(PermissionDeniedError):
                transition_request(request.id, Request.Status.APPROVED, actor_id)

        self.assertEqual(get_request(request.id).status, Request.Status.PENDING)

    def test_missing_request(self):
        with self.assertRaises(NotFoundError):
            transition_request(uuid.uuid4(), Request.Status.APPROVED, self.admin.id)

    def test_lock_conflict_keeps_request_pending(self):
        """
        Given: the database reports a locked table while approving
        When: approving
        Then: ConflictError (not a raw OperationalError), request still pending
        """
        request = self._create([{'item_id': self.paper.id, 'quantity': 2}])
        locked = OperationalError('database table is locked: inventory_item')

        with patch('requisitions.services.apply_stock_movements', side_effect=locked):
            with self.assertRaises(ConflictError) as context:
                transition_request(request.id, Request.Status.APPROVED, self.admin.id)

        self.assertNotIsInstance(context.exception, InsufficientStockError)
        self.assertIn('please retry', context.exception.message)
        self.assertEqual(get_request(request.id).status, Request.Status.PENDING)

    def test_other_database_errors_propagate(self):
        request = self._create([{'item_id': self.paper.id, 'quantity': 2}])
        broken = OperationalError('no such column: inventory_item.price')

        with patch('requisitions.services.apply_stock_movements', side_effect=broken):
            with self.assertRaises(OperationalError):
                transition_request(request.id, Request.Status.APPROVED, self.admin.id)

    def test_item_ids_as_strings(self):
        request = self._create([{'item_id': str(self.paper.id), 'quantity': 3}])

        self.assertEqual(request.item_count, 1)
        self.assertEqual(request.lines.get().item_id, self.paper.id)

        with self.assertRaises(ValidationError):
            self._create([{'item_id': 'paper', 'quantity': 1}])

    def test_competing_approvals_sequential(self):
        """
        Given: 10 units, two pending requests of 6
        When: approving both
        Then: the first leaves 4, the second fails and stays pending
        """
        item = Item.objects.create(name='Chair', quantity=10, min_quantity=0)
        first = self._create([{'item_id': item.id, 'quantity': 6}])
        second = self._create([{'item_id': item.id, 'quantity': 6}])

        transition_request(first.id, Request.Status.APPROVED, self.admin.id)
        with self.assertRaises(InsufficientStockError):
            transition_request(second.id, Request.Status.APPROVED, self.manager.id)

        item.refresh_from_db()
        self.assertEqual(item.quantity, 4)
        self.assertEqual(get_request(second.id).status, Request.Status.PENDING)

    def test_delete_request(self):
        request = self._create([{'item_id': self.paper.id, 'quantity': 2}])

        delete_request(request.id)

        self.assertFalse(Request.objects.filter(pk=request.id).exists())
        with self.assertRaises(NotFoundError):
            delete_request(request.id)


class RequestNotificationTestCase(TestCase):

    def setUp(self):
        self.admin = User.objects.create_user(
            email='admin@example.com', password='secret123', name='Admin', role=User.Role.ADMIN
        )
        self.manager = User.objects.create_user(
            email='manager@example.com', password='secret123', name='Manager', role=User.Role.MANAGER
        )
        self.requester = User.objects.create_user(
            email='requester@example.com', password='secret123', name='Requester'
        )
        self.item = Item.objects.create(name='Marker', quantity=10, min_quantity=2)

    def _submit(self):
        with self.captureOnCommitCallbacks(execute=True):
            return create_request(
                self.requester.id, 'Workshop', [{'item_id': self.item.id, 'quantity': 2}]
            )

    def test_submission_notifies_staff_and_requester(self):
        request = self._submit()

        submitted = Notification.objects.filter(
            type=Notification.Type.REQUEST_SUBMITTED, related_id=str(request.id)
        )
        self.assertEqual(
            set(submitted.values_list('user_id', flat=True)),
            {self.admin.id, self.manager.id, self.requester.id},
        )

    def test_transition_notifies_requester(self):
        request = self._submit()

        with self.captureOnCommitCallbacks(execute=True):
            transition_request(request.id, Request.Status.APPROVED, self.admin.id)

        notification = Notification.objects.get(
            user=self.requester, type=Notification.Type.REQUEST_APPROVED
        )
        self.assertEqual(notification.related_id, str(request.id))
        self.assertFalse(notification.is_read)

    def test_no_notification_for_failed_transition(self):
        request = self._submit()
        Item.objects.filter(pk=self.item.pk).update(quantity=1)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(InsufficientStockError):
                transition_request(request.id, Request.Status.APPROVED, self.admin.id)

        self.assertEqual(callbacks, [])
        self.assertFalse(
            Notification.objects.filter(type=Notification.Type.REQUEST_APPROVED).exists()
        )

    def test_notification_task_failure_does_not_fail_transition(self):
        request = self._submit()

        with patch('notifications.tasks.notify_request_status.delay', side_effect=RuntimeError('broker down')):
            with self.captureOnCommitCallbacks(execute=True):
                approved = transition_request(request.id, Request.Status.APPROVED, self.admin.id)

        self.assertEqual(approved.status, Request.Status.APPROVED)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 8)

    def test_receiver_failure_does_not_fail_transition(self):
        request = self._submit()

        with patch('notifications.receivers._queue', side_effect=RuntimeError('receiver bug')):
            with self.captureOnCommitCallbacks(execute=True):
                denied = transition_request(request.id, Request.Status.DENIED, self.admin.id)

        self.assertEqual(denied.status, Request.Status.DENIED)
        self.assertEqual(get_request(request.id).status, Request.Status.DENIED)


class RequestAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(
            email='admin@example.com', password='secret123', name='Admin', role=User.Role.ADMIN
        )
        self.requester = User.objects.create_user(
            email='requester@example.com', password='secret123', name='Requester'
        )
        self.item = Item.objects.create(
            name='Drill', description='Cordless drill', category='tools', quantity=5, min_quantity=1
        )

    def _post_request(self, quantity=3):
        return self.client.post('/api/requests', {
            'project_name': 'Fit-out',
            'requester_id': self.requester.id,
            'priority': 'high',
            'items': [{'item_id': self.item.id, 'quantity': quantity}],
        }, format='json')

    def test_create_and_read(self):
        response = self._post_request()

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body['status'], 'pending')
        self.assertEqual(body['priority'], 'high')
        self.assertEqual(body['items'][0]['item_id'], self.item.id)
        self.assertEqual(body['items'][0]['quantity'], 3)
        self.assertEqual(body['items'][0]['name'], 'Drill')
        self.assertEqual(body['items'][0]['category'], 'tools')

        response = self.client.get(f"/api/requests/{body['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['item_count'], 1)

        response = self.client.get(f'/api/requests/user/{self.requester.id}')
        self.assertEqual([row['id'] for row in response.json()], [body['id']])

        response = self.client.get('/api/requests', {'status': 'approved'})
        self.assertEqual(response.json(), [])

    def test_create_with_unknown_requester(self):
        response = self.client.post('/api/requests', {
            'project_name': 'Fit-out',
            'requester_id': 999999,
            'items': [{'item_id': self.item.id, 'quantity': 1}],
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()['success'])

    def test_status_endpoint(self):
        request_id = self._post_request().json()['id']
        url = f'/api/requests/{request_id}/status'

        response = self.client.patch(url, {'status': 'approved', 'approved_by': self.requester.id}, format='json')
        self.assertEqual(response.status_code, 403)

        response = self.client.patch(url, {'status': 'shipped', 'approved_by': self.admin.id}, format='json')
        self.assertEqual(response.status_code, 400)

        response = self.client.patch(url, {'status': 'approved', 'approved_by': self.admin.id}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'approved')
        self.assertEqual(response.json()['approved_by']['id'], self.admin.id)

        response = self.client.patch(url, {'status': 'denied', 'approved_by': self.admin.id}, format='json')
        self.assertEqual(response.status_code, 400)

        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 2)

    def test_status_endpoint_insufficient_stock(self):
        request_id = self._post_request(quantity=5).json()['id']
        Item.objects.filter(pk=self.item.pk).update(quantity=4)

        response = self.client.patch(
            f'/api/requests/{request_id}/status',
            {'status': 'approved', 'approved_by': self.admin.id},
            format='json',
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn('Insufficient stock', response.json()['message'])

    def test_status_endpoint_lock_conflict(self):
        request_id = self._post_request().json()['id']
        locked = OperationalError('database table is locked: inventory_item')

        with patch('requisitions.services.apply_stock_movements', side_effect=locked):
            response = self.client.patch(
                f'/api/requests/{request_id}/status',
                {'status': 'approved', 'approved_by': self.admin.id},
                format='json',
            )

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()['success'])
        self.assertEqual(Request.objects.get(pk=request_id).status, Request.Status.PENDING)

    def test_missing_request(self):
        missing = uuid.uuid4()

        self.assertEqual(self.client.get(f'/api/requests/{missing}').status_code, 404)
        self.assertEqual(self.client.delete(f'/api/requests/{missing}').status_code, 404)
        response = self.client.patch(
            f'/api/requests/{missing}/status',
            {'status': 'approved', 'approved_by': self.admin.id},
            format='json',
        )
        self.assertEqual(response.status_code, 404)

    def test_delete(self):
        request_id = self._post_request().json()['id']

        response = self.client.delete(f'/api/requests/{request_id}')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])
        self.assertFalse(Request.objects.exists())

    def test_dashboard_stats(self):
        self._post_request()
        Item.objects.create(name='Empty Box', quantity=0)

        response = self.client.get('/api/dashboard/stats')

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['items']['total'], 2)
        self.assertEqual(body['items']['out_of_stock'], 1)
        self.assertEqual(body['requests']['pending'], 1)
        self.assertEqual(body['requests']['total'], 1)
        self.assertEqual(body['loans']['total'], 0)


class RequestLineAdminTestCase(TestCase):
    """Request lines are read-only in the admin once submitted."""

    def setUp(self):
        self.superuser = User.objects.create_superuser(email='root@example.com', password='secret123')
        item = Item.objects.create(name='Ladder', quantity=4)
        self.request = create_request(self.superuser.id, 'Storeroom', [{'item_id': item.id, 'quantity': 2}])
        self.line = RequestLine.objects.get(request=self.request)
        self.http_request = RequestFactory().get('/admin/')
        self.http_request.user = self.superuser

    def test_line_admin_is_view_only(self):
        line_admin = admin.site._registry[RequestLine]

        self.assertFalse(line_admin.has_add_permission(self.http_request))
        self.assertFalse(line_admin.has_change_permission(self.http_request, self.line))
        self.assertTrue(line_admin.has_view_permission(self.http_request, self.line))
        self.assertTrue(
            {'request', 'item', 'quantity'} <= set(line_admin.get_readonly_fields(self.http_request, self.line))
        )

    def test_inline_cannot_add_lines(self):
        inline = RequestLineInline(Request, admin.site)

        self.assertFalse(inline.has_add_permission(self.http_request, self.request))


class ConcurrentApprovalTestCase(TransactionTestCase):
    """
    Two approvals racing for the same stock.
    Uses TransactionTestCase for proper multi-threading support.
    """

    MAX_ATTEMPTS = 20

    def setUp(self):
        self.admin = User.objects.create_user(
            email='admin@example.com', password='secret123', name='Admin', role=User.Role.ADMIN
        )
        requester = User.objects.create_user(email='requester@example.com', password='secret123')
        self.item = Item.objects.create(name='Limited Chair', quantity=10, min_quantity=0)
        self.requests = [
            create_request(requester.id, f'Room {n}', [{'item_id': self.item.id, 'quantity': 6}])
            for n in (1, 2)
        ]

    def test_concurrent_approvals_no_overselling(self):
        """
        Given: 10 units in stock
        When: two concurrent approvals of 6 units each
        Then: exactly one succeeds, the other is refused for stock, final quantity 4

        Backends without row locks (SQLite) report the race as a ConflictError;
        the approval is retried like a client would.
        """
        outcomes = {}

        def approve(request_id):
            try:
                for _ in range(self.MAX_ATTEMPTS):
                    try:
                        transition_request(request_id, Request.Status.APPROVED, self.admin.id)
                        outcomes[request_id] = 'approved'
                        return
                    except InsufficientStockError:
                        outcomes[request_id] = 'insufficient'
                        return
                    except ConflictError:
                        time.sleep(random.uniform(0.005, 0.05))
                outcomes[request_id] = 'conflict'
            except Exception as e:
                outcomes[request_id] = f'{type(e).__name__}: {e}'
            finally:
                connection.close()

        threads = [threading.Thread(target=approve, args=(r.id,)) for r in self.requests]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(outcomes.values()), ['approved', 'insufficient'])
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 4)

        statuses = sorted(Request.objects.values_list('status', flat=True))
        self.assertEqual(statuses, ['approved', 'pending'])
