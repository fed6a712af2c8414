"""
Tests for the loan workflow and the overdue sweep.

Test Cases:
1. Approve takes stock out, return puts it back
2. Returning twice fails with AlreadyReturnedError
3. Reject / cancel rules and who may cancel
4. Approval fails fast on insufficient stock
5. Overdue sweep flips only past-due active loans
6. Due-soon reminders are sent once
"""
from datetime import timedelta
from unittest.mock import patch

from django.contrib import admin
from django.db import OperationalError
from django.test import RequestFactory, TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from core.exceptions import (
    AlreadyReturnedError,
    ConflictError,
    InsufficientStockError,
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from inventory import ledger
from inventory.models import Item
from notifications.models import Notification
from .models import Loan
from .services import (
    approve_loan,
    cancel_loan,
    create_loan,
    mark_overdue_loans,
    reject_loan,
    return_loan,
    send_due_soon_reminders,
)
from .tasks import check_overdue_loans


class LoanTestMixin:

    def setUp(self):
        self.now = timezone.now()
        self.admin = User.objects.create_user(
            email='admin@example.com', password='secret123', name='Admin', role=User.Role.ADMIN
        )
        self.borrower = User.objects.create_user(
            email='borrower@example.com', password='secret123', name='Borrower'
        )
        self.other = User.objects.create_user(
            email='other@example.com', password='secret123', name='Other'
        )
        self.camera = Item.objects.create(name='Camera', quantity=3, min_quantity=1)

    def _create(self, quantity=1, days=7):
        return create_loan({
            'user_id': self.borrower.id,
            'item_id': self.camera.id,
            'quantity': quantity,
            'start_date': self.now,
            'end_date': self.now + timedelta(days=days),
            'purpose': 'Site survey',
        })

    def _active_loan(self, end_date, quantity=1):
        return Loan.objects.create(
            user=self.borrower,
            item=self.camera,
            quantity=quantity,
            status=Loan.Status.ACTIVE,
            start_date=end_date - timedelta(days=7),
            end_date=end_date,
        )


class LoanWorkflowTestCase(LoanTestMixin, TestCase):

    def test_create_loan(self):
        loan = self._create(quantity=2)

        self.assertEqual(loan.status, Loan.Status.PENDING)
        self.assertEqual(loan.quantity, 2)
        self.camera.refresh_from_db()
        self.assertEqual(self.camera.quantity, 3)

    def test_create_validation(self):
        with self.assertRaises(ValidationError):
            create_loan({'user_id': 999999, 'item_id': self.camera.id, 'end_date': self.now})
        with self.assertRaises(ValidationError):
            create_loan({'user_id': self.borrower.id, 'item_id': 999999, 'end_date': self.now})
        with self.assertRaises(ValidationError):
            create_loan({
                'user_id': self.borrower.id,
                'item_id': self.camera.id,
                'start_date': self.now,
                'end_date': self.now - timedelta(days=1),
            })
        with self.assertRaises(ValidationError):
            create_loan({'user_id': self.borrower.id, 'item_id': self.camera.id})

    def test_approve_and_return(self):
        """
        Given: 3 cameras, min 1
        When: approving a loan of 2, then returning it
        Then: 1 (low-stock) while out, back to 3 (in-stock) after return
        """
        loan = self._create(quantity=2)

        loan = approve_loan(loan.id, self.admin.id)
        self.assertEqual(loan.status, Loan.Status.ACTIVE)
        self.assertEqual(loan.approved_by, self.admin)
        self.camera.refresh_from_db()
        self.assertEqual((self.camera.quantity, self.camera.status), (1, ledger.LOW_STOCK))

        loan = return_loan(loan.id, self.admin.id, notes='All good')
        self.assertEqual(loan.status, Loan.Status.RETURNED)
        self.assertIsNotNone(loan.actual_return_date)
        self.assertEqual(loan.notes, 'All good')
        self.camera.refresh_from_db()
        self.assertEqual((self.camera.quantity, self.camera.status), (3, ledger.IN_STOCK))

    def test_return_twice(self):
        loan = self._create()
        approve_loan(loan.id, self.admin.id)
        return_loan(loan.id, self.admin.id)

        with self.assertRaises(AlreadyReturnedError):
            return_loan(loan.id, self.admin.id)

        self.camera.refresh_from_db()
        self.assertEqual(self.camera.quantity, 3)

    def test_return_pending_loan(self):
        loan = self._create()

        with self.assertRaises(InvalidTransitionError):
            return_loan(loan.id, self.admin.id)

    def test_approve_insufficient_stock(self):
        loan = self._create(quantity=4)

        with self.assertRaises(InsufficientStockError):
            approve_loan(loan.id, self.admin.id)

        loan.refresh_from_db()
        self.assertEqual(loan.status, Loan.Status.PENDING)
        self.camera.refresh_from_db()
        self.assertEqual(self.camera.quantity, 3)

    def test_approve_lock_conflict(self):
        loan = self._create()
        locked = OperationalError('database table is locked: inventory_item')

        with patch('loans.services.apply_stock_movements', side_effect=locked):
            with self.assertRaises(ConflictError):
                approve_loan(loan.id, self.admin.id)

        loan.refresh_from_db()
        self.assertEqual(loan.status, Loan.Status.PENDING)

    def test_only_staff_may_approve(self):
        loan = self._create()

        with self.assertRaises(PermissionDeniedError):
            approve_loan(loan.id, self.borrower.id)

        loan.refresh_from_db()
        self.assertEqual(loan.status, Loan.Status.PENDING)

    def test_reject(self):
        loan = self._create()

        loan = reject_loan(loan.id, self.admin.id, notes='Reserved for audit')

        self.assertEqual(loan.status, Loan.Status.REJECTED)
        self.assertEqual(loan.notes, 'Reserved for audit')
        with self.assertRaises(InvalidTransitionError):
            approve_loan(loan.id, self.admin.id)

    def test_cancel_by_borrower(self):
        loan = self._create()

        loan = cancel_loan(loan.id, self.borrower.id)

        self.assertEqual(loan.status, Loan.Status.CANCELLED)

    def test_cancel_by_someone_else(self):
        loan = self._create()

        with self.assertRaises(PermissionDeniedError):
            cancel_loan(loan.id, self.other.id)
        with self.assertRaises(PermissionDeniedError):
            cancel_loan(loan.id, None)

        loan = cancel_loan(loan.id, self.admin.id)
        self.assertEqual(loan.status, Loan.Status.CANCELLED)

    def test_cancel_active_loan(self):
        loan = self._create()
        approve_loan(loan.id, self.admin.id)

        with self.assertRaises(InvalidTransitionError):
            cancel_loan(loan.id, self.borrower.id)


class OverdueSweepTestCase(LoanTestMixin, TestCase):

    def test_mark_overdue_flips_only_past_due_active_loans(self):
        past_due = self._active_loan(self.now - timedelta(hours=1))
        current = self._active_loan(self.now + timedelta(days=2))
        pending = self._create()
        Loan.objects.filter(pk=pending.pk).update(end_date=self.now - timedelta(hours=1))

        count = mark_overdue_loans(self.now)

        self.assertEqual(count, 1)
        past_due.refresh_from_db()
        current.refresh_from_db()
        pending.refresh_from_db()
        self.assertEqual(past_due.status, Loan.Status.OVERDUE)
        self.assertEqual(current.status, Loan.Status.ACTIVE)
        self.assertEqual(pending.status, Loan.Status.PENDING)

    def test_overdue_loan_can_be_returned(self):
        Item.objects.filter(pk=self.camera.pk).update(quantity=2)
        loan = self._active_loan(self.now - timedelta(days=1))
        mark_overdue_loans(self.now)

        loan = return_loan(loan.id, self.admin.id)

        self.assertEqual(loan.status, Loan.Status.RETURNED)
        self.camera.refresh_from_db()
        self.assertEqual(self.camera.quantity, 3)

    def test_overdue_notifies_borrower_and_staff(self):
        loan = self._active_loan(self.now - timedelta(hours=1))

        with self.captureOnCommitCallbacks(execute=True):
            mark_overdue_loans(self.now)

        recipients = set(
            Notification.objects.filter(
                type=Notification.Type.LOAN_OVERDUE, related_id=str(loan.id)
            ).values_list('user_id', flat=True)
        )
        self.assertEqual(recipients, {self.borrower.id, self.admin.id})

    def test_due_soon_reminder_sent_once(self):
        due_soon = self._active_loan(self.now + timedelta(hours=5))
        self._active_loan(self.now + timedelta(days=3))

        with self.captureOnCommitCallbacks(execute=True):
            self.assertEqual(send_due_soon_reminders(self.now), 1)
        with self.captureOnCommitCallbacks(execute=True):
            self.assertEqual(send_due_soon_reminders(self.now), 0)

        due_soon.refresh_from_db()
        self.assertEqual(due_soon.reminders_sent, 1)
        self.assertEqual(
            Notification.objects.filter(type=Notification.Type.LOAN_DUE, user=self.borrower).count(),
            1,
        )

    def test_periodic_task(self):
        self._active_loan(self.now - timedelta(hours=2))
        self._active_loan(self.now + timedelta(hours=2))

        result = check_overdue_loans()

        self.assertEqual(result, {'overdue': 1, 'reminded': 1})


class LoanNotificationTestCase(LoanTestMixin, TestCase):

    def test_lifecycle_notifications(self):
        with self.captureOnCommitCallbacks(execute=True):
            loan = self._create()
        with self.captureOnCommitCallbacks(execute=True):
            approve_loan(loan.id, self.admin.id)
        with self.captureOnCommitCallbacks(execute=True):
            return_loan(loan.id, self.admin.id)

        borrower_types = set(
            Notification.objects.filter(user=self.borrower).values_list('type', flat=True)
        )
        self.assertEqual(borrower_types, {'loan_submitted', 'loan_approved', 'item_returned'})
        admin_types = set(
            Notification.objects.filter(user=self.admin).values_list('type', flat=True)
        )
        self.assertEqual(admin_types, {'loan_submitted', 'item_returned'})

    def test_notification_failure_does_not_fail_approval(self):
        loan = self._create()

        with patch('notifications.services.notify_user', side_effect=RuntimeError('disk full')):
            with self.captureOnCommitCallbacks(execute=True):
                loan = approve_loan(loan.id, self.admin.id)

        self.assertEqual(loan.status, Loan.Status.ACTIVE)
        self.camera.refresh_from_db()
        self.assertEqual(self.camera.quantity, 2)


class LoanAPITestCase(LoanTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def _post_loan(self):
        return self.client.post('/api/loans', {
            'user_id': self.borrower.id,
            'item_id': self.camera.id,
            'quantity': 1,
            'end_date': (self.now + timedelta(days=3)).isoformat(),
        }, format='json')

    def test_create_and_list(self):
        response = self._post_loan()

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body['status'], 'pending')
        self.assertEqual(body['item']['name'], 'Camera')

        response = self.client.get(f"/api/loans/{body['id']}")
        self.assertEqual(response.status_code, 200)

        response = self.client.get(f'/api/loans/user/{self.borrower.id}')
        self.assertEqual([row['id'] for row in response.json()], [body['id']])

        response = self.client.get('/api/loans', {'status': 'active'})
        self.assertEqual(response.json(), [])

    def test_actions(self):
        loan_id = self._post_loan().json()['id']

        response = self.client.put(f'/api/loans/{loan_id}/approve', {'approved_by': self.borrower.id}, format='json')
        self.assertEqual(response.status_code, 403)

        response = self.client.put(f'/api/loans/{loan_id}/approve', {'approved_by': self.admin.id}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'active')

        response = self.client.put(f'/api/loans/{loan_id}/return', {'approved_by': self.admin.id}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'returned')

        response = self.client.put(f'/api/loans/{loan_id}/return', {'approved_by': self.admin.id}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Loan has already been returned')

    def test_cancel_with_actor_id(self):
        loan_id = self._post_loan().json()['id']

        response = self.client.put(f'/api/loans/{loan_id}/cancel', {'actor_id': self.borrower.id}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'cancelled')

    def test_past_due_flag(self):
        loan = self._active_loan(self.now - timedelta(hours=1))

        response = self.client.get(f'/api/loans/{loan.id}')
        self.assertTrue(response.json()['is_past_due'])

        mark_overdue_loans(self.now)

        response = self.client.get(f'/api/loans/{loan.id}')
        self.assertEqual(response.json()['status'], 'overdue')
        self.assertFalse(response.json()['is_past_due'])

    def test_missing_loan(self):
        response = self.client.put(
            '/api/loans/00000000-0000-0000-0000-000000000000/approve',
            {'approved_by': self.admin.id},
            format='json',
        )
        self.assertEqual(response.status_code, 404)


class LoanAdminTestCase(LoanTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        superuser = User.objects.create_superuser(email='root@example.com', password='secret123')
        self.http_request = RequestFactory().get('/admin/')
        self.http_request.user = superuser
        self.loan_admin = admin.site._registry[Loan]

    def test_item_and_quantity_locked_on_existing_loans(self):
        loan = self._create()
        approve_loan(loan.id, self.admin.id)

        readonly = self.loan_admin.get_readonly_fields(self.http_request, loan)

        self.assertTrue({'user', 'item', 'quantity', 'status'} <= set(readonly))

    def test_new_loan_form_is_editable(self):
        readonly = self.loan_admin.get_readonly_fields(self.http_request)

        self.assertNotIn('item', readonly)
        self.assertNotIn('quantity', readonly)
