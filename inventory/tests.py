"""
Tests for the stock ledger, stock movements and item maintenance.

Test Cases:
1. Ledger clamps at zero and partitions status
2. Item.save() always recomputes status
3. Stock movements fail fast with no partial writes
4. Soft delete refuses items on open requests or loans
5. Bulk import and stock count reconciliation report per-row errors
6. Item API: listing is read-only, status is never writable
7. Lock errors during a stock transaction become retryable conflicts
"""
from datetime import timedelta

from django.db import OperationalError, transaction
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from core.exceptions import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from loans.models import Loan
from requisitions.models import Request, RequestLine
from . import ledger, services
from .models import Category, Item


class LedgerTestCase(TestCase):
    """Property checks over a grid of (quantity, min_quantity, delta)."""

    def test_clamp_and_partition(self):
        for quantity in range(0, 12):
            for min_quantity in range(0, 6):
                for delta in range(-15, 16):
                    entry = ledger.apply_delta(quantity, min_quantity, delta)

                    self.assertEqual(entry.quantity, max(0, quantity + delta))
                    if entry.quantity == 0:
                        self.assertEqual(entry.status, ledger.OUT_OF_STOCK)
                    elif entry.quantity <= min_quantity:
                        self.assertEqual(entry.status, ledger.LOW_STOCK)
                    else:
                        self.assertEqual(entry.status, ledger.IN_STOCK)

    def test_zero_min_quantity_means_any_stock_is_in_stock(self):
        self.assertEqual(ledger.derive_status(1, 0), ledger.IN_STOCK)
        self.assertEqual(ledger.derive_status(0, 0), ledger.OUT_OF_STOCK)

    def test_low_stock_boundary(self):
        """
        Given: quantity 5, min 5 (low-stock)
        When: consuming 5, then restocking 2
        Then: 0 out-of-stock, then 2 low-stock
        """
        self.assertEqual(ledger.derive_status(5, 5), ledger.LOW_STOCK)

        entry = ledger.apply_delta(5, 5, -5)
        self.assertEqual(entry, ledger.LedgerEntry(0, ledger.OUT_OF_STOCK))

        entry = ledger.apply_delta(entry.quantity, 5, 2)
        self.assertEqual(entry, ledger.LedgerEntry(2, ledger.LOW_STOCK))

    def test_shortfall(self):
        self.assertEqual(ledger.shortfall(10, -6), 0)
        self.assertEqual(ledger.shortfall(4, -6), 2)
        self.assertEqual(ledger.shortfall(0, 3), 0)


class ItemModelTestCase(TestCase):

    def test_status_recomputed_on_save(self):
        item = Item.objects.create(name='Cable', quantity=10, min_quantity=3)
        self.assertEqual(item.status, ledger.IN_STOCK)

        item.status = ledger.OUT_OF_STOCK  # callers can never set it
        item.quantity = 2
        item.save()
        item.refresh_from_db()

        self.assertEqual(item.status, ledger.LOW_STOCK)
        self.assertTrue(item.is_low_stock)

    def test_status_recomputed_with_update_fields(self):
        item = Item.objects.create(name='Toner', quantity=4, min_quantity=1)

        item.quantity = 0
        item.save(update_fields=['quantity'])
        item.refresh_from_db()

        self.assertEqual(item.status, ledger.OUT_OF_STOCK)
        self.assertTrue(item.is_out_of_stock)


class StockMovementTestCase(TestCase):

    def setUp(self):
        self.cable = Item.objects.create(name='HDMI Cable', quantity=10, min_quantity=2)
        self.mouse = Item.objects.create(name='Mouse', quantity=3, min_quantity=1)

    def test_movements_applied_with_status(self):
        with transaction.atomic():
            results = services.apply_stock_movements([(self.cable.id, -8), (self.mouse.id, 2)])

        self.assertEqual(
            [(r.item.id, r.old_quantity, r.new_quantity) for r in results],
            [(self.cable.id, 10, 2), (self.mouse.id, 3, 5)],
        )
        self.cable.refresh_from_db()
        self.mouse.refresh_from_db()
        self.assertEqual(self.cable.status, ledger.LOW_STOCK)
        self.assertEqual(self.mouse.status, ledger.IN_STOCK)
        self.assertIsNotNone(self.mouse.last_restocked)
        self.assertIsNone(self.cable.last_restocked)

    def test_deltas_for_same_item_are_aggregated(self):
        with transaction.atomic():
            services.apply_stock_movements([(self.cable.id, -4), (self.cable.id, -4)])

        self.cable.refresh_from_db()
        self.assertEqual(self.cable.quantity, 2)

    def test_insufficient_stock_writes_nothing(self):
        """
        Given: cable has 10, mouse has 3
        When: taking 5 cables and 4 mice
        Then: InsufficientStockError names the mouse, no quantity changes
        """
        with self.assertRaises(InsufficientStockError) as context:
            with transaction.atomic():
                services.apply_stock_movements([(self.cable.id, -5), (self.mouse.id, -4)])

        self.assertIn('Mouse', context.exception.message)
        self.assertEqual(context.exception.shortages[0]['available'], 3)
        self.assertIsInstance(context.exception, ConflictError)

        self.cable.refresh_from_db()
        self.mouse.refresh_from_db()
        self.assertEqual(self.cable.quantity, 10)
        self.assertEqual(self.mouse.quantity, 3)

    def test_lock_error_rolls_back_as_conflict(self):
        with self.assertRaises(ConflictError) as context:
            with services.stock_transaction():
                services.apply_stock_movements([(self.cable.id, -5)])
                raise OperationalError('database is locked')

        self.assertNotIsInstance(context.exception, InsufficientStockError)
        self.cable.refresh_from_db()
        self.assertEqual(self.cable.quantity, 10)

    def test_lock_conflict_detection(self):
        for message in (
            'database table is locked: inventory_item',
            'deadlock detected',
            'Lock wait timeout exceeded; try restarting transaction',
            'could not obtain lock on row in relation "inventory_item"',
        ):
            self.assertTrue(services.is_lock_conflict(OperationalError(message)), message)

        self.assertFalse(services.is_lock_conflict(OperationalError('no such table: inventory_item')))

    def test_inactive_item_is_not_found(self):
        Item.objects.filter(pk=self.mouse.pk).update(is_active=False)

        with self.assertRaises(NotFoundError):
            with transaction.atomic():
                services.apply_stock_movements([(self.cable.id, -1), (self.mouse.id, -1)])

        self.cable.refresh_from_db()
        self.assertEqual(self.cable.quantity, 10)


class ItemServiceTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='user@example.com', password='secret123', name='User')
        self.item = Item.objects.create(name='Projector', quantity=2, min_quantity=1)

    def test_update_item_recomputes_status(self):
        item = services.update_item(self.item.id, {'quantity': 0, 'status': ledger.IN_STOCK})

        self.assertEqual(item.quantity, 0)
        self.assertEqual(item.status, ledger.OUT_OF_STOCK)

    def test_update_item_restock_sets_last_restocked(self):
        item = services.update_item(self.item.id, {'quantity': 20})

        self.assertEqual(item.status, ledger.IN_STOCK)
        self.assertIsNotNone(item.last_restocked)

    def test_update_item_without_editable_fields(self):
        with self.assertRaises(ValidationError):
            services.update_item(self.item.id, {'status': ledger.IN_STOCK})

    def test_soft_delete(self):
        services.soft_delete_item(self.item.id)

        self.assertFalse(Item.objects.get(pk=self.item.pk).is_active)
        self.assertNotIn(self.item, services.list_items())
        with self.assertRaises(NotFoundError):
            services.soft_delete_item(self.item.id)

    def test_soft_delete_refused_for_pending_request(self):
        request = Request.objects.create(project_name='Launch', requester=self.user)
        RequestLine.objects.create(request=request, item=self.item, quantity=1)

        with self.assertRaises(ConflictError):
            services.soft_delete_item(self.item.id)
        self.assertTrue(Item.objects.get(pk=self.item.pk).is_active)

    def test_soft_delete_allowed_after_request_is_closed(self):
        request = Request.objects.create(
            project_name='Launch', requester=self.user, status=Request.Status.DENIED
        )
        RequestLine.objects.create(request=request, item=self.item, quantity=1)

        services.soft_delete_item(self.item.id)
        self.assertFalse(Item.objects.get(pk=self.item.pk).is_active)

    def test_soft_delete_refused_for_active_loan(self):
        now = timezone.now()
        Loan.objects.create(
            user=self.user, item=self.item, quantity=1, status=Loan.Status.ACTIVE,
            start_date=now, end_date=now + timedelta(days=3),
        )

        with self.assertRaises(ConflictError):
            services.soft_delete_item(self.item.id)


class BulkOperationsTestCase(TestCase):

    def setUp(self):
        self.cable = Item.objects.create(name='Cable', quantity=10, min_quantity=2)
        self.mouse = Item.objects.create(name='Mouse', quantity=5, min_quantity=5)

    def test_bulk_create_reports_invalid_rows(self):
        outcome = services.bulk_create_items([
            {'name': 'Stapler', 'quantity': 4, 'minQuantity': 5},
            {'name': '', 'quantity': 1},
            {'name': 'Pens', 'quantity': -3},
            {'name': 'Paper', 'quantity': 'ten'},
            {'name': 'Tape', 'quantity': '7', 'category': 'office'},
        ])

        self.assertEqual([item.name for item in outcome['items']], ['Stapler', 'Tape'])
        self.assertEqual([error['index'] for error in outcome['errors']], [1, 2, 3])
        self.assertEqual(Item.objects.get(name='Stapler').status, ledger.LOW_STOCK)
        self.assertEqual(Item.objects.get(name='Tape').category, 'office')

    def test_bulk_create_rejects_empty_array(self):
        with self.assertRaises(ValidationError):
            services.bulk_create_items([])
        with self.assertRaises(ValidationError):
            services.bulk_create_items({'name': 'not a list'})

    def test_bulk_update_with_unknown_id(self):
        """
        Given: two known items and one unknown id
        When: reconciling counted quantities
        Then: errorCount 1, the known items are updated
        """
        outcome = services.bulk_update_stock([
            {'id': self.cable.id, 'quantity': 40},
            {'id': 999999, 'quantity': 1},
            {'name': 'mouse', 'quantity': 0},
        ])

        self.assertEqual(len(outcome['errors']), 1)
        self.assertEqual(outcome['errors'][0]['index'], 1)
        self.assertEqual(outcome['results'][0], {
            'id': self.cable.id,
            'name': 'Cable',
            'oldQuantity': 10,
            'newQuantity': 40,
            'status': ledger.IN_STOCK,
        })

        self.cable.refresh_from_db()
        self.mouse.refresh_from_db()
        self.assertEqual(self.cable.quantity, 40)
        self.assertEqual(self.mouse.quantity, 0)
        self.assertEqual(self.mouse.status, ledger.OUT_OF_STOCK)

    def test_bulk_update_ambiguous_name(self):
        Item.objects.create(name='CABLE', quantity=1)

        outcome = services.bulk_update_stock([{'name': 'cable', 'quantity': 3}])

        self.assertEqual(outcome['results'], [])
        self.assertIn('Ambiguous', outcome['errors'][0]['error'])


@override_settings(RATE_LIMIT_ENABLED=False)
class ItemAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.item = Item.objects.create(name='Ladder', category='tools', quantity=6, min_quantity=2)
        Item.objects.create(name='Old Drill', quantity=1, is_active=False)

    def test_list_is_idempotent(self):
        first = self.client.get('/api/items')
        second = self.client.get('/api/items')

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json(), second.json())
        self.assertEqual([row['name'] for row in first.json()], ['Ladder'])
        self.assertEqual(first.json()[0]['minQuantity'], 2)
        self.assertEqual(first.json()[0]['status'], ledger.IN_STOCK)

    def test_list_filters(self):
        Item.objects.create(name='Glue', category='office', quantity=0)

        response = self.client.get('/api/items', {'status': ledger.OUT_OF_STOCK})
        self.assertEqual([row['name'] for row in response.json()], ['Glue'])

        response = self.client.get('/api/items', {'category': 'TOOLS'})
        self.assertEqual([row['name'] for row in response.json()], ['Ladder'])

    def test_create_ignores_status(self):
        response = self.client.post(
            '/api/items',
            {'name': 'Helmet', 'quantity': 3, 'minQuantity': 3, 'status': ledger.IN_STOCK},
            format='json',
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['status'], ledger.LOW_STOCK)
        self.assertEqual(response.json()['category'], 'other')

    def test_create_rejects_negative_quantity(self):
        response = self.client.post('/api/items', {'name': 'Helmet', 'quantity': -1}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()['success'])

    def test_update_and_delete(self):
        response = self.client.put(f'/api/items/{self.item.id}', {'quantity': 1}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], ledger.LOW_STOCK)

        response = self.client.delete(f'/api/items/{self.item.id}')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])

        response = self.client.get(f'/api/items/{self.item.id}')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['success'], False)

    def test_bulk_endpoints(self):
        response = self.client.post(
            '/api/items/bulk',
            [{'name': 'Rope', 'quantity': 5}, {'quantity': 2}],
            format='json',
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['count'], 1)
        self.assertEqual(response.json()['errorCount'], 1)

        response = self.client.post(
            '/api/items/bulk-update-stock',
            [{'id': self.item.id, 'quantity': 0}, {'id': 424242, 'quantity': 1}],
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['updatedCount'], 1)
        self.assertEqual(response.json()['errorCount'], 1)

        response = self.client.post('/api/items/bulk-update-stock', [], format='json')
        self.assertEqual(response.status_code, 400)


class CategoryAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()

    def test_category_crud(self):
        response = self.client.post('/api/categories', {'name': 'Tools'}, format='json')
        self.assertEqual(response.status_code, 201)
        category_id = response.json()['id']

        Item.objects.create(name='Hammer', category='tools', quantity=1)
        response = self.client.get(f'/api/categories/{category_id}')
        self.assertEqual(response.json()['item_count'], 1)

        response = self.client.post('/api/categories', {'name': 'Tools'}, format='json')
        self.assertEqual(response.status_code, 400)

        response = self.client.delete(f'/api/categories/{category_id}')
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Category.objects.exists())
