"""
Inventory Service Layer - stock movements, item maintenance, bulk import.

Every quantity change goes through the Stock Ledger and is saved together
with the recomputed status. Workflow stock movements follow a fail-fast
pattern:
1. Lock all affected item rows with select_for_update(), in id order
2. Validate ALL items exist and have enough stock
3. If ANY check fails: raise, nothing is written
4. If ALL pass: apply the ledger to every item
"""
import logging
from contextlib import contextmanager
from typing import Dict, Iterable, List, NamedTuple, Tuple

from django.db import DatabaseError, OperationalError, transaction
from django.utils import timezone

from core.exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from . import ledger
from .models import Item

logger = logging.getLogger(__name__)

# Driver messages for lock timeouts, deadlocks and serialization failures
LOCK_ERROR_MARKERS = (
    'locked',
    'deadlock',
    'lock wait timeout',
    'could not obtain lock',
    'could not serialize',
)


class StockMovement(NamedTuple):
    item: Item
    old_quantity: int
    new_quantity: int


def parse_quantity(value, field: str = 'quantity') -> int:
    """Coerce an imported quantity cell to a non-negative integer."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}")
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, float) and value.is_integer():
        quantity = int(value)
    elif isinstance(value, str) and value.strip().lstrip('-').isdigit():
        quantity = int(value.strip())
    else:
        raise ValidationError(f"Invalid {field}")

    if quantity < 0:
        raise ValidationError(f"Invalid {field}: must not be negative")
    return quantity


def is_lock_conflict(exc: DatabaseError) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in LOCK_ERROR_MARKERS)


@contextmanager
def stock_transaction():
    """
    transaction.atomic() for workflows that move stock.

    When the database gives up waiting for a lock (SQLite reports a locked
    table, other backends a lock timeout or deadlock) the transaction is
    rolled back and a retryable ConflictError is raised instead.
    """
    try:
        with transaction.atomic():
            yield
    except OperationalError as e:
        if not is_lock_conflict(e):
            raise
        logger.warning(f"Stock update lost a lock race: {e}")
        raise ConflictError(
            "Stock is being updated by another request, please retry",
            detail=str(e)
        ) from e


def apply_stock_movements(movements: Iterable[Tuple[int, int]]) -> List[StockMovement]:
    """
    Apply signed quantity deltas to items under row locks.

    Must be called inside transaction.atomic(); the caller's transaction is
    the consistency boundary.

    Args:
        movements: (item_id, delta) pairs; negative deltas consume stock

    Raises:
        NotFoundError: an item is missing or soft-deleted
        InsufficientStockError: a consuming delta exceeds the quantity on hand
    """
    deltas: Dict[int, int] = {}
    for item_id, delta in movements:
        deltas[item_id] = deltas.get(item_id, 0) + delta
    if not deltas:
        return []

    # Order by id to prevent deadlocks between overlapping approvals
    locked = {
        item.id: item
        for item in Item.objects.select_for_update().filter(
            id__in=list(deltas), is_active=True
        ).order_by('id')
    }

    missing = sorted(set(deltas) - set(locked))
    if missing:
        raise NotFoundError(
            f"Items not found or inactive: {missing}",
            detail={'missing_item_ids': missing}
        )

    shortages = []
    for item_id, delta in deltas.items():
        item = locked[item_id]
        if ledger.shortfall(item.quantity, delta):
            shortages.append({
                'item_id': item_id,
                'name': item.name,
                'requested': -delta,
                'available': item.quantity,
            })
    if shortages:
        raise InsufficientStockError(shortages)

    now = timezone.now()
    results = []
    for item_id in sorted(deltas):
        item = locked[item_id]
        delta = deltas[item_id]
        old_quantity = item.quantity

        entry = ledger.apply_delta(old_quantity, item.min_quantity, delta)
        item.quantity = entry.quantity
        update_fields = ['quantity']
        if delta > 0:
            item.last_restocked = now
            update_fields.append('last_restocked')
        item.save(update_fields=update_fields)

        results.append(StockMovement(item, old_quantity, item.quantity))
        logger.debug(
            f"Item #{item.id} ({item.name}): {old_quantity} -> {item.quantity} "
            f"[{item.status}]"
        )
    return results


# =============================================================================
# Item maintenance
# =============================================================================

def list_items():
    return Item.objects.filter(is_active=True).order_by('name')


def get_item(item_id) -> Item:
    try:
        return Item.objects.get(pk=item_id, is_active=True)
    except (Item.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Item {item_id} not found")


def create_item(data: Dict) -> Item:
    item = Item(**data)
    if item.quantity > 0:
        item.last_restocked = timezone.now()
    item.save()
    logger.info(f"Created item #{item.id} {item.name} ({item.quantity} {item.unit}, {item.status})")
    return item


def update_item(item_id, data: Dict) -> Item:
    """
    Update item fields. status is never taken from the caller; it is
    recomputed from quantity/min_quantity on save.
    """
    editable = ('name', 'description', 'category', 'unit', 'price', 'quantity', 'min_quantity')
    changes = {field: value for field, value in data.items() if field in editable}
    if not changes:
        raise ValidationError("No valid fields to update")

    with transaction.atomic():
        try:
            item = Item.objects.select_for_update().get(pk=item_id, is_active=True)
        except (Item.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"Item {item_id} not found")

        if 'quantity' in changes and changes['quantity'] > item.quantity:
            item.last_restocked = timezone.now()
        for field, value in changes.items():
            setattr(item, field, value)
        item.save()

    logger.info(f"Updated item #{item.id}: {sorted(changes)}")
    return item


def soft_delete_item(item_id) -> None:
    """
    Deactivate an item.

    Raises:
        NotFoundError: item missing or already deleted
        ConflictError: item is on a pending request or an open loan
    """
    from requisitions.models import Request
    from loans.models import Loan

    with transaction.atomic():
        try:
            item = Item.objects.select_for_update().get(pk=item_id, is_active=True)
        except (Item.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"Item {item_id} not found")

        if item.request_lines.filter(request__status=Request.Status.PENDING).exists():
            raise ConflictError(f"Item {item.name} is referenced by a pending request")
        if item.loans.filter(status__in=Loan.OPEN_STATUSES).exists():
            raise ConflictError(f"Item {item.name} is referenced by an open loan")

        item.is_active = False
        item.save(update_fields=['is_active'])

    logger.info(f"Soft-deleted item #{item_id}")


# =============================================================================
# Bulk import and stock count reconciliation
# =============================================================================

def _require_rows(rows) -> None:
    if not isinstance(rows, list) or not rows:
        raise ValidationError("Invalid or empty items array")


def _build_item(row: Dict) -> Item:
    name = row.get('name')
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Missing item name")

    item = Item(
        name=name.strip(),
        description=row.get('description') or '',
        category=row.get('category') or 'other',
        unit=row.get('unit') or 'pcs',
        quantity=parse_quantity(row.get('quantity', 0)),
        min_quantity=parse_quantity(row.get('minQuantity', row.get('min_quantity', 0)), 'minQuantity'),
    )
    if item.quantity > 0:
        item.last_restocked = timezone.now()
    return item


def bulk_create_items(rows) -> Dict:
    """
    Initial stock import.

    One transaction for the whole batch; each row gets its own savepoint, so
    a bad row is reported in `errors` while the valid rows still commit.
    """
    _require_rows(rows)
    logger.info(f"Processing bulk create for {len(rows)} items")

    created, errors = [], []
    with transaction.atomic():
        for index, row in enumerate(rows):
            try:
                if not isinstance(row, dict):
                    raise ValidationError("Row must be an object")
                with transaction.atomic():
                    item = _build_item(row)
                    item.save()
                created.append(item)
            except ValidationError as e:
                errors.append({'index': index, 'item': row, 'error': e.message})
            except DatabaseError as e:
                logger.error(f"Bulk create row {index} failed: {e}")
                errors.append({'index': index, 'item': row, 'error': str(e)})

    logger.info(f"Bulk create finished: {len(created)} created, {len(errors)} errors")
    return {'items': created, 'errors': errors}


def _locate_item_for_update(row: Dict) -> Item:
    item_id = row.get('id')
    name = row.get('name')

    if item_id not in (None, ''):
        try:
            return Item.objects.select_for_update().get(pk=item_id, is_active=True)
        except (Item.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Item not found")

    if isinstance(name, str) and name.strip():
        matches = list(
            Item.objects.select_for_update().filter(name__iexact=name.strip(), is_active=True)[:2]
        )
        if not matches:
            raise NotFoundError("Item not found")
        if len(matches) > 1:
            raise ValidationError(f"Ambiguous item name '{name}'; use the item id")
        return matches[0]

    raise ValidationError("Each row needs an id or a name")


def _reconcile_row(row: Dict) -> Dict:
    item = _locate_item_for_update(row)
    counted = parse_quantity(row.get('quantity'))

    old_quantity = item.quantity
    entry = ledger.apply_delta(old_quantity, item.min_quantity, counted - old_quantity)
    item.quantity = entry.quantity
    update_fields = ['quantity']
    if counted > old_quantity:
        item.last_restocked = timezone.now()
        update_fields.append('last_restocked')
    item.save(update_fields=update_fields)

    return {
        'id': item.id,
        'name': item.name,
        'oldQuantity': old_quantity,
        'newQuantity': item.quantity,
        'status': item.status,
    }


def bulk_update_stock(rows) -> Dict:
    """
    Periodic stock count reconciliation.

    Rows are {id | name, quantity} with the counted (absolute) quantity.
    Unknown items and invalid quantities are reported per row; the valid rows
    commit together in one transaction.
    """
    _require_rows(rows)
    logger.info(f"Processing bulk stock update for {len(rows)} items")

    results, errors = [], []
    with transaction.atomic():
        for index, row in enumerate(rows):
            try:
                if not isinstance(row, dict):
                    raise ValidationError("Row must be an object")
                with transaction.atomic():
                    results.append(_reconcile_row(row))
            except (NotFoundError, ValidationError) as e:
                errors.append({'index': index, 'item': row, 'error': e.message})
            except DatabaseError as e:
                logger.error(f"Stock update row {index} failed: {e}")
                errors.append({'index': index, 'item': row, 'error': str(e)})

    logger.info(f"Bulk stock update finished: {len(results)} updated, {len(errors)} errors")
    return {'results': results, 'errors': errors}
