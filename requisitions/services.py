"""
Requisition Service Layer - request submission and the approval workflow.

Approval follows the fail-fast pattern:
1. Lock the request row with select_for_update()
2. Check the transition is allowed from the locked status
3. On approval, lock every referenced item and validate ALL of them
4. If ANY check fails: raise, the request stays PENDING, no stock moves
5. If ALL pass: deduct stock, persist the new status, notify after commit
"""
import logging
from typing import Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from accounts.models import User
from accounts.services import get_approver
from core import events
from core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from inventory.models import Item
from inventory.services import apply_stock_movements, stock_transaction
from .models import Request, RequestLine

logger = logging.getLogger(__name__)


def validate_request_items(items: List[Dict]) -> None:
    """
    Validate request line structure.

    Args:
        items: List of dicts with 'item_id' and 'quantity'

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("Request must contain at least one item")

    seen_items = set()
    for idx, line in enumerate(items):
        if not isinstance(line, dict):
            raise ValidationError(f"Item {idx}: must be an object")
        if 'item_id' not in line:
            raise ValidationError(f"Item {idx}: missing 'item_id'")
        if 'quantity' not in line:
            raise ValidationError(f"Item {idx}: missing 'quantity'")

        quantity = line['quantity']
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(f"Item {idx}: quantity must be a positive integer")

        if line['item_id'] in seen_items:
            raise ValidationError(f"Item {idx}: duplicate item_id {line['item_id']}")
        seen_items.add(line['item_id'])


def _request_queryset():
    return Request.objects.select_related('requester', 'approved_by').prefetch_related('lines__item')


def create_request(
    requester_id,
    project_name: str,
    items: List[Dict],
    reason: str = '',
    priority: str = Request.Priority.MEDIUM,
    due_date=None,
) -> Request:
    """
    Create a pending request with its lines in one transaction.

    Raises:
        ValidationError: missing fields, unknown requester, or unknown/inactive items
    """
    if not project_name or not str(project_name).strip():
        raise ValidationError("Missing required fields: project_name")
    if priority not in Request.Priority.values:
        raise ValidationError(f"Invalid priority '{priority}'")
    validate_request_items(items)

    try:
        requester = User.objects.get(pk=requester_id, is_active=True)
    except (User.DoesNotExist, ValueError, TypeError):
        raise ValidationError("Invalid users: requester does not exist")

    try:
        item_ids = [int(line['item_id']) for line in items]
    except (ValueError, TypeError):
        raise ValidationError("item_id must be an integer")
    if len(set(item_ids)) != len(item_ids):
        raise ValidationError("Duplicate item_id in request")

    with transaction.atomic():
        found = {
            item.id: item
            for item in Item.objects.filter(id__in=item_ids, is_active=True)
        }
        missing = [item_id for item_id in item_ids if item_id not in found]
        if missing:
            raise ValidationError(
                f"Items not found or inactive: {missing}",
                detail={'missing_item_ids': missing}
            )

        request = Request.objects.create(
            project_name=str(project_name).strip(),
            requester=requester,
            reason=reason or '',
            priority=priority,
            due_date=due_date,
        )
        RequestLine.objects.bulk_create([
            RequestLine(request=request, item=found[item_id], quantity=line['quantity'])
            for item_id, line in zip(item_ids, items)
        ])

        events.emit_on_commit(events.request_submitted, sender=Request, request_id=request.id)

    logger.info(
        f"Created request {request.id} for {requester.email}: "
        f"{len(items)} lines, priority {priority}"
    )
    return get_request(request.id)


def transition_request(request_id, target_status: str, actor_id) -> Request:
    """
    Move a pending request to a terminal status.

    Approval deducts every line's quantity from stock in the same
    transaction that persists the new status. Any failure leaves both the
    request and the stock untouched.

    Raises:
        PermissionDeniedError: actor is not an active admin/manager
        NotFoundError: request (or a referenced item) does not exist
        InvalidTransitionError: target unknown or request no longer pending
        InsufficientStockError: approval would take more than is on hand
        ConflictError: another approval held the stock rows too long
    """
    actor = get_approver(actor_id)

    target_status = str(target_status)
    if target_status not in Request.Status.values or target_status == Request.Status.PENDING:
        raise InvalidTransitionError(f"Invalid status '{target_status}'")

    with stock_transaction():
        try:
            request = Request.objects.select_for_update().get(pk=request_id)
        except (Request.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"Request {request_id} not found")

        if request.is_terminal:
            raise InvalidTransitionError(
                f"Request is already {request.status}",
                detail={'current_status': request.status, 'target_status': target_status}
            )
        if not request.can_transition_to(target_status):
            raise InvalidTransitionError(
                f"Cannot change request from '{request.status}' to '{target_status}'",
                detail={'current_status': request.status, 'target_status': target_status}
            )

        if target_status == Request.Status.APPROVED:
            movements = apply_stock_movements(
                (line.item_id, -line.quantity) for line in request.lines.all()
            )
            logger.info(f"Request {request.id}: deducted stock for {len(movements)} items")

        request.status = target_status
        request.approved_by = actor
        request.approved_at = timezone.now()
        request.save(update_fields=['status', 'approved_by', 'approved_at', 'updated_at'])

        events.emit_on_commit(
            events.request_status_changed,
            sender=Request,
            request_id=request.id,
            status=target_status,
        )

    logger.info(f"Request {request.id} {target_status} by {actor.email}")
    return get_request(request.id)


def get_request(request_id) -> Request:
    try:
        return _request_queryset().get(pk=request_id)
    except (Request.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Request {request_id} not found")


def list_requests(status: Optional[str] = None, requester_id=None):
    queryset = _request_queryset()
    if status:
        queryset = queryset.filter(status=status)
    if requester_id is not None:
        queryset = queryset.filter(requester_id=requester_id)
    return queryset.order_by('-created_at')


def delete_request(request_id) -> None:
    with transaction.atomic():
        try:
            request = Request.objects.select_for_update().get(pk=request_id)
        except (Request.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"Request {request_id} not found")
        request.delete()
    logger.info(f"Deleted request {request_id}")
