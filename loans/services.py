"""
Loan Service Layer - the loan variant of the approval workflow.

Each transition runs in one transaction with the loan row locked:
- approve: take the loan quantity out of stock (fail fast if short)
- return:  put the loan quantity back
- reject / cancel: no stock movement
The periodic sweep flips past-due active loans to OVERDUE and sends one
reminder for loans due within the next 24 hours.
"""
import logging
from datetime import timedelta
from typing import Dict, Optional

from django.db import transaction
from django.utils import timezone

from accounts.models import User
from accounts.services import get_approver
from core import events
from core.exceptions import (
    AlreadyReturnedError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from inventory.models import Item
from inventory.services import apply_stock_movements, stock_transaction
from .models import Loan

logger = logging.getLogger(__name__)

DUE_SOON_WINDOW = timedelta(hours=24)


def _loan_queryset():
    return Loan.objects.select_related('user', 'item', 'approved_by')


def get_loan(loan_id) -> Loan:
    try:
        return _loan_queryset().get(pk=loan_id)
    except (Loan.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Loan {loan_id} not found")


def list_loans(status: Optional[str] = None, user_id=None):
    queryset = _loan_queryset()
    if status:
        queryset = queryset.filter(status=status)
    if user_id is not None:
        queryset = queryset.filter(user_id=user_id)
    return queryset.order_by('-created_at')


def create_loan(data: Dict) -> Loan:
    """
    Submit a pending loan.

    Raises:
        ValidationError: unknown borrower, unknown/inactive item, bad dates
    """
    try:
        borrower = User.objects.get(pk=data.get('user_id'), is_active=True)
    except (User.DoesNotExist, ValueError, TypeError):
        raise ValidationError("Invalid users: borrower does not exist")

    try:
        item = Item.objects.get(pk=data.get('item_id'), is_active=True)
    except (Item.DoesNotExist, ValueError, TypeError):
        raise ValidationError(f"Item {data.get('item_id')} not found or inactive")

    quantity = data.get('quantity', 1)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be a positive integer")

    start_date = data.get('start_date') or timezone.now()
    end_date = data.get('end_date')
    if end_date is None:
        raise ValidationError("Missing required fields: end_date")
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date")

    with transaction.atomic():
        loan = Loan.objects.create(
            user=borrower,
            item=item,
            quantity=quantity,
            start_date=start_date,
            end_date=end_date,
            purpose=data.get('purpose') or '',
            notes=data.get('notes') or '',
        )
        events.emit_on_commit(events.loan_submitted, sender=Loan, loan_id=loan.id)

    logger.info(f"Created loan {loan.id}: {quantity}x {item.name} for {borrower.email}")
    return get_loan(loan.id)


def _lock_loan(loan_id) -> Loan:
    try:
        return Loan.objects.select_for_update().get(pk=loan_id)
    except (Loan.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Loan {loan_id} not found")


def _check_transition(loan: Loan, target: str) -> None:
    if not loan.can_transition_to(target):
        raise InvalidTransitionError(
            f"Cannot change loan from '{loan.status}' to '{target}'",
            detail={'current_status': loan.status, 'target_status': target}
        )


def _finish(loan: Loan, update_fields) -> Loan:
    loan.save(update_fields=list(update_fields) + ['updated_at'])
    events.emit_on_commit(
        events.loan_status_changed,
        sender=Loan,
        loan_id=loan.id,
        status=str(loan.status),
    )
    return loan


def approve_loan(loan_id, actor_id, notes: str = None) -> Loan:
    """
    Approve a pending loan and take its quantity out of stock.

    Raises:
        PermissionDeniedError, NotFoundError, InvalidTransitionError,
        InsufficientStockError, ConflictError
    """
    actor = get_approver(actor_id)

    with stock_transaction():
        loan = _lock_loan(loan_id)
        _check_transition(loan, Loan.Status.ACTIVE)

        apply_stock_movements([(loan.item_id, -loan.quantity)])

        loan.status = Loan.Status.ACTIVE
        loan.approved_by = actor
        loan.approved_at = timezone.now()
        fields = ['status', 'approved_by', 'approved_at']
        if notes:
            loan.notes = notes
            fields.append('notes')
        _finish(loan, fields)

    logger.info(f"Loan {loan_id} approved by {actor.email}")
    return get_loan(loan_id)


def reject_loan(loan_id, actor_id, notes: str = None) -> Loan:
    actor = get_approver(actor_id)

    with transaction.atomic():
        loan = _lock_loan(loan_id)
        _check_transition(loan, Loan.Status.REJECTED)

        loan.status = Loan.Status.REJECTED
        loan.approved_by = actor
        loan.approved_at = timezone.now()
        fields = ['status', 'approved_by', 'approved_at']
        if notes:
            loan.notes = notes
            fields.append('notes')
        _finish(loan, fields)

    logger.info(f"Loan {loan_id} rejected by {actor.email}")
    return get_loan(loan_id)


def return_loan(loan_id, actor_id, notes: str = None) -> Loan:
    """
    Record the return of an active or overdue loan and restock the item.

    Raises:
        AlreadyReturnedError: the loan was returned before
        InvalidTransitionError: the loan is not out on loan
    """
    actor = get_approver(actor_id)

    with stock_transaction():
        loan = _lock_loan(loan_id)
        if loan.status == Loan.Status.RETURNED:
            raise AlreadyReturnedError()
        _check_transition(loan, Loan.Status.RETURNED)

        apply_stock_movements([(loan.item_id, loan.quantity)])

        loan.status = Loan.Status.RETURNED
        loan.actual_return_date = timezone.now()
        fields = ['status', 'actual_return_date']
        if notes:
            loan.notes = notes
            fields.append('notes')
        _finish(loan, fields)

    logger.info(f"Loan {loan_id} returned (recorded by {actor.email})")
    return get_loan(loan_id)


def cancel_loan(loan_id, actor_id) -> Loan:
    """
    Withdraw a pending loan. Allowed for the borrower and for staff.
    """
    try:
        actor = User.objects.get(pk=actor_id, is_active=True)
    except (User.DoesNotExist, ValueError, TypeError):
        raise PermissionDeniedError("A valid actor_id is required to cancel a loan")

    with transaction.atomic():
        loan = _lock_loan(loan_id)
        if loan.user_id != actor.id and not actor.is_approver:
            raise PermissionDeniedError("Only the borrower or staff may cancel this loan")
        _check_transition(loan, Loan.Status.CANCELLED)

        loan.status = Loan.Status.CANCELLED
        _finish(loan, ['status'])

    logger.info(f"Loan {loan_id} cancelled by {actor.email}")
    return get_loan(loan_id)


# =============================================================================
# Periodic sweep
# =============================================================================

def mark_overdue_loans(now=None) -> int:
    """Flip active loans whose end date has passed to OVERDUE."""
    now = now or timezone.now()
    count = 0
    with transaction.atomic():
        for loan in Loan.objects.select_for_update().filter(
            status=Loan.Status.ACTIVE, end_date__lt=now
        ).order_by('end_date'):
            loan.status = Loan.Status.OVERDUE
            _finish(loan, ['status'])
            count += 1

    if count:
        logger.warning(f"Marked {count} loans overdue")
    return count


def send_due_soon_reminders(now=None) -> int:
    """Send one reminder for each active loan due within the next 24 hours."""
    now = now or timezone.now()
    count = 0
    with transaction.atomic():
        for loan in Loan.objects.select_for_update().filter(
            status=Loan.Status.ACTIVE,
            end_date__gte=now,
            end_date__lte=now + DUE_SOON_WINDOW,
            reminders_sent=0,
        ).order_by('end_date'):
            loan.reminders_sent += 1
            loan.save(update_fields=['reminders_sent', 'updated_at'])
            events.emit_on_commit(events.loan_due_soon, sender=Loan, loan_id=loan.id)
            count += 1

    if count:
        logger.info(f"Queued {count} due-soon reminders")
    return count
